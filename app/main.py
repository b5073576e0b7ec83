# app/main.py
"""
uvicorn app.main:app --host 0.0.0.0 --port 8000 --workers 2
"""
import logging

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from app.config import get_settings
from app.database import init_models
from app.errors import register_exception_handlers
from app.routes import router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Unhandled exceptions are reported to Sentry; a missing DSN disables it.
sentry_sdk.init(
    dsn=settings.sentry_dsn,
    integrations=[StarletteIntegration(), FastApiIntegration()],
    send_default_pii=False,
)

app = FastAPI(title="VideoTube Accounts")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# Create DB tables
@app.on_event("startup")
async def startup_event():
    await init_models()


@app.get("/healthcheck")
async def healthcheck():
    return {"statusCode": 200, "data": "OK", "message": "Healthy", "success": True}


app.include_router(router)
