# app/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class CookieOptions(BaseModel):
    """Flags shared by every session cookie the API sets or clears."""
    httponly: bool = True
    secure: bool = True
    samesite: str = "lax"
    path: str = "/"


class Settings(BaseSettings):
    # COOKIES__SECURE=false turns off the secure flag for local http
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///./videotube.db"
    database_echo: bool = False

    access_token_secret: str = "change-me-access"
    access_token_expire_minutes: int = 60
    refresh_token_secret: str = "change-me-refresh"
    refresh_token_expire_days: int = 10
    jwt_algorithm: str = "HS256"

    cookies: CookieOptions = CookieOptions()

    media_upload_url: str = "https://api.cloudinary.com/v1_1/demo/auto/upload"
    media_upload_preset: str = "videotube"
    media_upload_timeout: float = 60.0
    upload_dir: str = "./public/temp"

    cors_origins: List[str] = []  # JSON list, e.g. ["https://app.example.com"]
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
