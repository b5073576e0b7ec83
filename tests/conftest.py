import os

# keep the module-level engine away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app import crud
from app.config import CookieOptions, Settings, get_settings
from app.database import Base, get_db
from app.main import app
from app.media import get_media_host
from app.schemas import VideoCreate

API = "/api/v1/users"
PASSWORD = "s3cret-pass"


class FakeMediaHost:
    """Stands in for the external media host; remembers what it was sent."""

    def __init__(self):
        self.uploads = []
        self.fail = False

    async def upload(self, local_path):
        if not local_path or self.fail:
            return None
        self.uploads.append(local_path)
        return {"url": f"https://media.example.com/{os.path.basename(local_path)}"}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        access_token_secret="test-access-secret",
        refresh_token_secret="test-refresh-secret",
        cookies=CookieOptions(secure=True),
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def media_host():
    return FakeMediaHost()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, settings, media_host):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_media_host] = lambda: media_host
    # https so the secure session cookies are stored and sent back
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as c:
        yield c
    app.dependency_overrides.clear()


async def register(client, username, email=None, fullname=None, password=PASSWORD, cover=False):
    files = {"avatar": ("avatar.png", b"\x89PNG avatar", "image/png")}
    if cover:
        files["coverImage"] = ("cover.jpg", b"cover bytes", "image/jpeg")
    data = {
        "username": username,
        "email": email or f"{username.lower()}@example.com",
        "fullname": fullname or f"{username} Fullname",
        "password": password,
    }
    return await client.post(f"{API}/register", data=data, files=files)


async def login(client, username, password=PASSWORD):
    response = await client.post(f"{API}/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


async def seed_user(db, username, password=PASSWORD):
    return await crud.create_user(
        db,
        username=username,
        email=f"{username}@example.com",
        fullname=f"{username.title()} Example",
        password=password,
        avatar=f"https://media.example.com/{username}.png",
    )


async def seed_video(db, owner, title):
    return await crud.create_video(
        db,
        VideoCreate(
            video_file=f"https://media.example.com/{title}.mp4",
            thumbnail=f"https://media.example.com/{title}.jpg",
            title=title,
            duration=12.5,
            owner_id=owner.id,
        ),
    )
