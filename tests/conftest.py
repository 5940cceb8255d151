# tests/conftest.py
from __future__ import annotations

import io
import os
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from decimal import Decimal
from itertools import count
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

os.environ.setdefault("SECRET_KEY", "teasr-test-secret")
os.environ.setdefault("VIRAL_SWEEP_ENABLED", "false")

from teasr_stage.core.security import create_access_token
from teasr_stage.core.settings import Settings
from teasr_stage.db.session import build_engine, build_session_factory, create_tables
from teasr_stage.db.session import get_db as app_get_session
from teasr_stage.main import app as fastapi_app
from teasr_stage.models import Post, User
from teasr_stage.services.blob_store import LocalBlobStore
from teasr_stage.services.broadcast import InMemoryBroadcaster
from teasr_stage.services.publisher import PublishRequest
from teasr_stage.services.registry import ServiceRegistry, build_services, get_services

TEST_SECRET = "teasr-test-secret"

_USER_COUNTER = count(1)


def png_bytes(size: tuple[int, int] = (64, 48), color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def test_settings() -> Settings:
    """Development settings with the default fee and price table."""
    return Settings(SECRET_KEY=TEST_SECRET, APP_ENV="development", REDIS_URL=None)


@pytest.fixture()
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'teasr.db'}")
    await create_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture()
def broadcaster() -> InMemoryBroadcaster:
    return InMemoryBroadcaster()


@pytest.fixture()
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture()
def services(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    broadcaster: InMemoryBroadcaster,
    blob_store: LocalBlobStore,
) -> ServiceRegistry:
    return build_services(
        test_settings, session_factory, broadcaster=broadcaster, blob_store=blob_store
    )


@pytest.fixture()
def make_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[User]]:
    async def _make_user(username: str | None = None) -> User:
        n = next(_USER_COUNTER)
        user = User(
            username=username or f"user{n}",
            wallet_address=f"0x{n:040x}",
        )
        async with session_factory() as session, session.begin():
            session.add(user)
        return user

    return _make_user


@pytest.fixture()
def make_post(services: ServiceRegistry) -> Callable[..., Awaitable[Post]]:
    async def _make_post(creator: User, **overrides: Any) -> Post:
        fields: dict[str, Any] = {
            "creator_id": creator.id,
            "title": "Sunset",
            "content": png_bytes(),
            "mime_type": "image/png",
            "price": Decimal("5.00"),
        }
        fields.update(overrides)
        return await services.publisher.publish(PublishRequest(**fields))

    return _make_post


@pytest.fixture()
def app(
    services: ServiceRegistry,
    session_factory: async_sessionmaker[AsyncSession],
) -> Iterator[FastAPI]:
    async def _get_session_override() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_services] = lambda: services
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(app_get_session, None)
        fastapi_app.dependency_overrides.pop(get_services, None)


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def image_bytes() -> bytes:
    return png_bytes()
