"""Shared test fixtures.

Environment is pinned before the application is imported so the settings
singleton sees a local, object-store-free configuration.
"""

import os
import tempfile

os.environ["ENVIRONMENT"] = "dev"
os.environ["RAILWAY_ENVIRONMENT"] = ""
os.environ["APP_BASE_URL"] = "https://qr.example.test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOCAL_STORAGE_ROOT"] = tempfile.mkdtemp(prefix="qrvault-")
os.environ["LOG_JSON"] = "false"
for _name in ("R2_ENDPOINT", "R2_BUCKET", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY", "R2_PUBLIC_URL"):
    os.environ[_name] = ""

from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from qrvault.infra.storage import (
    LocalFilesystemBackend,
    ObjectStoreBackend,
    OnDemandBackend,
    StorageManager,
)
from qrvault.models import Base
from qrvault.services.allocation_service import SerialAllocator
from qrvault.services.qr_service import QRArtifactService

BASE_URL = "https://qr.example.test"
PUBLIC_URL = "https://cdn.example.test"


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """In-memory SQLite database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def local_storage(tmp_path: Path) -> StorageManager:
    return StorageManager(LocalFilesystemBackend(tmp_path, fallback=OnDemandBackend(BASE_URL)))


@pytest.fixture
def s3_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def object_storage(s3_client: MagicMock) -> StorageManager:
    return StorageManager(ObjectStoreBackend("qr-bucket", PUBLIC_URL, s3_client))


@pytest.fixture
def artifacts(local_storage: StorageManager) -> QRArtifactService:
    return QRArtifactService(local_storage)


@pytest.fixture
def allocator() -> SerialAllocator:
    return SerialAllocator()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    local_storage: StorageManager,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with test database and storage."""
    from qrvault.api.deps import get_db, get_storage
    from qrvault.main import app

    async def override_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session
            await session.commit()

    async def override_storage() -> StorageManager:
        return local_storage

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_storage] = override_storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
