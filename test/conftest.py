"""
Pytest configuration and fixtures for the permission engine tests

Every test gets a fresh in-memory SQLite database.  Route tests talk to the
real application through httpx's ASGI transport with the database and the
permission cache dependencies overridden.
"""

import os
from collections.abc import AsyncGenerator

# Must be set before the application settings are imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "false")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from main import app  # noqa: E402
from portal_authz.database import Base, get_db  # noqa: E402
from portal_authz.utils.cache import PermissionCache, get_permission_cache  # noqa: E402
from utils.factories import make_token  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function", autouse=True)
async def setup_database():
    """Create a fresh database for each test function"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the application with test overrides"""

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    async def override_get_permission_cache():
        return PermissionCache()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_permission_cache] = override_get_permission_cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build bearer headers for any caller uid"""

    def _headers(uid: str) -> dict:
        return {"Authorization": f"Bearer {make_token(uid)}"}

    return _headers
