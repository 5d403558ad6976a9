"""Pytest configuration and fixtures for the Katalog API test suite.

Provides:
- Test database with table truncation cleanup per test (skipped when
  PostgreSQL is unreachable)
- Mock authentication (JWT bypass)
- Mock Redis (fakeredis) for device storage and analytics
- Mock anonymous sign-in
- Disabled rate limiting
- Model factory fixtures for Store, Category and Product
"""

from collections.abc import AsyncGenerator, Callable
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from katalog.core.auth import get_current_user, get_optional_user
from katalog.core.config import settings
from katalog.core.database import get_async_session
from katalog.core.deps import get_auth_client, get_db, get_redis
from katalog.core.rate_limit import limiter
from katalog.main import app
from katalog.models.base import Base
from katalog.models.category import Category, CategoryLevel
from katalog.models.product import Product
from katalog.models.store import Store, StoreCategory
from katalog.schemas.analytics import Principal
from katalog.services.anonymous_identity import AnonymousAuthClient
from katalog.services.device_storage import DeviceStorage

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_USER_ID = "test-user-id"
TEST_USER_EMAIL = "test@example.com"
OTHER_USER_ID = "other-user-id"
ANON_USER_ID = "anon-user-id"
TEST_DEVICE_ID = "device-test-0001"

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False

# ---------------------------------------------------------------------------
# Session-scoped engine & table setup
# ---------------------------------------------------------------------------

_test_engine: Any = None
_test_session_factory: Any = None
_base_url = str(settings.database_url)
_TEST_DATABASE_URL = (
    _base_url if _base_url.endswith("/katalog_test") else _base_url.replace("/katalog", "/katalog_test")
)

# Tables to truncate after each test (reverse dependency order)
_TABLES_TO_TRUNCATE = [
    "products",
    "categories",
    "stores",
]


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def _create_tables() -> AsyncGenerator[None, None]:
    """Create all tables once per test session in the katalog_test database.

    Uses NullPool to avoid asyncpg connection-loop affinity issues with
    starlette's BaseHTTPMiddleware (which spawns sub-tasks). Every test that
    needs the database is skipped when it cannot be reached.
    """
    global _test_engine, _test_session_factory  # noqa: PLW0603
    engine = create_async_engine(
        _TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=NullPool,
    )
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:  # noqa: BLE001
        await engine.dispose()
        pytest.skip(f"PostgreSQL test database unavailable: {exc}")

    _test_engine = engine
    _test_session_factory = async_sessionmaker(
        _test_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield
    await _test_engine.dispose()
    _test_engine = None


# ---------------------------------------------------------------------------
# Per-test database session + cleanup
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(loop_scope="session")
async def db_session(_create_tables: None) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for test setup (factory fixtures)."""
    async with _test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(autouse=True, loop_scope="session")
async def _cleanup_tables() -> AsyncGenerator[None, None]:
    """Truncate all tables after each test to restore a clean state."""
    yield
    if _test_engine is not None:
        async with _test_engine.begin() as conn:
            await conn.execute(text(f"TRUNCATE {', '.join(_TABLES_TO_TRUNCATE)} CASCADE"))


# ---------------------------------------------------------------------------
# Fake Redis & device storage
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def device_storage(fake_redis: fakeredis.aioredis.FakeRedis) -> DeviceStorage:
    """Device storage for the test device."""
    return DeviceStorage(fake_redis, TEST_DEVICE_ID)


# ---------------------------------------------------------------------------
# Auth mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_user() -> dict[str, Any]:
    """Return the default authenticated test user payload (mimics decoded JWT)."""
    return {
        "sub": TEST_USER_ID,
        "email": TEST_USER_EMAIL,
    }


@pytest.fixture
def anon_auth_client() -> AsyncMock:
    """Anonymous sign-in that always succeeds with the same principal."""
    client = AsyncMock(spec=AnonymousAuthClient)
    client.sign_in_anonymously.return_value = Principal(uid=ANON_USER_ID, is_anonymous=True)
    return client


def _override_redis_with(fake_redis: fakeredis.aioredis.FakeRedis) -> Callable[..., Any]:
    async def _override_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
        yield fake_redis

    return _override_redis


# ---------------------------------------------------------------------------
# Clients without a database (consent & analytics)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def api_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
    auth_user: dict[str, Any],
    anon_auth_client: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated client for Redis-only endpoints, on the test device."""

    async def _override_user() -> dict[str, Any]:
        return auth_user

    app.dependency_overrides[get_current_user] = _override_user
    app.dependency_overrides[get_optional_user] = _override_user
    app.dependency_overrides[get_redis] = _override_redis_with(fake_redis)
    app.dependency_overrides[get_auth_client] = lambda: anon_auth_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Device-ID": TEST_DEVICE_ID},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def visitor_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
    anon_auth_client: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous storefront visitor on the test device. Auth is NOT overridden."""
    app.dependency_overrides[get_redis] = _override_redis_with(fake_redis)
    app.dependency_overrides[get_auth_client] = lambda: anon_auth_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Device-ID": TEST_DEVICE_ID},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Database-backed clients
# ---------------------------------------------------------------------------


async def _override_session() -> AsyncGenerator[AsyncSession, None]:
    async with _test_session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,  # noqa: ARG001  # Ensures _create_tables runs
    fake_redis: fakeredis.aioredis.FakeRedis,
    auth_user: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated async test client with all dependencies overridden."""

    async def _override_user() -> dict[str, Any]:
        return auth_user

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_current_user] = _override_user
    app.dependency_overrides[get_optional_user] = _override_user
    app.dependency_overrides[get_redis] = _override_redis_with(fake_redis)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def unauthed_client(
    db_session: AsyncSession,  # noqa: ARG001  # Ensures _create_tables runs
    fake_redis: fakeredis.aioredis.FakeRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async test client. Auth is NOT overridden."""
    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_redis] = _override_redis_with(fake_redis)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Lightweight client (no overrides, for stateless endpoint tests)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def store_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Store instances in the test database."""

    async def _create(
        *,
        owner_id: str = TEST_USER_ID,
        name: str = "Test Store",
        custom_url: str = "teststore",
        category: StoreCategory = StoreCategory.BOUTIQUE,
        phone_number: str | None = "+90 555 123 45 67",
        is_visible: bool = True,
        **extra: Any,
    ) -> Store:
        store = Store(
            owner_id=owner_id,
            name=name,
            custom_url=custom_url,
            category=category,
            phone_number=phone_number,
            is_visible=is_visible,
            **extra,
        )
        db_session.add(store)
        await db_session.commit()
        await db_session.refresh(store)
        return store

    return _create


@pytest_asyncio.fixture
async def store(store_factory: Callable[..., Any]) -> Store:
    """The test user's store."""
    return await store_factory()


@pytest.fixture
def category_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Category instances."""

    async def _create(
        *,
        store_id: UUID,
        name: str = "Clothing",
        level: CategoryLevel = CategoryLevel.MAIN,
        parent_id: UUID | None = None,
    ) -> Category:
        category = Category(store_id=store_id, name=name, level=level, parent_id=parent_id)
        db_session.add(category)
        await db_session.commit()
        await db_session.refresh(category)
        return category

    return _create


@pytest.fixture
def product_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Product instances."""

    async def _create(
        *,
        store_id: UUID,
        main_category_id: UUID,
        name: str = "Test Product",
        price: Decimal | None = Decimal("100.00"),
        show_price: bool = True,
        highlighted: bool = False,
        image_urls: list[str] | None = None,
        **extra: Any,
    ) -> Product:
        product = Product(
            store_id=store_id,
            main_category_id=main_category_id,
            name=name,
            price=price,
            show_price=show_price,
            highlighted=highlighted,
            image_urls=image_urls or [],
            **extra,
        )
        db_session.add(product)
        await db_session.commit()
        await db_session.refresh(product)
        return product

    return _create
