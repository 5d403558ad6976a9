"""Dependency injection for FastAPI routes."""

import re
import uuid
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Annotated, Any
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Cookie, Depends, Header, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# Re-export auth dependencies for convenience
from katalog.core.auth import (
    CurrentUser,
    OptionalUser,
    get_current_user,
    get_optional_user,
    get_user_id,
)
from katalog.core.config import settings
from katalog.core.database import get_async_session
from katalog.core.logging_config import device_id_var
from katalog.schemas.analytics import Principal
from katalog.services.analytics_service import (
    AnalyticsContext,
    AnalyticsReader,
    ClientInfo,
    EventRecorder,
)
from katalog.services.anonymous_identity import AnonymousAuthClient
from katalog.services.consent_service import ConsentStore
from katalog.services.device_storage import DeviceStorage
from katalog.services.event_store import EventStore
from katalog.services.web_analytics import WebAnalyticsForwarder

if TYPE_CHECKING:
    from katalog.models.store import Store

DEVICE_COOKIE = "katalog_device_id"
DEVICE_HEADER = "X-Device-ID"
_DEVICE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{8,64}$")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session so tests can override one name."""
    async for session in get_async_session():
        yield session


DBSession = Annotated[AsyncSession, Depends(get_db)]


# Shared Redis connection pool
_redis_pool: aioredis.ConnectionPool | None = None


def _get_redis_pool() -> aioredis.ConnectionPool:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.ConnectionPool.from_url(
            str(settings.redis_url), decode_responses=True
        )
    return _redis_pool


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Yield a Redis client from the shared connection pool."""
    pool = _get_redis_pool()
    r = aioredis.Redis(connection_pool=pool)
    try:
        yield r
    finally:
        await r.aclose()


RedisClient = Annotated[aioredis.Redis, Depends(get_redis)]


# === Device & analytics ===


async def get_device_id(
    response: Response,
    device_header: str | None = Header(default=None, alias=DEVICE_HEADER),
    device_cookie: str | None = Cookie(default=None, alias=DEVICE_COOKIE),
) -> str:
    """Identify the calling device, issuing a new id on first contact.

    The id plays the role of the browser profile: consent, session id and
    the anonymous event buffer all live under it.
    """
    device_id = device_header or device_cookie
    if device_id is None:
        device_id = uuid.uuid4().hex
        response.set_cookie(
            DEVICE_COOKIE,
            device_id,
            max_age=60 * 60 * 24 * 365,
            httponly=True,
            samesite="lax",
        )
    elif not _DEVICE_ID_RE.match(device_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid device identifier",
        )

    response.headers[DEVICE_HEADER] = device_id
    device_id_var.set(device_id)
    return device_id


async def get_device_storage(
    redis: RedisClient,
    device_id: str = Depends(get_device_id),
) -> DeviceStorage:
    return DeviceStorage(redis, device_id)


def get_consent_store(storage: DeviceStorage = Depends(get_device_storage)) -> ConsentStore:
    return ConsentStore(storage)


def get_event_store(redis: RedisClient) -> EventStore:
    return EventStore(redis)


def get_auth_client() -> AnonymousAuthClient:
    return AnonymousAuthClient(settings.auth_url, timeout=settings.anonymous_auth_timeout)


def get_web_analytics() -> WebAnalyticsForwarder | None:
    if not settings.web_analytics_enabled:
        return None
    return WebAnalyticsForwarder(settings.ga_measurement_id, settings.ga_api_secret)


def principal_from_claims(user: dict[str, Any] | None) -> Principal | None:
    """Turn verified Better Auth claims into a principal."""
    if not user or not user.get("sub"):
        return None
    return Principal(
        uid=str(user["sub"]),
        is_anonymous=bool(user.get("isAnonymous", False)),
        email=user.get("email"),
    )


async def get_analytics_context(
    request: Request,
    user: OptionalUser,
    storage: DeviceStorage = Depends(get_device_storage),
    auth_client: AnonymousAuthClient = Depends(get_auth_client),
    page_path: str | None = Header(default=None, alias="X-Page-Path"),
) -> AsyncGenerator[AnalyticsContext, None]:
    """Yield an initialised analytics context for the calling device."""
    client = ClientInfo(
        user_agent=request.headers.get("user-agent", ""),
        referrer=request.headers.get("referer", ""),
        page_path=page_path or "",
    )
    async with AnalyticsContext(
        storage,
        auth_client,
        client=client,
        current_principal=principal_from_claims(user),
        sign_in_timeout=settings.anonymous_auth_timeout,
    ) as context:
        yield context


AnalyticsContextDep = Annotated[AnalyticsContext, Depends(get_analytics_context)]


def get_event_recorder(
    context: AnalyticsContextDep,
    event_store: EventStore = Depends(get_event_store),
    web_analytics: WebAnalyticsForwarder | None = Depends(get_web_analytics),
) -> EventRecorder:
    return EventRecorder(
        context,
        event_store,
        web_analytics=web_analytics,
        merge_lock_timeout=settings.merge_lock_timeout,
    )


def get_analytics_reader(event_store: EventStore = Depends(get_event_store)) -> AnalyticsReader:
    return AnalyticsReader(event_store)


# === Stores ===


async def get_store_for_user(
    store_id: UUID,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> "Store":
    """Get a store by ID, verifying the caller owns it."""
    from katalog.models.store import Store

    query = select(Store).where(
        Store.id == store_id,
        Store.owner_id == get_user_id(user),
    )
    result = await db.execute(query)
    store = result.scalar_one_or_none()

    if not store:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Store not found or access denied",
        )

    return store


async def get_owned_store(user: CurrentUser, db: DBSession) -> "Store":
    """The caller's own store; each user has at most one."""
    from katalog.models.store import Store

    result = await db.execute(select(Store).where(Store.owner_id == get_user_id(user)))
    store = result.scalar_one_or_none()
    if not store:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Store not set up yet",
        )
    return store


__all__ = [
    "AnalyticsContextDep",
    "CurrentUser",
    "DBSession",
    "OptionalUser",
    "RedisClient",
    "get_analytics_context",
    "get_analytics_reader",
    "get_consent_store",
    "get_current_user",
    "get_db",
    "get_device_id",
    "get_device_storage",
    "get_event_recorder",
    "get_event_store",
    "get_optional_user",
    "get_owned_store",
    "get_redis",
    "get_store_for_user",
    "get_user_id",
]
