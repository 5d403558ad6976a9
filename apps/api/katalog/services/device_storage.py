"""Per-device key-value storage backed by Redis.

Each visiting device (browser profile) gets its own key namespace, mirroring
the semantics of the browser's localStorage: string values, get/set/remove,
no expiry. Redis errors propagate to the caller, which decides how to degrade.
"""

import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

# Keys used by the consent and analytics pipeline
CONSENT_KEY = "cookieConsent"
CONSENT_SETTINGS_KEY = "cookieSettings"
SESSION_ID_KEY = "analytics_session_id"
ANONYMOUS_EVENTS_KEY = "anonymous_analytics"
ANONYMOUS_PRINCIPAL_KEY = "anonymous_principal"


class DeviceStorage:
    """localStorage-like view of one device's keys in Redis."""

    def __init__(self, redis: aioredis.Redis, device_id: str) -> None:
        self.redis = redis
        self.device_id = device_id

    def _key(self, key: str) -> str:
        return f"device:{self.device_id}:{key}"

    async def get_item(self, key: str) -> str | None:
        value = await self.redis.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set_item(self, key: str, value: str) -> None:
        await self.redis.set(self._key(key), value)

    async def remove_item(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    @asynccontextmanager
    async def exclusive(self, name: str, timeout: float) -> AsyncIterator[bool]:
        """Try to take a short-lived lock on ``name`` without waiting.

        Yields True when the lock was acquired, False when another holder has
        it. The lock expires after ``timeout`` seconds so a crashed holder
        cannot wedge the device.
        """
        lock_key = self._key(f"lock:{name}")
        token = secrets.token_hex(8)
        acquired = bool(
            await self.redis.set(lock_key, token, nx=True, px=int(timeout * 1000))
        )
        try:
            yield acquired
        finally:
            if acquired:
                current = await self.redis.get(lock_key)
                if isinstance(current, bytes):
                    current = current.decode()
                # Only release our own lock; it may have expired and been retaken
                if current == token:
                    await self.redis.delete(lock_key)
                else:
                    logger.warning("Lock %s expired before release", lock_key)
