"""Stable per-device analytics session identifier."""

import logging
import secrets
import time

from redis.exceptions import RedisError

from katalog.services.device_storage import SESSION_ID_KEY, DeviceStorage

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_session_id() -> str:
    """Build a new id of the form ``session_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class SessionIdentity:
    """Resolves the device's session id once and remembers it.

    The id never expires; it only changes when the device storage is cleared.
    """

    def __init__(self, storage: DeviceStorage) -> None:
        self.storage = storage
        self._session_id: str | None = None

    async def get_session_id(self) -> str:
        if self._session_id:
            return self._session_id

        try:
            session_id = await self.storage.get_item(SESSION_ID_KEY)
            if not session_id:
                session_id = generate_session_id()
                await self.storage.set_item(SESSION_ID_KEY, session_id)
        except RedisError:
            logger.warning("Device storage unavailable, using a throwaway session id")
            return generate_session_id()

        self._session_id = session_id
        return session_id

    def forget(self) -> None:
        """Drop the in-process copy; the stored id is left alone."""
        self._session_id = None
