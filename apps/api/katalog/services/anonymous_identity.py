"""Anonymous identity bridge to the Better Auth service.

Anonymous visitors still need a principal before their events may go to the
shared event store. The bridge hands out the request's principal when there
is one, otherwise signs the device in anonymously, at most once at a time.
"""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError
from redis.exceptions import RedisError

from katalog.schemas.analytics import Principal
from katalog.services.device_storage import ANONYMOUS_PRINCIPAL_KEY, DeviceStorage

logger = logging.getLogger(__name__)

# How often a request waiting on another sign-in for the same device checks back
SIGN_IN_POLL_INTERVAL = 0.05


class AnonymousAuthError(Exception):
    """Anonymous sign-in was rejected or could not be attempted."""


class AnonymousAuthClient:
    """Calls Better Auth's anonymous sign-in endpoint."""

    def __init__(
        self,
        auth_url: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.auth_url = auth_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    async def _post(self, url: str) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, json={}, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json={})

    async def sign_in_anonymously(self) -> Principal:
        """Create an anonymous user.

        Raises:
            AnonymousAuthError: If the service is unreachable, refuses the
                request (e.g. the anonymous plugin is disabled) or answers
                with an unexpected body.
        """
        url = f"{self.auth_url}/api/auth/sign-in/anonymous"
        try:
            response = await self._post(url)
            response.raise_for_status()
            body: dict[str, Any] = response.json()
            user = body["user"]
            return Principal(
                uid=str(user["id"]),
                is_anonymous=True,
                email=user.get("email"),
            )
        except httpx.HTTPStatusError as exc:
            raise AnonymousAuthError(
                f"Anonymous sign-in rejected with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AnonymousAuthError(f"Anonymous sign-in failed: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise AnonymousAuthError("Unexpected anonymous sign-in response") from exc


class AnonymousIdentityBridge:
    """Resolves a principal for analytics writes.

    Concurrent callers share one pending sign-in. Within a bridge they await
    the same task; across requests from the same device they queue on a
    per-device lock and pick up the principal the lock holder cached. A
    failed attempt is forgotten so the next call may try again.
    """

    def __init__(
        self,
        auth_client: AnonymousAuthClient,
        storage: DeviceStorage,
        current: Principal | None = None,
        sign_in_timeout: float = 10.0,
    ) -> None:
        self.auth_client = auth_client
        self.storage = storage
        self.sign_in_timeout = sign_in_timeout
        self._principal = current
        self._pending: asyncio.Task[Principal] | None = None

    @property
    def principal(self) -> Principal | None:
        return self._principal

    async def ensure_anonymous_identity(self) -> Principal:
        if self._principal is not None:
            return self._principal

        task = self._pending
        if task is None:
            task = self._pending = asyncio.create_task(self._resolve())
        # Shielded so one cancelled caller does not cancel the shared attempt
        return await asyncio.shield(task)

    async def _resolve(self) -> Principal:
        try:
            principal = await self._load_cached()
            if principal is None:
                principal = await self._sign_in_device()
            self._principal = principal
            return principal
        except AnonymousAuthError:
            logger.warning("Anonymous sign-in failed for device %s", self.storage.device_id)
            raise
        finally:
            self._pending = None

    async def _sign_in_device(self) -> Principal:
        """Sign the device in, or wait for another request already doing it."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.sign_in_timeout
        waited = False

        while True:
            principal: Principal | None = None
            try:
                async with self.storage.exclusive(
                    ANONYMOUS_PRINCIPAL_KEY, timeout=self.sign_in_timeout
                ) as acquired:
                    if acquired:
                        principal = await self._load_cached()
                        if principal is None:
                            if waited:
                                raise AnonymousAuthError(
                                    "Concurrent anonymous sign-in for this device failed"
                                )
                            principal = await self._sign_in()
            except RedisError:
                if principal is not None:
                    logger.warning("Could not release the sign-in lock for this device")
                    return principal
                logger.warning("Device storage unavailable, signing in without device lock")
                return await self._sign_in()
            if principal is not None:
                return principal

            waited = True
            if loop.time() >= deadline:
                raise AnonymousAuthError("Timed out waiting for anonymous sign-in on this device")
            await asyncio.sleep(SIGN_IN_POLL_INTERVAL)

    async def _sign_in(self) -> Principal:
        principal = await self.auth_client.sign_in_anonymously()
        logger.info("Signed in device anonymously as %s", principal.uid)
        await self._store(principal)
        return principal

    async def _load_cached(self) -> Principal | None:
        try:
            raw = await self.storage.get_item(ANONYMOUS_PRINCIPAL_KEY)
        except RedisError:
            return None
        if not raw:
            return None
        try:
            return Principal.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cached principal")
            return None

    async def _store(self, principal: Principal) -> None:
        try:
            await self.storage.set_item(ANONYMOUS_PRINCIPAL_KEY, principal.model_dump_json())
        except RedisError:
            logger.warning("Device storage unavailable, anonymous principal not cached")

    async def dispose(self) -> None:
        """Cancel a sign-in still in flight."""
        task, self._pending = self._pending, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, AnonymousAuthError):
                pass
