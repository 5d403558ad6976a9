"""Storefront analytics pipeline: consent-gated recording, merge and rollup reads."""

import enum
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from katalog.schemas.analytics import (
    AnalyticsDashboard,
    AnalyticsEventDoc,
    EventType,
    Principal,
    ProductAnalyticsSummary,
    UserAnalyticsSummary,
)
from katalog.services.anonymous_identity import (
    AnonymousAuthClient,
    AnonymousAuthError,
    AnonymousIdentityBridge,
)
from katalog.services.consent_service import ConsentStore
from katalog.services.device_storage import ANONYMOUS_EVENTS_KEY, DeviceStorage
from katalog.services.event_store import EventStore
from katalog.services.session_identity import SessionIdentity
from katalog.services.web_analytics import WebAnalyticsForwarder

logger = logging.getLogger(__name__)

ANONYMOUS_PREFIX = "anonymous_"


class _Missing(enum.Enum):
    MISSING = "MISSING"

    def __repr__(self) -> str:
        return "MISSING"


# Marks a value that was never provided; never written to storage
MISSING = _Missing.MISSING


def _clean(value: Any) -> Any:
    if value is MISSING:
        return None
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True, exclude_unset=True, mode="json")
    if isinstance(value, Mapping):
        return {str(k): _clean(v) for k, v in value.items() if v is not MISSING}
    if isinstance(value, list | tuple):
        return [_clean(v) for v in value]
    return value


def sanitize_payload(payload: Any) -> dict[str, Any]:
    """Return a storable copy of ``payload`` with every MISSING field dropped.

    Mapping entries whose value is MISSING are removed, MISSING list items
    become None, and explicit None values are kept. Pydantic payloads are
    dumped with their wire (camelCase) names, leaving out unset fields and
    the ``event_type`` tag. Sanitizing twice gives the same result.
    """
    if payload is None or payload is MISSING:
        return {}
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(
            by_alias=True, exclude_unset=True, exclude={"event_type"}, mode="json"
        )
    cleaned = _clean(payload)
    return cleaned if isinstance(cleaned, dict) else {}


@dataclass
class ClientInfo:
    """What the browser would report about the page an event came from."""

    user_agent: str = ""
    referrer: str = ""
    page_path: str = ""


class AnalyticsContext:
    """Per-device state the pipeline needs: consent, session id and identity.

    Created per request (or per test) rather than held in module globals,
    and closed with ``dispose()`` so a pending anonymous sign-in does not
    outlive it.
    """

    def __init__(
        self,
        storage: DeviceStorage,
        auth_client: AnonymousAuthClient,
        client: ClientInfo | None = None,
        current_principal: Principal | None = None,
        sign_in_timeout: float = 10.0,
    ) -> None:
        self.storage = storage
        self.client = client or ClientInfo()
        self.consent = ConsentStore(storage)
        self.session = SessionIdentity(storage)
        self.identity = AnonymousIdentityBridge(
            auth_client,
            storage,
            current=current_principal,
            sign_in_timeout=sign_in_timeout,
        )
        self.active = False

    async def init(self) -> "AnalyticsContext":
        self.active = True
        return self

    async def dispose(self) -> None:
        self.active = False
        await self.identity.dispose()
        self.session.forget()

    async def __aenter__(self) -> "AnalyticsContext":
        return await self.init()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()


class EventRecorder:
    """The analytics write path.

    Nothing here raises to the caller: consent refusal is a silent no-op and
    every backend failure is logged and dropped. The raw event write and the
    rollup updates are independent; one failing does not stop the other.
    """

    def __init__(
        self,
        context: AnalyticsContext,
        event_store: EventStore,
        web_analytics: WebAnalyticsForwarder | None = None,
        merge_lock_timeout: float = 30.0,
    ) -> None:
        self.context = context
        self.event_store = event_store
        self.web_analytics = web_analytics
        self.merge_lock_timeout = merge_lock_timeout

    async def record(
        self,
        event_type: EventType | str,
        user_id: str | None,
        payload: Any = None,
    ) -> None:
        """Record one interaction, attributed to ``user_id`` when known."""
        if not self.context.active:
            logger.warning("Analytics context is not active; dropping %s", event_type)
            return

        if not await self.context.consent.is_allowed("analytics"):
            return

        try:
            kind = EventType(event_type)
        except ValueError:
            logger.warning("Unknown analytics event type: %s", event_type)
            return

        data = sanitize_payload(payload)
        logger.debug(
            "Tracking %s for %s", kind.value, user_id or "ANONYMOUS", extra={"event_data": data}
        )

        await self._write_event(kind, user_id, data)
        await self._update_rollups(kind, user_id, data)

        if self.web_analytics is not None:
            try:
                session_id = await self.context.session.get_session_id()
                await self.web_analytics.send(kind, session_id, data)
            except Exception:
                logger.exception("Web analytics forward failed")

    async def track_page_view(self, user_id: str | None, page_path: str) -> None:
        await self.record(
            EventType.STORE_VISIT,
            user_id,
            {"pagePath": page_path, "timestamp": datetime.now(UTC).isoformat()},
        )

    def _build_event(
        self,
        kind: EventType,
        user_id: str,
        is_anonymous: bool,
        data: dict[str, Any],
        session_id: str,
    ) -> AnalyticsEventDoc:
        client = self.context.client
        return AnalyticsEventDoc(
            event_type=kind,
            user_id=user_id,
            is_anonymous=is_anonymous,
            data=data,
            timestamp=datetime.now(UTC),
            user_agent=client.user_agent,
            referrer=client.referrer,
            page_path=client.page_path,
            session_id=session_id,
        )

    async def _write_event(
        self, kind: EventType, user_id: str | None, data: dict[str, Any]
    ) -> None:
        session_id = await self.context.session.get_session_id()

        if user_id:
            try:
                await self.event_store.add_event(
                    self._build_event(kind, user_id, False, data, session_id)
                )
            except Exception:
                logger.exception("Failed to record %s event for %s", kind.value, user_id)
            return

        try:
            principal = await self.context.identity.ensure_anonymous_identity()
            await self.event_store.add_event(
                self._build_event(kind, principal.uid, True, data, session_id)
            )
        except (AnonymousAuthError, RedisError) as exc:
            logger.info("Anonymous write unavailable (%s), buffering on device", exc)
            await self._buffer_event(
                self._build_event(kind, f"{ANONYMOUS_PREFIX}{session_id}", True, data, session_id)
            )

    async def _buffer_event(self, event: AnalyticsEventDoc) -> None:
        storage = self.context.storage
        try:
            raw = await storage.get_item(ANONYMOUS_EVENTS_KEY)
            events = json.loads(raw) if raw else []
            if not isinstance(events, list):
                raise ValueError("anonymous event buffer is not a list")
            events.append(event.model_dump(by_alias=True, exclude={"id"}, mode="json"))
            await storage.set_item(ANONYMOUS_EVENTS_KEY, json.dumps(events))
        except (RedisError, ValueError):
            logger.exception("Failed to buffer anonymous %s event", event.event_type.value)

    async def _update_rollups(
        self, kind: EventType, user_id: str | None, data: dict[str, Any]
    ) -> None:
        if user_id and not user_id.startswith(ANONYMOUS_PREFIX):
            try:
                await self.event_store.increment_user_rollup(user_id, kind)
            except Exception:
                logger.exception("Failed to update user rollup for %s", user_id)

        product_id = data.get("productId")
        if product_id and user_id:
            try:
                await self.event_store.increment_product_rollup(
                    str(product_id),
                    str(data.get("productName") or ""),
                    user_id,
                    kind,
                )
            except Exception:
                logger.exception("Failed to update product rollup for %s", product_id)

    # === Anonymous -> authenticated merge ===

    async def get_anonymous_events(self) -> list[dict[str, Any]]:
        """The device's buffered events; empty if unreadable."""
        try:
            raw = await self.context.storage.get_item(ANONYMOUS_EVENTS_KEY)
            events = json.loads(raw) if raw else []
        except (RedisError, ValueError):
            logger.exception("Error reading anonymous analytics buffer")
            return []
        return events if isinstance(events, list) else []

    async def merge_on_login(self, user_id: str) -> int:
        """Move the device's buffered events into the store under ``user_id``.

        The buffer is cleared only after the batch commits; on any failure it
        is left as it was for the next sign-in. Returns how many events were
        merged.
        """
        storage = self.context.storage
        try:
            async with storage.exclusive(
                ANONYMOUS_EVENTS_KEY, timeout=self.merge_lock_timeout
            ) as acquired:
                if not acquired:
                    logger.info("Anonymous buffer drain already running for this device")
                    return 0

                raw = await storage.get_item(ANONYMOUS_EVENTS_KEY)
                drained = json.loads(raw) if raw else []
                if not isinstance(drained, list) or not drained:
                    return 0

                now = datetime.now(UTC)
                docs = []
                unreadable = []
                for item in drained:
                    try:
                        doc = AnalyticsEventDoc.model_validate(item)
                    except ValidationError:
                        logger.warning("Keeping unreadable buffered event on the device")
                        unreadable.append(item)
                        continue
                    docs.append(
                        doc.model_copy(
                            update={"user_id": user_id, "is_anonymous": False, "timestamp": now}
                        )
                    )

                await self.event_store.add_events(docs)

                # Keep anything appended while the batch was being written
                current = await storage.get_item(ANONYMOUS_EVENTS_KEY)
                remaining = unreadable + (json.loads(current) if current else [])[len(drained):]
                if remaining:
                    await storage.set_item(ANONYMOUS_EVENTS_KEY, json.dumps(remaining))
                else:
                    await storage.remove_item(ANONYMOUS_EVENTS_KEY)
        except Exception:
            logger.exception("Error syncing anonymous analytics for %s", user_id)
            return 0

        logger.info("Synced %d anonymous events for %s", len(docs), user_id)
        return len(docs)


class AnalyticsReader:
    """Dashboard reads. No caching: every call goes to Redis."""

    def __init__(self, event_store: EventStore) -> None:
        self.event_store = event_store

    async def get_user_summary(self, user_id: str) -> UserAnalyticsSummary | None:
        try:
            return await self.event_store.get_user_summary(user_id)
        except RedisError:
            logger.exception("Error fetching user analytics for %s", user_id)
            raise

    async def get_product_summary(self, product_id: str) -> ProductAnalyticsSummary | None:
        try:
            return await self.event_store.get_product_summary(product_id)
        except RedisError:
            logger.exception("Error fetching product analytics for %s", product_id)
            raise

    async def get_dashboard(
        self,
        user_id: str,
        anonymous_events: list[dict[str, Any]],
        *,
        top_limit: int = 10,
        recent_limit: int = 20,
    ) -> AnalyticsDashboard:
        """Rollup, top products and recent events, including unsynced ones.

        Events still buffered on the requesting device are counted into the
        rollup and listed among the recent events.
        """
        summary = await self.get_user_summary(user_id) or UserAnalyticsSummary(user_id=user_id)

        counts = dict(summary.counts)
        total = summary.total_events
        local: list[AnalyticsEventDoc] = []
        for item in anonymous_events:
            try:
                doc = AnalyticsEventDoc.model_validate(item)
            except ValidationError:
                continue
            counts[doc.event_type] = counts.get(doc.event_type, 0) + 1
            total += 1
            local.append(doc)

        combined = summary.model_copy(update={"counts": counts, "total_events": total})

        top_products = await self.event_store.top_products(user_id, top_limit)
        # Stored events may also sit under the "anonymous_<uid>" id
        stored = await self.event_store.recent_events(
            [user_id, f"{ANONYMOUS_PREFIX}{user_id}"], recent_limit
        )
        recent = sorted(stored + local, key=lambda e: e.timestamp, reverse=True)[:recent_limit]

        return AnalyticsDashboard(
            summary=combined,
            top_products=top_products,
            recent_events=recent,
        )
