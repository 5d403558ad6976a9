"""Shared analytics event store and rollup documents in Redis.

Layout:
    analytics:event:{id}                 JSON event document
    analytics:events:user:{user_id}      sorted set of event ids by timestamp
    analytics:user:{user_id}             per-user rollup hash
    analytics:product:{product_id}       per-product rollup hash
    analytics:products:user:{user_id}    sorted set of product ids by view count

Rollups are upserted in a single MULTI/EXEC: HSETNX for the creation fields
and HINCRBY for the counters, so a first event for a user or product cannot
overwrite another writer's counts.
"""

import json
import logging
import uuid
from datetime import UTC, datetime

import redis.asyncio as aioredis
from redis.asyncio.client import Pipeline

from katalog.schemas.analytics import (
    AnalyticsEventDoc,
    EventType,
    ProductAnalyticsSummary,
    UserAnalyticsSummary,
)

logger = logging.getLogger(__name__)

EVENT_KEY = "analytics:event:{event_id}"
USER_EVENTS_KEY = "analytics:events:user:{user_id}"
USER_ROLLUP_KEY = "analytics:user:{user_id}"
PRODUCT_ROLLUP_KEY = "analytics:product:{product_id}"
USER_PRODUCTS_KEY = "analytics:products:user:{user_id}"


def _decode(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


def _parse_rollup(raw: dict[str, str]) -> dict[str, object]:
    """Split a flat rollup hash into counters, last-seen times and totals."""
    counts: dict[EventType, int] = {}
    last_seen: dict[EventType, datetime] = {}
    for kind in EventType:
        count = raw.get(f"{kind.value}_count")
        if count is not None:
            counts[kind] = int(count)
        last = raw.get(f"{kind.value}_last")
        if last:
            last_seen[kind] = datetime.fromisoformat(last)

    return {
        "counts": counts,
        "last_seen": last_seen,
        "total_events": int(raw.get("total_events", 0)),
        "created_at": raw.get("created_at") or None,
        "last_updated": raw.get("last_updated") or None,
    }


class EventStore:
    """Reads and writes analytics documents shared by all devices."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self.redis = redis

    # === Raw events ===

    def _queue_event(self, pipe: Pipeline, event: AnalyticsEventDoc) -> str:
        event_id = event.id or uuid.uuid4().hex
        doc = event.model_copy(update={"id": event_id})
        pipe.set(
            EVENT_KEY.format(event_id=event_id),
            doc.model_dump_json(by_alias=True),
        )
        pipe.zadd(
            USER_EVENTS_KEY.format(user_id=event.user_id),
            {event_id: event.timestamp.timestamp()},
        )
        return event_id

    async def add_event(self, event: AnalyticsEventDoc) -> str:
        """Persist one event; returns its id."""
        async with self.redis.pipeline(transaction=True) as pipe:
            event_id = self._queue_event(pipe, event)
            await pipe.execute()
        return event_id

    async def add_events(self, events: list[AnalyticsEventDoc]) -> list[str]:
        """Persist several events in one transaction: all of them or none."""
        if not events:
            return []
        async with self.redis.pipeline(transaction=True) as pipe:
            ids = [self._queue_event(pipe, event) for event in events]
            await pipe.execute()
        return ids

    async def recent_events(self, user_ids: list[str], limit: int) -> list[AnalyticsEventDoc]:
        """Most recent events across ``user_ids``, newest first."""
        scored: list[tuple[float, str]] = []
        for user_id in user_ids:
            rows = await self.redis.zrevrange(
                USER_EVENTS_KEY.format(user_id=user_id), 0, limit - 1, withscores=True
            )
            scored.extend((score, _decode(member)) for member, score in rows)

        scored.sort(key=lambda row: row[0], reverse=True)
        ids = [event_id for _, event_id in scored[:limit]]
        if not ids:
            return []

        docs = await self.redis.mget([EVENT_KEY.format(event_id=i) for i in ids])
        return [
            AnalyticsEventDoc.model_validate(json.loads(_decode(doc)))
            for doc in docs
            if doc is not None
        ]

    # === Rollups ===

    async def increment_user_rollup(
        self,
        user_id: str,
        event_type: EventType,
        at: datetime | None = None,
    ) -> None:
        now = (at or datetime.now(UTC)).isoformat()
        key = USER_ROLLUP_KEY.format(user_id=user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hsetnx(key, "userId", user_id)
            pipe.hsetnx(key, "created_at", now)
            pipe.hincrby(key, f"{event_type.value}_count", 1)
            pipe.hincrby(key, "total_events", 1)
            pipe.hset(key, mapping={f"{event_type.value}_last": now, "last_updated": now})
            await pipe.execute()

    async def increment_product_rollup(
        self,
        product_id: str,
        product_name: str,
        owner_id: str,
        event_type: EventType,
        at: datetime | None = None,
    ) -> None:
        now = (at or datetime.now(UTC)).isoformat()
        key = PRODUCT_ROLLUP_KEY.format(product_id=product_id)
        views = 1 if event_type is EventType.PRODUCT_VIEW else 0
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hsetnx(key, "productId", product_id)
            pipe.hsetnx(key, "productName", product_name)
            pipe.hsetnx(key, "userId", owner_id)
            pipe.hsetnx(key, "created_at", now)
            pipe.hincrby(key, f"{event_type.value}_count", 1)
            pipe.hincrby(key, "total_events", 1)
            pipe.hset(key, mapping={f"{event_type.value}_last": now, "last_updated": now})
            # Membership even at zero views keeps the product listed for its owner
            pipe.zincrby(USER_PRODUCTS_KEY.format(user_id=owner_id), views, product_id)
            await pipe.execute()

    async def get_user_summary(self, user_id: str) -> UserAnalyticsSummary | None:
        raw = await self.redis.hgetall(USER_ROLLUP_KEY.format(user_id=user_id))
        if not raw:
            return None
        fields = {_decode(k): _decode(v) for k, v in raw.items()}
        return UserAnalyticsSummary(user_id=user_id, **_parse_rollup(fields))

    async def get_product_summary(self, product_id: str) -> ProductAnalyticsSummary | None:
        raw = await self.redis.hgetall(PRODUCT_ROLLUP_KEY.format(product_id=product_id))
        if not raw:
            return None
        fields = {_decode(k): _decode(v) for k, v in raw.items()}
        return ProductAnalyticsSummary(
            product_id=product_id,
            product_name=fields.get("productName", ""),
            user_id=fields.get("userId", ""),
            **_parse_rollup(fields),
        )

    async def top_products(self, owner_id: str, limit: int) -> list[ProductAnalyticsSummary]:
        """The owner's products with the most views."""
        product_ids = await self.redis.zrevrange(
            USER_PRODUCTS_KEY.format(user_id=owner_id), 0, limit - 1
        )
        summaries = []
        for product_id in product_ids:
            summary = await self.get_product_summary(_decode(product_id))
            if summary is not None:
                summaries.append(summary)
        return summaries
