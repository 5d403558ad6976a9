"""Tests for the Redis analytics event store."""

from datetime import UTC, datetime, timedelta

import fakeredis.aioredis
import pytest

from katalog.schemas.analytics import AnalyticsEventDoc, EventType
from katalog.services.event_store import EventStore


@pytest.fixture
def event_store(fake_redis: fakeredis.aioredis.FakeRedis) -> EventStore:
    return EventStore(fake_redis)


def _event(user_id: str, minutes_ago: int = 0) -> AnalyticsEventDoc:
    return AnalyticsEventDoc(
        event_type=EventType.STORE_VISIT,
        user_id=user_id,
        is_anonymous=False,
        timestamp=datetime.now(UTC) - timedelta(minutes=minutes_ago),
        session_id="session_1_abcdefghi",
    )


async def test_add_event_assigns_id(event_store: EventStore) -> None:
    event_id = await event_store.add_event(_event("u1"))

    [stored] = await event_store.recent_events(["u1"], 5)
    assert stored.id == event_id


async def test_add_events_empty_is_noop(event_store: EventStore) -> None:
    assert await event_store.add_events([]) == []


async def test_recent_events_merges_users_newest_first(event_store: EventStore) -> None:
    await event_store.add_events([_event("u1", 30), _event("u1", 10)])
    await event_store.add_event(_event("anonymous_u1", 20))

    events = await event_store.recent_events(["u1", "anonymous_u1"], 2)

    assert [e.user_id for e in events] == ["u1", "anonymous_u1"]
    assert events[0].timestamp > events[1].timestamp


async def test_user_rollup_keeps_creation_time(event_store: EventStore) -> None:
    first = datetime(2025, 1, 1, tzinfo=UTC)
    later = datetime(2025, 2, 1, tzinfo=UTC)

    await event_store.increment_user_rollup("u1", EventType.PRODUCT_VIEW, at=first)
    await event_store.increment_user_rollup("u1", EventType.SEARCH_QUERY, at=later)

    summary = await event_store.get_user_summary("u1")
    assert summary is not None
    assert summary.created_at == first
    assert summary.last_updated == later
    assert summary.counts == {EventType.PRODUCT_VIEW: 1, EventType.SEARCH_QUERY: 1}
    assert summary.last_seen[EventType.SEARCH_QUERY] == later
    assert summary.total_events == 2


async def test_product_rollup_keeps_first_name(event_store: EventStore) -> None:
    await event_store.increment_product_rollup("p1", "Shirt", "u1", EventType.PRODUCT_VIEW)
    await event_store.increment_product_rollup("p1", "Renamed", "u1", EventType.PRODUCT_CLICK)

    summary = await event_store.get_product_summary("p1")
    assert summary is not None
    assert summary.product_name == "Shirt"
    assert summary.count(EventType.PRODUCT_CLICK) == 1


async def test_top_products_ranked_by_views(event_store: EventStore) -> None:
    for _ in range(3):
        await event_store.increment_product_rollup("p2", "Hat", "u1", EventType.PRODUCT_VIEW)
    await event_store.increment_product_rollup("p1", "Shirt", "u1", EventType.PRODUCT_VIEW)
    await event_store.increment_product_rollup("p3", "Scarf", "u1", EventType.PRODUCT_CLICK)
    await event_store.increment_product_rollup("p4", "Other", "u2", EventType.PRODUCT_VIEW)

    top = await event_store.top_products("u1", 10)

    assert [p.product_id for p in top] == ["p2", "p1", "p3"]
    assert len(await event_store.top_products("u1", 1)) == 1
