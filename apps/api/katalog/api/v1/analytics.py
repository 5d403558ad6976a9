"""Storefront analytics endpoints: event ingestion, merge and dashboard reads."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from katalog.core.config import settings
from katalog.core.deps import (
    CurrentUser,
    get_analytics_reader,
    get_event_recorder,
    get_user_id,
)
from katalog.core.rate_limit import limiter
from katalog.schemas.analytics import (
    AnalyticsDashboard,
    MergeResponse,
    ProductAnalyticsSummary,
    TrackEventRequest,
    TrackEventResponse,
    UserAnalyticsSummary,
)
from katalog.services.analytics_service import AnalyticsReader, EventRecorder

router = APIRouter()


@router.post(
    "/events",
    response_model=TrackEventResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Record an event",
    description="""
    Record one storefront interaction from the calling device.

    The event is dropped silently when the device has not allowed analytics
    cookies. Without ``user_id`` the event is attributed to the device's
    anonymous identity.
    """,
)
@limiter.limit(settings.analytics_rate_limit)
async def track_event(
    request: Request,  # noqa: ARG001  # slowapi reads the request
    data: TrackEventRequest,
    recorder: EventRecorder = Depends(get_event_recorder),
) -> TrackEventResponse:
    """Record an event. Auth optional."""
    client = recorder.context.client
    if not client.page_path and data.payload.page_path:
        client.page_path = data.payload.page_path

    await recorder.record(data.payload.event_type, data.user_id, data.payload)
    return TrackEventResponse()


@router.post(
    "/merge",
    response_model=MergeResponse,
    summary="Merge anonymous events",
    description="Move this device's buffered anonymous events to the signed-in user.",
)
async def merge_anonymous_events(
    user: CurrentUser,
    recorder: EventRecorder = Depends(get_event_recorder),
) -> MergeResponse:
    """Merge on login. Requires authentication."""
    merged = await recorder.merge_on_login(get_user_id(user))
    return MergeResponse(merged=merged)


@router.get(
    "/users/{user_id}/summary",
    response_model=UserAnalyticsSummary,
    summary="Get user analytics",
)
async def user_summary(
    user_id: str,
    user: CurrentUser,
    reader: AnalyticsReader = Depends(get_analytics_reader),
) -> UserAnalyticsSummary:
    """Per-kind counters for a user. Requires authentication as that user."""
    if user_id != get_user_id(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot read another user's analytics",
        )

    summary = await reader.get_user_summary(user_id)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No analytics recorded for this user",
        )
    return summary


@router.get(
    "/products/{product_id}/summary",
    response_model=ProductAnalyticsSummary,
    summary="Get product analytics",
)
async def product_summary(
    product_id: str,
    user: CurrentUser,
    reader: AnalyticsReader = Depends(get_analytics_reader),
) -> ProductAnalyticsSummary:
    """Per-kind counters for a product. Only its owner may read them."""
    summary = await reader.get_product_summary(product_id)
    if summary is None or summary.user_id != get_user_id(user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No analytics recorded for this product",
        )
    return summary


@router.get(
    "/dashboard",
    response_model=AnalyticsDashboard,
    summary="Get analytics dashboard",
    description="Rollup, top products and recent events, including events still buffered on this device.",
)
async def dashboard(
    user: CurrentUser,
    recorder: EventRecorder = Depends(get_event_recorder),
    reader: AnalyticsReader = Depends(get_analytics_reader),
) -> AnalyticsDashboard:
    """Merchant dashboard. Requires authentication."""
    anonymous_events = await recorder.get_anonymous_events()
    return await reader.get_dashboard(
        get_user_id(user),
        anonymous_events,
        top_limit=settings.top_products_limit,
        recent_limit=settings.recent_events_limit,
    )


@router.get(
    "/anonymous-events",
    response_model=list[dict[str, Any]],
    summary="List buffered anonymous events",
)
async def anonymous_events(
    recorder: EventRecorder = Depends(get_event_recorder),
) -> list[dict[str, Any]]:
    """Events buffered on this device that have not been merged yet."""
    return await recorder.get_anonymous_events()
