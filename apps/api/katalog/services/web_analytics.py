"""Optional forwarding of events to Google Analytics 4."""

import logging
from typing import Any

import httpx

from katalog.schemas.analytics import EventType

logger = logging.getLogger(__name__)

GA_COLLECT_URL = "https://www.google-analytics.com/mp/collect"


def event_label(data: dict[str, Any]) -> str:
    """What the event is about: product name, else category, else ``general``."""
    return data.get("productName") or data.get("categoryId") or "general"


class WebAnalyticsForwarder:
    """Sends a copy of each event through the GA4 Measurement Protocol."""

    def __init__(
        self,
        measurement_id: str,
        api_secret: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.measurement_id = measurement_id
        self.api_secret = api_secret
        self.timeout = timeout
        self._http_client = http_client

    async def send(self, event_type: EventType, client_id: str, data: dict[str, Any]) -> None:
        """Fire one event. Delivery is not confirmed; errors are only logged."""
        body = {
            "client_id": client_id,
            "events": [
                {
                    "name": event_type.value,
                    "params": {
                        "event_category": "engagement",
                        "event_label": event_label(data),
                        "value": 1,
                        **{k: v for k, v in data.items() if isinstance(v, str | int | float)},
                    },
                }
            ],
        }
        params = {"measurement_id": self.measurement_id, "api_secret": self.api_secret}
        try:
            if self._http_client is not None:
                await self._http_client.post(
                    GA_COLLECT_URL, params=params, json=body, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    await client.post(GA_COLLECT_URL, params=params, json=body)
        except httpx.HTTPError:
            logger.warning("Google Analytics forward failed for %s", event_type.value)
