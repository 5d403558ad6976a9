"""Per-client rate limits for the public analytics endpoints."""

from slowapi import Limiter
from starlette.requests import Request

from katalog.core.config import settings


def client_ip(request: Request) -> str:
    """The visitor's address as seen by the edge proxy in front of the API.

    Storefront traffic arrives through Cloudflare or a reverse proxy, so the
    socket peer is the proxy and the forwarded headers carry the visitor.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    return (
        request.headers.get("CF-Connecting-IP")
        or forwarded.split(",")[0].strip()
        or (request.client.host if request.client else "127.0.0.1")
    )


limiter = Limiter(key_func=client_ip, enabled=settings.rate_limit_enabled)
