"""Tests for rate-limit client keying."""

from starlette.requests import Request

from katalog.core.rate_limit import client_ip


def _request(headers: dict[str, str], peer: str | None = "10.0.0.1") -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/analytics/events",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": (peer, 1234) if peer else None,
    }
    return Request(scope)


def test_cloudflare_header_wins() -> None:
    request = _request({"CF-Connecting-IP": "1.1.1.1", "X-Forwarded-For": "2.2.2.2"})
    assert client_ip(request) == "1.1.1.1"


def test_first_forwarded_address() -> None:
    request = _request({"X-Forwarded-For": "2.2.2.2, 10.0.0.5"})
    assert client_ip(request) == "2.2.2.2"


def test_socket_peer_without_proxy_headers() -> None:
    assert client_ip(_request({})) == "10.0.0.1"
    assert client_ip(_request({}, peer=None)) == "127.0.0.1"
