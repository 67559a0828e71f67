"""Unit tests for the sliding-window rate limiter."""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis
from starlette.requests import Request

from marketplace.core.exceptions import RateLimitExceeded
from marketplace.core.middleware import RateLimiter, WindowResult, client_ip


def make_request(headers: dict[str, str] | None = None, host: str = "10.0.0.5") -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/api/bookings",
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
            "client": (host, 51000),
        }
    )


class TestClientIp:
    def test_forwarded_for_first_hop(self):
        request = make_request({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        assert client_ip(request) == "203.0.113.9"

    def test_real_ip(self):
        assert client_ip(make_request({"X-Real-IP": "198.51.100.4"})) == "198.51.100.4"

    def test_socket_address(self):
        assert client_ip(make_request()) == "10.0.0.5"


class TestWindowResult:
    def test_under_limit(self):
        result = WindowResult(limit=10, count=3, reset_at=1_700_000_060)
        assert not result.exceeded
        assert result.headers() == {
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "6",
            "X-RateLimit-Reset": "1700000060",
        }

    def test_at_limit(self):
        result = WindowResult(limit=10, count=10, reset_at=0)
        assert result.exceeded
        assert result.headers()["X-RateLimit-Remaining"] == "0"


class TestRateLimiter:
    async def test_allows_until_window_is_full(self):
        limiter = RateLimiter(requests_per_minute=2, key_prefix="booking")
        limiter.window.hit = AsyncMock(return_value=WindowResult(limit=2, count=1, reset_at=0))
        await limiter(make_request())
        limiter.window.hit.assert_awaited_once_with("10.0.0.5")

    async def test_full_window_raises(self):
        limiter = RateLimiter(requests_per_minute=2, key_prefix="booking")
        limiter.window.hit = AsyncMock(return_value=WindowResult(limit=2, count=2, reset_at=0))
        with pytest.raises(RateLimitExceeded):
            await limiter(make_request())

    async def test_fails_open_without_redis(self, caplog):
        limiter = RateLimiter(requests_per_minute=2, key_prefix="purchase")
        limiter.window.hit = AsyncMock(side_effect=redis.ConnectionError("refused"))
        await limiter(make_request())
        assert "Rate limiter 'purchase' unavailable" in caplog.text

    def test_limiters_share_one_window_implementation(self):
        limiter = RateLimiter(requests_per_minute=5, key_prefix="purchase")
        assert limiter.window.namespace == "rate:purchase"
        assert limiter.window.limit == 5
