"""HTTP middleware and the per-endpoint rate limiter."""

import logging
import time
from dataclasses import dataclass

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from marketplace.config import settings
from marketplace.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

# Paths the global limiter never counts
UNLIMITED_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


def client_ip(request: Request) -> str:
    """Caller IP, honouring the proxy headers set by the load balancer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (
        request.client.host if request.client else "unknown"
    )


@dataclass
class WindowResult:
    limit: int
    count: int
    reset_at: int

    @property
    def exceeded(self) -> bool:
        return self.count >= self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count - 1)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0" if self.exceeded else str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class SlidingWindow:
    """Per-key request counter over the last minute, kept in a Redis sorted set."""

    def __init__(self, limit: int, namespace: str) -> None:
        self.limit = limit
        self.namespace = namespace
        self._redis: redis.Redis | None = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                settings.redis_url, encoding="utf-8", decode_responses=True
            )
        return self._redis

    async def hit(self, identity: str) -> WindowResult:
        """Record one request for ``identity`` and count the window before it.

        Raises:
            redis.RedisError: Redis is unreachable; callers fail open
        """
        key = f"{self.namespace}:{identity}"
        now = int(time.time())

        async with self._client().pipeline(transaction=True) as pipe:
            await pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
            await pipe.zcard(key)
            await pipe.zadd(key, {str(time.time_ns()): now})
            await pipe.expire(key, WINDOW_SECONDS)
            results = await pipe.execute()

        return WindowResult(limit=self.limit, count=results[1], reset_at=now + WINDOW_SECONDS)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global per-IP limit; requests pass through when Redis is down."""

    def __init__(self, app, requests_per_minute: int = 100):
        super().__init__(app)
        self.window = SlidingWindow(requests_per_minute, "rate_limit")

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in UNLIMITED_PATHS or settings.debug:
            return await call_next(request)

        try:
            result = await self.window.hit(client_ip(request))
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        if result.exceeded:
            return JSONResponse(
                status_code=429,
                content={"error": RateLimitExceeded().detail, "retry_after": WINDOW_SECONDS},
                headers={"Retry-After": str(WINDOW_SECONDS), **result.headers()},
            )

        response = await call_next(request)
        response.headers.update(result.headers())
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Stamp request id and timing headers; log slow requests."""

    slow_request_seconds = 1.0

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id

        response = await call_next(request)

        duration = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        if duration > self.slow_request_seconds:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {duration:.3f}s",
                extra={"request_id": request_id},
            )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add the standard security headers to every response."""

    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        response.headers.update(self.headers)
        if not settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RateLimiter:
    """Per-endpoint limit used as a route dependency."""

    def __init__(self, requests_per_minute: int = 10, key_prefix: str = "api"):
        self.key_prefix = key_prefix
        self.window = SlidingWindow(requests_per_minute, f"rate:{key_prefix}")

    async def __call__(self, request: Request) -> None:
        """Raises RateLimitExceeded once the caller's window is full."""
        try:
            result = await self.window.hit(client_ip(request))
        except redis.RedisError as e:
            logger.warning(f"Rate limiter '{self.key_prefix}' unavailable: {e}")
            return
        if result.exceeded:
            raise RateLimitExceeded()


# Limiters for the public create endpoints
booking_limiter = RateLimiter(requests_per_minute=10, key_prefix="booking")
purchase_limiter = RateLimiter(requests_per_minute=10, key_prefix="purchase")
