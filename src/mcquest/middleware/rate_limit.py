"""Redis-backed fixed window rate limiting middleware."""

import time
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from mcquest.redis_client import get_redis

logger = structlog.get_logger()

_EXEMPT_PATHS = frozenset(
    {
        "/health",
        "/ready",
        # Game-server event ingestion, throttled by the plugin
        "/api/v1/progress/actions",
        "/api/v1/progress/increment",
        "/api/v1/challenges/progress/update",
    }
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per client IP using Redis counters."""

    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    def _is_exempt(self, path: str) -> bool:
        return path in _EXEMPT_PATHS

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        if self._is_exempt(request.url.path):
            return await call_next(request)

        try:
            redis = get_redis()
        except RuntimeError:
            # Redis not configured: requests pass through unthrottled
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time()) // self.window_seconds
        rate_key = f"ratelimit:{client_ip}:{window}"

        pipe = redis.pipeline()
        pipe.incr(rate_key)
        pipe.expire(rate_key, self.window_seconds + 1)
        try:
            results: list[Any] = await pipe.execute()
        except RedisError:
            logger.warning("rate_limit_unavailable", path=request.url.path)
            return await call_next(request)

        current_count: int = results[0]
        if current_count > self.requests_per_window:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(self.requests_per_window),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_window - current_count))
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_window)
        return response
