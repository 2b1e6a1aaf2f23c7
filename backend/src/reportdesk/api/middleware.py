"""API middleware for request tracing, rate limiting and security headers.

Rate limiting uses a sliding window, in memory for development and Redis
sorted sets in production.
"""

import asyncio
import hashlib
import time
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ..config import get_settings
from ..logging import get_context_logger, log_api_request
from . import RateLimitError, api_error_handler

logger = get_context_logger(__name__, component="middleware")

# Rate limit configurations by endpoint category
RATE_LIMITS = {
    # Format: (requests, window_seconds)
    "default": (100, 60),  # 100 requests per minute
    "auth": (20, 60),  # 20 auth attempts per minute
}

# Route patterns to rate limit categories
ROUTE_CATEGORIES = {
    "/api/auth": "auth",
}


def get_rate_limit_category(path: str) -> str:
    """Determine rate limit category for a path."""
    for pattern, category in ROUTE_CATEGORIES.items():
        if path.startswith(pattern):
            return category
    return "default"


def get_client_identifier(request: Request) -> str:
    """Get unique identifier for rate limiting.

    Uses the forwarded client address when behind a proxy, otherwise the
    socket peer.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip
        elif request.client:
            ip = request.client.host
        else:
            ip = "unknown"

    return f"ip:{ip}"


class InMemoryRateLimiter:
    """Sliding-window rate limiter kept in process memory."""

    # Seconds between sweeps of idle clients
    CLEANUP_INTERVAL = 300

    def __init__(self):
        self._windows: dict[str, list[float]] = {}
        self._lock = asyncio.Lock()
        self._last_cleanup = time.time()

    async def check_rate_limit(
        self, key: str, max_requests: int, window_seconds: int
    ) -> tuple[bool, int, int]:
        """Check if request is within rate limit.

        Returns:
            Tuple of (allowed, remaining, reset_seconds)
        """
        now = time.time()
        window_start = now - window_seconds

        if now - self._last_cleanup >= self.CLEANUP_INTERVAL:
            self._last_cleanup = now
            await self.cleanup(now)

        async with self._lock:
            window = [ts for ts in self._windows.get(key, []) if ts > window_start]
            self._windows[key] = window

            current_count = len(window)
            if current_count >= max_requests:
                oldest = min(window) if window else now
                reset_seconds = int(oldest + window_seconds - now)
                return False, 0, max(1, reset_seconds)

            window.append(now)
            return True, max(0, max_requests - current_count - 1), window_seconds

    async def cleanup(self, now: float | None = None) -> None:
        """Remove expired entries to prevent memory growth."""
        now = now or time.time()
        max_window = max(limit[1] for limit in RATE_LIMITS.values())

        async with self._lock:
            keys_to_remove = []
            for key, timestamps in self._windows.items():
                self._windows[key] = [ts for ts in timestamps if ts > now - max_window]
                if not self._windows[key]:
                    keys_to_remove.append(key)

            for key in keys_to_remove:
                del self._windows[key]


class RedisRateLimiter:
    """Redis-based rate limiter for production.

    Uses sliding window algorithm with sorted sets.
    """

    def __init__(self, redis_client):
        self._redis = redis_client
        self._key_prefix = "reportdesk:ratelimit:"

    async def check_rate_limit(
        self, key: str, max_requests: int, window_seconds: int
    ) -> tuple[bool, int, int]:
        redis_key = f"{self._key_prefix}{key}"
        now = time.time()
        window_start = now - window_seconds

        try:
            pipe = self._redis.pipeline()
            pipe.zremrangebyscore(redis_key, 0, window_start)
            pipe.zcard(redis_key)
            member = f"{now}:{hashlib.md5(str(now).encode()).hexdigest()[:8]}"
            pipe.zadd(redis_key, {member: now})
            pipe.expire(redis_key, window_seconds + 1)

            results = await pipe.execute()
            current_count = results[1]

            if current_count >= max_requests:
                await self._redis.zrem(redis_key, member)
                oldest = await self._redis.zrange(redis_key, 0, 0, withscores=True)
                if oldest:
                    reset_seconds = int(oldest[0][1] + window_seconds - now)
                else:
                    reset_seconds = window_seconds
                return False, 0, max(1, reset_seconds)

            return True, max(0, max_requests - current_count - 1), window_seconds

        except Exception as e:
            # Fail open while Redis is unavailable
            logger.warning(f"Redis rate limit error: {e}, allowing request")
            return True, max_requests - 1, window_seconds


_rate_limiter: InMemoryRateLimiter | RedisRateLimiter | None = None


async def get_rate_limiter() -> InMemoryRateLimiter | RedisRateLimiter:
    """Get or create the rate limiter.

    Uses Redis in production, falls back to in-memory otherwise.
    """
    global _rate_limiter

    if _rate_limiter is not None:
        return _rate_limiter

    settings = get_settings()

    if settings.is_production:
        from ..db import get_redis

        try:
            client = await get_redis()
            await client.ping()
            _rate_limiter = RedisRateLimiter(client)
            logger.info("Using Redis rate limiter")
        except Exception as e:
            logger.warning(f"Redis unavailable for rate limiting: {e}")
            _rate_limiter = InMemoryRateLimiter()
    else:
        _rate_limiter = InMemoryRateLimiter()
        logger.info("Using in-memory rate limiter")

    return _rate_limiter


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting per client and endpoint category."""

    SKIP_PATHS = {
        "/health",
        "/api/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    }

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if (
            request.url.path in self.SKIP_PATHS
            or not request.url.path.startswith("/api/")
        ):
            return await call_next(request)

        client_id = get_client_identifier(request)
        category = get_rate_limit_category(request.url.path)
        max_requests, window_seconds = RATE_LIMITS.get(category, RATE_LIMITS["default"])

        limiter = await get_rate_limiter()
        allowed, remaining, reset_seconds = await limiter.check_rate_limit(
            f"{client_id}:{category}", max_requests, window_seconds
        )

        if not allowed:
            logger.warning(
                "rate_limit_exceeded",
                extra={"client": client_id, "category": category, "path": request.url.path},
            )
            # Exception handlers do not see errors raised from middleware
            return await api_error_handler(request, RateLimitError(reset_seconds))

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_seconds)

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HSTS (only in production with HTTPS)
        if get_settings().is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID and log each request with its duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Request-ID"] = request_id
        log_api_request(
            request.method,
            request.url.path,
            response.status_code,
            round(duration_ms, 2),
            request_id=request_id,
        )
        return response


def setup_middleware(app) -> None:
    """Configure all middleware for the FastAPI application."""
    settings = get_settings()

    # Added last runs first
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    logger.info("API middleware configured")
