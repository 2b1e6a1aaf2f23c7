"""Unit tests for rate limiting and request middleware."""

import time
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from reportdesk.api import middleware
from reportdesk.api.middleware import (
    InMemoryRateLimiter,
    RateLimitMiddleware,
    RequestIdMiddleware,
    get_rate_limit_category,
)


class TestInMemoryRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        limiter = InMemoryRateLimiter()

        results = [await limiter.check_rate_limit("ip:1", 3, 60) for _ in range(4)]

        assert [allowed for allowed, _, _ in results] == [True, True, True, False]
        assert results[0][1] == 2
        assert results[-1][2] >= 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter()
        await limiter.check_rate_limit("ip:1", 1, 60)

        allowed, _, _ = await limiter.check_rate_limit("ip:2", 1, 60)

        assert allowed

    @pytest.mark.asyncio
    async def test_cleanup_forgets_idle_clients(self):
        limiter = InMemoryRateLimiter()
        await limiter.check_rate_limit("ip:idle", 5, 60)

        await limiter.cleanup(time.time() + 61)

        assert limiter._windows == {}

    @pytest.mark.asyncio
    async def test_cleanup_keeps_active_clients(self):
        limiter = InMemoryRateLimiter()
        await limiter.check_rate_limit("ip:active", 5, 60)

        await limiter.cleanup()

        assert len(limiter._windows["ip:active"]) == 1

    @pytest.mark.asyncio
    async def test_check_sweeps_after_interval(self):
        limiter = InMemoryRateLimiter()
        limiter.cleanup = AsyncMock()
        await limiter.check_rate_limit("ip:1", 5, 60)
        limiter.cleanup.assert_not_awaited()

        limiter._last_cleanup -= InMemoryRateLimiter.CLEANUP_INTERVAL
        await limiter.check_rate_limit("ip:1", 5, 60)

        limiter.cleanup.assert_awaited_once()


class TestCategories:
    def test_auth_routes_have_their_own_bucket(self):
        assert get_rate_limit_category("/api/auth/login") == "auth"
        assert get_rate_limit_category("/api/reports") == "default"


class TestMiddlewareStack:
    @pytest.fixture
    def app(self, monkeypatch):
        monkeypatch.setattr(middleware, "_rate_limiter", InMemoryRateLimiter())
        monkeypatch.setitem(middleware.RATE_LIMITS, "auth", (2, 60))

        app = FastAPI()
        app.add_middleware(RateLimitMiddleware)
        app.add_middleware(RequestIdMiddleware)

        @app.post("/api/auth/login")
        async def login():
            return {"ok": True}

        return app

    @pytest.mark.asyncio
    async def test_third_login_is_429(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            first = await client.post("/api/auth/login")
            await client.post("/api/auth/login")
            third = await client.post("/api/auth/login")

        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert third.status_code == 429
        assert third.json()["error_code"] == "RATE_LIMIT_EXCEEDED"
        assert int(third.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/auth/login", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
