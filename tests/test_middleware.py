"""Tests for middleware — security headers, request IDs, rate limiting.

Learn: Redis isn't running in tests, so the real rate limiter skips
itself. The limiter's own behaviour is tested against a tiny fake
client that implements just INCR and EXPIRE.
"""

import pytest

from pocketbook import redis_client
from pocketbook.middleware.request_id import resolve_request_id


@pytest.mark.asyncio
async def test_security_headers_on_health(client):
    """Health endpoint returns security headers."""
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "Cache-Control" not in r.headers


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    r = await client.get("/api/v1/health", headers={"X-Request-ID": "test-trace-12345"})
    assert r.headers["X-Request-ID"] == "test-trace-12345"


def test_unsafe_request_id_replaced():
    assert resolve_request_id("abc-123") == "abc-123"
    assert resolve_request_id("bad id\nwith newline") != "bad id\nwith newline"
    assert resolve_request_id("x" * 500) != "x" * 500
    assert resolve_request_id(None)


@pytest.mark.asyncio
async def test_no_hsts_on_http(client):
    """HSTS header is NOT set on HTTP connections (only HTTPS)."""
    r = await client.get("/api/v1/health")
    assert "Strict-Transport-Security" not in r.headers


# ─── Rate limiting ───────────────────────────────────────


class FakeRedis:
    def __init__(self):
        self.counts: dict[str, int] = {}

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        return True


@pytest.fixture()
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "_redis", fake)
    return fake


@pytest.mark.asyncio
async def test_rate_limit_headers(client, fake_redis):
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.headers["X-RateLimit-Limit"] == "100"
    assert r.headers["X-RateLimit-Remaining"] == "99"


@pytest.mark.asyncio
async def test_auth_routes_have_stricter_limit(client, fake_redis):
    body = {"email": "nobody@example.com", "password": "whatever-password"}
    for _ in range(10):
        r = await client.post("/api/v1/auth/login", json=body)
        assert r.status_code == 401

    r = await client.post("/api/v1/auth/login", json=body)
    assert r.status_code == 429
    assert r.json()["code"] == "rate_limited"
    assert r.headers["Retry-After"] == "60"

    # Other routes use their own bucket
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
