"""
Health endpoints and the cross-cutting response middleware
(security headers, request id, JSON error bodies).
"""

import redis


def test_health(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "ok"
    assert data["app"] == "Utility Permit Tracker"
    assert data["timestamp"]


def test_ready(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_live_without_redis(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["status"] == "ok"
    assert data["checks"]["redis"]["status"] == "skipped"
    assert data["checks"]["app"]["testing"] is True


def test_live_redis_down_is_not_fatal(client, app, monkeypatch):
    class _DeadRedis:
        def ping(self):
            raise redis.ConnectionError("connection refused")

    monkeypatch.setitem(app.config, "REDIS_URL", "redis://cache.invalid:6379/0")
    monkeypatch.setattr(redis, "from_url", lambda *a, **kw: _DeadRedis())

    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    assert res.get_json()["checks"]["redis"]["status"] == "error"


def test_security_headers_and_request_id(client):
    res = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "DENY"
    assert "default-src 'none'" in res.headers["Content-Security-Policy"]
    assert res.headers["X-Request-ID"] == "abc123"
    assert float(res.headers["X-Request-Duration-Ms"]) >= 0


def test_unknown_route_returns_json(client):
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    body = res.get_json()
    assert body["code"] == "ERR_NOT_FOUND"
    assert body["details"] == {"path": "/api/v1/nope"}


def test_wrong_method_returns_json(client):
    res = client.delete("/api/v1/health")
    assert res.status_code == 405
    assert res.get_json()["code"] == "ERR_METHOD_NOT_ALLOWED"
