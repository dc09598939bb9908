"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — basic status with timestamp
    GET /api/v1/health/ready  — readiness: database reachable
    GET /api/v1/health/live   — detailed system health (DB, Redis)
"""

import logging
import time
from datetime import datetime, timezone

import redis as redis_lib
from flask import Blueprint, current_app, jsonify

from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

APP_NAME = "Utility Permit Tracker"


def _check_database() -> dict:
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        return {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        db.session.rollback()
        logger.error("Health check — database failed: %s", exc)
        return {"status": "error", "detail": str(exc)}


def _check_redis() -> dict:
    redis_url = current_app.config.get("REDIS_URL", "")
    if not redis_url or not redis_url.startswith(("redis://", "rediss://")):
        return {"status": "skipped", "detail": "no REDIS_URL configured"}
    try:
        t0 = time.perf_counter()
        r = redis_lib.from_url(redis_url, socket_timeout=2)
        r.ping()
        redis_ms = (time.perf_counter() - t0) * 1000
        return {"status": "ok", "latency_ms": round(redis_ms, 1)}
    except redis_lib.RedisError as exc:
        logger.warning("Health check — redis failed: %s", exc)
        return {"status": "error", "detail": str(exc)}


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "app": APP_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness probe — 503 until the database answers."""
    database = _check_database()
    if database["status"] != "ok":
        return jsonify({"status": "unavailable", "checks": {"database": database}}), 503
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {
        "database": _check_database(),
        # Redis backs the job queue and rate limiter; an outage degrades but does not fail
        "redis": _check_redis(),
        "app": {
            "name": APP_NAME,
            "debug": current_app.debug,
            "testing": current_app.testing,
        },
    }
    overall = checks["database"]["status"] == "ok"

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
