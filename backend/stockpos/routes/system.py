# backend/stockpos/routes/system.py
"""Liveness endpoint used by the mobile client and the load balancer."""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from stockpos.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run SELECT 1 and report status plus round-trip latency."""
    started = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1"))
        status = {"status": "healthy"}
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        status = {"status": "unhealthy", "error": "Database error"}
    status["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return status


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": database["status"],
        "time": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), (200 if healthy else 503)
