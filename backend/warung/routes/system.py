# backend/warung/routes/system.py
"""
System health endpoint.

Reports local database health and the remote replication backlog: undelivered
replica_outbox rows per tenant. A replica that is down only degrades the
service; the local cache keeps taking sales.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import StoredRecord
from ..storage.outbox import pending_by_warung
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    if current_app.config.get("STORE_BACKEND") == "memory":
        return {"status": "healthy", "latency_ms": 0.0, "details": {"backend": "memory"}}
    try:
        record_count = db.session.query(StoredRecord).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"backend": "sql", "records": record_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_replication_health() -> dict:
    """Undelivered remote mirrors per tenant. Any backlog is 'degraded', never 'unhealthy'."""
    if not current_app.config.get("REMOTE_DATABASE_URL"):
        return {"status": "healthy", "details": {"mode": "local-only"}}

    try:
        backlog = pending_by_warung(db.session)
    except Exception:
        current_app.logger.exception("Replica outbox health check failed")
        return {"status": "degraded", "warning": "Replica outbox unreadable", "details": {"mode": "replicated"}}
    if backlog:
        return {
            "status": "degraded",
            "warning": "Remote replica writes are queued",
            "details": {"mode": "replicated", "pending": backlog},
        }
    return {"status": "healthy", "details": {"mode": "replicated", "pending": {}}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: local database unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    replication_health = check_replication_health()

    all_checks = [database_health, replication_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "replication": replication_health,
        },
    }
    return response, http_status
