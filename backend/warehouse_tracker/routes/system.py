# backend/warehouse_tracker/routes/system.py
"""
System health endpoint.

Reports database connectivity and basic table counts for deployment checks.
"""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Pallet, Location, ActivityLogEntry, PALLET_ACTIVE
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        active_pallets = db.session.query(Pallet).filter_by(status=PALLET_ACTIVE).count()
        locations = db.session.query(Location).count()
        activity = db.session.query(ActivityLogEntry).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_pallets": active_pallets,
                "locations": locations,
                "activity_entries": activity,
            },
        }
    except Exception as exc:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "error": exc.__class__.__name__}


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return {
        "status": database["status"],
        "checked_at": to_utc_z(utcnow()),
        "database": database,
    }, status_code
