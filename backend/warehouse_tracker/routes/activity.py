# Overview: Read-only routes for the activity log, recent notifications, and storage locations.

from flask import Blueprint, current_app, jsonify, request

from ..extensions import notifier
from ..services.activity_log_service import list_activity
from ..services.location_service import list_locations

activity_bp = Blueprint("activity", __name__, url_prefix="/api")


def _parse_bool(raw):
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes")


@activity_bp.get("/activity")
def list_activity_route():
    """Newest first; ?customer= filters, ?limit= caps (bounded by ACTIVITY_MAX_LIMIT)."""
    customer = request.args.get("customer") or None

    limit = request.args.get("limit", default=current_app.config["ACTIVITY_DEFAULT_LIMIT"], type=int)
    limit = max(1, min(limit, current_app.config["ACTIVITY_MAX_LIMIT"]))

    rows = list_activity(customer=customer, limit=limit)
    return jsonify({"items": [r.to_dict() for r in rows], "limit": limit}), 200


@activity_bp.get("/notifications/recent")
def recent_notifications_route():
    limit = request.args.get("limit", default=50, type=int)
    return jsonify({"items": notifier.recorder.recent(max(1, limit))}), 200


@activity_bp.get("/locations")
def list_locations_route():
    occupied = _parse_bool(request.args.get("occupied"))
    rows = list_locations(occupied=occupied)
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)}), 200
