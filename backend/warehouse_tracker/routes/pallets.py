# backend/warehouse_tracker/routes/pallets.py
"""
Pallet ledger routes.

Each mutating route maps 1:1 onto a pallet_service operation:
- POST   /api/pallets                    -> check_in
- POST   /api/pallets/<ref>/remove       -> remove_pallet_quantity
- POST   /api/pallets/<ref>/remove-units -> remove_units
- DELETE /api/pallets/<ref>              -> check_out

<ref> is a pallet id, or a product_id when it identifies exactly one active
pallet (optionally narrowed with "location").

Time semantics:
- occurred_at accepts ISO-8601 with Z/offsets; normalized to UTC-naive.
"""
from flask import Blueprint, Response, current_app, jsonify, request

from ..services import pallet_service, export_service
from ..services.activity_log_service import list_pallet_history
from ..validation import LedgerError
from . import error_response, internal_error_response

pallets_bp = Blueprint("pallets", __name__, url_prefix="/api")


@pallets_bp.get("/pallets")
def list_pallets_route():
    customer = request.args.get("customer") or None
    search = request.args.get("q") or None
    pallets = pallet_service.list_active_pallets(customer=customer, search=search)
    return jsonify({"items": [p.to_dict() for p in pallets], "count": len(pallets)}), 200


@pallets_bp.get("/pallets/<pallet_id>")
def get_pallet_route(pallet_id: str):
    try:
        pallet = pallet_service.get_pallet(pallet_id)
    except LedgerError as e:
        return error_response(e)
    history = [entry.to_dict() for entry in list_pallet_history(pallet.id)]
    return jsonify({"pallet": pallet.to_dict(), "history": history}), 200


@pallets_bp.post("/pallets")
def check_in_route():
    """
    Check a pallet into a location.

    Body: customer_name, product_id, location, pallet_quantity?,
    product_quantity?, current_units?, parts?, scanned_by?, id?, notes?,
    occurred_at?
    """
    data = request.get_json(silent=True) or {}
    try:
        pallet = pallet_service.check_in(
            customer_name=data.get("customer_name"),
            product_id=data.get("product_id"),
            location=data.get("location"),
            pallet_quantity=data.get("pallet_quantity"),
            product_quantity=data.get("product_quantity"),
            current_units=data.get("current_units"),
            parts=data.get("parts"),
            scanned_by=data.get("scanned_by"),
            pallet_id=data.get("id"),
            notes=data.get("notes"),
            occurred_at=data.get("occurred_at"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check in pallet")
        return internal_error_response()

    return jsonify({"pallet": pallet.to_dict(), "message": "Pallet checked in successfully"}), 201


@pallets_bp.post("/pallets/<reference>/remove")
def remove_pallet_quantity_route(reference: str):
    data = request.get_json(silent=True) or {}
    try:
        result = pallet_service.remove_pallet_quantity(
            reference,
            data.get("quantity"),
            scanned_by=data.get("scanned_by"),
            location=data.get("location"),
            notes=data.get("notes"),
            occurred_at=data.get("occurred_at"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove pallets")
        return internal_error_response()

    return jsonify({
        "remaining": result["remaining"],
        "pallet_removed": result["pallet_removed"],
        "pallet": result["pallet"].to_dict(),
    }), 200


@pallets_bp.post("/pallets/<reference>/remove-units")
def remove_units_route(reference: str):
    data = request.get_json(silent=True) or {}
    try:
        result = pallet_service.remove_units(
            reference,
            data.get("units"),
            scanned_by=data.get("scanned_by"),
            location=data.get("location"),
            notes=data.get("notes"),
            occurred_at=data.get("occurred_at"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove units")
        return internal_error_response()

    return jsonify({
        "units_remaining": result["units_remaining"],
        "pallets_remaining": result["pallets_remaining"],
        "pallet_removed": result["pallet_removed"],
        "pallet": result["pallet"].to_dict(),
    }), 200


@pallets_bp.delete("/pallets/<reference>")
def check_out_route(reference: str):
    data = request.get_json(silent=True) or {}
    try:
        pallet = pallet_service.check_out(
            reference,
            scanned_by=data.get("scanned_by") or request.args.get("scanned_by"),
            location=data.get("location") or request.args.get("location"),
            notes=data.get("notes"),
            occurred_at=data.get("occurred_at"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check out pallet")
        return internal_error_response()

    return jsonify({"pallet": pallet.to_dict(), "message": "Pallet checked out successfully"}), 200


@pallets_bp.get("/customers")
def list_customers_route():
    return jsonify({"items": pallet_service.list_customers()}), 200


@pallets_bp.get("/stats")
def stats_route():
    customer = request.args.get("customer") or None
    return jsonify(pallet_service.get_stats(customer=customer)), 200


@pallets_bp.get("/export")
def export_route():
    customer = request.args.get("customer") or None
    body = export_service.export_csv(customer=customer)
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=inventory.csv"},
    )
