# backend/warehouse_tracker/routes/billing.py
"""
Billing routes: customer rates, invoice preview/generation, invoice status.

Dates are calendar dates (YYYY-MM-DD), inclusive on both ends.
"""
from flask import Blueprint, current_app, jsonify, request

from ..services import billing_service
from ..validation import LedgerError
from . import error_response, internal_error_response

billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


def _override_kwargs(data: dict) -> dict:
    """Optional per-field rate overrides from a request body."""
    handling = data.get("handling_overrides") or {}
    return {
        "rate_per_pallet_week": data.get("rate_override", data.get("rate_per_pallet_week")),
        "handling_fee_flat": handling.get("handling_fee_flat", data.get("handling_fee_flat")),
        "handling_fee_per_pallet": handling.get("handling_fee_per_pallet", data.get("handling_fee_per_pallet")),
        "currency": data.get("currency"),
    }


@billing_bp.get("/rates")
def list_rates_route():
    rows = billing_service.list_customer_rates()
    return jsonify({"items": [r.to_dict() for r in rows]}), 200


@billing_bp.get("/rates/<customer>")
def get_rate_route(customer: str):
    row = billing_service.get_customer_rate(customer)
    if row is None:
        return jsonify({"error": f"no rate on file for {customer}", "kind": "not_found"}), 404
    return jsonify({"rate": row.to_dict()}), 200


@billing_bp.put("/rates/<customer>")
def upsert_rate_route(customer: str):
    data = request.get_json(silent=True) or {}
    try:
        row = billing_service.upsert_customer_rate(
            customer,
            rate_per_pallet_week=data.get("rate_per_pallet_week"),
            handling_fee_flat=data.get("handling_fee_flat"),
            handling_fee_per_pallet=data.get("handling_fee_per_pallet"),
            currency=data.get("currency"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save customer rate")
        return internal_error_response()
    return jsonify({"rate": row.to_dict()}), 200


@billing_bp.post("/invoices/preview")
def preview_invoice_route():
    data = request.get_json(silent=True) or {}
    try:
        preview = billing_service.preview_invoice(
            data.get("customer"),
            data.get("start_date"),
            data.get("end_date"),
            **_override_kwargs(data),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview invoice")
        return internal_error_response()
    return jsonify({"preview": billing_service.serialize_preview(preview)}), 200


@billing_bp.post("/invoices")
def generate_invoice_route():
    """Body: customer, start_date + end_date or week_start, optional overrides, notes."""
    data = request.get_json(silent=True) or {}
    try:
        invoice = billing_service.generate_invoice(
            data.get("customer"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            week_start=data.get("week_start"),
            notes=data.get("notes"),
            **_override_kwargs(data),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate invoice")
        return internal_error_response()
    return jsonify({"invoice": invoice.to_dict()}), 201


@billing_bp.get("/invoices")
def list_invoices_route():
    rows = billing_service.list_invoices(
        customer=request.args.get("customer") or None,
        status=request.args.get("status") or None,
    )
    return jsonify({"items": [r.to_dict() for r in rows]}), 200


@billing_bp.get("/invoices/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        invoice = billing_service.get_invoice(invoice_id)
    except LedgerError as e:
        return error_response(e)
    return jsonify({"invoice": invoice.to_dict()}), 200


@billing_bp.patch("/invoices/<int:invoice_id>/status")
def set_invoice_status_route(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        invoice = billing_service.set_invoice_status(invoice_id, data.get("status"))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice status")
        return internal_error_response()
    return jsonify({"invoice": invoice.to_dict()}), 200
