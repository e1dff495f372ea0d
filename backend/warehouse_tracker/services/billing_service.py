# Overview: Service-layer operations for billing; occupancy replay, customer rates, and invoice snapshots.

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import (
    CustomerRate,
    Invoice,
    INVOICE_STATUSES,
    ACTION_CHECK_IN,
    ACTION_CHECK_OUT,
    ACTION_PARTIAL_REMOVE,
)
from ..models.billing import INVOICE_DRAFT, INVOICE_SENT, INVOICE_PAID
from ..time_utils import end_of_day, iter_days, parse_calendar_date, start_of_day, utcnow
from ..validation import (
    ValidationError,
    NotFoundError,
    coerce_rate,
    is_blank,
    optional_text,
    require_text,
)
from .activity_log_service import list_activity_as_of
from .concurrency import run_with_retry
"""
Billing Invariants (authoritative)

Occupancy replay:
- Reads the activity log only, never live pallet state, so results are a
  pure function of the log prefix up to end_date.
- Entries are applied once each in (timestamp, id) order with state carried
  across days: CHECK_IN sets pallet_id -> quantity_after, CHECK_OUT drops it,
  PARTIAL_REMOVE sets quantity_after or drops it at 0. UNITS_REMOVE does not
  change the pallet count.
- A day's occupancy is the sum of the map after every entry up to that
  day's end has been applied.
- pallet_weeks = pallet_days / 7, unrounded.

Money:
- Half-up rounding to cents on each subtotal (base, handling); total is
  the sum of the rounded subtotals.
- Invoices capture the rates they were computed with; later rate edits never
  change an existing invoice.
"""

CENTS = Decimal("0.01")
WEEK_DAYS = Decimal(7)
PALLET_WEEKS_PRECISION = Decimal("0.000001")


def round2(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _date_range(start_date, end_date) -> tuple[date, date]:
    start = parse_calendar_date(start_date, "start_date")
    end = parse_calendar_date(end_date, "end_date")
    if start > end:
        raise ValidationError("start_date must be on or before end_date")
    return start, end


def compute_occupancy_metrics(customer, start_date, end_date) -> dict:
    """
    Replay the customer's activity log over [start_date, end_date] inclusive.

    Returns pallet_days (int), days_in_range (int), handled_pallets (int)
    and pallet_weeks (Decimal).
    """
    customer = require_text(customer, "customer")
    start, end = _date_range(start_date, end_date)

    entries = list_activity_as_of(customer, end_of_day(end))

    window_start = start_of_day(start)
    window_end = end_of_day(end)

    occupancy: dict[str, int] = {}
    cursor = 0
    pallet_days = 0
    days_in_range = 0

    for day in iter_days(start, end):
        cutoff = end_of_day(day)
        while cursor < len(entries) and entries[cursor].timestamp <= cutoff:
            entry = entries[cursor]
            if entry.action == ACTION_CHECK_IN:
                occupancy[entry.pallet_id] = entry.quantity_after
            elif entry.action == ACTION_CHECK_OUT:
                occupancy.pop(entry.pallet_id, None)
            elif entry.action == ACTION_PARTIAL_REMOVE:
                if entry.quantity_after > 0:
                    occupancy[entry.pallet_id] = entry.quantity_after
                else:
                    occupancy.pop(entry.pallet_id, None)
            cursor += 1

        pallet_days += sum(occupancy.values())
        days_in_range += 1

    handled_pallets = sum(
        entry.quantity_changed
        for entry in entries
        if entry.action == ACTION_CHECK_IN and window_start <= entry.timestamp <= window_end
    )

    return {
        "customer": customer,
        "start_date": start,
        "end_date": end,
        "pallet_days": pallet_days,
        "days_in_range": days_in_range,
        "handled_pallets": handled_pallets,
        "pallet_weeks": Decimal(pallet_days) / WEEK_DAYS,
    }


def get_customer_rate(customer) -> Optional[CustomerRate]:
    customer = require_text(customer, "customer")
    return CustomerRate.query.filter_by(customer_name=customer).first()


def list_customer_rates() -> list[CustomerRate]:
    return CustomerRate.query.order_by(CustomerRate.customer_name.asc()).all()


def upsert_customer_rate(
    customer,
    *,
    rate_per_pallet_week,
    handling_fee_flat=None,
    handling_fee_per_pallet=None,
    currency: Optional[str] = None,
) -> CustomerRate:
    """Create or replace the customer's rate row (one row per customer)."""
    customer = require_text(customer, "customer")
    rate = coerce_rate(rate_per_pallet_week, "rate_per_pallet_week")
    flat = Decimal(0) if is_blank(handling_fee_flat) else coerce_rate(handling_fee_flat, "handling_fee_flat")
    per_pallet = (
        Decimal(0)
        if is_blank(handling_fee_per_pallet)
        else coerce_rate(handling_fee_per_pallet, "handling_fee_per_pallet")
    )
    currency = (optional_text(currency) or current_app.config["DEFAULT_CURRENCY"]).upper()

    def _op():
        row = CustomerRate.query.filter_by(customer_name=customer).first()
        if row is None:
            row = CustomerRate(customer_name=customer)
            db.session.add(row)
        row.rate_per_pallet_week = rate
        row.handling_fee_flat = flat
        row.handling_fee_per_pallet = per_pallet
        row.currency = currency
        db.session.commit()
        return row

    row = run_with_retry(_op)
    current_app.logger.info("Rate for %s set to %s %s/pallet-week", customer, rate, currency)
    return row


def _resolve_rates(
    customer: str,
    rate_per_pallet_week,
    handling_fee_flat,
    handling_fee_per_pallet,
    currency,
) -> dict:
    stored = get_customer_rate(customer)

    def pick(override, field: str, fallback):
        if not is_blank(override):
            return coerce_rate(override, field)
        if stored is not None:
            return coerce_rate(getattr(stored, field), field)
        return fallback

    rate = pick(rate_per_pallet_week, "rate_per_pallet_week", None)
    if rate is None:
        raise ValidationError(f"no rate_per_pallet_week on file or supplied for {customer}")

    resolved_currency = optional_text(currency)
    if resolved_currency is None:
        resolved_currency = stored.currency if stored is not None else current_app.config["DEFAULT_CURRENCY"]

    return {
        "rate_per_pallet_week": rate,
        "handling_fee_flat": pick(handling_fee_flat, "handling_fee_flat", Decimal(0)),
        "handling_fee_per_pallet": pick(handling_fee_per_pallet, "handling_fee_per_pallet", Decimal(0)),
        "currency": resolved_currency.upper(),
    }


def preview_invoice(
    customer,
    start_date,
    end_date,
    *,
    rate_per_pallet_week=None,
    handling_fee_flat=None,
    handling_fee_per_pallet=None,
    currency: Optional[str] = None,
) -> dict:
    """
    Compute an invoice without persisting it.

    Non-blank overrides win per field over the stored rate row.
    """
    customer = require_text(customer, "customer")
    start, end = _date_range(start_date, end_date)
    rates = _resolve_rates(customer, rate_per_pallet_week, handling_fee_flat, handling_fee_per_pallet, currency)
    metrics = compute_occupancy_metrics(customer, start, end)

    base_total = round2(metrics["pallet_weeks"] * rates["rate_per_pallet_week"])
    handling_total = round2(
        rates["handling_fee_flat"] + rates["handling_fee_per_pallet"] * metrics["handled_pallets"]
    )

    return {
        **metrics,
        **rates,
        "base_total": base_total,
        "handling_total": handling_total,
        "total": base_total + handling_total,
    }


def serialize_preview(preview: dict) -> dict:
    """JSON-friendly copy of a preview (dates as ISO strings, Decimals as floats)."""
    out = {}
    for key, value in preview.items():
        if isinstance(value, date):
            out[key] = value.isoformat()
        elif isinstance(value, Decimal):
            out[key] = float(value)
        else:
            out[key] = value
    return out


def _invoice_window(start_date, end_date, week_start) -> tuple[date, date]:
    if week_start is not None and (start_date is not None or end_date is not None):
        raise ValidationError("give either week_start or start_date/end_date, not both")
    if week_start is not None:
        start = parse_calendar_date(week_start, "week_start")
        return start, start + timedelta(days=6)
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date (or week_start) are required")
    return _date_range(start_date, end_date)


def generate_invoice(
    customer,
    *,
    start_date=None,
    end_date=None,
    week_start=None,
    rate_per_pallet_week=None,
    handling_fee_flat=None,
    handling_fee_per_pallet=None,
    currency: Optional[str] = None,
    notes: Optional[str] = None,
) -> Invoice:
    """Run preview_invoice and persist the result as a DRAFT snapshot."""
    start, end = _invoice_window(start_date, end_date, week_start)
    preview = preview_invoice(
        customer,
        start,
        end,
        rate_per_pallet_week=rate_per_pallet_week,
        handling_fee_flat=handling_fee_flat,
        handling_fee_per_pallet=handling_fee_per_pallet,
        currency=currency,
    )

    def _op():
        invoice = Invoice(
            customer_name=preview["customer"],
            start_date=preview["start_date"],
            end_date=preview["end_date"],
            days_in_range=preview["days_in_range"],
            pallet_days=preview["pallet_days"],
            pallet_weeks=preview["pallet_weeks"].quantize(PALLET_WEEKS_PRECISION, rounding=ROUND_HALF_UP),
            handled_pallets=preview["handled_pallets"],
            rate_per_pallet_week=preview["rate_per_pallet_week"],
            handling_fee_flat=preview["handling_fee_flat"],
            handling_fee_per_pallet=preview["handling_fee_per_pallet"],
            currency=preview["currency"],
            base_total=preview["base_total"],
            handling_total=preview["handling_total"],
            total=preview["total"],
            status=INVOICE_DRAFT,
            notes=optional_text(notes),
            created_at=utcnow(),
        )
        db.session.add(invoice)
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info(
        "Generated invoice %s for %s %s..%s total %s %s",
        invoice.id, invoice.customer_name, start, end, preview["total"], preview["currency"],
    )
    return invoice


def get_invoice(invoice_id) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"invoice {invoice_id} not found")
    return invoice


def list_invoices(*, customer: Optional[str] = None, status: Optional[str] = None) -> list[Invoice]:
    q = Invoice.query
    if customer:
        q = q.filter(Invoice.customer_name == customer)
    if status:
        q = q.filter(Invoice.status == status.strip().upper())
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def set_invoice_status(invoice_id, status) -> Invoice:
    """
    Move an invoice between DRAFT / SENT / PAID.

    SENT stamps sent_at and PAID stamps paid_at. Going back to DRAFT keeps
    both timestamps.
    """
    normalized = str(status or "").strip().upper()
    if normalized not in INVOICE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(INVOICE_STATUSES)}")

    def _op():
        invoice = get_invoice(invoice_id)
        invoice.status = normalized
        if normalized == INVOICE_SENT:
            invoice.sent_at = utcnow()
        elif normalized == INVOICE_PAID:
            invoice.paid_at = utcnow()
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Invoice %s marked %s", invoice.id, normalized)
    return invoice
