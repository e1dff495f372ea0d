# Overview: Service-layer operations for the pallet ledger; check-in, removals, check-out, and read projections.

# backend/warehouse_tracker/services/pallet_service.py

import uuid
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db, notifier
from ..models import (
    Pallet,
    CustomerRate,
    PALLET_ACTIVE,
    PALLET_REMOVED,
    ACTION_CHECK_IN,
    ACTION_PARTIAL_REMOVE,
    ACTION_UNITS_REMOVE,
    ACTION_CHECK_OUT,
)
from .. import notifications
from ..time_utils import parse_occurred_at
from ..validation import (
    ValidationError,
    NotFoundError,
    require_text,
    optional_text,
    coerce_int,
    validate_parts,
)
from .activity_log_service import append_activity, latest_activity_at
from .concurrency import lock_for_update, run_with_retry
from .location_service import ensure_location, refresh_occupancy, count_locations
"""
Pallet Ledger Invariants (authoritative)

State machine:
- ACTIVE --(remove_pallet_quantity to 0 | remove_units to 0 | check_out)--> REMOVED
- REMOVED is terminal. Lookups filter on ACTIVE, so any later operation on a
  removed pallet fails with NotFoundError.
- A unit-tracked pallet (product_quantity > 0) is never ACTIVE with 0 units.

Business time:
- A pallet's entries never go back in time: a removal or check-out stamped
  before the pallet's latest entry is rejected, so (timestamp, id) replay
  applies them in the order they happened.

Quantities:
- pallet_quantity >= 0 and current_units >= 0 after every operation.
- remove_pallet_quantity never touches current_units.
- remove_units never shrinks pallet_quantity unless units reach 0, in which
  case the pallet is removed and all counts are cleared.

Atomicity:
- Validation happens before any write.
- Pallet row, location occupancy flag, and the activity log entry commit in
  one transaction (run_with_retry rolls everything back on failure).
- Exactly one activity entry and one notification per successful mutation.
  Notifications are published only after commit and cannot fail the call.

Lookup:
- A reference matches an ACTIVE pallet id exactly; otherwise it is taken as a
  product_id (optionally scoped by location). More than one product match is
  ambiguous and rejected rather than silently picking one.
"""


def generate_pallet_id() -> str:
    """PLT-<epoch ms>-<6 hex>; the random suffix disambiguates same-millisecond scans."""
    millis = int(datetime.now().timestamp() * 1000)
    return f"PLT-{millis}-{uuid.uuid4().hex[:6]}"


def _resolve_active_pallet(reference, *, location: Optional[str] = None, lock: bool = False) -> Pallet:
    reference = require_text(reference, "pallet reference")
    location = optional_text(location)

    q = Pallet.query.filter(Pallet.status == PALLET_ACTIVE, Pallet.id == reference)
    if lock:
        q = lock_for_update(q)
    pallet = q.first()
    if pallet is not None:
        return pallet

    q = Pallet.query.filter(Pallet.status == PALLET_ACTIVE, Pallet.product_id == reference)
    if location:
        q = q.filter(Pallet.location == location)
    if lock:
        q = lock_for_update(q)
    matches = q.order_by(Pallet.date_added.asc(), Pallet.id.asc()).limit(2).all()

    if not matches:
        raise NotFoundError(f"no active pallet matches {reference!r}")
    if len(matches) > 1:
        raise ValidationError(
            f"product_id {reference!r} matches more than one active pallet; use the pallet id or a location"
        )
    return matches[0]


def _require_not_backdated(pallet: Pallet, occurred_dt: datetime) -> None:
    latest = latest_activity_at(pallet.id) or pallet.date_added
    if latest is not None and occurred_dt < latest:
        raise ValidationError(
            f"occurred_at {occurred_dt.isoformat()} is earlier than the last activity on {pallet.id} "
            f"({latest.isoformat()})"
        )


def _retire(pallet: Pallet, occurred_dt: datetime) -> None:
    pallet.status = PALLET_REMOVED
    pallet.date_removed = occurred_dt


def _publish(action: str, payload: dict) -> None:
    notifier.publish(action, payload)


def get_pallet(pallet_id: str) -> Pallet:
    pallet = db.session.get(Pallet, pallet_id)
    if pallet is None:
        raise NotFoundError(f"pallet {pallet_id!r} not found")
    return pallet


def check_in(
    *,
    customer_name,
    product_id,
    location,
    pallet_quantity=None,
    product_quantity=None,
    parts=None,
    scanned_by: Optional[str] = None,
    pallet_id: Optional[str] = None,
    current_units=None,
    notes: Optional[str] = None,
    occurred_at=None,
) -> Pallet:
    """
    Receive a pallet record into a location.

    current_units defaults to pallet_quantity * product_quantity; an explicit
    value resumes a partially depleted pallet (data sync / backfill).
    """
    customer_name = require_text(customer_name, "customer_name")
    product_id = require_text(product_id, "product_id")
    location = require_text(location, "location")

    pallet_quantity = coerce_int(pallet_quantity, "pallet_quantity", default=1)
    if pallet_quantity < 1:
        raise ValidationError("pallet_quantity must be >= 1")

    product_quantity = coerce_int(product_quantity, "product_quantity", default=0)
    if product_quantity < 0:
        raise ValidationError("product_quantity must be >= 0")

    if current_units is None:
        units = pallet_quantity * product_quantity
    else:
        units = coerce_int(current_units, "current_units")
        if units < 0:
            raise ValidationError("current_units must be >= 0")
        if units > pallet_quantity * product_quantity:
            raise ValidationError(
                f"current_units cannot exceed pallet_quantity x product_quantity ({pallet_quantity * product_quantity})"
            )
        if product_quantity > 0 and units == 0:
            raise ValidationError("current_units must be >= 1 for a unit-tracked pallet")

    parts = validate_parts(parts)
    scanned_by = optional_text(scanned_by)
    notes = optional_text(notes)
    pallet_id = optional_text(pallet_id)
    occurred_dt = parse_occurred_at(occurred_at)

    def _op():
        new_id = pallet_id or generate_pallet_id()
        if db.session.get(Pallet, new_id) is not None:
            raise ValidationError(f"pallet id {new_id!r} already exists")

        ensure_location(location)

        pallet = Pallet(
            id=new_id,
            customer_name=customer_name,
            product_id=product_id,
            pallet_quantity=pallet_quantity,
            product_quantity=product_quantity,
            current_units=units,
            location=location,
            parts=parts,
            status=PALLET_ACTIVE,
            scanned_by=scanned_by,
            date_added=occurred_dt,
        )
        db.session.add(pallet)
        db.session.flush()

        refresh_occupancy(location, occurred_at=occurred_dt)

        append_activity(
            pallet_id=pallet.id,
            customer_name=customer_name,
            product_id=product_id,
            location=location,
            action=ACTION_CHECK_IN,
            quantity_changed=pallet_quantity,
            quantity_before=0,
            quantity_after=pallet_quantity,
            notes=notes,
            scanned_by=scanned_by,
            timestamp=occurred_dt,
        )

        db.session.commit()
        return pallet

    pallet = run_with_retry(_op)
    current_app.logger.info(
        "Checked in pallet %s (%s/%s) x%d at %s",
        pallet.id, customer_name, product_id, pallet_quantity, location,
    )
    _publish(notifications.ADD_PALLET, pallet.to_dict())
    return pallet


def remove_pallet_quantity(
    reference,
    quantity,
    *,
    scanned_by: Optional[str] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None,
    occurred_at=None,
) -> dict:
    """
    Remove whole pallets from a record. current_units is left alone.

    Returns {"remaining", "pallet_removed", "pallet"}.
    """
    quantity = coerce_int(quantity, "quantity")
    scanned_by = optional_text(scanned_by)
    notes = optional_text(notes)
    occurred_dt = parse_occurred_at(occurred_at)

    def _op():
        pallet = _resolve_active_pallet(reference, location=location, lock=True)
        _require_not_backdated(pallet, occurred_dt)

        before = pallet.pallet_quantity
        if quantity <= 0:
            raise ValidationError("quantity must be > 0")
        if quantity > before:
            raise ValidationError(
                f"cannot remove {quantity} pallets; only {before} on record {pallet.id}"
            )

        after = before - quantity
        pallet.pallet_quantity = after
        removed = after == 0
        if removed:
            _retire(pallet, occurred_dt)
        db.session.flush()

        if removed:
            refresh_occupancy(pallet.location, occurred_at=occurred_dt)

        append_activity(
            pallet_id=pallet.id,
            customer_name=pallet.customer_name,
            product_id=pallet.product_id,
            location=pallet.location,
            action=ACTION_PARTIAL_REMOVE,
            quantity_changed=quantity,
            quantity_before=before,
            quantity_after=after,
            notes=notes,
            scanned_by=scanned_by,
            timestamp=occurred_dt,
        )

        db.session.commit()
        return pallet, after, removed

    pallet, remaining, removed = run_with_retry(_op)
    current_app.logger.info(
        "Removed %d pallets from %s (%d remaining%s)",
        quantity, pallet.id, remaining, ", record closed" if removed else "",
    )

    payload = pallet.to_dict()
    payload["quantity_removed"] = quantity
    _publish(notifications.DELETE_PALLET if removed else notifications.REMOVE_PALLETS, payload)
    return {"remaining": remaining, "pallet_removed": removed, "pallet": pallet}


def remove_units(
    reference,
    units,
    *,
    scanned_by: Optional[str] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None,
    occurred_at=None,
) -> dict:
    """
    Remove individual units from a unit-tracked record.

    pallet_quantity stays put while units deplete; the record only closes
    when current_units reaches 0.

    Returns {"units_remaining", "pallets_remaining", "pallet_removed", "pallet"}.
    """
    units = coerce_int(units, "units")
    scanned_by = optional_text(scanned_by)
    notes = optional_text(notes)
    occurred_dt = parse_occurred_at(occurred_at)

    def _op():
        pallet = _resolve_active_pallet(reference, location=location, lock=True)
        _require_not_backdated(pallet, occurred_dt)

        if pallet.product_quantity == 0:
            raise ValidationError(f"pallet {pallet.id} is not tracked by units")
        if units <= 0:
            raise ValidationError("units must be > 0")

        before = pallet.current_units
        if units > before:
            raise ValidationError(
                f"cannot remove {units} units; only {before} remaining on {pallet.id}"
            )

        after = before - units
        removed = after == 0
        if removed:
            pallet.current_units = 0
            pallet.pallet_quantity = 0
            pallet.product_quantity = 0
            _retire(pallet, occurred_dt)
        else:
            pallet.current_units = after
        db.session.flush()

        if removed:
            refresh_occupancy(pallet.location, occurred_at=occurred_dt)

        append_activity(
            pallet_id=pallet.id,
            customer_name=pallet.customer_name,
            product_id=pallet.product_id,
            location=pallet.location,
            action=ACTION_UNITS_REMOVE,
            quantity_changed=units,
            quantity_before=before,
            quantity_after=after,
            notes=notes,
            scanned_by=scanned_by,
            timestamp=occurred_dt,
        )

        db.session.commit()
        return pallet, after, removed

    pallet, units_remaining, removed = run_with_retry(_op)
    current_app.logger.info(
        "Removed %d units from %s (%d remaining%s)",
        units, pallet.id, units_remaining, ", record closed" if removed else "",
    )

    payload = pallet.to_dict()
    payload["units_removed"] = units
    _publish(notifications.DELETE_PALLET if removed else notifications.REMOVE_UNITS, payload)
    return {
        "units_remaining": units_remaining,
        "pallets_remaining": pallet.pallet_quantity,
        "pallet_removed": removed,
        "pallet": pallet,
    }


def check_out(
    reference,
    *,
    scanned_by: Optional[str] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None,
    occurred_at=None,
) -> Pallet:
    """Close a pallet record outright. Logged as a full removal, not a delta."""
    scanned_by = optional_text(scanned_by)
    notes = optional_text(notes)
    occurred_dt = parse_occurred_at(occurred_at)

    def _op():
        pallet = _resolve_active_pallet(reference, location=location, lock=True)
        _require_not_backdated(pallet, occurred_dt)

        quantity = pallet.pallet_quantity
        _retire(pallet, occurred_dt)
        db.session.flush()

        refresh_occupancy(pallet.location, occurred_at=occurred_dt)

        append_activity(
            pallet_id=pallet.id,
            customer_name=pallet.customer_name,
            product_id=pallet.product_id,
            location=pallet.location,
            action=ACTION_CHECK_OUT,
            quantity_changed=quantity,
            quantity_before=quantity,
            quantity_after=quantity,
            notes=notes,
            scanned_by=scanned_by,
            timestamp=occurred_dt,
        )

        db.session.commit()
        return pallet

    pallet = run_with_retry(_op)
    current_app.logger.info("Checked out pallet %s from %s", pallet.id, pallet.location)
    _publish(notifications.DELETE_PALLET, pallet.to_dict())
    return pallet


def list_active_pallets(*, customer: Optional[str] = None, search: Optional[str] = None) -> list[Pallet]:
    """ACTIVE pallets, newest first; search matches product, location, or customer."""
    q = Pallet.query.filter(Pallet.status == PALLET_ACTIVE)
    if customer:
        q = q.filter(Pallet.customer_name == customer)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Pallet.product_id.ilike(pattern),
                Pallet.location.ilike(pattern),
                Pallet.customer_name.ilike(pattern),
            )
        )
    return q.order_by(Pallet.date_added.desc(), Pallet.id.desc()).all()


def list_customers() -> list[str]:
    """Customers with ACTIVE pallets or a stored rate, alphabetical."""
    active = db.session.query(Pallet.customer_name).filter(Pallet.status == PALLET_ACTIVE).distinct()
    rated = db.session.query(CustomerRate.customer_name)
    names = {row[0] for row in active} | {row[0] for row in rated}
    return sorted(names, key=str.lower)


def get_stats(*, customer: Optional[str] = None) -> dict:
    q = db.session.query(
        func.count(Pallet.id),
        func.coalesce(func.sum(Pallet.pallet_quantity), 0),
        func.coalesce(func.sum(Pallet.current_units), 0),
    ).filter(Pallet.status == PALLET_ACTIVE)
    if customer:
        q = q.filter(Pallet.customer_name == customer)
    records, pallets, units = q.one()

    return {
        "customer": customer,
        "total_records": int(records or 0),
        "total_pallets": int(pallets or 0),
        "total_units": int(units or 0),
        "occupied_locations": count_locations(occupied=True),
        "total_locations": count_locations(),
    }
