# Overview: Service-layer operations for the activity log; append-only writes and time-ordered reads.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import ActivityLogEntry, ACTIVITY_ACTIONS
from ..time_utils import utcnow
from ..validation import ValidationError, require_text
"""
Activity Log Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- No business logic here; the ledger decides what each entry says.
- Entries are written inside the same DB transaction as the pallet change
  they record (flush, never commit, in append_activity).
- Replay order is (timestamp ASC, id ASC). The autoincrement id is the
  insertion sequence and breaks timestamp ties.
- As-of reads are inclusive: timestamp <= cutoff.
"""


def append_activity(
    *,
    pallet_id: str,
    customer_name: str,
    product_id: str,
    location: str,
    action: str,
    quantity_changed: int = 0,
    quantity_before: int = 0,
    quantity_after: int = 0,
    notes: Optional[str] = None,
    scanned_by: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ActivityLogEntry:
    if action not in ACTIVITY_ACTIONS:
        raise ValidationError(f"unknown activity action: {action}")

    entry = ActivityLogEntry(
        pallet_id=require_text(pallet_id, "pallet_id"),
        customer_name=require_text(customer_name, "customer_name"),
        product_id=require_text(product_id, "product_id"),
        location=require_text(location, "location"),
        action=action,
        quantity_changed=quantity_changed,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        notes=notes,
        scanned_by=scanned_by,
        timestamp=timestamp or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()  # assigns the sequence id without committing
    return entry


def list_activity(*, customer: Optional[str] = None, limit: Optional[int] = None) -> list[ActivityLogEntry]:
    """Newest first, optionally filtered by customer and capped at limit."""
    q = ActivityLogEntry.query
    if customer:
        q = q.filter(ActivityLogEntry.customer_name == customer)

    q = q.order_by(ActivityLogEntry.timestamp.desc(), ActivityLogEntry.id.desc())
    if limit is not None:
        q = q.limit(max(0, limit))
    return q.all()


def list_activity_as_of(customer: str, cutoff: datetime) -> list[ActivityLogEntry]:
    """Entries for customer with timestamp <= cutoff, oldest first. Used by billing replay."""
    return (
        ActivityLogEntry.query
        .filter(
            ActivityLogEntry.customer_name == customer,
            ActivityLogEntry.timestamp <= cutoff,
        )
        .order_by(ActivityLogEntry.timestamp.asc(), ActivityLogEntry.id.asc())
        .all()
    )


def list_pallet_history(pallet_id: str) -> list[ActivityLogEntry]:
    return (
        ActivityLogEntry.query
        .filter_by(pallet_id=pallet_id)
        .order_by(ActivityLogEntry.timestamp.asc(), ActivityLogEntry.id.asc())
        .all()
    )


def latest_activity_at(pallet_id: str) -> Optional[datetime]:
    """Business time of the pallet's most recent entry, or None if it has none."""
    row = (
        db.session.query(ActivityLogEntry.timestamp)
        .filter(ActivityLogEntry.pallet_id == pallet_id)
        .order_by(ActivityLogEntry.timestamp.desc(), ActivityLogEntry.id.desc())
        .first()
    )
    return row[0] if row else None
