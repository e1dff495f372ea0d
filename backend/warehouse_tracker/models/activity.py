from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

ACTION_CHECK_IN = "CHECK_IN"
ACTION_PARTIAL_REMOVE = "PARTIAL_REMOVE"
ACTION_UNITS_REMOVE = "UNITS_REMOVE"
ACTION_CHECK_OUT = "CHECK_OUT"

ACTIVITY_ACTIONS = (ACTION_CHECK_IN, ACTION_PARTIAL_REMOVE, ACTION_UNITS_REMOVE, ACTION_CHECK_OUT)


class ActivityLogEntry(db.Model):
    """
    Append-only audit record, one per ledger mutation.

    quantity_* hold pallet counts for CHECK_IN / PARTIAL_REMOVE / CHECK_OUT
    and unit counts for UNITS_REMOVE.

    Replay order is (timestamp, id); id is the insertion sequence and breaks
    timestamp ties.
    """
    __tablename__ = "activity_log"
    __table_args__ = (
        db.Index("ix_activity_customer_timestamp", "customer_name", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    pallet_id = db.Column(db.String(64), nullable=False, index=True)
    customer_name = db.Column(db.String(120), nullable=False)
    product_id = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(32), nullable=False)

    action = db.Column(db.String(32), nullable=False, index=True)

    quantity_changed = db.Column(db.Integer, nullable=False, default=0)
    quantity_before = db.Column(db.Integer, nullable=False, default=0)
    quantity_after = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.String(255), nullable=True)
    scanned_by = db.Column(db.String(120), nullable=True)

    # Business time; created_at is system time
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<ActivityLogEntry id={self.id} {self.action} pallet={self.pallet_id!r} "
            f"{self.quantity_before}->{self.quantity_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pallet_id": self.pallet_id,
            "customer_name": self.customer_name,
            "product_id": self.product_id,
            "location": self.location,
            "action": self.action,
            "quantity_changed": self.quantity_changed,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "notes": self.notes,
            "scanned_by": self.scanned_by,
            "timestamp": to_utc_z(self.timestamp),
            "created_at": to_utc_z(self.created_at),
        }
