from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

PALLET_ACTIVE = "ACTIVE"
PALLET_REMOVED = "REMOVED"


class Pallet(db.Model):
    """
    One tracked unit of inventory (possibly several physical pallets) at a
    location for a customer.

    LIFECYCLE:
    - Created ACTIVE by check-in.
    - pallet_quantity / current_units only ever decrease.
    - Reaching 0 in either, or an explicit check-out, flips status to REMOVED.
    - REMOVED is terminal: rows are never deleted or reactivated.

    product_quantity is the per-pallet unit spec captured at check-in. It is
    never recomputed from current_units.
    """
    __tablename__ = "pallets"
    __table_args__ = (
        db.Index("ix_pallets_status_location", "status", "location"),
        db.Index("ix_pallets_status_product", "status", "product_id"),
        db.Index("ix_pallets_customer_status", "customer_name", "status"),
    )

    id = db.Column(db.String(64), primary_key=True)

    customer_name = db.Column(db.String(120), nullable=False)
    product_id = db.Column(db.String(120), nullable=False)

    pallet_quantity = db.Column(db.Integer, nullable=False, default=1)
    product_quantity = db.Column(db.Integer, nullable=False, default=0)
    current_units = db.Column(db.Integer, nullable=False, default=0)

    location = db.Column(db.String(32), db.ForeignKey("locations.id"), nullable=False)

    # Opaque [{part_number, quantity}] payload; shape checked at check-in only
    parts = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PALLET_ACTIVE)
    scanned_by = db.Column(db.String(120), nullable=True)

    date_added = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    date_removed = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status == PALLET_ACTIVE

    def __repr__(self) -> str:
        return (
            f"<Pallet id={self.id!r} customer={self.customer_name!r} product={self.product_id!r} "
            f"pallets={self.pallet_quantity} units={self.current_units} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "product_id": self.product_id,
            "pallet_quantity": self.pallet_quantity,
            "product_quantity": self.product_quantity,
            "current_units": self.current_units,
            "location": self.location,
            "parts": self.parts or [],
            "status": self.status,
            "scanned_by": self.scanned_by,
            "date_added": to_utc_z(self.date_added),
            "date_removed": to_utc_z(self.date_removed),
            "version_id": self.version_id,
        }


class Location(db.Model):
    """
    Storage slot. is_occupied mirrors "at least one ACTIVE pallet references
    this id" and is recomputed by the ledger on every check-in and removal.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.Index("ix_locations_grid", "aisle", "rack", "level"),
    )

    id = db.Column(db.String(32), primary_key=True)
    aisle = db.Column(db.String(8), nullable=True)
    rack = db.Column(db.Integer, nullable=True)
    level = db.Column(db.Integer, nullable=True)

    is_occupied = db.Column(db.Boolean, nullable=False, default=False)
    last_activity_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Location {self.id} occupied={self.is_occupied}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "aisle": self.aisle,
            "rack": self.rack,
            "level": self.level,
            "is_occupied": self.is_occupied,
            "last_activity_at": to_utc_z(self.last_activity_at),
        }
