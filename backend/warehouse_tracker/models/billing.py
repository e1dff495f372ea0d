from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

INVOICE_DRAFT = "DRAFT"
INVOICE_SENT = "SENT"
INVOICE_PAID = "PAID"
INVOICE_STATUSES = (INVOICE_DRAFT, INVOICE_SENT, INVOICE_PAID)


def _money(value) -> float | None:
    return float(value) if value is not None else None


class CustomerRate(db.Model):
    """Storage + handling pricing, at most one row per customer."""
    __tablename__ = "customer_rates"
    __table_args__ = (
        db.UniqueConstraint("customer_name", name="uq_customer_rates_customer"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(120), nullable=False)

    rate_per_pallet_week = db.Column(db.Numeric(12, 4), nullable=False)
    handling_fee_flat = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    handling_fee_per_pallet = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default="USD")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "rate_per_pallet_week": _money(self.rate_per_pallet_week),
            "handling_fee_flat": _money(self.handling_fee_flat),
            "handling_fee_per_pallet": _money(self.handling_fee_per_pallet),
            "currency": self.currency,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Invoice(db.Model):
    """
    Persisted billing snapshot.

    Rates are copied in at generation time so later rate edits never change
    an existing invoice. Only status / sent_at / paid_at are mutable.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_customer_period", "customer_name", "start_date", "end_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(120), nullable=False)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    days_in_range = db.Column(db.Integer, nullable=False)

    pallet_days = db.Column(db.Integer, nullable=False)
    pallet_weeks = db.Column(db.Numeric(14, 6), nullable=False)
    handled_pallets = db.Column(db.Integer, nullable=False)

    rate_per_pallet_week = db.Column(db.Numeric(12, 4), nullable=False)
    handling_fee_flat = db.Column(db.Numeric(12, 4), nullable=False)
    handling_fee_per_pallet = db.Column(db.Numeric(12, 4), nullable=False)
    currency = db.Column(db.String(8), nullable=False)

    base_total = db.Column(db.Numeric(12, 2), nullable=False)
    handling_total = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_DRAFT, index=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "days_in_range": self.days_in_range,
            "pallet_days": self.pallet_days,
            "pallet_weeks": _money(self.pallet_weeks),
            "handled_pallets": self.handled_pallets,
            "rate_per_pallet_week": _money(self.rate_per_pallet_week),
            "handling_fee_flat": _money(self.handling_fee_flat),
            "handling_fee_per_pallet": _money(self.handling_fee_per_pallet),
            "currency": self.currency,
            "base_total": _money(self.base_total),
            "handling_total": _money(self.handling_total),
            "total": _money(self.total),
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "sent_at": to_utc_z(self.sent_at),
            "paid_at": to_utc_z(self.paid_at),
        }
