# Overview: Tabular projection of ACTIVE pallets for CSV download and spreadsheet snapshots.

from __future__ import annotations

import csv
import io
from typing import Optional

from ..models import Pallet, PALLET_ACTIVE
from ..time_utils import to_utc_z

EXPORT_HEADER = [
    "Customer",
    "Product ID",
    "Pallets",
    "Units/Pallet",
    "Current Units",
    "Location",
    "Date Added",
]


def export_rows(*, customer: Optional[str] = None) -> list[list]:
    """Header row followed by one row per ACTIVE pallet, oldest first."""
    q = Pallet.query.filter(Pallet.status == PALLET_ACTIVE)
    if customer:
        q = q.filter(Pallet.customer_name == customer)
    pallets = q.order_by(Pallet.date_added.asc(), Pallet.id.asc()).all()

    rows: list[list] = [list(EXPORT_HEADER)]
    for p in pallets:
        rows.append([
            p.customer_name,
            p.product_id,
            p.pallet_quantity,
            p.product_quantity,
            p.current_units,
            p.location,
            to_utc_z(p.date_added),
        ])
    return rows


def export_csv(*, customer: Optional[str] = None) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(export_rows(customer=customer))
    return buf.getvalue()
