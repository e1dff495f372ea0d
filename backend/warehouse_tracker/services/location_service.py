# Overview: Storage slot registry; grid seeding and occupancy flags kept in step with ACTIVE pallets.

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import Location, Pallet, PALLET_ACTIVE
from ..time_utils import utcnow
from ..validation import require_text

# "A1-L1" -> aisle A, rack 1, level 1
_GRID_ID = re.compile(r"^(?P<aisle>[A-Za-z]+)(?P<rack>\d+)-L(?P<level>\d+)$")


def format_location_id(aisle: str, rack: int, level: int) -> str:
    return f"{aisle}{rack}-L{level}"


def seed_locations(
    *,
    aisles: Optional[str] = None,
    racks: Optional[int] = None,
    levels: Optional[int] = None,
) -> int:
    """
    Create the aisle x rack x level grid. Idempotent: existing ids are skipped.

    Returns the number of locations created.
    """
    aisles = aisles if aisles is not None else current_app.config["LOCATION_AISLES"]
    racks = racks if racks is not None else current_app.config["LOCATION_RACKS"]
    levels = levels if levels is not None else current_app.config["LOCATION_LEVELS"]

    existing = {row[0] for row in db.session.query(Location.id).all()}
    created = 0
    for aisle in aisles:
        for rack in range(1, racks + 1):
            for level in range(1, levels + 1):
                location_id = format_location_id(aisle, rack, level)
                if location_id in existing:
                    continue
                db.session.add(Location(id=location_id, aisle=aisle, rack=rack, level=level))
                created += 1

    db.session.commit()
    if created:
        current_app.logger.info("Seeded %d locations", created)
    return created


def ensure_location(location_id: str) -> Location:
    """Get-or-create; ids outside the seeded grid are accepted as ad-hoc slots."""
    location_id = require_text(location_id, "location")
    location = db.session.get(Location, location_id)
    if location is not None:
        return location

    location = Location(id=location_id)
    match = _GRID_ID.match(location_id)
    if match:
        location.aisle = match.group("aisle").upper()
        location.rack = int(match.group("rack"))
        location.level = int(match.group("level"))
    db.session.add(location)
    db.session.flush()
    return location


def refresh_occupancy(location_id: str, *, occurred_at: Optional[datetime] = None) -> Location:
    """
    Recompute is_occupied from ACTIVE pallets at location_id.

    Must run after the pallet change is flushed. last_activity_at is always
    stamped so the row's version bumps on every mutation and two concurrent
    writers on the same slot conflict instead of both committing.
    """
    location = ensure_location(location_id)
    active_here = (
        db.session.query(Pallet.id)
        .filter(Pallet.location == location.id, Pallet.status == PALLET_ACTIVE)
        .first()
    )
    location.is_occupied = active_here is not None
    location.last_activity_at = occurred_at or utcnow()
    db.session.flush()
    return location


def list_locations(*, occupied: Optional[bool] = None) -> list[Location]:
    q = Location.query
    if occupied is not None:
        q = q.filter(Location.is_occupied.is_(occupied))
    return q.order_by(Location.aisle, Location.rack, Location.level, Location.id).all()


def count_locations(*, occupied: Optional[bool] = None) -> int:
    q = db.session.query(Location)
    if occupied is not None:
        q = q.filter(Location.is_occupied.is_(occupied))
    return q.count()
