# Overview: Pytest coverage for the pallet ledger state machine.

"""
Pallet Ledger Tests

Covers check-in, whole-pallet removal, unit removal and check-out:
1. Quantities never go negative and reaching 0 closes the record
2. REMOVED records are invisible to every later operation
3. Location occupancy follows ACTIVE pallets
4. Each successful mutation writes exactly one activity entry and one notification
5. Failed validation leaves no trace
"""

import random

import pytest

from warehouse_tracker.extensions import db, notifier
from warehouse_tracker.models import (
    ActivityLogEntry,
    Location,
    Pallet,
    PALLET_ACTIVE,
    PALLET_REMOVED,
)
from warehouse_tracker.services import pallet_service
from warehouse_tracker.validation import NotFoundError, ValidationError


def _log_count() -> int:
    return db.session.query(ActivityLogEntry).count()


def _is_occupied(location_id: str) -> bool:
    location = db.session.get(Location, location_id)
    return bool(location and location.is_occupied)


def _check_in(**overrides) -> Pallet:
    params = {
        "customer_name": "Acme",
        "product_id": "SKU1",
        "location": "A1-L1",
        "pallet_quantity": 2,
        "product_quantity": 50,
        "scanned_by": "dock-1",
    }
    params.update(overrides)
    return pallet_service.check_in(**params)


class TestCheckIn:
    def test_check_in_sets_units_and_occupies_location(self, db_session, recorder):
        pallet = _check_in()

        assert pallet.status == PALLET_ACTIVE
        assert pallet.pallet_quantity == 2
        assert pallet.product_quantity == 50
        assert pallet.current_units == 100
        assert _is_occupied("A1-L1")

        entries = db_session.query(ActivityLogEntry).all()
        assert len(entries) == 1
        assert entries[0].action == "CHECK_IN"
        assert entries[0].quantity_before == 0
        assert entries[0].quantity_after == 2
        assert entries[0].quantity_changed == 2
        assert entries[0].scanned_by == "dock-1"

        messages = recorder.recent()
        assert [m["action"] for m in messages] == ["add_pallet"]
        assert messages[0]["data"]["id"] == pallet.id
        assert messages[0]["timestamp"].endswith("Z")

    def test_defaults_to_one_pallet_without_units(self, db_session):
        pallet = pallet_service.check_in(customer_name="Acme", product_id="SKU9", location="B2-L3")
        assert pallet.pallet_quantity == 1
        assert pallet.product_quantity == 0
        assert pallet.current_units == 0
        assert pallet.status == PALLET_ACTIVE

    def test_generated_ids_are_unique(self, db_session):
        first = _check_in()
        second = _check_in()
        assert first.id.startswith("PLT-")
        assert first.id != second.id

    def test_explicit_current_units_resumes_partial_pallet(self, db_session):
        pallet = _check_in(current_units=35)
        assert pallet.current_units == 35
        assert pallet.product_quantity == 50

    def test_zero_units_on_unit_tracked_pallet_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            _check_in(pallet_quantity=2, product_quantity=50, current_units=0)

        assert db_session.query(Pallet).count() == 0
        assert not _is_occupied("A1-L1")

    def test_current_units_cannot_exceed_checked_in_total(self, db_session):
        with pytest.raises(ValidationError):
            _check_in(pallet_quantity=2, product_quantity=50, current_units=101)

        pallet = _check_in(pallet_quantity=2, product_quantity=50, current_units=100)
        assert pallet.current_units == 100

    def test_untracked_pallet_takes_zero_units(self, db_session):
        pallet = _check_in(product_quantity=0, current_units=0)
        assert pallet.current_units == 0
        assert pallet.status == PALLET_ACTIVE

        with pytest.raises(ValidationError):
            _check_in(product_quantity=0, current_units=1)

    def test_caller_supplied_id_is_kept_and_must_be_unique(self, db_session):
        pallet = _check_in(pallet_id="PLT-CUSTOM-1")
        assert pallet.id == "PLT-CUSTOM-1"

        with pytest.raises(ValidationError):
            _check_in(pallet_id="PLT-CUSTOM-1")
        assert _log_count() == 1

    def test_unknown_location_is_created_on_demand(self, db_session):
        _check_in(location="DOCK-OVERFLOW")
        location = db_session.get(Location, "DOCK-OVERFLOW")
        assert location is not None
        assert location.is_occupied is True
        assert location.aisle is None

    def test_grid_style_location_is_parsed(self, db_session):
        _check_in(location="C4-L2")
        location = db_session.get(Location, "C4-L2")
        assert (location.aisle, location.rack, location.level) == ("C", 4, 2)

    def test_parts_are_stored_in_order(self, db_session):
        parts = [{"part_number": "P-1", "quantity": 4}, {"part_number": "P-2", "quantity": 1}]
        pallet = _check_in(parts=parts)
        assert db_session.get(Pallet, pallet.id).parts == parts

    @pytest.mark.parametrize("overrides", [
        {"customer_name": ""},
        {"customer_name": None},
        {"product_id": "   "},
        {"location": None},
        {"pallet_quantity": 0},
        {"pallet_quantity": -1},
        {"pallet_quantity": "2.5"},
        {"product_quantity": -5},
        {"current_units": -1},
        {"parts": "P-1"},
        {"parts": [{"quantity": 2}]},
        {"parts": [{"part_number": "P-1", "quantity": -2}]},
    ])
    def test_invalid_input_leaves_no_trace(self, db_session, recorder, overrides):
        with pytest.raises(ValidationError):
            _check_in(**overrides)

        assert db_session.query(Pallet).count() == 0
        assert _log_count() == 0
        assert recorder.recent() == []

    def test_future_occurred_at_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            _check_in(occurred_at="2999-01-01T00:00:00Z")

    def test_occurred_at_sets_date_added_and_log_timestamp(self, db_session, at):
        pallet = _check_in(occurred_at=at(1, 8, 30))
        assert db_session.get(Pallet, pallet.id).date_added == at(1, 8, 30)
        assert db_session.query(ActivityLogEntry).one().timestamp == at(1, 8, 30)


class TestRemoveUnits:
    def test_unit_removal_scenario(self, db_session, recorder):
        pallet = _check_in()
        recorder.clear()

        result = pallet_service.remove_units(pallet.id, 40, scanned_by="picker")
        assert result["units_remaining"] == 60
        assert result["pallets_remaining"] == 2
        assert result["pallet_removed"] is False

        stored = db_session.get(Pallet, pallet.id)
        assert stored.current_units == 60
        assert stored.pallet_quantity == 2
        assert stored.status == PALLET_ACTIVE

        entry = db_session.query(ActivityLogEntry).order_by(ActivityLogEntry.id.desc()).first()
        assert (entry.action, entry.quantity_before, entry.quantity_after, entry.quantity_changed) == (
            "UNITS_REMOVE", 100, 60, 40,
        )

        result = pallet_service.remove_units(pallet.id, 60)
        assert result["units_remaining"] == 0
        assert result["pallet_removed"] is True

        stored = db_session.get(Pallet, pallet.id)
        assert stored.status == PALLET_REMOVED
        assert stored.date_removed is not None
        assert (stored.pallet_quantity, stored.product_quantity, stored.current_units) == (0, 0, 0)
        assert not _is_occupied("A1-L1")

        entry = db_session.query(ActivityLogEntry).order_by(ActivityLogEntry.id.desc()).first()
        assert (entry.quantity_before, entry.quantity_after) == (60, 0)

        assert [m["action"] for m in recorder.recent()] == ["delete_pallet", "remove_units"]

    def test_pallet_without_unit_spec_rejects_unit_removal(self, db_session):
        pallet = _check_in(product_quantity=0)
        with pytest.raises(ValidationError):
            pallet_service.remove_units(pallet.id, 1)
        assert _log_count() == 1

    @pytest.mark.parametrize("units", [0, -3, 101])
    def test_out_of_range_units_are_rejected(self, db_session, units):
        pallet = _check_in()
        with pytest.raises(ValidationError):
            pallet_service.remove_units(pallet.id, units)

        assert db_session.get(Pallet, pallet.id).current_units == 100
        assert _log_count() == 1


class TestRemovePalletQuantity:
    def test_partial_removal_keeps_units(self, db_session, recorder):
        pallet = _check_in(pallet_quantity=3, product_quantity=10)
        recorder.clear()

        result = pallet_service.remove_pallet_quantity(pallet.id, 2)
        assert result["remaining"] == 1
        assert result["pallet_removed"] is False

        stored = db_session.get(Pallet, pallet.id)
        assert stored.pallet_quantity == 1
        assert stored.current_units == 30
        assert _is_occupied("A1-L1")
        assert recorder.recent()[0]["action"] == "remove_pallets"

        entry = db_session.query(ActivityLogEntry).order_by(ActivityLogEntry.id.desc()).first()
        assert (entry.action, entry.quantity_before, entry.quantity_after, entry.quantity_changed) == (
            "PARTIAL_REMOVE", 3, 1, 2,
        )

    def test_removing_last_pallets_closes_record(self, db_session, recorder):
        pallet = _check_in(pallet_quantity=2)
        recorder.clear()

        result = pallet_service.remove_pallet_quantity(pallet.id, 2)
        assert result == {"remaining": 0, "pallet_removed": True, "pallet": result["pallet"]}

        stored = db_session.get(Pallet, pallet.id)
        assert stored.status == PALLET_REMOVED
        assert not _is_occupied("A1-L1")
        assert recorder.recent()[0]["action"] == "delete_pallet"

        entry = db_session.query(ActivityLogEntry).order_by(ActivityLogEntry.id.desc()).first()
        assert (entry.action, entry.quantity_after) == ("PARTIAL_REMOVE", 0)

    def test_over_removal_is_rejected_without_side_effects(self, db_session, recorder):
        pallet = _check_in(pallet_quantity=2)
        recorder.clear()

        with pytest.raises(ValidationError):
            pallet_service.remove_pallet_quantity(pallet.id, 3)

        assert db_session.get(Pallet, pallet.id).pallet_quantity == 2
        assert _log_count() == 1
        assert _is_occupied("A1-L1")
        assert recorder.recent() == []

    def test_zero_quantity_is_rejected(self, db_session):
        pallet = _check_in()
        with pytest.raises(ValidationError):
            pallet_service.remove_pallet_quantity(pallet.id, 0)

    def test_unknown_reference_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            pallet_service.remove_pallet_quantity("PLT-NOPE", 1)


class TestCheckOut:
    def test_check_out_logs_full_quantity(self, db_session, recorder):
        pallet = _check_in(pallet_quantity=4)
        recorder.clear()

        pallet_service.check_out(pallet.id, scanned_by="dock-2", notes="truck 7")

        stored = db_session.get(Pallet, pallet.id)
        assert stored.status == PALLET_REMOVED
        assert not _is_occupied("A1-L1")

        entry = db_session.query(ActivityLogEntry).order_by(ActivityLogEntry.id.desc()).first()
        assert (entry.action, entry.quantity_before, entry.quantity_after, entry.quantity_changed) == (
            "CHECK_OUT", 4, 4, 4,
        )
        assert entry.notes == "truck 7"
        assert recorder.recent()[0]["action"] == "delete_pallet"

    def test_removed_pallet_cannot_be_touched_again(self, db_session):
        pallet = _check_in()
        pallet_service.check_out(pallet.id)

        with pytest.raises(NotFoundError):
            pallet_service.check_out(pallet.id)
        with pytest.raises(NotFoundError):
            pallet_service.remove_units(pallet.id, 1)
        with pytest.raises(NotFoundError):
            pallet_service.remove_pallet_quantity(pallet.id, 1)
        with pytest.raises(NotFoundError):
            pallet_service.check_out("SKU1")

        assert _log_count() == 2

    def test_shared_location_stays_occupied_until_last_pallet_leaves(self, db_session):
        first = _check_in(product_id="SKU1")
        second = _check_in(product_id="SKU2")

        pallet_service.check_out(first.id)
        assert _is_occupied("A1-L1")

        pallet_service.check_out(second.id)
        assert not _is_occupied("A1-L1")


class TestLookup:
    def test_product_id_resolves_single_active_pallet(self, db_session):
        pallet = _check_in(product_id="SKU-UNIQUE")
        result = pallet_service.remove_units("SKU-UNIQUE", 10)
        assert result["pallet"].id == pallet.id

    def test_ambiguous_product_id_is_rejected(self, db_session):
        _check_in(product_id="SKU-DUP", location="A1-L1")
        _check_in(product_id="SKU-DUP", location="B1-L1")

        with pytest.raises(ValidationError):
            pallet_service.check_out("SKU-DUP")
        assert _log_count() == 2

    def test_location_narrows_product_lookup(self, db_session):
        _check_in(product_id="SKU-DUP", location="A1-L1")
        target = _check_in(product_id="SKU-DUP", location="B1-L1")

        removed = pallet_service.check_out("SKU-DUP", location="B1-L1")
        assert removed.id == target.id
        assert _is_occupied("A1-L1")
        assert not _is_occupied("B1-L1")

    def test_pallet_id_wins_over_product_id(self, db_session):
        by_id = _check_in(pallet_id="SHARED", product_id="X")
        _check_in(product_id="SHARED")

        removed = pallet_service.check_out("SHARED")
        assert removed.id == by_id.id


class TestBusinessTime:
    def test_removals_cannot_predate_check_in(self, db_session, at):
        pallet = _check_in(pallet_quantity=4, occurred_at=at(3))

        with pytest.raises(ValidationError):
            pallet_service.check_out(pallet.id, occurred_at=at(1))
        with pytest.raises(ValidationError):
            pallet_service.remove_pallet_quantity(pallet.id, 1, occurred_at=at(2))
        with pytest.raises(ValidationError):
            pallet_service.remove_units(pallet.id, 1, occurred_at=at(3, 8, 59))

        stored = db_session.get(Pallet, pallet.id)
        assert stored.status == PALLET_ACTIVE
        assert stored.pallet_quantity == 4
        assert _is_occupied("A1-L1")
        assert _log_count() == 1

    def test_removal_cannot_predate_latest_entry(self, db_session, at):
        pallet = _check_in(pallet_quantity=4, occurred_at=at(1))
        pallet_service.remove_pallet_quantity(pallet.id, 1, occurred_at=at(4))

        with pytest.raises(ValidationError):
            pallet_service.check_out(pallet.id, occurred_at=at(2))

        pallet_service.check_out(pallet.id, occurred_at=at(4))
        assert db_session.get(Pallet, pallet.id).status == PALLET_REMOVED
        assert _log_count() == 3


class TestNotifications:
    def test_failing_sink_does_not_fail_mutation(self, db_session, recorder):
        def broken_sink(message):
            raise RuntimeError("socket closed")

        notifier.subscribe(broken_sink)
        try:
            pallet = _check_in()
        finally:
            notifier.unsubscribe(broken_sink)

        assert db_session.get(Pallet, pallet.id).status == PALLET_ACTIVE
        assert _log_count() == 1
        assert recorder.recent()[0]["action"] == "add_pallet"


class TestReads:
    def test_list_and_search_active_pallets(self, db_session):
        _check_in(customer_name="Acme", product_id="WIDGET", location="A1-L1")
        gone = _check_in(customer_name="Acme", product_id="GADGET", location="A2-L1")
        _check_in(customer_name="Globex", product_id="WIDGET", location="B1-L1")
        pallet_service.check_out(gone.id)

        assert len(pallet_service.list_active_pallets()) == 2
        assert len(pallet_service.list_active_pallets(customer="Acme")) == 1
        assert len(pallet_service.list_active_pallets(search="widget")) == 2
        assert len(pallet_service.list_active_pallets(search="B1")) == 1

    def test_stats_and_customers(self, db_session):
        _check_in(customer_name="Acme", pallet_quantity=2, product_quantity=10)
        _check_in(customer_name="Globex", pallet_quantity=1, product_quantity=5, location="B1-L1")

        stats = pallet_service.get_stats()
        assert stats["total_records"] == 2
        assert stats["total_pallets"] == 3
        assert stats["total_units"] == 25
        assert stats["occupied_locations"] == 2
        assert stats["total_locations"] == 2

        assert pallet_service.get_stats(customer="Acme")["total_pallets"] == 2
        assert pallet_service.list_customers() == ["Acme", "Globex"]


def test_random_interleaving_keeps_ledger_invariants(db_session):
    """
    Random mix of check-ins and removals across a few shared locations.

    After every step: quantities are non-negative, zero means REMOVED, each
    location's flag matches its ACTIVE pallets, and every success logged once.
    """
    rng = random.Random(20250303)
    locations = ["A1-L1", "A1-L2", "B1-L1"]
    successes = 0

    for step in range(150):
        active = Pallet.query.filter_by(status=PALLET_ACTIVE).all()
        op = rng.choice(["check_in", "check_in", "remove", "units", "check_out"]) if active else "check_in"

        try:
            if op == "check_in":
                pallet_service.check_in(
                    customer_name=rng.choice(["Acme", "Globex"]),
                    product_id=f"SKU{step}",
                    location=rng.choice(locations),
                    pallet_quantity=rng.randint(1, 4),
                    product_quantity=rng.choice([0, 5, 10]),
                )
            else:
                target = rng.choice(active)
                if op == "remove":
                    pallet_service.remove_pallet_quantity(target.id, rng.randint(0, target.pallet_quantity + 1))
                elif op == "units":
                    pallet_service.remove_units(target.id, rng.randint(0, target.current_units + 1))
                else:
                    pallet_service.check_out(target.id)
            successes += 1
        except ValidationError:
            pass

        db.session.expire_all()
        for pallet in Pallet.query.all():
            assert pallet.pallet_quantity >= 0
            assert pallet.current_units >= 0
            if pallet.status == PALLET_ACTIVE:
                assert pallet.pallet_quantity > 0
                if pallet.product_quantity > 0:
                    assert pallet.current_units > 0

        for location_id in locations:
            has_active = Pallet.query.filter_by(location=location_id, status=PALLET_ACTIVE).count() > 0
            location = db.session.get(Location, location_id)
            assert (location.is_occupied if location else False) == has_active

        assert _log_count() == successes
