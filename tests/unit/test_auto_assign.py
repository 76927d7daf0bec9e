"""Tests for batch auto-assignment: scenarios, invariants, determinism."""

from __future__ import annotations

from collections import Counter
from datetime import date, time

import pytest

from models import AssignmentSource
from transport import ConcurrencyConflictError, TransportConfig

DAY = date(2025, 6, 15)


def assert_invariants(ledger):
    """Capacity and exclusivity hold for every committed assignment."""
    vehicles = {v.id: v for v in ledger.registry.list_vehicle_types()}
    groups = {g.id: g for g in ledger.list_groups()}
    seen = Counter()
    for assignment in ledger.list_assignments():
        size = sum(groups[gid].size for gid in assignment.family_group_ids)
        assert size == assignment.passenger_count
        assert size <= vehicles[assignment.vehicle_type_id].capacity_per_unit
        seen.update(assignment.family_group_ids)
    assert all(count == 1 for count in seen.values())
    for vehicle in vehicles.values():
        assert 0 <= vehicle.available_units <= vehicle.total_units


def mixed_arrivals(make_group):
    return [
        make_group("fg1", 4, arrival_time="10:05"),
        make_group("fg2", 3, arrival_time="10:40"),
        make_group("fg3", 2, arrival_time="10:15"),
        make_group("fg4", 1, arrival_time="10:55"),
        make_group("fg5", 5, arrival_time="11:20"),
        make_group("fg6", 2, arrival_time="11:45"),
        make_group("fg7", 6, arrival_time="14:00", location="Train Station"),
        make_group("fg8", 1, arrival_time="14:30", location="train station"),
        make_group("fg9", 3, arrival_date=date(2025, 6, 16), arrival_time="09:00"),
        make_group("fg10", 12, arrival_time="10:30"),
        make_group("fg11", 2, arrival_time=None),
    ]


MIXED_FLEET = [("Sedan", 4, 3), ("SUV", 6, 2), ("Minivan", 8, 1)]


class TestScenarios:
    def test_single_group_fills_single_sedan(self, build_ledger, make_group):
        ledger = build_ledger([("Sedan", 4, 1)], [make_group("g1", 4, arrival_time="10:00")])
        result = ledger.run_auto_assign()

        assert len(result.created) == 1
        assignment = result.created[0]
        assert assignment.family_group_ids == ["g1"]
        assert assignment.pickup_date == DAY
        assert assignment.pickup_time == time(10, 0)
        assert assignment.pickup_location == "Airport"
        assert assignment.dropoff_location == "Venue"
        assert assignment.source == AssignmentSource.AUTO
        assert ledger.registry.get("v1").available_units == 0
        assert ledger.get_group("g1").assigned

    def test_first_fit_decreasing_in_one_suv(self, build_ledger, make_group):
        ledger = build_ledger(
            [("SUV", 6, 1)],
            [make_group("fg1", 4), make_group("fg2", 3), make_group("fg3", 2)],
        )
        result = ledger.run_auto_assign()

        assert [a.family_group_ids for a in result.created] == [["fg1", "fg3"]]
        assert result.created[0].passenger_count == 6
        assert [g.id for g in result.unassignable] == ["fg2"]
        assert "fg2" in result.reasons
        assert_invariants(ledger)

    def test_exact_fill_then_nothing_left(self, build_ledger, make_group):
        ledger = build_ledger([("Sedan", 4, 1)], [make_group("fg1", 2), make_group("fg2", 2)])
        first = ledger.run_auto_assign()
        assert [a.family_group_ids for a in first.created] == [["fg1", "fg2"]]
        assert first.created[0].passenger_count == 4

        ledger.load_groups(ledger.list_groups() + [make_group("fg3", 2)])
        second = ledger.run_auto_assign()
        assert second.created == []
        assert [g.id for g in second.unassignable] == ["fg3"]

    def test_deleted_assignment_frees_unit_for_manual_create(self, build_ledger, make_group):
        ledger = build_ledger([("Sedan", 4, 1)], [make_group("fg1", 4), make_group("fg2", 3)])
        created = ledger.run_auto_assign().created
        ledger.delete_assignment(created[0].id)
        manual = ledger.create_assignment("v1", ["fg2"], DAY, "10:00", "Airport", "Venue")
        assert manual.vehicle_type_id == "v1"


class TestProperties:
    def test_invariants_on_mixed_event(self, build_ledger, make_group):
        ledger = build_ledger(MIXED_FLEET, mixed_arrivals(make_group))
        ledger.run_auto_assign()
        assert_invariants(ledger)

    def test_idempotent(self, build_ledger, make_group):
        ledger = build_ledger(MIXED_FLEET, mixed_arrivals(make_group))
        first = ledger.run_auto_assign()
        assert first.created
        second = ledger.run_auto_assign()
        assert second.created == []
        assert len(ledger.list_assignments()) == len(first.created)

    def test_deterministic(self, build_ledger, make_group):
        runs = []
        for _ in range(2):
            ledger = build_ledger(MIXED_FLEET, mixed_arrivals(make_group))
            result = ledger.run_auto_assign()
            runs.append(([a.model_dump() for a in result.created], [g.id for g in result.unassignable]))
        assert runs[0] == runs[1]

    def test_oversize_group_always_reported(self, build_ledger, make_group):
        ledger = build_ledger(MIXED_FLEET, mixed_arrivals(make_group))
        result = ledger.run_auto_assign()
        assert "fg10" in [g.id for g in result.unassignable]
        assert all("fg10" not in a.family_group_ids for a in ledger.list_assignments())
        assert "largest vehicle" in result.reasons["fg10"]

    def test_groups_without_arrival_are_excluded(self, build_ledger, make_group):
        ledger = build_ledger(MIXED_FLEET, mixed_arrivals(make_group))
        result = ledger.run_auto_assign()
        assert [g.id for g in result.excluded] == ["fg11"]
        assert not ledger.get_group("fg11").assigned


class TestRunBehaviour:
    def test_waves_share_the_fleet_in_key_order(self, build_ledger, make_group):
        ledger = build_ledger(
            [("Van", 8, 1), ("Sedan", 4, 1)],
            [make_group("fg1", 3, arrival_time="15:00"), make_group("fg2", 3, arrival_time="09:00")],
        )
        result = ledger.run_auto_assign()
        by_group = {a.family_group_ids[0]: a.vehicle_type_id for a in result.created}
        assert by_group == {"fg2": "v1", "fg1": "v2"}

    def test_wave_pickup_is_hour_bucket(self, build_ledger, make_group):
        ledger = build_ledger([("Van", 8, 1)], [make_group("fg1", 2, arrival_time="14:37")])
        assert ledger.run_auto_assign().created[0].pickup_time == time(14, 0)

    def test_existing_assignments_untouched(self, build_ledger, make_group):
        ledger = build_ledger([("Sedan", 4, 2)], [make_group("fg1", 2), make_group("fg2", 2)])
        manual = ledger.create_assignment("v1", ["fg1"], DAY, "09:00", "Hotel Lobby", "Venue", notes="VIP")
        result = ledger.run_auto_assign()
        assert [a.family_group_ids for a in result.created] == [["fg2"]]
        assert ledger.get_assignment(manual.id) == manual

    def test_filter_date(self, build_ledger, make_group):
        ledger = build_ledger(MIXED_FLEET, mixed_arrivals(make_group))
        result = ledger.run_auto_assign(filter_date=date(2025, 6, 16))
        assert [a.family_group_ids for a in result.created] == [["fg9"]]
        assert result.excluded == []

    def test_dropoff_override_and_config_default(self, build_ledger, make_group):
        ledger = build_ledger([("Van", 8, 2)], [make_group("fg1", 2)],
                              config=TransportConfig(default_dropoff_location="Taj Hotel"))
        assert ledger.run_auto_assign().created[0].dropoff_location == "Taj Hotel"

        ledger = build_ledger([("Van", 8, 2)], [make_group("fg1", 2)])
        assert ledger.run_auto_assign(dropoff_location="Beach Resort").created[0].dropoff_location == "Beach Resort"

    def test_commit_failure_rolls_back_whole_run(self, build_ledger, make_group, monkeypatch):
        ledger = build_ledger(
            [("Sedan", 4, 3)],
            [make_group("fg1", 4, arrival_time="09:00"), make_group("fg2", 4, arrival_time="10:00")],
        )
        real_reserve = ledger.registry.reserve_unit
        calls = []

        def flaky_reserve(vehicle_type_id):
            calls.append(vehicle_type_id)
            if len(calls) == 2:
                raise ConcurrencyConflictError("simulated")
            return real_reserve(vehicle_type_id)

        monkeypatch.setattr(ledger.registry, "reserve_unit", flaky_reserve)
        with pytest.raises(ConcurrencyConflictError):
            ledger.run_auto_assign()

        assert ledger.list_assignments() == []
        assert ledger.registry.get("v1").available_units == 3
        assert not any(g.assigned for g in ledger.list_groups())
