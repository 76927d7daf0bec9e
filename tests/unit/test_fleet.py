"""Tests for the vehicle fleet registry."""

from __future__ import annotations

import pytest

from transport import (
    ConcurrencyConflictError,
    NotFoundError,
    TransportConfig,
    ValidationError,
    VehicleFleetRegistry,
    VehicleInventoryStore,
    VehicleUnavailableError,
)

EVENT_ID = 1


class ConflictingStore(VehicleInventoryStore):
    """Raises a version conflict on the first `conflicts` writes."""

    def __init__(self, conflicts: int):
        super().__init__()
        self.conflicts = conflicts
        self.attempts = 0

    def compare_and_set(self, event_id, vehicle, expected_version):
        self.attempts += 1
        if self.attempts <= self.conflicts:
            raise ConcurrencyConflictError("simulated concurrent writer")
        return super().compare_and_set(event_id, vehicle, expected_version)


class TestAddVehicleType:
    def test_new_type_is_fully_available(self, registry):
        sedan = registry.add_vehicle_type("Sedan", 4, 3)
        assert sedan.id == "v1"
        assert sedan.available_units == 3
        assert sedan.total_units == 3
        assert registry.get("v1") == sedan

    def test_ids_are_sequential(self, registry):
        registry.add_vehicle_type("Sedan", 4, 1)
        suv = registry.add_vehicle_type("SUV", 6, 1)
        assert suv.id == "v2"

    @pytest.mark.parametrize("capacity, units", [(0, 1), (4, 0), (-2, 3)])
    def test_rejects_non_positive_counts(self, registry, capacity, units):
        with pytest.raises(ValidationError):
            registry.add_vehicle_type("Broken", capacity, units)
        assert registry.list_vehicle_types() == []

    def test_rejects_blank_label(self, registry):
        with pytest.raises(ValidationError):
            registry.add_vehicle_type("   ", 4, 1)


class TestUnitCounters:
    def test_reserve_decrements(self, registry):
        registry.add_vehicle_type("Sedan", 4, 2)
        assert registry.reserve_unit("v1").available_units == 1

    def test_reserve_at_zero_fails(self, registry):
        registry.add_vehicle_type("Sedan", 4, 1)
        registry.reserve_unit("v1")
        with pytest.raises(VehicleUnavailableError):
            registry.reserve_unit("v1")
        assert registry.get("v1").available_units == 0

    def test_release_is_capped_at_total(self, registry):
        registry.add_vehicle_type("Sedan", 4, 2)
        registry.reserve_unit("v1")
        registry.release_unit("v1")
        assert registry.release_unit("v1").available_units == 2

    def test_unknown_ids(self, registry):
        with pytest.raises(NotFoundError):
            registry.release_unit("v99")
        with pytest.raises(NotFoundError):
            registry.reserve_unit("v99")

    def test_counter_writes_bump_version(self, registry):
        registry.add_vehicle_type("Sedan", 4, 2)
        assert registry.reserve_unit("v1").version == 1
        assert registry.release_unit("v1").version == 2


class TestListAvailable:
    def test_orders_by_capacity_then_id(self, registry):
        registry.add_vehicle_type("Sedan", 4, 1)    # v1
        registry.add_vehicle_type("Van", 8, 1)      # v2
        registry.add_vehicle_type("SUV", 6, 1)      # v3
        registry.add_vehicle_type("Minibus", 8, 1)  # v4
        assert [v.id for v in registry.list_available()] == ["v2", "v4", "v3", "v1"]

    def test_skips_exhausted_types(self, registry):
        registry.add_vehicle_type("Van", 8, 1)
        registry.add_vehicle_type("Sedan", 4, 1)
        registry.reserve_unit("v1")
        assert [v.id for v in registry.list_available()] == ["v2"]

    def test_max_capacity_ignores_availability(self, registry):
        assert registry.max_capacity() == 0
        registry.add_vehicle_type("Van", 8, 1)
        registry.reserve_unit("v1")
        assert registry.max_capacity() == 8


class TestUpdateAndRemove:
    def test_total_change_keeps_units_in_use(self, registry):
        registry.add_vehicle_type("Sedan", 4, 3)
        registry.reserve_unit("v1")
        registry.reserve_unit("v1")
        updated = registry.update_vehicle_type("v1", total_units=5, label="Town Car")
        assert updated.total_units == 5
        assert updated.available_units == 3
        assert updated.label == "Town Car"

    def test_total_below_units_in_use_fails(self, registry):
        registry.add_vehicle_type("Sedan", 4, 3)
        registry.reserve_unit("v1")
        registry.reserve_unit("v1")
        with pytest.raises(ValidationError):
            registry.update_vehicle_type("v1", total_units=1)

    def test_invalid_capacity_fails(self, registry):
        registry.add_vehicle_type("Sedan", 4, 1)
        with pytest.raises(ValidationError):
            registry.update_vehicle_type("v1", capacity_per_unit=0)
        assert registry.get("v1").capacity_per_unit == 4

    def test_remove_refused_while_in_use(self, registry):
        registry.add_vehicle_type("Sedan", 4, 1)
        registry.reserve_unit("v1")
        with pytest.raises(ValidationError):
            registry.remove_vehicle_type("v1")
        registry.release_unit("v1")
        registry.remove_vehicle_type("v1")
        assert registry.list_vehicle_types() == []


class TestOptimisticConcurrency:
    def test_retries_through_transient_conflict(self):
        store = ConflictingStore(conflicts=1)
        registry = VehicleFleetRegistry(EVENT_ID, store, TransportConfig(max_conflict_retries=3))
        registry.add_vehicle_type("Sedan", 4, 2)
        assert registry.reserve_unit("v1").available_units == 1
        assert store.attempts == 2

    def test_gives_up_after_retry_budget(self):
        store = ConflictingStore(conflicts=10)
        registry = VehicleFleetRegistry(EVENT_ID, store, TransportConfig(max_conflict_retries=2))
        registry.add_vehicle_type("Sedan", 4, 2)
        with pytest.raises(ConcurrencyConflictError):
            registry.reserve_unit("v1")
        assert registry.get("v1").available_units == 2
        assert store.attempts == 2

    def test_stale_version_is_rejected_by_store(self):
        store = VehicleInventoryStore()
        registry = VehicleFleetRegistry(EVENT_ID, store)
        sedan = registry.add_vehicle_type("Sedan", 4, 2)
        registry.reserve_unit("v1")
        with pytest.raises(ConcurrencyConflictError):
            store.compare_and_set(EVENT_ID, sedan, expected_version=sedan.version)
