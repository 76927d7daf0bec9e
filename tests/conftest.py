"""
Shared fixtures for the transport allocator tests.

Provides factories for family groups and fully wired ledgers so each test
can describe its fleet and arrivals in one line.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence, Tuple

import pytest

from models import FamilyGroup
from transport import (
    AssignmentLedger,
    AssignmentStore,
    TransportConfig,
    VehicleFleetRegistry,
    VehicleInventoryStore,
)

EVENT_ID = 1
WEDDING_DAY = date(2025, 6, 15)

# (label, capacity_per_unit, total_units); ids are v1, v2, ... in order
FleetSpec = Sequence[Tuple[str, int, int]]


def group_of(
    group_id: str,
    size: int,
    arrival_date=WEDDING_DAY,
    arrival_time="10:00",
    location="Airport",
) -> FamilyGroup:
    """A family group of `size` seats; the primary guest id is derived from the group id."""
    primary = int("".join(ch for ch in group_id if ch.isdigit()) or "0") * 100 + 1
    return FamilyGroup(
        id=group_id,
        primary_guest_id=primary,
        member_ids=list(range(primary + 1, primary + size)),
        label=f"Family {group_id}",
        arrival_date=arrival_date,
        arrival_time=arrival_time,
        arrival_location=location,
    )


def wire_ledger(
    fleet: FleetSpec,
    groups: Iterable[FamilyGroup] = (),
    config: TransportConfig | None = None,
) -> AssignmentLedger:
    config = config or TransportConfig()
    registry = VehicleFleetRegistry(EVENT_ID, VehicleInventoryStore(), config)
    for label, capacity, units in fleet:
        registry.add_vehicle_type(label, capacity, units)
    ledger = AssignmentLedger(EVENT_ID, registry, AssignmentStore(), config=config)
    ledger.load_groups(groups)
    return ledger


@pytest.fixture
def make_group():
    return group_of


@pytest.fixture
def build_ledger():
    return wire_ledger


@pytest.fixture
def registry() -> VehicleFleetRegistry:
    return VehicleFleetRegistry(EVENT_ID, VehicleInventoryStore(), TransportConfig())
