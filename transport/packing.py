"""
The Bin Packing Assigner.

This module implements the core allocation logic: a deterministic greedy
first-fit-decreasing packing of family groups into vehicle units, one
transport wave at a time.

1. Largest groups first (size desc, id asc), so big families are not stranded.
2. Largest free vehicle first (capacity desc, id asc).
3. A vehicle is sealed once its free seats drop below the slack threshold.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from models import FamilyGroup, VehicleType
from .clustering import TransportWave
from .errors import NotFoundError, VehicleUnavailableError
from .fleet import availability_order
from .state import NO_FIT, NO_VEHICLE, OVERSIZE, AllocationRunState, PackingFailure

logger = logging.getLogger(__name__)


@dataclass
class VehicleLoad:
    """Groups packed into one unit of one vehicle type (a candidate assignment)."""
    vehicle: VehicleType
    wave: TransportWave
    groups: List[FamilyGroup] = field(default_factory=list)

    @property
    def passenger_count(self) -> int:
        return sum(g.size for g in self.groups)

    @property
    def remaining_capacity(self) -> int:
        return self.vehicle.capacity_per_unit - self.passenger_count

    @property
    def group_ids(self) -> List[str]:
        return [g.id for g in self.groups]


class FleetSnapshot:
    """
    Detached copy of fleet availability used while planning.
    Mirrors the registry's list_available/reserve_unit so the assigner can
    consume units without touching the real counters.
    """

    def __init__(self, vehicles: Iterable[VehicleType]):
        self._vehicles: Dict[str, VehicleType] = {v.id: v for v in vehicles}

    def list_available(self) -> List[VehicleType]:
        available = [v for v in self._vehicles.values() if v.available_units > 0]
        available.sort(key=availability_order)
        return available

    def reserve_unit(self, vehicle_type_id: str) -> VehicleType:
        vehicle = self._vehicles.get(vehicle_type_id)
        if vehicle is None:
            raise NotFoundError("vehicle type", vehicle_type_id)
        if vehicle.available_units <= 0:
            raise VehicleUnavailableError(vehicle_type_id)
        vehicle = vehicle.model_copy(update={"available_units": vehicle.available_units - 1})
        self._vehicles[vehicle_type_id] = vehicle
        return vehicle

    def max_capacity(self) -> int:
        return max((v.capacity_per_unit for v in self._vehicles.values()), default=0)


class BinPackingAssigner:
    """
    Greedy first-fit-decreasing packer.
    """

    def __init__(self, slack_threshold: int = 2):
        self.slack_threshold = slack_threshold

    @staticmethod
    def sort_groups(groups: Iterable[FamilyGroup]) -> List[FamilyGroup]:
        return sorted(groups, key=lambda g: (-g.size, g.id))

    def plan(
        self,
        waves: Iterable[TransportWave],
        fleet: FleetSnapshot,
        state: Optional[AllocationRunState] = None
    ) -> AllocationRunState:
        """Pack every wave in the given order against one shared fleet snapshot."""
        state = state or AllocationRunState()
        for wave in waves:
            self.pack_wave(wave, fleet, state)
        return state

    def pack_wave(
        self,
        wave: TransportWave,
        fleet: FleetSnapshot,
        state: AllocationRunState
    ) -> List[VehicleLoad]:
        """
        Pack a single wave. Loads are appended to `state`; groups that cannot
        be packed are recorded as failures rather than raised.
        """
        fleet_max = fleet.max_capacity()
        remaining: List[FamilyGroup] = []
        for group in self.sort_groups(wave.groups):
            if group.size > fleet_max:
                self._fail(state, group, wave, OVERSIZE,
                           f"Group of {group.size} exceeds the largest vehicle in the fleet ({fleet_max} seats)")
            else:
                remaining.append(group)

        loads: List[VehicleLoad] = []
        while remaining:
            available = fleet.list_available()
            if not available:
                for group in remaining:
                    self._fail(state, group, wave, NO_VEHICLE, "No vehicle units left for this run")
                break

            vehicle = available[0]
            load, remaining = self._fill_vehicle(vehicle, wave, remaining)

            if not load.groups:
                # The largest free vehicle cannot take any waiting group
                for group in remaining:
                    self._fail(state, group, wave, NO_FIT,
                               f"Group of {group.size} exceeds every free vehicle ({vehicle.capacity_per_unit} seats max)")
                break

            fleet.reserve_unit(vehicle.id)
            state.add_load(load)
            loads.append(load)
            logger.debug(
                f"Wave {wave.pickup_date} {wave.pickup_time_label} {wave.pickup_location}: "
                f"{vehicle.label} <- {load.group_ids} ({load.passenger_count}/{vehicle.capacity_per_unit})"
            )

        return loads

    def _fill_vehicle(self, vehicle: VehicleType, wave: TransportWave, remaining: List[FamilyGroup]):
        """Single pass over the sorted queue; returns the load and the groups left waiting."""
        load = VehicleLoad(vehicle=vehicle, wave=wave)
        capacity = vehicle.capacity_per_unit
        leftover: List[FamilyGroup] = []
        sealed = False

        for group in remaining:
            if not sealed and group.size <= capacity:
                load.groups.append(group)
                capacity -= group.size
                sealed = capacity < self.slack_threshold
            else:
                leftover.append(group)

        return load, leftover

    @staticmethod
    def _fail(state: AllocationRunState, group: FamilyGroup, wave: TransportWave, failure_type: str, reason: str):
        state.record_failure(group, PackingFailure(
            failure_type=failure_type,
            reason=reason,
            group_id=group.id,
            group_size=group.size,
            pickup_date=wave.pickup_date,
            hour_bucket=wave.key.hour_bucket,
        ))
