"""
Vehicle Fleet Registry.

Owns vehicle type records and their unit counters for one event.
Every counter change is read -> modify -> compare-and-set against the
inventory store, retried a bounded number of times on conflict.
"""

import logging
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from models import VehicleType
from .config import DEFAULT_CONFIG, TransportConfig
from .errors import (
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
    VehicleUnavailableError,
)
from .stores import VehicleInventoryStore

logger = logging.getLogger(__name__)


def availability_order(vehicle: VehicleType):
    """Largest capacity first, ties by id ascending."""
    return (-vehicle.capacity_per_unit, vehicle.id)


def build_vehicle(data: Dict) -> VehicleType:
    """Validate a vehicle record, mapping pydantic failures onto the allocator taxonomy."""
    try:
        return VehicleType.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid vehicle type: {e}") from e


class VehicleFleetRegistry:
    """
    Vehicle types and unit availability for a single event.
    """

    def __init__(
        self,
        event_id: int,
        store: VehicleInventoryStore,
        config: TransportConfig = DEFAULT_CONFIG
    ):
        self.event_id = event_id
        self.store = store
        self.config = config

    # --- Queries ---

    def get(self, vehicle_type_id: str) -> VehicleType:
        vehicle = self.store.get(self.event_id, vehicle_type_id)
        if vehicle is None:
            raise NotFoundError("vehicle type", vehicle_type_id)
        return vehicle

    def list_vehicle_types(self) -> List[VehicleType]:
        return self.store.list(self.event_id)

    def list_available(self) -> List[VehicleType]:
        """Types with a free unit, ordered for the packer."""
        available = [v for v in self.store.list(self.event_id) if v.available_units > 0]
        available.sort(key=availability_order)
        return available

    def max_capacity(self) -> int:
        """Largest single-unit capacity in the fleet, regardless of availability."""
        return max((v.capacity_per_unit for v in self.store.list(self.event_id)), default=0)

    # --- Fleet Management ---

    def add_vehicle_type(
        self,
        label: str,
        capacity_per_unit: int,
        total_units: int,
        image_url: Optional[str] = None
    ) -> VehicleType:
        vehicle = build_vehicle({
            "id": "pending",
            "label": label,
            "capacity_per_unit": capacity_per_unit,
            "total_units": total_units,
            "available_units": total_units,
            "image_url": image_url,
        })
        vehicle = vehicle.model_copy(update={"id": self.store.next_id(self.event_id)})
        self.store.insert(self.event_id, vehicle)
        logger.info(f"Added vehicle type {vehicle.id} ({vehicle.label}: {vehicle.total_units} x {vehicle.capacity_per_unit} seats)")
        return vehicle

    def update_vehicle_type(
        self,
        vehicle_type_id: str,
        label: Optional[str] = None,
        capacity_per_unit: Optional[int] = None,
        total_units: Optional[int] = None,
        image_url: Optional[str] = None
    ) -> VehicleType:
        """
        Edit a vehicle type. Units currently bound to assignments stay bound,
        so the new total must cover them.
        """
        def mutate(current: VehicleType) -> Dict:
            changes = {}
            if label is not None:
                changes["label"] = label
            if capacity_per_unit is not None:
                changes["capacity_per_unit"] = capacity_per_unit
            if image_url is not None:
                changes["image_url"] = image_url
            if total_units is not None:
                if total_units < current.units_in_use:
                    raise ValidationError(
                        f"Vehicle type {current.id} has {current.units_in_use} units in use; "
                        f"total_units cannot drop to {total_units}"
                    )
                changes["total_units"] = total_units
                changes["available_units"] = total_units - current.units_in_use
            return changes

        updated = self._apply(vehicle_type_id, mutate)
        logger.info(f"Updated vehicle type {updated.id}")
        return updated

    def remove_vehicle_type(self, vehicle_type_id: str) -> None:
        vehicle = self.get(vehicle_type_id)
        if vehicle.units_in_use:
            raise ValidationError(
                f"Vehicle type {vehicle_type_id} still has {vehicle.units_in_use} units assigned"
            )
        self.store.delete(self.event_id, vehicle_type_id)
        logger.info(f"Removed vehicle type {vehicle_type_id}")

    # --- Unit Counters ---

    def reserve_unit(self, vehicle_type_id: str) -> VehicleType:
        def mutate(current: VehicleType) -> Dict:
            if current.available_units <= 0:
                raise VehicleUnavailableError(current.id)
            return {"available_units": current.available_units - 1}

        return self._apply(vehicle_type_id, mutate)

    def release_unit(self, vehicle_type_id: str) -> VehicleType:
        def mutate(current: VehicleType) -> Dict:
            if current.available_units >= current.total_units:
                logger.warning(f"Release on fully available vehicle type {current.id}; counter left at {current.total_units}")
                return {}
            return {"available_units": current.available_units + 1}

        return self._apply(vehicle_type_id, mutate)

    def _apply(self, vehicle_type_id: str, mutate: Callable[[VehicleType], Dict]) -> VehicleType:
        """Optimistic read-modify-write with bounded retries."""
        retries = self.config.max_conflict_retries
        for attempt in range(1, retries + 1):
            current = self.get(vehicle_type_id)
            changes = mutate(current)
            if not changes:
                return current
            candidate = build_vehicle({**current.model_dump(), **changes})
            try:
                return self.store.compare_and_set(self.event_id, candidate, expected_version=current.version)
            except ConcurrencyConflictError:
                logger.warning(f"Conflict updating vehicle type {vehicle_type_id} (attempt {attempt}/{retries})")
        raise ConcurrencyConflictError(
            f"Vehicle type {vehicle_type_id} kept changing; gave up after {retries} attempts"
        )
