"""
The Assignment Ledger.

Single writer of assignment records for one event. Every mutation:
1. Validates completely before touching any state.
2. Reserves/releases vehicle units through the fleet registry.
3. Writes the assignment store.
4. Re-derives family group assigned state from the assignment set.

All of this happens under one lock, so each operation is atomic with respect
to the fleet counters. A failure after the first write is compensated before
the error propagates.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from models import (
    Assignment,
    AssignmentPatch,
    AssignmentRequest,
    AssignmentSource,
    AutoAssignResult,
    FamilyGroup,
    VehicleType,
)
from .clustering import TimeWindowClusterer
from .config import DEFAULT_CONFIG, TransportConfig
from .constraints import AssignmentChecker
from .errors import CapacityExceededError, NotFoundError, TransportError, ValidationError
from .fleet import VehicleFleetRegistry
from .groups import FamilyGroupCollector
from .packing import BinPackingAssigner, FleetSnapshot, VehicleLoad
from .stores import AssignmentStore

logger = logging.getLogger(__name__)

# Optional Assignment fields a patch may set back to None
_CLEARABLE_FIELDS = {"notes"}


def _guest_ids(groups: Iterable[FamilyGroup]) -> List[int]:
    return [guest_id for group in groups for guest_id in group.guest_ids]


@dataclass
class StaleAssignment:
    """An assignment whose groups no longer match its pickup."""
    assignment_id: str
    group_ids: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)


class AssignmentLedger:
    """
    Owns the canonical family group and assignment state of one event.
    """

    def __init__(
        self,
        event_id: int,
        registry: VehicleFleetRegistry,
        store: AssignmentStore,
        config: TransportConfig = DEFAULT_CONFIG,
        collector: Optional[FamilyGroupCollector] = None,
        clusterer: Optional[TimeWindowClusterer] = None,
        assigner: Optional[BinPackingAssigner] = None
    ):
        self.event_id = event_id
        self.registry = registry
        self.store = store
        self.config = config
        self.collector = collector or FamilyGroupCollector()
        self.clusterer = clusterer or TimeWindowClusterer(config)
        self.assigner = assigner or BinPackingAssigner(slack_threshold=config.slack_threshold)

        self._groups: Dict[str, FamilyGroup] = {}
        self._lock = threading.RLock()
        # At most one auto-assign run in flight for this event
        self._auto_assign_lock = threading.Lock()

    # --- Queries ---

    def list_groups(self, arrival_date: Optional[date_type] = None) -> List[FamilyGroup]:
        with self._lock:
            groups = sorted(self._groups.values(), key=lambda g: g.id)
        if arrival_date is not None:
            groups = [g for g in groups if g.arrival_date == arrival_date]
        return groups

    def get_group(self, group_id: str) -> FamilyGroup:
        with self._lock:
            group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError("family group", group_id)
        return group

    def list_assignments(self, pickup_date: Optional[date_type] = None) -> List[Assignment]:
        assignments = self.store.list(self.event_id)
        if pickup_date is not None:
            assignments = [a for a in assignments if a.pickup_date == pickup_date]
        return assignments

    def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = self.store.get(self.event_id, assignment_id)
        if assignment is None:
            raise NotFoundError("assignment", assignment_id)
        return assignment

    # --- Group State ---

    def load_groups(self, groups: Iterable[FamilyGroup]) -> None:
        """Replace the group set (after a guest re-sync) and re-derive assigned state."""
        with self._lock:
            self._groups = {g.id: g for g in groups}
            for assignment in self.store.list(self.event_id):
                unknown = [gid for gid in assignment.family_group_ids if gid not in self._groups]
                if unknown:
                    logger.warning(f"Assignment {assignment.id} references unknown groups {unknown}")
            self._recompute()

    def _recompute(self) -> None:
        groups = self.collector.recompute_assignment(
            sorted(self._groups.values(), key=lambda g: g.id),
            self.store.list(self.event_id),
        )
        self._groups = {g.id: g for g in groups}

    def _checker(self) -> AssignmentChecker:
        return AssignmentChecker(self._groups, self.store.list(self.event_id))

    # --- Manual CRUD ---

    def create_assignment(
        self,
        vehicle_type_id: str,
        family_group_ids: List[str],
        pickup_date,
        pickup_time,
        pickup_location: str,
        dropoff_location: str,
        notes: Optional[str] = None
    ) -> Assignment:
        try:
            request = AssignmentRequest(
                vehicle_type_id=vehicle_type_id,
                family_group_ids=list(family_group_ids),
                pickup_date=pickup_date,
                pickup_time=pickup_time,
                pickup_location=pickup_location,
                dropoff_location=dropoff_location,
                notes=notes,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid assignment: {e}") from e

        with self._lock:
            vehicle = self.registry.get(request.vehicle_type_id)
            groups = self._checker().check(vehicle, request.family_group_ids)
            assignment = self._commit_new(
                vehicle, groups,
                pickup_date=request.pickup_date,
                pickup_time=request.pickup_time,
                pickup_location=request.pickup_location,
                dropoff_location=request.dropoff_location,
                notes=request.notes,
                source=AssignmentSource.MANUAL,
            )
            self._recompute()

        logger.info(f"Created assignment {assignment.id}: {assignment.family_group_ids} -> {vehicle.label}")
        return assignment

    def update_assignment(self, assignment_id: str, patch: Union[AssignmentPatch, Dict]) -> Assignment:
        if not isinstance(patch, AssignmentPatch):
            try:
                patch = AssignmentPatch.model_validate(patch)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid assignment update: {e}") from e
        changes = patch.changes()
        cleared = sorted(k for k, v in changes.items() if v is None and k not in _CLEARABLE_FIELDS)
        if cleared:
            raise ValidationError(f"Invalid assignment update: {', '.join(cleared)} cannot be cleared")

        with self._lock:
            current = self.get_assignment(assignment_id)
            vehicle_id = changes.get("vehicle_type_id", current.vehicle_type_id)
            group_ids = changes.get("family_group_ids", current.family_group_ids)
            vehicle_changed = vehicle_id != current.vehicle_type_id

            vehicle = self.registry.get(vehicle_id)
            groups = self._checker().check(
                vehicle, group_ids,
                ignore_assignment_id=current.id,
                needs_new_unit=vehicle_changed,
            )
            try:
                updated = Assignment.model_validate({
                    **current.model_dump(),
                    **changes,
                    "passenger_count": sum(g.size for g in groups),
                    "guest_ids": _guest_ids(groups),
                })
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid assignment update: {e}") from e

            if vehicle_changed:
                self.registry.reserve_unit(vehicle_id)
                try:
                    self.registry.release_unit(current.vehicle_type_id)
                except TransportError:
                    self.registry.release_unit(vehicle_id)
                    raise
            try:
                self.store.replace(self.event_id, updated)
            except TransportError:
                if vehicle_changed:
                    self.registry.reserve_unit(current.vehicle_type_id)
                    self.registry.release_unit(vehicle_id)
                raise
            self._recompute()

        logger.info(f"Updated assignment {assignment_id} ({', '.join(sorted(changes)) or 'no changes'})")
        return updated

    def delete_assignment(self, assignment_id: str) -> Assignment:
        with self._lock:
            current = self.get_assignment(assignment_id)
            self.registry.release_unit(current.vehicle_type_id)
            self.store.delete(self.event_id, assignment_id)
            self._recompute()

        logger.info(f"Deleted assignment {assignment_id}; released one {current.vehicle_type_id} unit")
        return current

    def _commit_new(
        self,
        vehicle: VehicleType,
        groups: List[FamilyGroup],
        pickup_date,
        pickup_time,
        pickup_location: str,
        dropoff_location: str,
        notes: Optional[str],
        source: AssignmentSource
    ) -> Assignment:
        """Reserve a unit and write the record. Caller holds the lock and recomputes."""
        assignment = Assignment(
            id=self.store.next_id(self.event_id),
            event_id=self.event_id,
            vehicle_type_id=vehicle.id,
            family_group_ids=[g.id for g in groups],
            passenger_count=sum(g.size for g in groups),
            guest_ids=_guest_ids(groups),
            pickup_date=pickup_date,
            pickup_time=pickup_time,
            pickup_location=pickup_location,
            dropoff_location=dropoff_location,
            notes=notes,
            source=source,
        )
        self.registry.reserve_unit(vehicle.id)
        try:
            self.store.insert(self.event_id, assignment)
        except TransportError:
            self.registry.release_unit(vehicle.id)
            raise
        return assignment

    # --- Fleet Edits ---

    def add_vehicle_type(self, label: str, capacity_per_unit: int, total_units: int,
                         image_url: Optional[str] = None) -> VehicleType:
        with self._lock:
            return self.registry.add_vehicle_type(label, capacity_per_unit, total_units, image_url)

    def update_vehicle_type(
        self,
        vehicle_type_id: str,
        label: Optional[str] = None,
        capacity_per_unit: Optional[int] = None,
        total_units: Optional[int] = None,
        image_url: Optional[str] = None
    ) -> VehicleType:
        """Like the registry's update, but refuses to shrink capacity under a committed assignment."""
        with self._lock:
            if capacity_per_unit is not None:
                if capacity_per_unit < 1:
                    raise ValidationError(f"capacity_per_unit must be at least 1, got {capacity_per_unit}")
                for assignment in self.store.list(self.event_id):
                    if assignment.vehicle_type_id == vehicle_type_id and assignment.passenger_count > capacity_per_unit:
                        raise CapacityExceededError(vehicle_type_id, assignment.passenger_count, capacity_per_unit)
            return self.registry.update_vehicle_type(
                vehicle_type_id,
                label=label,
                capacity_per_unit=capacity_per_unit,
                total_units=total_units,
                image_url=image_url,
            )

    def remove_vehicle_type(self, vehicle_type_id: str) -> None:
        with self._lock:
            self.registry.remove_vehicle_type(vehicle_type_id)

    # --- Batch Allocation ---

    def run_auto_assign(
        self,
        filter_date: Optional[date_type] = None,
        dropoff_location: Optional[str] = None
    ) -> AutoAssignResult:
        """
        Pack every unassigned group (optionally only those arriving on
        `filter_date`) into free vehicles. Never touches existing assignments.
        """
        dropoff = (dropoff_location or "").strip() or self.config.default_dropoff_location

        with self._auto_assign_lock, self._lock:
            candidates = [
                g for g in self.list_groups(arrival_date=filter_date)
                if not g.assigned
            ]
            clustering = self.clusterer.cluster(candidates)
            fleet = FleetSnapshot(self.registry.list_vehicle_types())
            state = self.assigner.plan(clustering.ordered(), fleet)

            created = self._commit_loads(state.loads, dropoff)

            result = AutoAssignResult(
                created=created,
                unassignable=[self._groups[g.id] for g in state.unassignable],
                excluded=[self._groups[g.id] for g in clustering.excluded],
                reasons={gid: f.reason for gid, f in state.failures.items()},
            )

        stats = state.get_statistics()
        logger.info(
            f"Auto-assign for event {self.event_id}: {len(created)} assignments, "
            f"{stats['passengers_packed']} passengers, {len(result.unassignable)} unassignable, "
            f"{len(result.excluded)} missing arrival details"
        )
        return result

    def _commit_loads(self, loads: List[VehicleLoad], dropoff: str) -> List[Assignment]:
        """Commit planned loads all-or-nothing. Caller holds the lock."""
        created: List[Assignment] = []
        try:
            for load in loads:
                vehicle = self.registry.get(load.vehicle.id)
                groups = self._checker().check(vehicle, load.group_ids)
                created.append(self._commit_new(
                    vehicle, groups,
                    pickup_date=load.wave.pickup_date,
                    pickup_time=load.wave.pickup_time,
                    pickup_location=load.wave.pickup_location,
                    dropoff_location=dropoff,
                    notes=None,
                    source=AssignmentSource.AUTO,
                ))
        except TransportError:
            logger.error(f"Auto-assign commit failed after {len(created)} assignments; rolling back")
            for assignment in reversed(created):
                self.store.delete(self.event_id, assignment.id)
                self.registry.release_unit(assignment.vehicle_type_id)
            raise
        finally:
            self._recompute()
        return created

    # --- Consistency Checks ---

    def find_stale_assignments(self) -> List[StaleAssignment]:
        """
        Assignments whose groups' arrival details (date, hour, location) or
        sizes no longer match what was booked.
        """
        stale = []
        with self._lock:
            for assignment in self.store.list(self.event_id):
                entry = StaleAssignment(assignment_id=assignment.id)
                seats = 0
                for gid in assignment.family_group_ids:
                    group = self._groups.get(gid)
                    if group is None:
                        entry.group_ids.append(gid)
                        entry.reasons.append(f"{gid}: group no longer exists")
                        continue
                    seats += group.size
                    reason = self._arrival_mismatch(group, assignment)
                    if reason:
                        entry.group_ids.append(gid)
                        entry.reasons.append(f"{gid}: {reason}")

                try:
                    vehicle = self.registry.get(assignment.vehicle_type_id)
                except NotFoundError:
                    vehicle = None
                    entry.reasons.append(f"vehicle type {assignment.vehicle_type_id} no longer exists")
                if vehicle is not None and seats > vehicle.capacity_per_unit:
                    entry.reasons.append(f"{seats} passengers now exceed capacity {vehicle.capacity_per_unit}")
                if entry.reasons:
                    stale.append(entry)
        return stale

    def _arrival_mismatch(self, group: FamilyGroup, assignment: Assignment) -> Optional[str]:
        if not group.has_arrival_window:
            return "arrival date/time missing"
        if group.arrival_date != assignment.pickup_date:
            return f"arrives {group.arrival_date}, pickup on {assignment.pickup_date}"
        bucket = self.clusterer.hour_bucket(group.arrival_time)
        if bucket != self.clusterer.hour_bucket(assignment.pickup_time):
            return f"arrives at {group.arrival_time.strftime('%H:%M')}, pickup at {assignment.pickup_time.strftime('%H:%M')}"
        if self.clusterer.location_key(group.arrival_location) != self.clusterer.location_key(assignment.pickup_location):
            return f"arrives at {group.arrival_location}, pickup at {assignment.pickup_location}"
        return None
