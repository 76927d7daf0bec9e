"""
Hard Constraint Validation for assignments.

This module answers the binary question: "Can these groups ride in this vehicle?"
It enforces the allocator's invariants before anything is written:
1. Every referenced group exists.
2. No group (and no guest) rides in two assignments at once.
3. The groups fit in one unit of the vehicle type.
4. A unit of the vehicle type is free.
"""

from typing import Dict, Iterable, List, Optional

from models import Assignment, FamilyGroup, VehicleType
from .errors import (
    CapacityExceededError,
    DuplicateAssignmentError,
    NotFoundError,
    VehicleUnavailableError,
)


class AssignmentChecker:
    """
    Validates proposed assignments against the current groups and assignments.
    Raises the first violation found; returns the resolved groups otherwise.
    """

    def __init__(self, groups: Dict[str, FamilyGroup], assignments: Iterable[Assignment]):
        self.groups = groups
        self.owner: Dict[str, str] = {}
        # Guests booked under a group id that may no longer exist after a re-sync
        self.guest_owner: Dict[int, str] = {}
        for assignment in assignments:
            for group_id in assignment.family_group_ids:
                self.owner.setdefault(group_id, assignment.id)
            for guest_id in assignment.guest_ids:
                self.guest_owner.setdefault(guest_id, assignment.id)

    def check(
        self,
        vehicle: VehicleType,
        group_ids: List[str],
        ignore_assignment_id: Optional[str] = None,
        needs_new_unit: bool = True
    ) -> List[FamilyGroup]:
        """
        Master validation. `ignore_assignment_id` is the assignment being
        edited, whose own groups do not count as taken.
        """
        groups = self.resolve_groups(group_ids)
        self.check_exclusive(groups, ignore_assignment_id)
        self.check_capacity(vehicle, sum(g.size for g in groups))
        if needs_new_unit:
            self.check_availability(vehicle)
        return groups

    def resolve_groups(self, group_ids: List[str]) -> List[FamilyGroup]:
        missing = [gid for gid in group_ids if gid not in self.groups]
        if missing:
            raise NotFoundError("family group", missing)
        return [self.groups[gid] for gid in group_ids]

    def check_exclusive(self, groups: List[FamilyGroup], ignore_assignment_id: Optional[str] = None) -> None:
        taken: Dict[str, List[str]] = {}
        for group in groups:
            owner = self.owner.get(group.id)
            if owner is None:
                owner = next(
                    (self.guest_owner[g] for g in group.guest_ids if g in self.guest_owner), None
                )
            if owner is not None and owner != ignore_assignment_id:
                taken.setdefault(owner, []).append(group.id)
        if taken:
            owner_id = sorted(taken)[0]
            raise DuplicateAssignmentError([g for ids in taken.values() for g in ids], owner_id)

    @staticmethod
    def check_capacity(vehicle: VehicleType, passenger_count: int) -> None:
        if passenger_count > vehicle.capacity_per_unit:
            raise CapacityExceededError(vehicle.id, passenger_count, vehicle.capacity_per_unit)

    @staticmethod
    def check_availability(vehicle: VehicleType) -> None:
        if vehicle.available_units <= 0:
            raise VehicleUnavailableError(vehicle.id)
