"""
In-memory reference stores.

These stand in for the persistence layer of the planning app:
1. GuestDirectory (read-only source of guest records)
2. VehicleInventoryStore (fleet records, optimistic versioning)
3. AssignmentStore (assignment records; the ledger is its only writer)

All stores are keyed by event id and safe to share between threads.
"""

import threading
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from models import Assignment, GuestRecord, VehicleType
from .errors import ConcurrencyConflictError, NotFoundError


class GuestDirectory:
    """Guest records per event."""

    def __init__(self, guests_by_event: Optional[Dict[int, Iterable[GuestRecord]]] = None):
        self._lock = threading.Lock()
        self._guests: Dict[int, Dict[int, GuestRecord]] = defaultdict(dict)
        for event_id, guests in (guests_by_event or {}).items():
            for guest in guests:
                self._guests[event_id][guest.id] = guest

    def list_guests(self, event_id: int) -> List[GuestRecord]:
        with self._lock:
            return sorted(self._guests[event_id].values(), key=lambda g: g.id)

    def upsert_guest(self, event_id: int, guest: GuestRecord) -> None:
        with self._lock:
            self._guests[event_id][guest.id] = guest

    def remove_guest(self, event_id: int, guest_id: int) -> None:
        with self._lock:
            if self._guests[event_id].pop(guest_id, None) is None:
                raise NotFoundError("guest", str(guest_id))


class VehicleInventoryStore:
    """
    Source of truth for vehicle type records.
    Writes go through compare_and_set so concurrent writers cannot
    silently overwrite each other's counter changes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._vehicles: Dict[int, Dict[str, VehicleType]] = defaultdict(dict)
        self._sequence: Dict[int, int] = defaultdict(int)

    def next_id(self, event_id: int) -> str:
        with self._lock:
            self._sequence[event_id] += 1
            return f"v{self._sequence[event_id]}"

    def list(self, event_id: int) -> List[VehicleType]:
        with self._lock:
            return sorted(self._vehicles[event_id].values(), key=lambda v: v.id)

    def get(self, event_id: int, vehicle_type_id: str) -> Optional[VehicleType]:
        with self._lock:
            return self._vehicles[event_id].get(vehicle_type_id)

    def insert(self, event_id: int, vehicle: VehicleType) -> VehicleType:
        with self._lock:
            if vehicle.id in self._vehicles[event_id]:
                raise ConcurrencyConflictError(f"Vehicle type {vehicle.id} already exists")
            self._vehicles[event_id][vehicle.id] = vehicle
            return vehicle

    def compare_and_set(self, event_id: int, vehicle: VehicleType, expected_version: int) -> VehicleType:
        """Store `vehicle` only if the stored record is still at `expected_version`."""
        with self._lock:
            current = self._vehicles[event_id].get(vehicle.id)
            if current is None:
                raise NotFoundError("vehicle type", vehicle.id)
            if current.version != expected_version:
                raise ConcurrencyConflictError(
                    f"Vehicle type {vehicle.id} changed (expected v{expected_version}, found v{current.version})"
                )
            stored = vehicle.model_copy(update={"version": expected_version + 1})
            self._vehicles[event_id][vehicle.id] = stored
            return stored

    def delete(self, event_id: int, vehicle_type_id: str) -> None:
        with self._lock:
            if self._vehicles[event_id].pop(vehicle_type_id, None) is None:
                raise NotFoundError("vehicle type", vehicle_type_id)


class AssignmentStore:
    """Durable home of assignment records (in memory here)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._assignments: Dict[int, Dict[str, Assignment]] = defaultdict(dict)
        self._sequence: Dict[int, int] = defaultdict(int)

    def next_id(self, event_id: int) -> str:
        with self._lock:
            self._sequence[event_id] += 1
            return f"a{self._sequence[event_id]}"

    def list(self, event_id: int) -> List[Assignment]:
        # Insertion order == creation order
        with self._lock:
            return list(self._assignments[event_id].values())

    def get(self, event_id: int, assignment_id: str) -> Optional[Assignment]:
        with self._lock:
            return self._assignments[event_id].get(assignment_id)

    def insert(self, event_id: int, assignment: Assignment) -> Assignment:
        with self._lock:
            if assignment.id in self._assignments[event_id]:
                raise ConcurrencyConflictError(f"Assignment {assignment.id} already exists")
            self._assignments[event_id][assignment.id] = assignment
            return assignment

    def replace(self, event_id: int, assignment: Assignment) -> Assignment:
        with self._lock:
            if assignment.id not in self._assignments[event_id]:
                raise NotFoundError("assignment", assignment.id)
            self._assignments[event_id][assignment.id] = assignment
            return assignment

    def delete(self, event_id: int, assignment_id: str) -> Assignment:
        with self._lock:
            removed = self._assignments[event_id].pop(assignment_id, None)
            if removed is None:
                raise NotFoundError("assignment", assignment_id)
            return removed
