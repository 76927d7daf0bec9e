"""
Error taxonomy for the transport allocator.

Every ledger and registry failure is one of these types so callers can map
them to user-facing messages without parsing strings.
"""

from typing import Iterable, Optional


class TransportError(Exception):
    """Base class for all allocator errors."""


class ValidationError(TransportError, ValueError):
    """Malformed capacity/count or a missing required field."""


class CapacityExceededError(TransportError):
    """Packed passengers exceed the capacity of one vehicle unit."""

    def __init__(self, vehicle_type_id: str, passenger_count: int, capacity: int):
        self.vehicle_type_id = vehicle_type_id
        self.passenger_count = passenger_count
        self.capacity = capacity
        super().__init__(
            f"{passenger_count} passengers exceed capacity {capacity} of vehicle type {vehicle_type_id}"
        )


class VehicleUnavailableError(TransportError):
    """No free unit of the requested vehicle type."""

    def __init__(self, vehicle_type_id: str):
        self.vehicle_type_id = vehicle_type_id
        super().__init__(f"No available units of vehicle type {vehicle_type_id}")


class DuplicateAssignmentError(TransportError):
    """A family group already belongs to an active assignment."""

    def __init__(self, group_ids: Iterable[str], assignment_id: Optional[str] = None):
        self.group_ids = sorted(group_ids)
        self.assignment_id = assignment_id
        where = f" (assignment {assignment_id})" if assignment_id else ""
        super().__init__(f"Family groups already assigned{where}: {', '.join(self.group_ids)}")


class NotFoundError(TransportError, LookupError):
    """Unknown vehicle type, family group or assignment id."""

    def __init__(self, kind: str, ids):
        if isinstance(ids, str):
            ids = [ids]
        self.kind = kind
        self.ids = list(ids)
        super().__init__(f"Unknown {kind}: {', '.join(str(i) for i in self.ids)}")


class ConcurrencyConflictError(TransportError):
    """Optimistic-lock failure while updating a fleet counter."""
