"""
Data models package for the Wedding Transport Allocator.

This package exports the three core pillars of the data architecture:
1. Demand (GuestRecord, FamilyGroup)
2. Supply (VehicleType)
3. Output (Assignment, AutoAssignResult)
"""

from .guest import (
    GuestRecord,
    GuestSide,
    RsvpStatus,
    parse_clock_time
)

from .family import FamilyGroup

from .fleet import VehicleType

from .assignment import (
    Assignment,
    AssignmentPatch,
    AssignmentRequest,
    AssignmentSource,
    AutoAssignResult
)

__all__ = [
    # --- Demand Models ---
    "GuestRecord",
    "GuestSide",
    "RsvpStatus",
    "FamilyGroup",
    "parse_clock_time",

    # --- Supply Models ---
    "VehicleType",

    # --- Output Models ---
    "Assignment",
    "AssignmentPatch",
    "AssignmentRequest",
    "AssignmentSource",
    "AutoAssignResult",
]
