"""
Transport allocation engine for the Wedding Transport Allocator.

Pipeline: FamilyGroupCollector + VehicleFleetRegistry -> TimeWindowClusterer
-> BinPackingAssigner -> AssignmentLedger.
"""

from .config import DEFAULT_CONFIG, TransportConfig, get_config
from .errors import (
    CapacityExceededError,
    ConcurrencyConflictError,
    DuplicateAssignmentError,
    NotFoundError,
    TransportError,
    ValidationError,
    VehicleUnavailableError,
)
from .fleet import VehicleFleetRegistry
from .groups import FamilyGroupCollector
from .clustering import ClusterKey, TimeWindowClusterer, TransportWave
from .packing import BinPackingAssigner, FleetSnapshot, VehicleLoad
from .state import AllocationRunState, PackingFailure
from .ledger import AssignmentLedger, StaleAssignment
from .stores import AssignmentStore, GuestDirectory, VehicleInventoryStore
from .service import TransportService

__all__ = [
    # --- Configuration & Errors ---
    "DEFAULT_CONFIG",
    "TransportConfig",
    "get_config",
    "TransportError",
    "ValidationError",
    "CapacityExceededError",
    "VehicleUnavailableError",
    "DuplicateAssignmentError",
    "NotFoundError",
    "ConcurrencyConflictError",

    # --- Engine Components ---
    "VehicleFleetRegistry",
    "FamilyGroupCollector",
    "ClusterKey",
    "TimeWindowClusterer",
    "TransportWave",
    "BinPackingAssigner",
    "FleetSnapshot",
    "VehicleLoad",
    "AllocationRunState",
    "PackingFailure",
    "AssignmentLedger",
    "StaleAssignment",

    # --- Stores & Facade ---
    "AssignmentStore",
    "GuestDirectory",
    "VehicleInventoryStore",
    "TransportService",
]
