"""
Allocation Run State.

This module acts as the 'Memory' of one auto-assign run. It tracks:
1. Planned vehicle loads and per-type vehicle usage.
2. Packing failures per family group (oversize, no vehicle left, no fit).
3. Summary statistics and a failure report for the caller.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from models import FamilyGroup

if TYPE_CHECKING:
    from .packing import VehicleLoad


# Failure types
OVERSIZE = "Oversize"        # larger than every vehicle type in the fleet
NO_VEHICLE = "NoVehicle"     # fleet ran out of free units
NO_FIT = "NoFit"             # larger than every vehicle still free


@dataclass
class PackingFailure:
    """Detailed reason a group was left out of a run."""
    failure_type: str
    reason: str
    group_id: str
    group_size: int
    pickup_date: Optional[date_type] = None
    hour_bucket: Optional[str] = None


@dataclass
class AllocationRunState:
    """
    Mutable state of the assigner during one run.
    """
    loads: List["VehicleLoad"] = field(default_factory=list)
    vehicle_usage: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    failures: Dict[str, PackingFailure] = field(default_factory=dict)
    unassignable: List[FamilyGroup] = field(default_factory=list)

    def add_load(self, load: "VehicleLoad") -> None:
        self.loads.append(load)
        self.vehicle_usage[load.vehicle.id] += 1

    def record_failure(self, group: FamilyGroup, failure: PackingFailure) -> None:
        """A group is reported once per run; the first reason wins."""
        if group.id in self.failures:
            return
        self.failures[group.id] = failure
        self.unassignable.append(group)

    # --- Reporting ---

    def get_statistics(self) -> Dict[str, Any]:
        passengers = sum(load.passenger_count for load in self.loads)
        seats = sum(load.vehicle.capacity_per_unit for load in self.loads)

        failure_counts = defaultdict(int)
        for failure in self.failures.values():
            failure_counts[failure.failure_type] += 1

        return {
            "vehicles_used": len(self.loads),
            "groups_packed": sum(len(load.groups) for load in self.loads),
            "passengers_packed": passengers,
            "seat_utilization": round(passengers / seats * 100, 1) if seats else 0.0,
            "vehicle_usage_count": dict(self.vehicle_usage),
            "unassignable_count": len(self.unassignable),
            "failure_breakdown": dict(failure_counts),
        }

    def get_failure_report(self) -> List[Dict]:
        """Human-readable list of what could not be packed, largest groups first."""
        report = [
            {
                "group_id": f.group_id,
                "group_size": f.group_size,
                "failure_type": f.failure_type,
                "reason": f.reason,
                "pickup_date": f.pickup_date.isoformat() if f.pickup_date else None,
                "hour_bucket": f.hour_bucket,
            }
            for f in self.failures.values()
        ]
        report.sort(key=lambda x: (-x["group_size"], x["group_id"]))
        return report
