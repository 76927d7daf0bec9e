"""
Transport Service.

Event-scoped operation surface consumed by the presentation layer.
Holds one AssignmentLedger per event, built lazily from the stores and the
guest directory.
"""

import logging
import threading
from collections import defaultdict
from datetime import date as date_type
from typing import Any, Dict, List, Optional, Union

from models import Assignment, AssignmentPatch, AutoAssignResult, FamilyGroup, VehicleType
from .config import DEFAULT_CONFIG, TransportConfig
from .fleet import VehicleFleetRegistry
from .groups import FamilyGroupCollector
from .ledger import AssignmentLedger, StaleAssignment
from .stores import AssignmentStore, GuestDirectory, VehicleInventoryStore

logger = logging.getLogger(__name__)


class TransportService:
    """
    Facade over the fleet registry and assignment ledger of each event.
    """

    def __init__(
        self,
        guest_directory: GuestDirectory,
        vehicle_store: Optional[VehicleInventoryStore] = None,
        assignment_store: Optional[AssignmentStore] = None,
        config: TransportConfig = DEFAULT_CONFIG
    ):
        self.guest_directory = guest_directory
        self.vehicle_store = vehicle_store or VehicleInventoryStore()
        self.assignment_store = assignment_store or AssignmentStore()
        self.config = config
        self.collector = FamilyGroupCollector()

        self._ledgers: Dict[int, AssignmentLedger] = {}
        self._lock = threading.Lock()

    def ledger(self, event_id: int) -> AssignmentLedger:
        with self._lock:
            ledger = self._ledgers.get(event_id)
            if ledger is None:
                registry = VehicleFleetRegistry(event_id, self.vehicle_store, self.config)
                ledger = AssignmentLedger(
                    event_id, registry, self.assignment_store,
                    config=self.config,
                    collector=self.collector,
                )
                ledger.load_groups(self.collector.build_groups(self.guest_directory.list_guests(event_id)))
                self._ledgers[event_id] = ledger
            return ledger

    def sync_guests(self, event_id: int) -> List[FamilyGroup]:
        """Rebuild family groups after guest records changed."""
        ledger = self.ledger(event_id)
        ledger.load_groups(self.collector.build_groups(self.guest_directory.list_guests(event_id)))
        return ledger.list_groups()

    # --- Fleet ---

    def list_vehicle_types(self, event_id: int) -> List[VehicleType]:
        return self.ledger(event_id).registry.list_vehicle_types()

    def add_vehicle_type(self, event_id: int, label: str, capacity_per_unit: int, total_units: int,
                         image_url: Optional[str] = None) -> VehicleType:
        return self.ledger(event_id).add_vehicle_type(label, capacity_per_unit, total_units, image_url)

    def update_vehicle_type(self, event_id: int, vehicle_type_id: str, **changes) -> VehicleType:
        return self.ledger(event_id).update_vehicle_type(vehicle_type_id, **changes)

    def remove_vehicle_type(self, event_id: int, vehicle_type_id: str) -> None:
        self.ledger(event_id).remove_vehicle_type(vehicle_type_id)

    # --- Groups & Assignments ---

    def list_family_groups(self, event_id: int, arrival_date: Optional[date_type] = None) -> List[FamilyGroup]:
        return self.ledger(event_id).list_groups(arrival_date=arrival_date)

    def list_assignments(self, event_id: int, pickup_date: Optional[date_type] = None) -> List[Assignment]:
        return self.ledger(event_id).list_assignments(pickup_date=pickup_date)

    def create_assignment(self, event_id: int, vehicle_type_id: str, family_group_ids: List[str],
                          pickup_date, pickup_time, pickup_location: str, dropoff_location: str,
                          notes: Optional[str] = None) -> Assignment:
        return self.ledger(event_id).create_assignment(
            vehicle_type_id, family_group_ids, pickup_date, pickup_time,
            pickup_location, dropoff_location, notes,
        )

    def update_assignment(self, event_id: int, assignment_id: str,
                          patch: Union[AssignmentPatch, Dict]) -> Assignment:
        return self.ledger(event_id).update_assignment(assignment_id, patch)

    def delete_assignment(self, event_id: int, assignment_id: str) -> Assignment:
        return self.ledger(event_id).delete_assignment(assignment_id)

    def run_auto_assign(self, event_id: int, filter_date: Optional[date_type] = None,
                        dropoff_location: Optional[str] = None) -> AutoAssignResult:
        return self.ledger(event_id).run_auto_assign(filter_date=filter_date, dropoff_location=dropoff_location)

    def find_stale_assignments(self, event_id: int) -> List[StaleAssignment]:
        return self.ledger(event_id).find_stale_assignments()

    # --- Reporting ---

    def get_summary(self, event_id: int) -> Dict[str, Any]:
        """Dashboard numbers: groups placed, passengers moved, per-type usage."""
        ledger = self.ledger(event_id)
        groups = ledger.list_groups()
        assignments = ledger.list_assignments()
        vehicles = ledger.registry.list_vehicle_types()

        seats_booked = defaultdict(int)
        passengers = defaultdict(int)
        for assignment in assignments:
            passengers[assignment.vehicle_type_id] += assignment.passenger_count
        capacity = {v.id: v.capacity_per_unit for v in vehicles}
        for assignment in assignments:
            seats_booked[assignment.vehicle_type_id] += capacity.get(assignment.vehicle_type_id, 0)

        total_seats = sum(seats_booked.values())
        total_passengers = sum(passengers.values())

        return {
            "total_groups": len(groups),
            "assigned_groups": sum(1 for g in groups if g.assigned),
            "total_passengers": sum(g.size for g in groups),
            "assigned_passengers": total_passengers,
            "assignments": len(assignments),
            "seat_utilization": round(total_passengers / total_seats * 100, 1) if total_seats else 0.0,
            "vehicles": {
                v.id: {
                    "label": v.label,
                    "in_use": v.units_in_use,
                    "available": v.available_units,
                    "total": v.total_units,
                }
                for v in vehicles
            },
        }
