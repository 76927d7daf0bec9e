"""
Main Execution Script for the Wedding Transport Allocator.

Loads an event snapshot (guests + fleet) from JSON, runs auto-assignment,
prints a report and exports the resulting transport plan for the frontend.
"""

import argparse
import json
import logging
import sys
from datetime import date
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from models import GuestRecord
from transport import GuestDirectory, TransportConfig, TransportService, TransportError, get_config

logger = logging.getLogger("Main")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def load_event_data(filename: str) -> Tuple[List[GuestRecord], List[Dict]]:
    """
    Load guests and vehicle definitions from a JSON snapshot.
    Guests are re-hydrated into pydantic models; vehicles stay as dicts
    because the registry assigns their ids.
    """
    with open(filename, 'r') as f:
        data = json.load(f)

    guests = [GuestRecord(**item) for item in data.get('guests', [])]
    vehicles = list(data.get('vehicles', []))
    logger.info(f"📂 Loaded {len(guests)} guests and {len(vehicles)} vehicle types from {filename}")
    return guests, vehicles


def build_service(event_id: int, guests: List[GuestRecord], vehicles: List[Dict],
                  config: Optional[TransportConfig] = None) -> TransportService:
    service = TransportService(GuestDirectory({event_id: guests}), config=config or get_config())
    for vehicle in vehicles:
        service.add_vehicle_type(
            event_id,
            label=vehicle['label'],
            capacity_per_unit=vehicle['capacity_per_unit'],
            total_units=vehicle['total_units'],
            image_url=vehicle.get('image_url'),
        )
    return service


def export_plan(service: TransportService, event_id: int, result, filename: str) -> None:
    """Serialize assignments and leftovers into the JSON shape the dashboard reads."""
    logger.info(f"💾 Exporting transport plan to {filename}...")

    data = {
        "event_id": event_id,
        "assignments": {},
        "unassignable": [],
        "excluded": [g.model_dump(mode='json') for g in result.excluded],
        "summary": service.get_summary(event_id),
    }

    # Assignments grouped by pickup date
    for assignment in service.list_assignments(event_id):
        date_key = assignment.pickup_date.isoformat()
        data["assignments"].setdefault(date_key, []).append(assignment.model_dump(mode='json'))

    for group in result.unassignable:
        entry = group.model_dump(mode='json')
        entry["reason"] = result.reasons.get(group.id, "")
        data["unassignable"].append(entry)

    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info("✅ Transport plan exported.")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Allocate wedding guests to transport vehicles.")
    parser.add_argument("--data", required=True, help="JSON file with 'guests' and 'vehicles'")
    parser.add_argument("--event-id", type=int, default=1)
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Only assign arrivals on this date")
    parser.add_argument("--dropoff", default=None, help="Dropoff location (defaults to config)")
    parser.add_argument("--output", default="transport_plan.json")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        guests, vehicles = load_event_data(args.data)
        service = build_service(args.event_id, guests, vehicles)
    except (OSError, json.JSONDecodeError, ValidationError, TransportError, KeyError) as e:
        logger.error(f"❌ Could not load event data: {e}")
        return 1

    logger.info("🚐 Running auto-assignment...")
    result = service.run_auto_assign(args.event_id, filter_date=args.date, dropoff_location=args.dropoff)
    summary = service.get_summary(args.event_id)

    print("\n" + "=" * 50)
    print("📊 TRANSPORT ALLOCATION REPORT")
    print("=" * 50)
    print(f"Assignments created:  {len(result.created)}")
    print(f"Groups assigned:      {summary['assigned_groups']} / {summary['total_groups']}")
    print(f"Passengers moved:     {summary['assigned_passengers']} / {summary['total_passengers']}")
    print(f"Seat utilization:     {summary['seat_utilization']}%")

    for assignment in result.created:
        print(f"  {assignment.id}: {assignment.pickup_date} {assignment.pickup_time.strftime('%H:%M')} "
              f"{assignment.pickup_location} -> {assignment.dropoff_location} "
              f"[{assignment.vehicle_type_id}] {assignment.family_group_ids} ({assignment.passenger_count} pax)")

    if result.unassignable:
        print("\n🔍 UNASSIGNABLE GROUPS")
        for group in result.unassignable:
            print(f"❌ {group.id} ({group.label}, {group.size} pax): {result.reasons.get(group.id, '')}")

    if result.excluded:
        print(f"\n⚠️ {len(result.excluded)} groups need manual handling (missing arrival date/time)")

    export_plan(service, args.event_id, result, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
