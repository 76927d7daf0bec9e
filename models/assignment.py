"""
Assignment data models for the Wedding Transport Allocator.

This module defines the 'Output' of the allocator:
1. Assignment (one reserved vehicle unit carrying one or more family groups)
2. AssignmentRequest / AssignmentPatch (validated create and update inputs)
3. AutoAssignResult (what a batch run created and what it could not place)
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import date as date_type, time as time_type

from .family import FamilyGroup
from .guest import parse_clock_time, blank_to_none


class AssignmentSource(str, Enum):
    """How the assignment came to exist."""
    MANUAL = "manual"
    AUTO = "auto"


def _unique_ids(ids: List[str]) -> List[str]:
    if len(set(ids)) != len(ids):
        raise ValueError("family_group_ids must not contain duplicates")
    return ids


def _required_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Field cannot be blank")
    return value


class Assignment(BaseModel):
    """
    A binding of one reserved vehicle unit to one or more family groups
    for a specific pickup and dropoff.
    """

    # --- Core Binding ---
    id: str = Field(description="Unique identifier, e.g. 'a3'")
    event_id: int = Field(description="Event this assignment belongs to")
    vehicle_type_id: str = Field(description="Vehicle type whose unit is reserved")
    family_group_ids: List[str] = Field(min_length=1, description="Groups riding in this vehicle")
    passenger_count: int = Field(ge=1, description="Sum of member group sizes")
    guest_ids: List[int] = Field(
        default_factory=list,
        description="Guests riding, captured at booking; survives group re-keying on guest re-sync"
    )

    # --- Pickup Details ---
    pickup_date: date_type
    pickup_time: time_type
    pickup_location: str = Field(min_length=1)
    dropoff_location: str = Field(min_length=1)
    notes: Optional[str] = None

    source: AssignmentSource = Field(default=AssignmentSource.MANUAL)

    @field_validator("family_group_ids")
    @classmethod
    def validate_unique_groups(cls, v):
        return _unique_ids(v)

    @field_validator("pickup_time", mode="before")
    @classmethod
    def parse_pickup_time(cls, v):
        return parse_clock_time(v)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "a1",
            "event_id": 1,
            "vehicle_type_id": "v2",
            "family_group_ids": ["fg12", "fg20"],
            "passenger_count": 6,
            "guest_ids": [12, 13, 14, 20],
            "pickup_date": "2025-06-15",
            "pickup_time": "14:00:00",
            "pickup_location": "Airport",
            "dropoff_location": "Taj Hotel",
            "notes": "Meet at arrivals gate B",
            "source": "auto"
        }
    })


class AssignmentRequest(BaseModel):
    """Validated input for creating an assignment by hand."""
    vehicle_type_id: str = Field(min_length=1)
    family_group_ids: List[str] = Field(min_length=1)
    pickup_date: date_type
    pickup_time: time_type
    pickup_location: str = Field(min_length=1)
    dropoff_location: str = Field(min_length=1)
    notes: Optional[str] = None

    @field_validator("family_group_ids")
    @classmethod
    def validate_unique_groups(cls, v):
        return _unique_ids(v)

    @field_validator("pickup_time", mode="before")
    @classmethod
    def parse_pickup_time(cls, v):
        return parse_clock_time(v)

    @field_validator("pickup_location", "dropoff_location")
    @classmethod
    def validate_text(cls, v):
        return _required_text(v)

    @field_validator("notes", mode="before")
    @classmethod
    def empty_notes(cls, v):
        return blank_to_none(v)


class AssignmentPatch(BaseModel):
    """Partial update. Fields left unset keep their current value."""
    vehicle_type_id: Optional[str] = Field(default=None, min_length=1)
    family_group_ids: Optional[List[str]] = Field(default=None, min_length=1)
    pickup_date: Optional[date_type] = None
    pickup_time: Optional[time_type] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("family_group_ids")
    @classmethod
    def validate_unique_groups(cls, v):
        return _unique_ids(v) if v is not None else v

    @field_validator("pickup_time", mode="before")
    @classmethod
    def parse_pickup_time(cls, v):
        return parse_clock_time(v)

    @field_validator("pickup_location", "dropoff_location")
    @classmethod
    def validate_text(cls, v):
        return _required_text(v) if v is not None else v

    def changes(self) -> Dict[str, object]:
        """Only the fields the caller actually set; an explicit None clears `notes`."""
        return self.model_dump(exclude_unset=True)


class AutoAssignResult(BaseModel):
    """
    Outcome of one auto-assign run. Partial success is the normal case.
    """
    created: List[Assignment] = Field(default_factory=list)
    unassignable: List[FamilyGroup] = Field(
        default_factory=list,
        description="Groups that could not be packed in this run"
    )
    excluded: List[FamilyGroup] = Field(
        default_factory=list,
        description="Groups without arrival date/time, left for manual handling"
    )
    reasons: Dict[str, str] = Field(
        default_factory=dict,
        description="Unassignable group id -> why it was not packed"
    )

    @property
    def passengers_moved(self) -> int:
        return sum(a.passenger_count for a in self.created)
