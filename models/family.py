"""
Family group model: the atomic unit of transport assignment.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, time

from .guest import parse_clock_time, blank_to_none


class FamilyGroup(BaseModel):
    """
    A primary guest plus linked dependents who travel together.

    `assigned` and `assigned_vehicle_type_id` are derived from the assignment
    set by the ledger; nothing else should set them.
    """
    id: str = Field(description="Unique identifier, e.g. 'fg12'")
    primary_guest_id: int
    member_ids: List[int] = Field(default_factory=list, description="Dependents, excluding the primary guest")
    extra_seats: int = Field(default=0, ge=0, description="Plus-ones/children without guest records")
    label: str = Field(default="", description="Display name, usually the primary guest's")

    arrival_date: Optional[date] = None
    arrival_time: Optional[time] = None
    arrival_location: Optional[str] = None

    # --- Derived State ---
    assigned: bool = False
    assigned_vehicle_type_id: Optional[str] = None

    @field_validator("arrival_date", "arrival_location", mode="before")
    @classmethod
    def empty_as_missing(cls, v):
        return blank_to_none(v)

    @field_validator("arrival_time", mode="before")
    @classmethod
    def parse_arrival_time(cls, v):
        return parse_clock_time(v)

    @model_validator(mode='after')
    def normalize_members(self):
        # Members are a set: drop duplicates and the primary guest itself
        seen = []
        for member_id in self.member_ids:
            if member_id != self.primary_guest_id and member_id not in seen:
                seen.append(member_id)
        self.member_ids = seen
        return self

    @property
    def size(self) -> int:
        """Seats this group needs."""
        return len(self.member_ids) + 1 + self.extra_seats

    @property
    def guest_ids(self) -> List[int]:
        return [self.primary_guest_id] + list(self.member_ids)

    @property
    def has_arrival_window(self) -> bool:
        """Date and time are both known, so the group can be auto-clustered."""
        return self.arrival_date is not None and self.arrival_time is not None
