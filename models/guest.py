"""
Guest data models for the Wedding Transport Allocator.

Guest records are owned by the guest directory (RSVP forms, imports).
The allocator only reads them to derive family groups.
"""

import re
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
from datetime import date, time, datetime


_CLOCK_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p", "%I %p", "%H")


def parse_clock_time(value) -> Optional[time]:
    """
    Parse a wall-clock arrival/pickup time.

    Accepts time objects and strings such as "14:37", "9:05", "14:37:00",
    "2:30 PM" or "14". Blank values map to None.
    """
    if value is None or isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported time value: {value!r}")

    text = re.sub(r"\s+", " ", value.strip()).upper()
    if not text:
        return None

    for fmt in _CLOCK_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised time format: {value!r}")


def blank_to_none(value):
    """Form posts send "" for untouched optional inputs."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


class RsvpStatus(str, Enum):
    """Where the guest is in the RSVP flow."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class GuestSide(str, Enum):
    BRIDE = "bride"
    GROOM = "groom"
    MUTUAL = "mutual"


class GuestRecord(BaseModel):
    """
    A single guest as supplied by the guest directory.
    Only confirmed guests who need transport feed the allocator.
    """

    # --- Core Identity ---
    id: int = Field(description="Guest directory identifier")
    name: str = Field(min_length=1, description="Display name")
    rsvp_status: RsvpStatus = Field(default=RsvpStatus.PENDING)
    side: Optional[GuestSide] = Field(default=None, description="Bride/groom side")

    # --- Arrival Details ---
    arrival_date: Optional[date] = Field(default=None)
    arrival_time: Optional[time] = Field(default=None)
    arrival_location: Optional[str] = Field(default=None, description="e.g. 'Airport', 'Train Station'")

    # --- Family & Headcount ---
    family_link_ids: List[int] = Field(
        default_factory=list,
        description="IDs of guests travelling with this one (links may be one-directional)"
    )
    needs_transport: bool = Field(default=True, description="Guest asked for a pickup")
    plus_one_confirmed: bool = Field(default=False, description="Brings a plus-one without a guest record")
    children_count: int = Field(default=0, ge=0, description="Children travelling without guest records")

    @field_validator("arrival_date", "arrival_location", "side", mode="before")
    @classmethod
    def empty_as_missing(cls, v):
        return blank_to_none(v)

    @field_validator("arrival_time", mode="before")
    @classmethod
    def parse_arrival_time(cls, v):
        return parse_clock_time(v)

    @field_validator("arrival_location")
    @classmethod
    def strip_location(cls, v):
        return v.strip() if v else v

    @property
    def extra_seats(self) -> int:
        """Seats taken by companions who are not guest records themselves."""
        return int(self.plus_one_confirmed) + self.children_count

    @property
    def is_attending(self) -> bool:
        return self.rsvp_status == RsvpStatus.CONFIRMED

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": 12,
            "name": "Priya Sharma",
            "rsvp_status": "confirmed",
            "side": "bride",
            "arrival_date": "2025-06-15",
            "arrival_time": "14:37",
            "arrival_location": "Airport",
            "family_link_ids": [13, 14],
            "plus_one_confirmed": False,
            "children_count": 0
        }
    })
