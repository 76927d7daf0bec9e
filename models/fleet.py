"""
Fleet data models for the Wedding Transport Allocator.

A vehicle type is a class of identical vehicles (e.g. 3 Sedans seating 4).
Units are tracked as counters rather than individual vehicles.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict


class VehicleType(BaseModel):
    """
    A class of vehicle with a fixed per-unit capacity and a pool of units.
    """
    id: str = Field(description="Unique identifier")
    label: str = Field(min_length=1, description="e.g. 'Sedan', 'Shuttle'")
    capacity_per_unit: int = Field(ge=1, description="Passenger seats per vehicle")
    total_units: int = Field(ge=1, description="Number of identical vehicles in the fleet")
    available_units: int = Field(ge=0, description="Units not bound to an assignment")
    image_url: Optional[str] = Field(default=None)

    # Optimistic concurrency counter, bumped by the inventory store on every write
    version: int = Field(default=0, ge=0)

    @field_validator("label")
    @classmethod
    def strip_label(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Vehicle label cannot be blank")
        return v

    @model_validator(mode='after')
    def validate_units(self):
        if self.available_units > self.total_units:
            raise ValueError("available_units cannot exceed total_units")
        return self

    @property
    def units_in_use(self) -> int:
        return self.total_units - self.available_units

    @property
    def seats_total(self) -> int:
        return self.capacity_per_unit * self.total_units

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "v2",
            "label": "SUV",
            "capacity_per_unit": 6,
            "total_units": 3,
            "available_units": 2,
            "image_url": "/vehicles/suv.png"
        }
    })
