"""
Driver Pydantic schemas.

Request and response models for the driver directory, availability
tracking and driver statistics.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from ambulance_backend.app.models.user import User


class DriverResponse(BaseModel):
    """Schema for a driver listing entry."""
    id: str
    email: str
    first_name: str
    last_name: str
    phone_number: str
    role: str
    is_active: bool
    is_available: bool
    assigned_ambulances: List[str]
    last_availability_update: Optional[datetime]
    license_number: Optional[str] = None
    
    @classmethod
    def from_user(cls, user: User) -> "DriverResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone_number=user.phone_number,
            role=user.role.value,
            is_active=user.is_active,
            is_available=user.is_available,
            assigned_ambulances=user.assigned_ambulances,
            last_availability_update=user.last_availability_update,
            license_number=(user.role_specific_data or {}).get("license_number"),
        )


class AvailabilityUpdate(BaseModel):
    """Schema for a shift-in / shift-out toggle."""
    is_available: bool = Field(..., description="True when the driver goes on shift")


class AvailabilityResponse(BaseModel):
    """Response after an availability toggle."""
    driver_id: str
    is_available: bool
    last_availability_update: datetime


class DriverStats(BaseModel):
    """Counts over a driver's assigned ambulances."""
    total_ambulances: int
    available_ambulances: int
    on_duty_ambulances: int
    is_on_shift: bool
    last_availability_update: Optional[datetime]
