"""
Ambulance Pydantic schemas.

Defines request and response models for fleet management.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from ambulance_backend.app.models.enums import AmbulanceStatus


class AmbulanceCreate(BaseModel):
    """Schema for registering a new ambulance."""
    license_plate: str = Field(..., min_length=1, max_length=50, description="Registration plate, unique per hospital")
    model: str = Field("", max_length=100, description="Vehicle model")
    status: AmbulanceStatus = Field(AmbulanceStatus.OFFLINE, description="Initial status")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AmbulanceUpdate(BaseModel):
    """Schema for updating an existing ambulance."""
    license_plate: Optional[str] = Field(None, min_length=1, max_length=50)
    model: Optional[str] = Field(None, max_length=100)


class StatusUpdate(BaseModel):
    status: AmbulanceStatus


class LocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AmbulanceResponse(BaseModel):
    """Schema for ambulance response."""
    id: str
    hospital_id: str
    license_plate: str
    model: str
    status: str
    current_driver_id: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    last_location_update: Optional[datetime]
    is_active: bool
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True


class AmbulanceListResponse(BaseModel):
    ambulances: List[AmbulanceResponse]
    total: int


class FleetStats(BaseModel):
    """Status breakdown of a hospital's active fleet."""
    total: int
    available: int
    on_duty: int
    maintenance: int
    offline: int
    with_driver: int
