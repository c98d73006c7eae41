"""
Ambulance database model.

An ambulance belongs to a hospital fleet and points at the driver
currently operating it.
"""

from datetime import datetime

from sqlalchemy import Column, String, Float, Boolean, DateTime
from ambulance_backend.app.db.session import Base
from ambulance_backend.app.models.enums import AmbulanceStatus
from ambulance_backend.app.models.user import new_document_id


class Ambulance(Base):
    """
    Ambulance model.
    
    current_driver_id mirrors the driver's assigned_ambulances list and is
    not a foreign key: either side may briefly reference a missing document.
    """
    __tablename__ = "ambulances"
    
    id = Column(String(64), primary_key=True, default=new_document_id)
    
    # Ownership - Ambulance belongs to a hospital fleet
    hospital_id = Column(String(64), nullable=False, index=True)
    
    # Identification
    license_plate = Column(String(50), nullable=False, index=True)
    model = Column(String(100), nullable=False, default="")
    
    # Dispatch state
    status = Column(String(20), nullable=False, default=AmbulanceStatus.OFFLINE.value, index=True)
    current_driver_id = Column(String(64), nullable=True, index=True)
    
    # Last known position
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    last_location_update = Column(DateTime(timezone=True), nullable=True)
    
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    
    @property
    def has_driver(self) -> bool:
        return bool(self.current_driver_id)
    
    def __repr__(self):
        return f"<Ambulance(id='{self.id}', plate='{self.license_plate}', status='{self.status}')>"
