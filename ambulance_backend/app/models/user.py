"""
User database model.

A user document with a role-specific JSON map. For drivers the map
carries shift availability and the ordered list of assigned ambulances.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Column, String, Boolean, DateTime, Enum, JSON
from ambulance_backend.app.db.session import Base
from ambulance_backend.app.models.enums import UserRole


def new_document_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """
    User model.
    
    Driver keys in role_specific_data:
        is_available: bool
        last_availability_update: ISO-8601 string
        assigned_ambulances: list of ambulance ids (uniqueness not enforced)
        license_number: str
    Staff/admin keys:
        hospital_id: str
    """
    __tablename__ = "users"
    
    id = Column(String(64), primary_key=True, default=new_document_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]), nullable=False, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    phone_number = Column(String(50), nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    role_specific_data = Column(JSON, nullable=False, default=dict)
    
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
    
    @property
    def hospital_id(self) -> Optional[str]:
        return (self.role_specific_data or {}).get("hospital_id")
    
    @property
    def is_available(self) -> bool:
        return bool((self.role_specific_data or {}).get("is_available", False))
    
    @property
    def assigned_ambulances(self) -> List[str]:
        return list((self.role_specific_data or {}).get("assigned_ambulances") or [])
    
    @property
    def last_availability_update(self) -> Optional[datetime]:
        raw = (self.role_specific_data or {}).get("last_availability_update")
        return datetime.fromisoformat(raw) if raw else None
    
    def update_role_data(self, **changes) -> None:
        """
        Replace role_specific_data with a merged copy.
        
        The JSON column only tracks reassignment, never in-place edits.
        """
        data = dict(self.role_specific_data or {})
        data.update(changes)
        self.role_specific_data = data
    
    def __repr__(self):
        return f"<User(id='{self.id}', email='{self.email}', role='{self.role.value}')>"
