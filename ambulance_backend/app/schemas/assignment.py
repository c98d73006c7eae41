"""
Assignment ledger schemas.
"""

from pydantic import BaseModel
from typing import List, Optional


class SwitchRequest(BaseModel):
    """Schema for moving a driver from one ambulance to another."""
    from_ambulance_id: str
    to_ambulance_id: str


class AssignmentResponse(BaseModel):
    """Ledger state after an assign or unassign."""
    driver_id: str
    ambulance_id: str
    assigned_ambulances: List[str]
    current_driver_id: Optional[str]
    ambulance_status: str


class SwitchResponse(BaseModel):
    """Both ambulances after a switch. The driver's list is left untouched."""
    driver_id: str
    from_ambulance_id: str
    from_status: str
    to_ambulance_id: str
    to_status: str
