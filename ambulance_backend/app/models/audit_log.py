"""
Audit Log Database Model.

Tracks every mutation of the assignment ledger and the ambulance registry.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, JSON
from ambulance_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.
    
    Events logged:
    - AMBULANCE_ASSIGNED / AMBULANCE_UNASSIGNED / AMBULANCE_SWITCHED
    - AVAILABILITY_CHANGED
    - AMBULANCE_CREATED / AMBULANCE_UPDATED / AMBULANCE_STATUS_CHANGED / AMBULANCE_DEACTIVATED
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for system actions)
    actor_id = Column(String(64), index=True, nullable=True)
    actor_role = Column(String(50), nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Which documents were touched
    driver_id = Column(String(64), index=True, nullable=True)
    ambulance_id = Column(String(64), index=True, nullable=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id})>"
