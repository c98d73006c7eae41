"""
Audit logging service for ledger and fleet mutations.

Provides centralized logging of who changed which assignment.
"""

import logging
from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from ambulance_backend.app.core.exceptions import DispatchOperationError, store_operation
from ambulance_backend.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """Standardized audit action constants."""
    # Assignment ledger
    AMBULANCE_ASSIGNED = "AMBULANCE_ASSIGNED"
    AMBULANCE_UNASSIGNED = "AMBULANCE_UNASSIGNED"
    AMBULANCE_SWITCHED = "AMBULANCE_SWITCHED"

    # Availability tracker
    AVAILABILITY_CHANGED = "AVAILABILITY_CHANGED"

    # Ambulance registry
    AMBULANCE_CREATED = "AMBULANCE_CREATED"
    AMBULANCE_UPDATED = "AMBULANCE_UPDATED"
    AMBULANCE_STATUS_CHANGED = "AMBULANCE_STATUS_CHANGED"
    AMBULANCE_DEACTIVATED = "AMBULANCE_DEACTIVATED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[Dict[str, Any]] = None,
    driver_id: Optional[str] = None,
    ambulance_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Log a ledger or fleet event to the audit log.

    Runs after the ledger write has committed, so a failure here is logged
    and swallowed rather than failing a change that already happened.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor: Token payload of the user performing the action
        driver_id: Driver document touched (if applicable)
        ambulance_id: Ambulance document touched (if applicable)
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance, or None if it could not be stored
    """
    actor = actor or {}
    audit_log = AuditLog(
        actor_id=actor.get("sub"),
        actor_role=actor.get("role"),
        action=action,
        driver_id=driver_id,
        ambulance_id=ambulance_id,
        meta_data=metadata
    )

    try:
        async with store_operation("write audit log", db):
            db.add(audit_log)
            await db.commit()
    except DispatchOperationError as exc:
        logger.error("Audit entry %s lost: %s", action, exc.cause)
        return None

    return audit_log


async def get_audit_logs(
    db: AsyncSession,
    driver_id: Optional[str] = None,
    ambulance_id: Optional[str] = None,
    limit: int = 100
) -> List[AuditLog]:
    """Most recent audit entries, optionally for one driver or ambulance."""
    query = select(AuditLog)
    if driver_id:
        query = query.where(AuditLog.driver_id == driver_id)
    if ambulance_id:
        query = query.where(AuditLog.ambulance_id == ambulance_id)

    result = await db.execute(query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit))
    return list(result.scalars().all())
