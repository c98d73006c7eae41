"""
Assignment Ledger API Endpoints.

Hospital staff assign and remove ambulances; drivers may switch between
ambulances themselves.
"""

from typing import Iterable, List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_backend.app.db.session import get_db
from ambulance_backend.app.models.enums import HOSPITAL_ROLES, UserRole
from ambulance_backend.app.schemas.assignment import AssignmentResponse, SwitchRequest, SwitchResponse
from ambulance_backend.app.core.dependencies import get_current_user
from ambulance_backend.app.core.guards import (
    HospitalGuard,
    is_hospital_user,
    require_driver_access,
    require_role,
)
from ambulance_backend.app.services import assignment_ledger, driver_directory
from ambulance_backend.app.services.ambulance_registry import AmbulanceRegistry
from ambulance_backend.app.services.audit import log_event, get_audit_logs, AuditAction

router = APIRouter(prefix="/drivers", tags=["Assignment Ledger"])
hospital_guard = HospitalGuard()


async def enforce_fleet_access(db: AsyncSession, ambulance_ids: Iterable[str], current_user: dict) -> None:
    """
    Hospital users may only move ambulances of their own hospital.

    Unknown ids are left for the ledger to report.
    """
    for ambulance_id in ambulance_ids:
        ambulance = await AmbulanceRegistry.get_ambulance(db, ambulance_id)
        if ambulance:
            hospital_guard.enforce(ambulance.hospital_id, current_user, "ambulance")


async def enforce_driver_switch(
    db: AsyncSession,
    from_ambulance_id: str,
    to_ambulance_id: str,
    current_user: dict
) -> None:
    """
    Drivers may only leave an ambulance they operate or hold, and only
    take over one of the same hospital that is driverless or already theirs.

    Unknown ids are left for the ledger to report.
    """
    from_ambulance = await AmbulanceRegistry.get_ambulance(db, from_ambulance_id)
    to_ambulance = await AmbulanceRegistry.get_ambulance(db, to_ambulance_id)
    if from_ambulance is None or to_ambulance is None:
        return

    driver_id = current_user.get("sub")
    driver = await driver_directory.get_driver(db, driver_id)
    holds_from = (
        from_ambulance.current_driver_id == driver_id
        or (driver is not None and from_ambulance_id in driver.assigned_ambulances)
    )
    to_is_free = not to_ambulance.current_driver_id or to_ambulance.current_driver_id == driver_id

    if not (holds_from and to_is_free and to_ambulance.hospital_id == from_ambulance.hospital_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You do not operate this ambulance."
        )


@router.put("/{driver_id}/ambulances/{ambulance_id}", response_model=AssignmentResponse)
async def assign_ambulance(
    driver_id: str = Path(..., description="Driver ID"),
    ambulance_id: str = Path(..., description="Ambulance ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign an ambulance to a driver (hospital staff only).

    Idempotent: assigning twice leaves a single entry.
    """
    await enforce_fleet_access(db, [ambulance_id], current_user)
    driver, ambulance = await assignment_ledger.assign(db, driver_id, ambulance_id)

    await log_event(
        db=db,
        action=AuditAction.AMBULANCE_ASSIGNED,
        actor=current_user,
        driver_id=driver_id,
        ambulance_id=ambulance_id
    )

    return AssignmentResponse(
        driver_id=driver.id,
        ambulance_id=ambulance.id,
        assigned_ambulances=driver.assigned_ambulances,
        current_driver_id=ambulance.current_driver_id,
        ambulance_status=ambulance.status
    )


@router.delete("/{driver_id}/ambulances/{ambulance_id}", response_model=AssignmentResponse)
async def unassign_ambulance(
    driver_id: str = Path(..., description="Driver ID"),
    ambulance_id: str = Path(..., description="Ambulance ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Remove an ambulance from a driver (hospital staff only).

    The ambulance is taken offline.
    """
    await enforce_fleet_access(db, [ambulance_id], current_user)
    driver, ambulance = await assignment_ledger.unassign(db, driver_id, ambulance_id)

    await log_event(
        db=db,
        action=AuditAction.AMBULANCE_UNASSIGNED,
        actor=current_user,
        driver_id=driver_id,
        ambulance_id=ambulance_id
    )

    return AssignmentResponse(
        driver_id=driver.id,
        ambulance_id=ambulance.id,
        assigned_ambulances=driver.assigned_ambulances,
        current_driver_id=ambulance.current_driver_id,
        ambulance_status=ambulance.status
    )


@router.post("/{driver_id}/switch", response_model=SwitchResponse)
async def switch_ambulance(
    switch: SwitchRequest,
    driver_id: str = Path(..., description="Driver ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Move a driver from one ambulance to another atomically.

    The driver's assigned list is not modified by a switch.
    """
    require_driver_access(driver_id, current_user)
    if is_hospital_user(current_user):
        await enforce_fleet_access(db, [switch.from_ambulance_id, switch.to_ambulance_id], current_user)
    else:
        await enforce_driver_switch(db, switch.from_ambulance_id, switch.to_ambulance_id, current_user)

    from_ambulance, to_ambulance = await assignment_ledger.switch_assignment(
        db, driver_id, switch.from_ambulance_id, switch.to_ambulance_id
    )

    await log_event(
        db=db,
        action=AuditAction.AMBULANCE_SWITCHED,
        actor=current_user,
        driver_id=driver_id,
        ambulance_id=to_ambulance.id,
        metadata={"from_ambulance_id": from_ambulance.id}
    )

    return SwitchResponse(
        driver_id=driver_id,
        from_ambulance_id=from_ambulance.id,
        from_status=from_ambulance.status,
        to_ambulance_id=to_ambulance.id,
        to_status=to_ambulance.status
    )


@router.get("/{driver_id}/history")
async def assignment_history(
    driver_id: str = Path(..., description="Driver ID"),
    limit: int = Query(50, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.HOSPITAL_ADMIN])),
    db: AsyncSession = Depends(get_db)
) -> List[dict]:
    """Audit trail of ledger and availability changes for a driver (admin only)."""
    logs = await get_audit_logs(db, driver_id=driver_id, limit=limit)
    return [
        {
            "action": log.action,
            "actor_id": log.actor_id,
            "actor_role": log.actor_role,
            "ambulance_id": log.ambulance_id,
            "metadata": log.meta_data,
            "timestamp": log.timestamp,
        }
        for log in logs
    ]
