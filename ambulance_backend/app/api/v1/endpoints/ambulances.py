"""
Ambulance Registry API Endpoints.

Hospital staff manage their own fleet. Drivers may report the location
of the ambulance they currently operate.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_backend.app.db.session import get_db
from ambulance_backend.app.models.enums import AmbulanceStatus, HOSPITAL_ROLES, UserRole
from ambulance_backend.app.schemas.ambulance import (
    AmbulanceCreate,
    AmbulanceListResponse,
    AmbulanceResponse,
    AmbulanceUpdate,
    FleetStats,
    LocationUpdate,
    StatusUpdate,
)
from ambulance_backend.app.core.dependencies import get_current_user
from ambulance_backend.app.core.exceptions import AmbulanceNotFoundError
from ambulance_backend.app.core.guards import require_role, HospitalGuard
from ambulance_backend.app.services.ambulance_registry import AmbulanceRegistry
from ambulance_backend.app.services.audit import log_event, AuditAction

hospital_router = APIRouter(prefix="/hospitals", tags=["Ambulance Registry"])
router = APIRouter(prefix="/ambulances", tags=["Ambulance Registry"])
hospital_guard = HospitalGuard()


async def _load_for_user(db: AsyncSession, ambulance_id: str, current_user: dict):
    ambulance = await AmbulanceRegistry.get_ambulance(db, ambulance_id)
    if not ambulance:
        raise AmbulanceNotFoundError(ambulance_id)
    hospital_guard.enforce(ambulance.hospital_id, current_user, "ambulance")
    return ambulance


@hospital_router.post(
    "/{hospital_id}/ambulances",
    response_model=AmbulanceResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_ambulance(
    data: AmbulanceCreate,
    hospital_id: str = Path(..., description="Hospital ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Register an ambulance in the hospital's fleet."""
    hospital_guard.enforce(hospital_id, current_user, "hospital")
    ambulance = await AmbulanceRegistry.create_ambulance(db, hospital_id, data)

    await log_event(
        db=db,
        action=AuditAction.AMBULANCE_CREATED,
        actor=current_user,
        ambulance_id=ambulance.id,
        metadata={"license_plate": ambulance.license_plate, "hospital_id": hospital_id}
    )

    return AmbulanceResponse.model_validate(ambulance)


@hospital_router.get("/{hospital_id}/ambulances", response_model=AmbulanceListResponse)
async def list_ambulances(
    hospital_id: str = Path(..., description="Hospital ID"),
    status_filter: Optional[AmbulanceStatus] = Query(None, alias="status"),
    q: Optional[str] = Query(None, description="Search license plate or model"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    hospital_guard.enforce(hospital_id, current_user, "hospital")
    ambulances = await AmbulanceRegistry.list_ambulances(db, hospital_id, status=status_filter, search=q)
    return AmbulanceListResponse(
        ambulances=[AmbulanceResponse.model_validate(a) for a in ambulances],
        total=len(ambulances)
    )


@hospital_router.get("/{hospital_id}/ambulances/stats", response_model=FleetStats)
async def fleet_stats(
    hospital_id: str = Path(..., description="Hospital ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    hospital_guard.enforce(hospital_id, current_user, "hospital")
    return await AmbulanceRegistry.get_fleet_stats(db, hospital_id)


@router.get("/{ambulance_id}", response_model=AmbulanceResponse)
async def get_ambulance(
    ambulance_id: str = Path(..., description="Ambulance ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    ambulance = await _load_for_user(db, ambulance_id, current_user)
    return AmbulanceResponse.model_validate(ambulance)


@router.patch("/{ambulance_id}", response_model=AmbulanceResponse)
async def update_ambulance(
    updates: AmbulanceUpdate,
    ambulance_id: str = Path(..., description="Ambulance ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    await _load_for_user(db, ambulance_id, current_user)
    ambulance = await AmbulanceRegistry.update_ambulance(db, ambulance_id, updates)

    await log_event(
        db=db,
        action=AuditAction.AMBULANCE_UPDATED,
        actor=current_user,
        ambulance_id=ambulance_id,
        metadata=updates.model_dump(exclude_unset=True)
    )

    return AmbulanceResponse.model_validate(ambulance)


@router.patch("/{ambulance_id}/status", response_model=AmbulanceResponse)
async def update_status(
    update: StatusUpdate,
    ambulance_id: str = Path(..., description="Ambulance ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    await _load_for_user(db, ambulance_id, current_user)
    ambulance = await AmbulanceRegistry.update_status(db, ambulance_id, update.status)

    await log_event(
        db=db,
        action=AuditAction.AMBULANCE_STATUS_CHANGED,
        actor=current_user,
        ambulance_id=ambulance_id,
        metadata={"status": update.status.value}
    )

    return AmbulanceResponse.model_validate(ambulance)


@router.patch("/{ambulance_id}/location", response_model=AmbulanceResponse)
async def update_location(
    update: LocationUpdate,
    ambulance_id: str = Path(..., description="Ambulance ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Record the last known position.

    Allowed for hospital staff of the owning hospital, or for the driver
    currently operating the ambulance.
    """
    ambulance = await AmbulanceRegistry.get_ambulance(db, ambulance_id)
    if not ambulance:
        raise AmbulanceNotFoundError(ambulance_id)

    is_operator = (
        current_user.get("role") == UserRole.AMBULANCE_DRIVER.value
        and ambulance.current_driver_id == current_user.get("sub")
    )
    if not is_operator and not hospital_guard.has_access(ambulance.hospital_id, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You do not operate this ambulance."
        )

    ambulance = await AmbulanceRegistry.update_location(db, ambulance_id, update.latitude, update.longitude)
    return AmbulanceResponse.model_validate(ambulance)


@router.delete("/{ambulance_id}", response_model=AmbulanceResponse)
async def deactivate_ambulance(
    ambulance_id: str = Path(..., description="Ambulance ID"),
    current_user: dict = Depends(require_role([UserRole.HOSPITAL_ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete an ambulance (hospital admin only)."""
    await _load_for_user(db, ambulance_id, current_user)
    ambulance = await AmbulanceRegistry.deactivate_ambulance(db, ambulance_id)

    await log_event(
        db=db,
        action=AuditAction.AMBULANCE_DEACTIVATED,
        actor=current_user,
        ambulance_id=ambulance_id
    )

    return AmbulanceResponse.model_validate(ambulance)
