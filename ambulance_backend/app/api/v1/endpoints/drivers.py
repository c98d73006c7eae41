"""
Driver API Endpoints.

Directory listings, shift availability, assigned ambulances and stats.
"""

from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_backend.app.db.session import get_db
from ambulance_backend.app.models.enums import HOSPITAL_ROLES
from ambulance_backend.app.schemas.ambulance import AmbulanceResponse
from ambulance_backend.app.schemas.driver import (
    AvailabilityResponse,
    AvailabilityUpdate,
    DriverResponse,
    DriverStats,
)
from ambulance_backend.app.core.dependencies import get_current_user
from ambulance_backend.app.core.exceptions import DriverNotFoundError
from ambulance_backend.app.core.guards import require_role, require_driver_access, HospitalGuard
from ambulance_backend.app.services import driver_directory
from ambulance_backend.app.services.assignment_ledger import get_assigned_ambulances
from ambulance_backend.app.services.availability import set_availability
from ambulance_backend.app.services.driver_stats import get_stats
from ambulance_backend.app.services.audit import log_event, AuditAction

hospital_router = APIRouter(prefix="/hospitals", tags=["Driver Directory"])
router = APIRouter(prefix="/drivers", tags=["Drivers"])
hospital_guard = HospitalGuard()


@hospital_router.get("/{hospital_id}/drivers", response_model=List[DriverResponse])
async def list_drivers(
    hospital_id: str = Path(..., description="Hospital ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    List active drivers that operate at least one ambulance.

    The hospital id scopes access only; driver records are not filtered by it.
    """
    hospital_guard.enforce(hospital_id, current_user, "hospital")
    drivers = await driver_directory.list_drivers_for_hospital(db, hospital_id)
    return [DriverResponse.from_user(d) for d in drivers]


@hospital_router.get("/{hospital_id}/drivers/available", response_model=List[DriverResponse])
async def list_available_drivers(
    hospital_id: str = Path(..., description="Hospital ID"),
    current_user: dict = Depends(require_role(HOSPITAL_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """List on-shift drivers who have a free ambulance or none assigned."""
    hospital_guard.enforce(hospital_id, current_user, "hospital")
    drivers = await driver_directory.list_available_drivers(db, hospital_id)
    return [DriverResponse.from_user(d) for d in drivers]


@router.get("/{driver_id}", response_model=DriverResponse)
async def get_driver(
    driver_id: str = Path(..., description="Driver ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    require_driver_access(driver_id, current_user)
    driver = await driver_directory.get_driver(db, driver_id)
    if not driver:
        raise DriverNotFoundError(driver_id)
    return DriverResponse.from_user(driver)


@router.patch("/{driver_id}/availability", response_model=AvailabilityResponse)
async def update_availability(
    update: AvailabilityUpdate,
    driver_id: str = Path(..., description="Driver ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Shift a driver in or out (the driver, or hospital staff)."""
    require_driver_access(driver_id, current_user)
    driver = await set_availability(db, driver_id, update.is_available)

    await log_event(
        db=db,
        action=AuditAction.AVAILABILITY_CHANGED,
        actor=current_user,
        driver_id=driver_id,
        metadata={"is_available": update.is_available}
    )

    return AvailabilityResponse(
        driver_id=driver.id,
        is_available=driver.is_available,
        last_availability_update=driver.last_availability_update
    )


@router.get("/{driver_id}/ambulances", response_model=List[AmbulanceResponse])
async def list_driver_ambulances(
    driver_id: str = Path(..., description="Driver ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Ambulances assigned to the driver, in assignment order."""
    require_driver_access(driver_id, current_user)
    ambulances = await get_assigned_ambulances(db, driver_id)
    return [AmbulanceResponse.model_validate(a) for a in ambulances]


@router.get("/{driver_id}/stats", response_model=DriverStats)
async def driver_stats(
    driver_id: str = Path(..., description="Driver ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    require_driver_access(driver_id, current_user)
    return await get_stats(db, driver_id)
