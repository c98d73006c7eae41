"""
Driver statistics.

Derives counts over a driver's assigned ambulances. Nothing is cached:
every call reads the driver and its ambulances afresh.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_backend.app.core.exceptions import DriverNotFoundError, store_operation
from ambulance_backend.app.models.enums import AmbulanceStatus
from ambulance_backend.app.models.user import User
from ambulance_backend.app.schemas.driver import DriverStats
from ambulance_backend.app.services.driver_directory import fetch_ambulance_statuses


async def get_stats(db: AsyncSession, driver_id: str) -> DriverStats:
    """
    Count a driver's ambulances by status.
    
    total_ambulances is the length of the assignment list, so ids whose
    ambulance document is gone still count towards it but towards no
    status bucket.
    
    Raises:
        DriverNotFoundError: no user document with this id
        DispatchOperationError: the store failed
    """
    async with store_operation("fetch driver stats"):
        result = await db.execute(select(User).where(User.id == driver_id))
        driver = result.scalar_one_or_none()
        if not driver:
            raise DriverNotFoundError(driver_id)
        
        assigned = driver.assigned_ambulances
        statuses = await fetch_ambulance_statuses(db, assigned)
    
    known = [statuses[a] for a in assigned if a in statuses]
    return DriverStats(
        total_ambulances=len(assigned),
        available_ambulances=known.count(AmbulanceStatus.AVAILABLE.value),
        on_duty_ambulances=known.count(AmbulanceStatus.ON_DUTY.value),
        is_on_shift=driver.is_available,
        last_availability_update=driver.last_availability_update,
    )
