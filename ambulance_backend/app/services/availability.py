"""
Availability tracker.

Drivers shift in and out by toggling a flag on their own document.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_backend.app.core.change_feed import USERS, ChangeEvent, change_feed
from ambulance_backend.app.core.exceptions import DriverNotFoundError, store_operation
from ambulance_backend.app.models.user import User

logger = logging.getLogger(__name__)


async def set_availability(db: AsyncSession, driver_id: str, is_available: bool) -> User:
    """
    Set a driver's shift availability.
    
    Writes the flag, the availability timestamp and updated_at in one
    update. No retry on failure.
    
    Raises:
        DriverNotFoundError: no user document with this id
        DispatchOperationError: the store failed
    """
    async with store_operation("update availability", db):
        result = await db.execute(select(User).where(User.id == driver_id))
        driver = result.scalar_one_or_none()
        if not driver:
            raise DriverNotFoundError(driver_id)
        
        now = datetime.utcnow()
        driver.update_role_data(
            is_available=is_available,
            last_availability_update=now.isoformat(),
        )
        driver.updated_at = now
        await db.commit()
    
    logger.info("Driver %s availability set to %s", driver_id, is_available)
    await change_feed.publish(ChangeEvent(USERS, (driver_id,)))
    return driver
