"""
Assignment ledger.

Keeps the driver -> ambulances relation, which is stored twice: as the
ordered assigned_ambulances list on the driver document and as
current_driver_id on each ambulance document.

assign and unassign update both sides in one transaction, holding row
locks on the driver and the ambulance so concurrent callers on the same
pair serialize. switch_assignment only rewrites the two ambulances.
"""

import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ambulance_backend.app.core.change_feed import AMBULANCES, USERS, ChangeEvent, change_feed, watch
from ambulance_backend.app.core.exceptions import (
    AmbulanceNotFoundError,
    DriverNotFoundError,
    store_operation,
)
from ambulance_backend.app.db.session import AsyncSessionLocal
from ambulance_backend.app.models.ambulance import Ambulance
from ambulance_backend.app.models.enums import AmbulanceStatus
from ambulance_backend.app.models.user import User

logger = logging.getLogger(__name__)


async def _lock_driver(db: AsyncSession, driver_id: str) -> User:
    result = await db.execute(
        select(User).where(User.id == driver_id).with_for_update()
    )
    driver = result.scalar_one_or_none()
    if not driver:
        raise DriverNotFoundError(driver_id)
    return driver


async def _lock_ambulance(db: AsyncSession, ambulance_id: str) -> Ambulance:
    result = await db.execute(
        select(Ambulance).where(Ambulance.id == ambulance_id).with_for_update()
    )
    ambulance = result.scalar_one_or_none()
    if not ambulance:
        raise AmbulanceNotFoundError(ambulance_id)
    return ambulance


async def assign(db: AsyncSession, driver_id: str, ambulance_id: str) -> Tuple[User, Ambulance]:
    """
    Assign an ambulance to a driver.

    Appends the id to the driver's list unless already present, then points
    the ambulance at the driver. The ambulance status is left as it is.

    Raises:
        DriverNotFoundError: before anything is written
        AmbulanceNotFoundError: the driver list change is rolled back
        DispatchOperationError: the store failed
    """
    async with store_operation("assign ambulance", db):
        driver = await _lock_driver(db, driver_id)
        now = datetime.utcnow()

        assigned = driver.assigned_ambulances
        if ambulance_id not in assigned:
            assigned.append(ambulance_id)
            driver.update_role_data(assigned_ambulances=assigned)
            driver.updated_at = now

        ambulance = await _lock_ambulance(db, ambulance_id)
        ambulance.current_driver_id = driver_id
        ambulance.updated_at = now

        await db.commit()

    logger.info("Assigned ambulance %s to driver %s", ambulance_id, driver_id)
    await change_feed.publish(
        ChangeEvent(USERS, (driver_id,)),
        ChangeEvent(AMBULANCES, (ambulance_id,)),
    )
    return driver, ambulance


async def unassign(db: AsyncSession, driver_id: str, ambulance_id: str) -> Tuple[User, Ambulance]:
    """
    Remove an ambulance from a driver.

    Drops the id from the driver's list if present, clears the ambulance's
    driver and takes it offline whatever its previous status was.

    Raises:
        DriverNotFoundError: before anything is written
        AmbulanceNotFoundError: the driver list change is rolled back
        DispatchOperationError: the store failed
    """
    async with store_operation("remove ambulance", db):
        driver = await _lock_driver(db, driver_id)
        now = datetime.utcnow()

        assigned = driver.assigned_ambulances
        if ambulance_id in assigned:
            assigned.remove(ambulance_id)
        driver.update_role_data(assigned_ambulances=assigned)
        driver.updated_at = now

        ambulance = await _lock_ambulance(db, ambulance_id)
        ambulance.current_driver_id = None
        ambulance.status = AmbulanceStatus.OFFLINE.value
        ambulance.updated_at = now

        await db.commit()

    logger.info("Removed ambulance %s from driver %s", ambulance_id, driver_id)
    await change_feed.publish(
        ChangeEvent(USERS, (driver_id,)),
        ChangeEvent(AMBULANCES, (ambulance_id,)),
    )
    return driver, ambulance


async def switch_assignment(
    db: AsyncSession,
    driver_id: str,
    from_ambulance_id: str,
    to_ambulance_id: str
) -> Tuple[Ambulance, Ambulance]:
    """
    Move a driver from one ambulance to another in a single transaction.

    The from-ambulance goes offline with no driver; the to-ambulance becomes
    available under this driver. Either both commit or neither does.

    Caveat: the driver's assigned_ambulances list is NOT changed. Callers
    that want the list to follow must assign/unassign explicitly.

    Raises:
        DriverNotFoundError: before anything is written
        AmbulanceNotFoundError: nothing is written
        DispatchOperationError: the store failed
    """
    async with store_operation("switch ambulance", db):
        result = await db.execute(select(User.id).where(User.id == driver_id))
        if result.scalar_one_or_none() is None:
            raise DriverNotFoundError(driver_id)

        # Lock in a stable order so two opposite switches cannot deadlock
        locked = {}
        for ambulance_id in sorted({from_ambulance_id, to_ambulance_id}):
            locked[ambulance_id] = await _lock_ambulance(db, ambulance_id)
        from_ambulance = locked[from_ambulance_id]
        to_ambulance = locked[to_ambulance_id]

        now = datetime.utcnow()
        from_ambulance.current_driver_id = None
        from_ambulance.status = AmbulanceStatus.OFFLINE.value
        from_ambulance.updated_at = now

        to_ambulance.current_driver_id = driver_id
        to_ambulance.status = AmbulanceStatus.AVAILABLE.value
        to_ambulance.updated_at = now

        await db.commit()

    logger.info(
        "Switched driver %s from ambulance %s to %s",
        driver_id, from_ambulance_id, to_ambulance_id
    )
    await change_feed.publish(ChangeEvent(AMBULANCES, (from_ambulance_id, to_ambulance_id)))
    return from_ambulance, to_ambulance


async def get_assigned_ambulances(db: AsyncSession, driver_id: str) -> List[Ambulance]:
    """
    Ambulance documents assigned to a driver, in assignment order.

    Empty when the driver does not exist or has no assignments. Ids without
    an ambulance document are skipped.
    """
    async with store_operation("fetch driver ambulances"):
        result = await db.execute(select(User).where(User.id == driver_id))
        driver = result.scalar_one_or_none()
        if not driver or not driver.assigned_ambulances:
            return []

        assigned = driver.assigned_ambulances
        result = await db.execute(
            select(Ambulance).where(Ambulance.id.in_(set(assigned)))
        )
        by_id = {ambulance.id: ambulance for ambulance in result.scalars().all()}

    return [by_id[ambulance_id] for ambulance_id in assigned if ambulance_id in by_id]


def watch_assigned_ambulances(
    driver_id: str,
    session_factory: async_sessionmaker = AsyncSessionLocal,
):
    """Live stream of get_assigned_ambulances, refreshed when the driver document changes."""
    return watch(
        change_feed,
        session_factory,
        lambda db: get_assigned_ambulances(db, driver_id),
        [USERS],
        document_id=driver_id,
    )
