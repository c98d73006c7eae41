"""
Driver directory service.

Listings of ambulance drivers, as snapshots and as live streams.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ambulance_backend.app.core.change_feed import USERS, change_feed, watch
from ambulance_backend.app.core.exceptions import store_operation
from ambulance_backend.app.db.session import AsyncSessionLocal
from ambulance_backend.app.models.ambulance import Ambulance
from ambulance_backend.app.models.enums import AmbulanceStatus, UserRole
from ambulance_backend.app.models.user import User

# Statuses that leave a driver free to take a call
FREE_AMBULANCE_STATUSES = {AmbulanceStatus.AVAILABLE.value, AmbulanceStatus.OFFLINE.value}


async def fetch_ambulance_statuses(db: AsyncSession, ambulance_ids: Iterable[str]) -> Dict[str, str]:
    """
    Read the status of many ambulances in one query.

    Ids without a document are absent from the result.
    """
    ids = set(ambulance_ids)
    if not ids:
        return {}

    result = await db.execute(
        select(Ambulance.id, Ambulance.status).where(Ambulance.id.in_(ids))
    )
    return {row.id: row.status for row in result.all()}


async def get_driver(db: AsyncSession, driver_id: str) -> Optional[User]:
    """Fetch a single user document, or None."""
    async with store_operation("fetch driver"):
        result = await db.execute(select(User).where(User.id == driver_id))
        return result.scalar_one_or_none()


async def list_drivers_for_hospital(db: AsyncSession, hospital_id: str) -> List[User]:
    """
    List active drivers that have at least one assigned ambulance.

    hospital_id is accepted for routing but not applied: driver documents
    carry no hospital reference to filter on.
    """
    async with store_operation("fetch drivers"):
        result = await db.execute(
            select(User).where(
                User.role == UserRole.AMBULANCE_DRIVER,
                User.is_active == True
            ).order_by(User.created_at)
        )
        drivers = result.scalars().all()

    return [driver for driver in drivers if driver.assigned_ambulances]


async def list_available_drivers(db: AsyncSession, hospital_id: str) -> List[User]:
    """
    List on-shift active drivers who can take a call.

    A driver qualifies with no assignments at all, or with at least one
    assigned ambulance that is available or offline. Assigned ids with no
    ambulance document do not qualify anyone. hospital_id is not applied,
    as in list_drivers_for_hospital.
    """
    async with store_operation("fetch available drivers"):
        result = await db.execute(
            select(User).where(
                User.role == UserRole.AMBULANCE_DRIVER,
                User.is_active == True
            ).order_by(User.created_at)
        )
        # The availability flag lives inside the JSON map
        on_shift = [driver for driver in result.scalars().all() if driver.is_available]

        statuses = await fetch_ambulance_statuses(
            db, (ambulance_id for driver in on_shift for ambulance_id in driver.assigned_ambulances)
        )

    available = []
    for driver in on_shift:
        assigned = driver.assigned_ambulances
        if not assigned or any(statuses.get(a) in FREE_AMBULANCE_STATUSES for a in assigned):
            available.append(driver)
    return available


def watch_drivers_for_hospital(
    hospital_id: str,
    session_factory: async_sessionmaker = AsyncSessionLocal,
):
    """Live stream of list_drivers_for_hospital, refreshed on user changes."""
    return watch(
        change_feed,
        session_factory,
        lambda db: list_drivers_for_hospital(db, hospital_id),
        [USERS],
    )


def watch_available_drivers(
    hospital_id: str,
    session_factory: async_sessionmaker = AsyncSessionLocal,
):
    """Live stream of list_available_drivers, refreshed on user changes."""
    return watch(
        change_feed,
        session_factory,
        lambda db: list_available_drivers(db, hospital_id),
        [USERS],
    )
