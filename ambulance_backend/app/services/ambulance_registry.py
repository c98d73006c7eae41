"""
Ambulance registry.

Provisioning and upkeep of a hospital's fleet documents.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ambulance_backend.app.core.change_feed import AMBULANCES, ChangeEvent, change_feed, watch
from ambulance_backend.app.core.exceptions import (
    AmbulanceNotFoundError,
    DuplicateLicensePlateError,
    store_operation,
)
from ambulance_backend.app.db.session import AsyncSessionLocal
from ambulance_backend.app.models.ambulance import Ambulance
from ambulance_backend.app.models.enums import AmbulanceStatus
from ambulance_backend.app.models.user import new_document_id
from ambulance_backend.app.schemas.ambulance import AmbulanceCreate, AmbulanceUpdate, FleetStats


class AmbulanceRegistry:

    @staticmethod
    async def _ensure_plate_free(
        db: AsyncSession,
        hospital_id: str,
        license_plate: str,
        exclude_id: Optional[str] = None
    ) -> None:
        query = select(Ambulance.id).where(
            Ambulance.hospital_id == hospital_id,
            Ambulance.license_plate == license_plate,
            Ambulance.is_active == True
        )
        if exclude_id:
            query = query.where(Ambulance.id != exclude_id)

        result = await db.execute(query.limit(1))
        if result.scalar_one_or_none() is not None:
            raise DuplicateLicensePlateError(license_plate)

    @staticmethod
    async def _get_or_raise(db: AsyncSession, ambulance_id: str) -> Ambulance:
        result = await db.execute(select(Ambulance).where(Ambulance.id == ambulance_id))
        ambulance = result.scalar_one_or_none()
        if not ambulance:
            raise AmbulanceNotFoundError(ambulance_id)
        return ambulance

    @staticmethod
    async def create_ambulance(db: AsyncSession, hospital_id: str, data: AmbulanceCreate) -> Ambulance:
        """Register an ambulance; plates are unique among a hospital's active fleet."""
        async with store_operation("create ambulance", db):
            await AmbulanceRegistry._ensure_plate_free(db, hospital_id, data.license_plate)

            now = datetime.utcnow()
            ambulance = Ambulance(
                id=new_document_id(),
                hospital_id=hospital_id,
                license_plate=data.license_plate,
                model=data.model,
                status=data.status.value,
                latitude=data.latitude,
                longitude=data.longitude,
                last_location_update=now if data.latitude is not None and data.longitude is not None else None,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            db.add(ambulance)
            await db.commit()

        await change_feed.publish(ChangeEvent(AMBULANCES, (ambulance.id,)))
        return ambulance

    @staticmethod
    async def get_ambulance(db: AsyncSession, ambulance_id: str) -> Optional[Ambulance]:
        async with store_operation("fetch ambulance"):
            result = await db.execute(select(Ambulance).where(Ambulance.id == ambulance_id))
            return result.scalar_one_or_none()

    @staticmethod
    async def list_ambulances(
        db: AsyncSession,
        hospital_id: str,
        status: Optional[AmbulanceStatus] = None,
        search: Optional[str] = None
    ) -> List[Ambulance]:
        """
        Active ambulances of a hospital.

        Newest first; with a status filter, most recently updated first.
        search matches license plate or model, case-insensitively.
        """
        query = select(Ambulance).where(
            Ambulance.hospital_id == hospital_id,
            Ambulance.is_active == True
        )
        if status is not None:
            query = query.where(Ambulance.status == status.value).order_by(Ambulance.updated_at.desc())
        else:
            query = query.order_by(Ambulance.created_at.desc())

        async with store_operation("fetch ambulances"):
            result = await db.execute(query)
            ambulances = list(result.scalars().all())

        if search:
            needle = search.lower()
            ambulances = [
                a for a in ambulances
                if needle in a.license_plate.lower() or needle in (a.model or "").lower()
            ]
        return ambulances

    @staticmethod
    async def update_ambulance(db: AsyncSession, ambulance_id: str, updates: AmbulanceUpdate) -> Ambulance:
        async with store_operation("update ambulance", db):
            ambulance = await AmbulanceRegistry._get_or_raise(db, ambulance_id)

            changes = updates.model_dump(exclude_unset=True, exclude_none=True)
            if "license_plate" in changes and changes["license_plate"] != ambulance.license_plate:
                await AmbulanceRegistry._ensure_plate_free(
                    db, ambulance.hospital_id, changes["license_plate"], exclude_id=ambulance_id
                )

            for key, value in changes.items():
                setattr(ambulance, key, value)
            ambulance.updated_at = datetime.utcnow()
            await db.commit()

        await change_feed.publish(ChangeEvent(AMBULANCES, (ambulance_id,)))
        return ambulance

    @staticmethod
    async def update_status(db: AsyncSession, ambulance_id: str, status: AmbulanceStatus) -> Ambulance:
        async with store_operation("update status", db):
            ambulance = await AmbulanceRegistry._get_or_raise(db, ambulance_id)
            ambulance.status = status.value
            ambulance.updated_at = datetime.utcnow()
            await db.commit()

        await change_feed.publish(ChangeEvent(AMBULANCES, (ambulance_id,)))
        return ambulance

    @staticmethod
    async def update_location(db: AsyncSession, ambulance_id: str, latitude: float, longitude: float) -> Ambulance:
        async with store_operation("update location", db):
            ambulance = await AmbulanceRegistry._get_or_raise(db, ambulance_id)
            now = datetime.utcnow()
            ambulance.latitude = latitude
            ambulance.longitude = longitude
            ambulance.last_location_update = now
            ambulance.updated_at = now
            await db.commit()

        await change_feed.publish(ChangeEvent(AMBULANCES, (ambulance_id,)))
        return ambulance

    @staticmethod
    async def deactivate_ambulance(db: AsyncSession, ambulance_id: str) -> Ambulance:
        """
        Soft delete: the document stays, inactive, offline and driverless.

        The former driver's assigned_ambulances list keeps the id.
        """
        async with store_operation("delete ambulance", db):
            ambulance = await AmbulanceRegistry._get_or_raise(db, ambulance_id)
            ambulance.is_active = False
            ambulance.status = AmbulanceStatus.OFFLINE.value
            ambulance.current_driver_id = None
            ambulance.updated_at = datetime.utcnow()
            await db.commit()

        await change_feed.publish(ChangeEvent(AMBULANCES, (ambulance_id,)))
        return ambulance

    @staticmethod
    async def get_fleet_stats(db: AsyncSession, hospital_id: str) -> FleetStats:
        """Status breakdown of a hospital's active fleet."""
        async with store_operation("fetch ambulance statistics"):
            result = await db.execute(
                select(Ambulance.status, func.count(Ambulance.id)).where(
                    Ambulance.hospital_id == hospital_id,
                    Ambulance.is_active == True
                ).group_by(Ambulance.status)
            )
            by_status = {status: count for status, count in result.all()}

            with_driver = (await db.execute(
                select(func.count(Ambulance.id)).where(
                    Ambulance.hospital_id == hospital_id,
                    Ambulance.is_active == True,
                    Ambulance.current_driver_id.is_not(None),
                    Ambulance.current_driver_id != ""
                )
            )).scalar() or 0

        return FleetStats(
            total=sum(by_status.values()),
            available=by_status.get(AmbulanceStatus.AVAILABLE.value, 0),
            on_duty=by_status.get(AmbulanceStatus.ON_DUTY.value, 0),
            maintenance=by_status.get(AmbulanceStatus.MAINTENANCE.value, 0),
            offline=by_status.get(AmbulanceStatus.OFFLINE.value, 0),
            with_driver=with_driver,
        )

    @staticmethod
    def watch_ambulances(
        hospital_id: str,
        session_factory: async_sessionmaker = AsyncSessionLocal,
    ):
        """Live stream of the hospital's active fleet."""
        return watch(
            change_feed,
            session_factory,
            lambda db: AmbulanceRegistry.list_ambulances(db, hospital_id),
            [AMBULANCES],
        )
