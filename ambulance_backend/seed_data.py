"""
Database seeding script for development.

Creates a hospital admin, a dispatcher, two drivers and a small fleet, and
prints a bearer token for each user. Users normally come from the upstream
identity provider; this stands in for it locally.
"""

import asyncio
from datetime import datetime, timedelta

from sqlalchemy import select

from ambulance_backend.app.core.jwt import create_access_token
from ambulance_backend.app.db.session import AsyncSessionLocal, engine, Base
from ambulance_backend.app.models.ambulance import Ambulance
from ambulance_backend.app.models.audit_log import AuditLog  # noqa: F401 - registers the table
from ambulance_backend.app.models.enums import AmbulanceStatus, UserRole
from ambulance_backend.app.models.user import User

HOSPITAL_ID = "hospital-001"


async def seed():
    """
    Seed initial users and ambulances.

    Creates:
    - 1 HOSPITAL_ADMIN and 1 HOSPITAL_STAFF for HOSPITAL_ID
    - 2 AMBULANCE_DRIVER users, one on shift
    - 3 ambulances, the first assigned to the on-shift driver
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        result = await db.execute(select(User).where(User.email == "admin@dispatch.local"))
        if result.scalar_one_or_none():
            print("ℹ️  Seed data already present, skipping")
            return

        now = datetime.utcnow()
        admin = User(
            id="admin-001", email="admin@dispatch.local", role=UserRole.HOSPITAL_ADMIN,
            first_name="Asha", last_name="Rao",
            role_specific_data={"hospital_id": HOSPITAL_ID},
        )
        staff = User(
            id="staff-001", email="dispatch@dispatch.local", role=UserRole.HOSPITAL_STAFF,
            first_name="Ravi", last_name="Kumar",
            role_specific_data={"hospital_id": HOSPITAL_ID},
        )
        driver_on = User(
            id="driver-001", email="driver1@dispatch.local", role=UserRole.AMBULANCE_DRIVER,
            first_name="Meena", last_name="Iyer",
            role_specific_data={
                "license_number": "DL-0001",
                "is_available": True,
                "last_availability_update": now.isoformat(),
                "assigned_ambulances": ["amb-001"],
            },
        )
        driver_off = User(
            id="driver-002", email="driver2@dispatch.local", role=UserRole.AMBULANCE_DRIVER,
            first_name="Vikram", last_name="Singh",
            role_specific_data={
                "license_number": "DL-0002",
                "is_available": False,
                "last_availability_update": (now - timedelta(hours=8)).isoformat(),
                "assigned_ambulances": [],
            },
        )
        db.add_all([admin, staff, driver_on, driver_off])

        db.add_all([
            Ambulance(id="amb-001", hospital_id=HOSPITAL_ID, license_plate="KA-01-AB-1001", model="Force Traveller",
                      status=AmbulanceStatus.AVAILABLE.value, current_driver_id="driver-001"),
            Ambulance(id="amb-002", hospital_id=HOSPITAL_ID, license_plate="KA-01-AB-1002", model="Tata Winger",
                      status=AmbulanceStatus.OFFLINE.value),
            Ambulance(id="amb-003", hospital_id=HOSPITAL_ID, license_plate="KA-01-AB-1003", model="Tata Winger",
                      status=AmbulanceStatus.MAINTENANCE.value),
        ])

        await db.commit()
        print("✅ Created 4 users and 3 ambulances")

        print("\nBearer tokens (valid for the configured expiry):")
        for user in (admin, staff, driver_on, driver_off):
            token = create_access_token({"sub": user.id, "role": user.role.value})
            print(f"  - {user.role.value:17} {user.id}: {token}")


if __name__ == "__main__":
    asyncio.run(seed())
