"""
Centralized Test Configuration.
"""

import uuid
from datetime import datetime

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from ambulance_backend.app.main import app
from ambulance_backend.app.db.session import get_db, get_session_factory, Base
from ambulance_backend.app.core.jwt import create_access_token
from ambulance_backend.app.models.ambulance import Ambulance
from ambulance_backend.app.models.enums import AmbulanceStatus, UserRole
from ambulance_backend.app.models.user import User, new_document_id

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for the change relay
class MockRedis:
    def __init__(self, fail: bool = False):
        self.published = []
        self.fail = fail

    async def publish(self, channel, message):
        if self.fail:
            raise ConnectionError("Redis is down")
        self.published.append((channel, message))
        return 1

    async def ping(self):
        return not self.fail


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Apply overrides once for the session."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal


async def reload(db: AsyncSession, model, document_id: str):
    """Re-read a document, discarding whatever the session has cached."""
    return await db.get(model, document_id, populate_existing=True)


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_driver(db_session):
    """Factory for driver documents."""
    async def _make(assigned=None, is_available=True, is_active=True, driver_id=None):
        driver_id = driver_id or new_document_id()
        driver = User(
            id=driver_id,
            email=f"{driver_id}@drivers.test",
            role=UserRole.AMBULANCE_DRIVER,
            first_name="Test",
            last_name="Driver",
            is_active=is_active,
            role_specific_data={
                "license_number": "DL-TEST",
                "is_available": is_available,
                "last_availability_update": datetime.utcnow().isoformat(),
                "assigned_ambulances": list(assigned or []),
            },
        )
        db_session.add(driver)
        await db_session.commit()
        return driver
    return _make


@pytest.fixture
def make_ambulance(db_session):
    """Factory for ambulance documents."""
    async def _make(status=AmbulanceStatus.AVAILABLE, hospital_id="hospital-1", current_driver_id=None, ambulance_id=None):
        ambulance = Ambulance(
            id=ambulance_id or new_document_id(),
            hospital_id=hospital_id,
            license_plate=f"KA-{uuid.uuid4().hex[:6].upper()}",
            model="Force Traveller",
            status=status.value,
            current_driver_id=current_driver_id,
        )
        db_session.add(ambulance)
        await db_session.commit()
        return ambulance
    return _make


@pytest.fixture
def make_hospital_user(db_session):
    """Factory for hospital admin / staff users."""
    async def _make(role=UserRole.HOSPITAL_STAFF, hospital_id="hospital-1", is_active=True):
        user_id = new_document_id()
        user = User(
            id=user_id,
            email=f"{user_id}@hospital.test",
            role=role,
            is_active=is_active,
            role_specific_data={"hospital_id": hospital_id},
        )
        db_session.add(user)
        await db_session.commit()
        return user
    return _make
