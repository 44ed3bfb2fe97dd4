from datetime import date, datetime
from types import SimpleNamespace
from typing import AsyncGenerator, List, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.auth.permissions import Actor
from app.models.base import Base
from app.models.hr.employee import Employee
from app.models.shared.enums import EmployeeStatus
from app.schemas.scheduling.schedule_schema import ScheduleCreate, ScheduleResponse
from app.services.notification.notification_service import NotificationDispatcher
from app.services.scheduling.schedule_service import ScheduleService
from app.services.scheduling.shift_service import ShiftService
from app.services.scheduling.shift_swap_service import ShiftSwapService

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TENANT_ID = 1
OTHER_TENANT_ID = 2


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every hand-off in memory instead of queueing a Celery task"""

    def __init__(self):
        self.sent: List[Tuple[int, int, int]] = []

    def _enqueue(self, tenant_id, swap_request):
        self.sent.append((tenant_id, swap_request.id, swap_request.requested_to))


class FailingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.attempts = 0

    def _enqueue(self, tenant_id, swap_request):
        self.attempts += 1
        raise ConnectionError("broker unreachable")


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """A naive UTC timestamp in March 2026"""
    return datetime(2026, 3, day, hour, minute)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory schema per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def employees(db_session: AsyncSession) -> dict:
    """alice, bob and carol share the cashier role; dave bakes; erin is inactive; frank is another tenant"""
    rows = {
        "alice": Employee(tenant_id=TENANT_ID, user_id=11, first_name="Alice", last_name="Ng", role="cashier"),
        "bob": Employee(tenant_id=TENANT_ID, user_id=12, first_name="Bob", last_name="Hart", role="cashier"),
        "carol": Employee(tenant_id=TENANT_ID, user_id=13, first_name="Carol", last_name="Diaz", role="Cashier"),
        "dave": Employee(tenant_id=TENANT_ID, user_id=14, first_name="Dave", last_name="Okafor", role="baker"),
        "erin": Employee(
            tenant_id=TENANT_ID, user_id=15, first_name="Erin", last_name="Volk", role="cashier",
            status=EmployeeStatus.INACTIVE,
        ),
        "frank": Employee(tenant_id=OTHER_TENANT_ID, user_id=16, first_name="Frank", last_name="Moss", role="cashier"),
    }
    db_session.add_all(rows.values())
    await db_session.commit()
    # Plain snapshots stay readable after a service rolls the session back
    return {
        name: SimpleNamespace(id=e.id, user_id=e.user_id, role=e.role, full_name=e.full_name)
        for name, e in rows.items()
    }


@pytest.fixture
def manager() -> Actor:
    return Actor(user_id=1, role="Manager")


@pytest.fixture
def staff_actor(employees):
    """Build a staff Actor bound to one of the seeded employees"""
    def _actor(name: str) -> Actor:
        employee = employees[name]
        return Actor(user_id=employee.user_id, role="staff", employee_id=employee.id)
    return _actor


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def shift_service(db_session) -> ShiftService:
    return ShiftService(db_session)


@pytest.fixture
def schedule_service(db_session) -> ScheduleService:
    return ScheduleService(db_session)


@pytest.fixture
def swap_service(db_session, dispatcher) -> ShiftSwapService:
    return ShiftSwapService(db_session, notifier=dispatcher)


@pytest.fixture
async def draft_schedule(schedule_service, manager, employees):
    """A draft schedule for the week of 2 March 2026"""
    schedule = await schedule_service.create_schedule(
        TENANT_ID,
        ScheduleCreate(title="Week 10", start_date=date(2026, 3, 2), end_date=date(2026, 3, 8)),
        manager,
    )
    return ScheduleResponse.model_validate(schedule, from_attributes=True)
