import pytest
from datetime import date

from app.auth.permissions import Actor
from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError, StateConflictError, ValidationError
from app.models.shared.enums import ScheduleStatus
from app.schemas.scheduling.schedule_schema import ScheduleCreate, ScheduleUpdate
from app.schemas.scheduling.shift_schema import ShiftCreate
from tests.conftest import OTHER_TENANT_ID, TENANT_ID, at


def week(title, start_day, end_day):
    return ScheduleCreate(title=title, start_date=date(2026, 3, start_day), end_date=date(2026, 3, end_day))


@pytest.mark.asyncio
class TestScheduleLifecycle:
    """Draft -> published -> locked and back"""

    async def test_create_starts_as_draft(self, draft_schedule, manager):
        assert draft_schedule.status == ScheduleStatus.DRAFT
        assert draft_schedule.tenant_id == TENANT_ID
        assert draft_schedule.created_by == manager.user_id
        assert draft_schedule.published_at is None

    async def test_staff_cannot_create_schedules(self, schedule_service, staff_actor):
        with pytest.raises(PermissionDeniedError):
            await schedule_service.create_schedule(TENANT_ID, week("Week 11", 9, 15), staff_actor("alice"))

    async def test_publish_sets_audit_fields(self, schedule_service, shift_service, draft_schedule, manager, employees):
        await shift_service.create_shift(
            draft_schedule.id, TENANT_ID,
            ShiftCreate(start_time=at(2, 9), end_time=at(2, 17), employee_id=employees["alice"].id),
            manager,
        )
        await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(3, 9), end_time=at(3, 17)), manager
        )

        result = await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        assert result.schedule.status == ScheduleStatus.PUBLISHED
        assert result.schedule.published_by == manager.user_id
        assert result.schedule.published_at is not None
        assert result.notifications_sent == 1

    async def test_publish_with_conflicts_fails(self, schedule_service, shift_service, draft_schedule, manager, employees):
        alice = employees["alice"].id
        await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(2, 9), end_time=at(2, 17), employee_id=alice), manager
        )
        await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(2, 10), end_time=at(2, 18), employee_id=alice), manager
        )

        with pytest.raises(StateConflictError) as exc:
            await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        assert exc.value.detail == "Cannot publish schedule with 2 unresolved conflicts"
        detail = await schedule_service.get_schedule(draft_schedule.id, TENANT_ID)
        assert detail.status == ScheduleStatus.DRAFT

    async def test_publish_requires_draft(self, schedule_service, draft_schedule, manager):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        with pytest.raises(StateConflictError) as exc:
            await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)
        assert exc.value.detail == "Only draft schedules can be published"

    async def test_publish_rejects_overlapping_published_schedule(self, schedule_service, draft_schedule, manager):
        other = await schedule_service.create_schedule(TENANT_ID, week("Week 10b", 8, 14), manager)
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        with pytest.raises(StateConflictError) as exc:
            await schedule_service.publish_schedule(other.id, TENANT_ID, manager)
        assert exc.value.detail == "Another published schedule exists for overlapping dates"

    async def test_create_rejects_overlap_with_published(self, schedule_service, draft_schedule, manager):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        with pytest.raises(StateConflictError) as exc:
            await schedule_service.create_schedule(TENANT_ID, week("Overlap", 8, 14), manager)
        assert exc.value.detail == "A published schedule already exists for overlapping dates"

        adjacent = await schedule_service.create_schedule(TENANT_ID, week("Week 11", 9, 15), manager)
        assert adjacent.status == ScheduleStatus.DRAFT

    async def test_published_schedules_are_isolated_per_tenant(self, schedule_service, draft_schedule, manager):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        other = await schedule_service.create_schedule(OTHER_TENANT_ID, week("Week 10", 2, 8), manager)
        result = await schedule_service.publish_schedule(other.id, OTHER_TENANT_ID, manager)
        assert result.schedule.status == ScheduleStatus.PUBLISHED

    async def test_unpublish_returns_to_draft(self, schedule_service, draft_schedule, manager):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        schedule = await schedule_service.unpublish_schedule(draft_schedule.id, TENANT_ID, manager)

        assert schedule.status == ScheduleStatus.DRAFT
        assert schedule.published_at is None
        assert schedule.published_by is None

    async def test_unpublish_requires_published(self, schedule_service, draft_schedule, manager):
        with pytest.raises(StateConflictError):
            await schedule_service.unpublish_schedule(draft_schedule.id, TENANT_ID, manager)

    async def test_lock_and_unlock(self, schedule_service, shift_service, draft_schedule, manager, employees):
        shift = await shift_service.create_shift(
            draft_schedule.id, TENANT_ID,
            ShiftCreate(start_time=at(2, 9), end_time=at(2, 17), employee_id=employees["bob"].id),
            manager,
        )
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)

        locked = await schedule_service.lock_schedule(draft_schedule.id, TENANT_ID, manager, reason="Payroll run")
        assert locked.status == ScheduleStatus.LOCKED
        assert locked.locked_by == manager.user_id
        assert locked.lock_reason == "Payroll run"

        unlocked = await schedule_service.unlock_schedule(draft_schedule.id, TENANT_ID, manager, reason="Late correction")
        assert unlocked.status == ScheduleStatus.PUBLISHED
        assert unlocked.locked_at is None
        assert unlocked.unlock_reason == "Late correction"
        assert unlocked.unlocked_by == manager.user_id

        reloaded = await shift_service.get_shift(shift.id, TENANT_ID)
        assert reloaded.employee_id == employees["bob"].id

    async def test_lock_requires_published(self, schedule_service, draft_schedule, manager):
        with pytest.raises(StateConflictError) as exc:
            await schedule_service.lock_schedule(draft_schedule.id, TENANT_ID, manager)
        assert exc.value.detail == "Only published schedules can be locked"

    @pytest.mark.parametrize("reason", [None, "", "   "])
    async def test_unlock_requires_reason(self, schedule_service, draft_schedule, manager, reason):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)
        await schedule_service.lock_schedule(draft_schedule.id, TENANT_ID, manager)

        with pytest.raises(StateConflictError) as exc:
            await schedule_service.unlock_schedule(draft_schedule.id, TENANT_ID, manager, reason=reason)
        assert exc.value.detail == "Unlock reason is required"

        detail = await schedule_service.get_schedule(draft_schedule.id, TENANT_ID)
        assert detail.status == ScheduleStatus.LOCKED

    async def test_unlock_requires_locked(self, schedule_service, draft_schedule, manager):
        with pytest.raises(StateConflictError):
            await schedule_service.unlock_schedule(draft_schedule.id, TENANT_ID, manager, reason="why")


@pytest.mark.asyncio
class TestScheduleCrud:
    async def test_update_draft(self, schedule_service, draft_schedule, manager):
        schedule = await schedule_service.update_schedule(
            draft_schedule.id, TENANT_ID, ScheduleUpdate(title="Week 10 (final)", notes="Extra cover"), manager
        )
        assert schedule.title == "Week 10 (final)"
        assert schedule.notes == "Extra cover"
        assert schedule.start_date == date(2026, 3, 2)

    async def test_update_rejects_inverted_dates(self, schedule_service, draft_schedule, manager):
        with pytest.raises(ValidationError):
            await schedule_service.update_schedule(
                draft_schedule.id, TENANT_ID, ScheduleUpdate(end_date=date(2026, 3, 1)), manager
            )

    async def test_update_locked_fails(self, schedule_service, draft_schedule, manager):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)
        await schedule_service.lock_schedule(draft_schedule.id, TENANT_ID, manager)

        with pytest.raises(StateConflictError):
            await schedule_service.update_schedule(draft_schedule.id, TENANT_ID, ScheduleUpdate(title="x"), manager)

    async def test_moving_published_dates_rechecks_overlap(self, schedule_service, draft_schedule, manager):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)
        later = await schedule_service.create_schedule(TENANT_ID, week("Week 11", 9, 15), manager)
        await schedule_service.publish_schedule(later.id, TENANT_ID, manager)

        with pytest.raises(StateConflictError):
            await schedule_service.update_schedule(
                later.id, TENANT_ID, ScheduleUpdate(start_date=date(2026, 3, 8)), manager
            )

    async def test_moving_published_department_rechecks_overlap(self, schedule_service, manager, monkeypatch):
        monkeypatch.setattr(settings, "SCHEDULE_OVERLAP_PER_DEPARTMENT", True)
        bakery = await schedule_service.create_schedule(
            TENANT_ID, ScheduleCreate(title="Bakery", start_date=date(2026, 3, 2), end_date=date(2026, 3, 8), department_id=1), manager
        )
        await schedule_service.publish_schedule(bakery.id, TENANT_ID, manager)
        tills = await schedule_service.create_schedule(
            TENANT_ID, ScheduleCreate(title="Tills", start_date=date(2026, 3, 2), end_date=date(2026, 3, 8), department_id=2), manager
        )
        await schedule_service.publish_schedule(tills.id, TENANT_ID, manager)
        tills_id = tills.id

        with pytest.raises(StateConflictError) as exc:
            await schedule_service.update_schedule(tills_id, TENANT_ID, ScheduleUpdate(department_id=1), manager)
        assert exc.value.detail == "Another published schedule exists for overlapping dates"

        unchanged = await schedule_service.get_schedule(tills_id, TENANT_ID)
        assert unchanged.department_id == 2

    async def test_delete_draft_is_soft(self, schedule_service, draft_schedule, manager):
        result = await schedule_service.delete_schedule(draft_schedule.id, TENANT_ID, manager)
        assert result["success"] is True

        with pytest.raises(NotFoundError):
            await schedule_service.get_schedule(draft_schedule.id, TENANT_ID)
        assert await schedule_service.get_schedules(TENANT_ID) == []

    @pytest.mark.parametrize("lock", [False, True])
    async def test_delete_requires_draft(self, schedule_service, draft_schedule, manager, lock):
        await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, manager)
        if lock:
            await schedule_service.lock_schedule(draft_schedule.id, TENANT_ID, manager)

        with pytest.raises(StateConflictError):
            await schedule_service.delete_schedule(draft_schedule.id, TENANT_ID, manager)

    async def test_get_schedule_from_other_tenant_is_not_found(self, schedule_service, draft_schedule):
        with pytest.raises(NotFoundError):
            await schedule_service.get_schedule(draft_schedule.id, OTHER_TENANT_ID)

    async def test_list_with_counts_and_filters(self, schedule_service, shift_service, draft_schedule, manager, employees):
        alice = employees["alice"].id
        await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(2, 9), end_time=at(2, 17), employee_id=alice), manager
        )
        await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(2, 12), end_time=at(2, 20), employee_id=alice), manager
        )
        await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(4, 9), end_time=at(4, 17)), manager
        )
        later = await schedule_service.create_schedule(TENANT_ID, week("Week 11", 9, 15), manager)

        schedules = await schedule_service.get_schedules(TENANT_ID)
        assert [s.id for s in schedules] == [later.id, draft_schedule.id]
        assert (schedules[1].shift_count, schedules[1].conflict_count) == (3, 2)
        assert (schedules[0].shift_count, schedules[0].conflict_count) == (0, 0)

        in_range = await schedule_service.get_schedules(
            TENANT_ID, start_date=date(2026, 3, 10), end_date=date(2026, 3, 20)
        )
        assert [s.id for s in in_range] == [later.id]

        drafts = await schedule_service.get_schedules(TENANT_ID, status=ScheduleStatus.DRAFT)
        assert len(drafts) == 2

    async def test_get_schedule_includes_ordered_shifts(self, schedule_service, shift_service, draft_schedule, manager):
        late = await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(5, 9), end_time=at(5, 17)), manager
        )
        early = await shift_service.create_shift(
            draft_schedule.id, TENANT_ID, ShiftCreate(start_time=at(3, 9), end_time=at(3, 17)), manager
        )

        detail = await schedule_service.get_schedule(draft_schedule.id, TENANT_ID)

        assert [s.id for s in detail.shifts] == [early.id, late.id]
        assert detail.shift_count == 2
        assert detail.conflict_count == 0

    async def test_staff_cannot_publish(self, schedule_service, draft_schedule):
        staff = Actor(user_id=50, role="staff", employee_id=None)
        with pytest.raises(PermissionDeniedError):
            await schedule_service.publish_schedule(draft_schedule.id, TENANT_ID, staff)
