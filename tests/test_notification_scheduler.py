"""Tests for NotificationScheduler.

These tests verify:
1. Daily and weekly triggers are registered with the right parameters
2. Rescheduling replaces the tracked trigger (and is skipped when unchanged)
3. Disabled / off settings cancel everything
4. Quiet-hours rejections have no side effects; permission denials cancel tracked triggers
5. Service failures are reported, not raised
"""

import json
from datetime import datetime, timezone

import pytest
from conftest import CountingStorage, FailingStorage, FakeNotificationService, FixedNow

from portfel.models import DayOfWeek, Frequency, NotificationTime, NotificationType
from portfel.notifications.scheduler import TEST_TITLE, NotificationScheduler, ScheduleStatus, next_trigger
from portfel.notifications.settings import default_settings
from portfel.storage.base import SCHEDULED_NOTIFICATIONS_KEY

# Saturday
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_settings(**changes):
    base = {"enabled": True}
    base.update(changes)
    return default_settings("UTC").merged(base)


@pytest.fixture
def scheduler_storage():
    return CountingStorage()


@pytest.fixture
def scheduler(scheduler_storage, service):
    return NotificationScheduler(scheduler_storage, service, now=FixedNow(NOW))


class TestNextTrigger:
    """Tests for next_trigger()."""

    def test_daily_later_today(self):
        result = next_trigger(Frequency.DAILY, NotificationTime(18, 0), None, NOW)
        assert result == datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)

    def test_daily_time_passed_rolls_to_tomorrow(self):
        result = next_trigger(Frequency.DAILY, NotificationTime(9, 0), None, NOW)
        assert result == datetime(2024, 6, 2, 9, 0, tzinfo=timezone.utc)

    def test_daily_exact_now_rolls_to_tomorrow(self):
        result = next_trigger(Frequency.DAILY, NotificationTime(12, 0), None, NOW)
        assert result == datetime(2024, 6, 2, 12, 0, tzinfo=timezone.utc)

    def test_weekly_next_monday(self):
        result = next_trigger(Frequency.WEEKLY, NotificationTime(18, 0), DayOfWeek.MONDAY, NOW)
        assert result == datetime(2024, 6, 3, 18, 0, tzinfo=timezone.utc)

    def test_weekly_same_day_later(self):
        result = next_trigger(Frequency.WEEKLY, NotificationTime(18, 0), DayOfWeek.SATURDAY, NOW)
        assert result == datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)

    def test_weekly_same_day_passed(self):
        result = next_trigger(Frequency.WEEKLY, NotificationTime(8, 0), DayOfWeek.SATURDAY, NOW)
        assert result == datetime(2024, 6, 8, 8, 0, tzinfo=timezone.utc)


class TestSchedule:
    """Tests for schedule()."""

    @pytest.mark.asyncio
    async def test_daily(self, scheduler, service, scheduler_storage):
        status = await scheduler.schedule(make_settings())

        assert status is ScheduleStatus.SCHEDULED
        assert len(service.scheduled) == 1
        trigger = next(iter(service.scheduled.values()))
        assert trigger.type is NotificationType.DAILY_REPORT
        assert trigger.frequency is Frequency.DAILY
        assert (trigger.hour, trigger.minute) == (18, 0)
        assert trigger.weekday is None
        assert trigger.timezone == "UTC"

        scheduled = await scheduler.get_scheduled()
        assert len(scheduled) == 1
        assert scheduled[0].id in service.scheduled
        assert scheduled[0].next_trigger == datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)
        stored = json.loads(await scheduler_storage.get(SCHEDULED_NOTIFICATIONS_KEY))
        assert stored[0]["frequency"] == "daily"

    @pytest.mark.asyncio
    async def test_weekly(self, scheduler, service):
        status = await scheduler.schedule(make_settings(frequency="weekly", weekly_day="wednesday"))

        assert status is ScheduleStatus.SCHEDULED
        trigger = next(iter(service.scheduled.values()))
        assert trigger.type is NotificationType.WEEKLY_REPORT
        assert trigger.weekday is DayOfWeek.WEDNESDAY
        assert (await scheduler.get_scheduled())[0].next_trigger.day == 5

    @pytest.mark.asyncio
    async def test_next_trigger_uses_settings_timezone(self, scheduler):
        await scheduler.schedule(make_settings(timezone="Europe/Warsaw"))
        next_fire = (await scheduler.get_scheduled())[0].next_trigger
        # 12:00 UTC is 14:00 in Warsaw, so 18:00 local is still today
        assert next_fire.hour == 18
        assert next_fire.day == 1
        assert next_fire.utcoffset().total_seconds() == 2 * 3600

    @pytest.mark.asyncio
    async def test_unchanged_settings_do_not_reschedule(self, scheduler, service):
        settings = make_settings()
        await scheduler.schedule(settings)

        status = await scheduler.schedule(settings)

        assert status is ScheduleStatus.UNCHANGED
        assert len(service.scheduled) == 1
        assert service.cancelled == []

    @pytest.mark.asyncio
    async def test_force_reschedules(self, scheduler, service):
        settings = make_settings()
        await scheduler.schedule(settings)
        first_id = next(iter(service.scheduled))

        status = await scheduler.schedule(settings, force=True)

        assert status is ScheduleStatus.SCHEDULED
        assert service.cancelled == [first_id]
        assert len(service.scheduled) == 1

    @pytest.mark.asyncio
    async def test_changed_time_replaces_trigger(self, scheduler, service):
        await scheduler.schedule(make_settings())
        first_id = next(iter(service.scheduled))

        await scheduler.schedule(make_settings(time={"hour": 8, "minute": 15}))

        assert service.cancelled == [first_id]
        assert len(service.scheduled) == 1
        scheduled = await scheduler.get_scheduled()
        assert len(scheduled) == 1
        assert scheduled[0].time == NotificationTime(8, 15)

    @pytest.mark.asyncio
    async def test_changed_timezone_replaces_trigger(self, scheduler, service):
        await scheduler.schedule(make_settings())
        status = await scheduler.schedule(make_settings(timezone="Europe/Warsaw"))
        assert status is ScheduleStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_disabled_cancels_everything(self, scheduler, service):
        await scheduler.schedule(make_settings())

        status = await scheduler.schedule(make_settings(enabled=False))

        assert status is ScheduleStatus.DISABLED
        assert service.scheduled == {}
        assert await scheduler.get_scheduled() == []

    @pytest.mark.asyncio
    async def test_frequency_off_cancels_everything(self, scheduler, service):
        await scheduler.schedule(make_settings())
        status = await scheduler.schedule(make_settings(frequency="off"))
        assert status is ScheduleStatus.DISABLED
        assert service.scheduled == {}

    @pytest.mark.asyncio
    async def test_time_inside_quiet_hours_rejected(self, scheduler, service):
        await scheduler.schedule(make_settings())

        status = await scheduler.schedule(
            make_settings(time={"hour": 23, "minute": 0}, quiet_hours={"enabled": True})
        )

        assert status is ScheduleStatus.QUIET_HOURS
        assert not status.ok
        assert service.cancelled == []
        assert len(await scheduler.get_scheduled()) == 1

    @pytest.mark.asyncio
    async def test_time_outside_quiet_hours_allowed(self, scheduler):
        status = await scheduler.schedule(make_settings(quiet_hours={"enabled": True}))
        assert status is ScheduleStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_permission_denied(self, scheduler_storage):
        service = FakeNotificationService(granted=False)
        scheduler = NotificationScheduler(scheduler_storage, service, now=FixedNow(NOW))

        status = await scheduler.schedule(make_settings())

        assert status is ScheduleStatus.PERMISSION_DENIED
        assert service.scheduled == {}
        assert await scheduler.get_scheduled() == []

    @pytest.mark.asyncio
    async def test_permission_denied_cancels_previous_trigger(self, scheduler_storage, scheduler):
        await scheduler.schedule(make_settings())
        previous_id = (await scheduler.get_scheduled())[0].id

        service = FakeNotificationService(granted=False)
        denied = NotificationScheduler(scheduler_storage, service, now=FixedNow(NOW))
        status = await denied.schedule(make_settings(time={"hour": 9, "minute": 0}))

        assert status is ScheduleStatus.PERMISSION_DENIED
        assert service.cancelled == [previous_id]
        assert await denied.get_scheduled() == []

    @pytest.mark.asyncio
    async def test_permission_revoked_after_grant(self, scheduler, service):
        await scheduler.schedule(make_settings())
        previous_id = next(iter(service.scheduled))

        service.granted = False
        status = await scheduler.schedule(make_settings(time={"hour": 9, "minute": 0}))

        assert status is ScheduleStatus.PERMISSION_DENIED
        assert service.scheduled == {}
        assert previous_id in service.cancelled
        assert await scheduler.get_scheduled() == []
        assert scheduler.has_permission() is False

    @pytest.mark.asyncio
    async def test_permission_rechecked_after_denial(self, scheduler_storage):
        service = FakeNotificationService(granted=False)
        scheduler = NotificationScheduler(scheduler_storage, service, now=FixedNow(NOW))
        await scheduler.schedule(make_settings())

        service.granted = True
        status = await scheduler.schedule(make_settings())

        assert status is ScheduleStatus.SCHEDULED
        assert service.permission_requests == 2

    @pytest.mark.asyncio
    async def test_granted_permission_is_cached(self, scheduler, service):
        await scheduler.schedule(make_settings())
        await scheduler.schedule(make_settings(time={"hour": 9, "minute": 0}))
        assert service.permission_requests == 1

    @pytest.mark.asyncio
    async def test_service_unavailable(self, scheduler_storage):
        service = FakeNotificationService(available=False)
        scheduler = NotificationScheduler(scheduler_storage, service, now=FixedNow(NOW))

        status = await scheduler.schedule(make_settings())

        assert status is ScheduleStatus.UNAVAILABLE
        assert await scheduler.get_scheduled() == []

    @pytest.mark.asyncio
    async def test_metadata_write_failure_cancels_new_trigger(self, service):
        scheduler = NotificationScheduler(FailingStorage(fail_writes=True), service, now=FixedNow(NOW))

        status = await scheduler.schedule(make_settings())

        assert status is ScheduleStatus.UNAVAILABLE
        assert service.scheduled == {}
        assert len(service.cancelled) == 1


class TestCancel:
    """Tests for cancel_all() and cancel()."""

    @pytest.mark.asyncio
    async def test_cancel_all_is_idempotent(self, scheduler, service):
        await scheduler.schedule(make_settings())

        assert await scheduler.cancel_all() is True
        assert await scheduler.cancel_all() is True

        assert service.scheduled == {}
        assert len(service.cancelled) == 1
        assert await scheduler.get_scheduled() == []

    @pytest.mark.asyncio
    async def test_cancel_tracked_id(self, scheduler, service):
        await scheduler.schedule(make_settings())
        notification_id = (await scheduler.get_scheduled())[0].id

        assert await scheduler.cancel(notification_id) is True
        assert await scheduler.get_scheduled() == []
        assert service.cancelled == [notification_id]

    @pytest.mark.asyncio
    async def test_cancel_unknown_id(self, scheduler):
        assert await scheduler.cancel("nope") is False


class TestPermissionAndTest:
    """Tests for permission handling and send_test()."""

    @pytest.mark.asyncio
    async def test_has_permission_after_request(self, scheduler):
        assert scheduler.has_permission() is False
        assert await scheduler.request_permission() is True
        assert scheduler.has_permission() is True

    @pytest.mark.asyncio
    async def test_send_test(self, scheduler, service):
        assert await scheduler.send_test() is True
        assert service.sent[0][0] == TEST_TITLE

    @pytest.mark.asyncio
    async def test_send_test_denied(self, scheduler_storage):
        service = FakeNotificationService(granted=False)
        scheduler = NotificationScheduler(scheduler_storage, service)
        assert await scheduler.send_test() is False
        assert service.sent == []

    @pytest.mark.asyncio
    async def test_send_test_service_failure(self, scheduler_storage):
        service = FakeNotificationService(available=False)
        scheduler = NotificationScheduler(scheduler_storage, service)
        assert await scheduler.send_test() is False
