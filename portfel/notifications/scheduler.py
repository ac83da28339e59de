"""
Notification Scheduler - Keeps one recurring report trigger in sync with settings.

Usage:
    scheduler = NotificationScheduler(storage, service)
    status = await scheduler.schedule(settings)
    if status is ScheduleStatus.PERMISSION_DENIED:
        ...

What has been registered with the notification service is tracked as
ScheduledNotification metadata in storage, so a reschedule can cancel it.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from portfel.errors import NotificationPermissionError, ValidationError
from portfel.models import (
    DayOfWeek,
    Frequency,
    NotificationSettings,
    NotificationTime,
    NotificationType,
    ScheduledNotification,
)
from portfel.notifications.service import NotificationService, RecurringTrigger
from portfel.notifications.settings import is_quiet_time, resolve_zone
from portfel.storage.base import SCHEDULED_NOTIFICATIONS_KEY, StorageAdapter

logger = logging.getLogger(__name__)

TEST_TITLE = "Portfolio Test Notification"
TEST_BODY = "Notifications are working."


class ScheduleStatus(str, Enum):
    """Outcome of NotificationScheduler.schedule()."""

    SCHEDULED = "scheduled"
    UNCHANGED = "unchanged"
    DISABLED = "disabled"
    QUIET_HOURS = "quiet_hours"
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"

    @property
    def ok(self) -> bool:
        return self in (ScheduleStatus.SCHEDULED, ScheduleStatus.UNCHANGED, ScheduleStatus.DISABLED)


def next_trigger(
    frequency: Frequency,
    at: NotificationTime,
    weekly_day: Optional[DayOfWeek],
    now: datetime,
) -> datetime:
    """
    Next time a trigger fires, strictly after ``now``.

    ``now`` should already be in the trigger's timezone; the result keeps
    its tzinfo.
    """
    candidate = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if frequency is Frequency.WEEKLY:
        if weekly_day is None:
            raise ValidationError("Weekly schedule requires weekly_day")
        candidate += timedelta(days=(weekly_day.weekday - now.weekday()) % 7)
        if candidate <= now:
            candidate += timedelta(days=7)
        return candidate

    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationScheduler:
    """Registers, replaces and cancels the recurring report trigger."""

    def __init__(
        self,
        storage: StorageAdapter,
        service: NotificationService,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._storage = storage
        self._service = service
        self._now = now
        self._permission: Optional[bool] = None

    # -------------------------------------------------------------------------
    # Permission
    # -------------------------------------------------------------------------

    async def request_permission(self) -> bool:
        """Ask the notification service for permission and cache the answer."""
        try:
            self._permission = bool(await self._service.request_permission())
        except Exception as e:
            logger.error(f"Notification permission request failed: {e}")
            self._permission = False
        return self._permission

    def has_permission(self) -> bool:
        return bool(self._permission)

    async def _ensure_permission(self) -> bool:
        # Re-ask lazily; the user may have granted it since the last refusal
        if self._permission:
            return True
        return await self.request_permission()

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    async def schedule(self, settings: NotificationSettings, force: bool = False) -> ScheduleStatus:
        """
        Make the registered trigger match ``settings``.

        Args:
            settings: Current notification settings
            force: Re-register even if the tracked trigger already matches

        Returns:
            ScheduleStatus. A quiet-hours rejection leaves any existing trigger
            in place; a permission denial cancels it.
        """
        if not settings.enabled or settings.frequency is Frequency.OFF:
            await self.cancel_all()
            return ScheduleStatus.DISABLED

        if is_quiet_time(settings.quiet_hours, settings.time):
            logger.warning(f"Refusing to schedule reports at {settings.time}: inside quiet hours")
            return ScheduleStatus.QUIET_HOURS

        if not await self._ensure_permission():
            logger.warning("Cannot schedule reports: notification permission denied")
            await self.cancel_all()
            return ScheduleStatus.PERMISSION_DENIED

        existing = await self._load()
        if not force and len(existing) == 1 and existing[0].matches(settings):
            return ScheduleStatus.UNCHANGED

        notification_type = (
            NotificationType.WEEKLY_REPORT if settings.frequency is Frequency.WEEKLY else NotificationType.DAILY_REPORT
        )
        weekly_day = settings.weekly_day if settings.frequency is Frequency.WEEKLY else None
        trigger = RecurringTrigger(
            type=notification_type,
            frequency=settings.frequency,
            hour=settings.time.hour,
            minute=settings.time.minute,
            weekday=weekly_day,
            timezone=settings.timezone,
            title=notification_type.title,
        )

        try:
            for scheduled in existing:
                await self._service.cancel(scheduled.id)
            notification_id = await self._service.schedule_recurring(trigger)
        except NotificationPermissionError as e:
            logger.warning(f"Cannot schedule reports: {e}")
            self._permission = False
            await self.cancel_all()
            return ScheduleStatus.PERMISSION_DENIED
        except Exception as e:
            logger.error(f"Notification service unavailable: {e}")
            return ScheduleStatus.UNAVAILABLE

        now = self._now()
        local_now = now.astimezone(resolve_zone(settings.timezone))
        metadata = ScheduledNotification(
            id=notification_id,
            type=notification_type,
            frequency=settings.frequency,
            time=settings.time,
            weekly_day=weekly_day,
            scheduled_for=now,
            next_trigger=next_trigger(settings.frequency, settings.time, weekly_day, local_now),
            timezone=settings.timezone,
        )
        if not await self._save([metadata]):
            # Untracked triggers could never be cancelled
            await self._cancel_quietly(notification_id)
            return ScheduleStatus.UNAVAILABLE

        logger.info(
            f"Scheduled {notification_type.value} at {settings.time} {settings.timezone}, "
            f"next {metadata.next_trigger.isoformat()}"
        )
        return ScheduleStatus.SCHEDULED

    async def cancel_all(self) -> bool:
        """Cancel every tracked trigger and clear the metadata. Safe to repeat."""
        for scheduled in await self._load():
            await self._cancel_quietly(scheduled.id)
        try:
            await self._storage.remove(SCHEDULED_NOTIFICATIONS_KEY)
        except Exception as e:
            logger.error(f"Failed to clear scheduled notifications: {e}")
            return False
        return True

    async def cancel(self, notification_id: str) -> bool:
        """
        Cancel one tracked trigger.

        Returns:
            False if the id is not tracked or the metadata could not be written
        """
        existing = await self._load()
        remaining = [s for s in existing if s.id != notification_id]
        if len(remaining) == len(existing):
            return False
        await self._cancel_quietly(notification_id)
        return await self._save(remaining)

    async def get_scheduled(self) -> list[ScheduledNotification]:
        return await self._load()

    async def send_test(self) -> bool:
        """Send an immediate notification, ignoring schedule and quiet hours."""
        if not await self._ensure_permission():
            logger.warning("Cannot send test notification: permission denied")
            return False
        try:
            await self._service.send_immediate(TEST_TITLE, TEST_BODY)
        except NotificationPermissionError as e:
            logger.warning(f"Cannot send test notification: {e}")
            self._permission = False
            return False
        except Exception as e:
            logger.error(f"Failed to send test notification: {e}")
            return False
        return True

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    async def _cancel_quietly(self, notification_id: str) -> None:
        try:
            await self._service.cancel(notification_id)
        except Exception as e:
            logger.error(f"Failed to cancel notification {notification_id}: {e}")

    async def _load(self) -> list[ScheduledNotification]:
        try:
            raw = await self._storage.get(SCHEDULED_NOTIFICATIONS_KEY)
            if not raw:
                return []
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValidationError("Scheduled notifications payload is not a list")
            return [ScheduledNotification.from_dict(item) for item in data]
        except Exception as e:
            logger.error(f"Failed to load scheduled notifications: {e}")
            return []

    async def _save(self, scheduled: list[ScheduledNotification]) -> bool:
        try:
            await self._storage.set(SCHEDULED_NOTIFICATIONS_KEY, json.dumps([s.to_dict() for s in scheduled]))
        except Exception as e:
            logger.error(f"Failed to save scheduled notifications: {e}")
            return False
        return True
