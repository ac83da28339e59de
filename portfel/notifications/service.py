"""Notification service boundary and the APScheduler-backed local implementation."""

from __future__ import annotations

import inspect
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from portfel.errors import NotificationPermissionError, NotificationUnavailableError
from portfel.models import DayOfWeek, Frequency, NotificationType

logger = logging.getLogger(__name__)

# Most recent deliveries kept in LocalNotificationService.sent
SENT_HISTORY_SIZE = 50


@dataclass(frozen=True)
class RecurringTrigger:
    """What to register with the notification service."""

    type: NotificationType
    frequency: Frequency
    hour: int
    minute: int
    weekday: Optional[DayOfWeek]
    timezone: str
    title: str
    body: str = ""


@dataclass(frozen=True)
class DeliveredNotification:
    title: str
    body: str
    sent_at: datetime


@runtime_checkable
class NotificationService(Protocol):
    """Host notification mechanism: permission, recurring triggers, immediate sends."""

    async def request_permission(self) -> bool: ...

    async def schedule_recurring(self, trigger: RecurringTrigger) -> str: ...

    async def cancel(self, notification_id: str) -> None: ...

    async def send_immediate(self, title: str, body: str) -> None: ...


TriggerHandler = Callable[[RecurringTrigger], Awaitable[Any]]
Sink = Callable[[DeliveredNotification], Any]


class LocalNotificationService:
    """
    In-process notification service.

    Recurring triggers become APScheduler cron jobs. When a job fires, the
    registered trigger handler runs (report generation and delivery); without
    a handler the trigger's own title and body are sent. Delivered
    notifications go to ``sink`` (logged by default); the most recent
    ``sent_history`` of them are kept in ``sent``.
    """

    def __init__(
        self,
        permission_granted: bool = True,
        sink: Optional[Sink] = None,
        sent_history: int = SENT_HISTORY_SIZE,
    ):
        self._permission_granted = permission_granted
        self._sink = sink
        self._handler: Optional[TriggerHandler] = None
        self._scheduler: AsyncIOScheduler | None = None
        self.sent: deque[DeliveredNotification] = deque(maxlen=sent_history)

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    async def start(self) -> None:
        """Create and start the scheduler. Idempotent."""
        if self._scheduler:
            return

        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,  # If multiple runs are missed, only run once
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )
        self._scheduler.start()
        logger.info("Notification scheduler started")

    async def stop(self) -> None:
        """Shutdown the scheduler. Registered triggers are dropped."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Notification scheduler stopped")

    def set_trigger_handler(self, handler: Optional[TriggerHandler]) -> None:
        self._handler = handler

    def set_permission(self, granted: bool) -> None:
        self._permission_granted = granted

    async def request_permission(self) -> bool:
        return self._permission_granted

    async def schedule_recurring(self, trigger: RecurringTrigger) -> str:
        """
        Register a cron job for ``trigger``.

        Returns:
            The job id, usable with cancel()

        Raises:
            NotificationPermissionError: permission is not granted
            NotificationUnavailableError: the scheduler is not running or rejected the job
        """
        if not self._permission_granted:
            raise NotificationPermissionError("Notification permission not granted")
        if not self._scheduler:
            raise NotificationUnavailableError("Notification scheduler is not running")

        cron = {"hour": trigger.hour, "minute": trigger.minute, "timezone": trigger.timezone}
        if trigger.frequency is Frequency.WEEKLY:
            if trigger.weekday is None:
                raise NotificationUnavailableError("Weekly trigger requires a weekday")
            cron["day_of_week"] = trigger.weekday.cron_day

        job_id = f"{trigger.type.value}-{uuid.uuid4().hex[:12]}"
        try:
            self._scheduler.add_job(
                self._fire,
                CronTrigger(**cron),
                id=job_id,
                name=trigger.title,
                args=[trigger],
                replace_existing=True,
            )
        except Exception as e:
            raise NotificationUnavailableError(f"Failed to register {job_id}: {e}") from e

        logger.debug(f"Added notification job {job_id} ({trigger.frequency.value} at {trigger.hour:02d}:{trigger.minute:02d})")
        return job_id

    async def cancel(self, notification_id: str) -> None:
        """Remove a registered job. Unknown ids are ignored."""
        if not self._scheduler:
            return
        try:
            self._scheduler.remove_job(notification_id)
        except JobLookupError:
            logger.debug(f"Notification job {notification_id} not found")

    async def send_immediate(self, title: str, body: str) -> None:
        if not self._permission_granted:
            raise NotificationPermissionError("Notification permission not granted")

        notification = DeliveredNotification(title=title, body=body, sent_at=datetime.now(timezone.utc))
        self.sent.append(notification)
        logger.info(f"Notification: {title} | {body.replace(chr(10), ' | ')}")
        if self._sink:
            result = self._sink(notification)
            if inspect.isawaitable(result):
                await result

    def next_run_time(self, notification_id: str) -> Optional[datetime]:
        if not self._scheduler:
            return None
        job = self._scheduler.get_job(notification_id)
        return job.next_run_time if job else None

    def job_ids(self) -> list[str]:
        if not self._scheduler:
            return []
        return [job.id for job in self._scheduler.get_jobs()]

    async def _fire(self, trigger: RecurringTrigger) -> None:
        """Job entry point called by APScheduler."""
        try:
            if self._handler:
                await self._handler(trigger)
            else:
                await self.send_immediate(trigger.title, trigger.body)
        except Exception as e:
            logger.error(f"Scheduled {trigger.type.value} notification failed: {e}")
