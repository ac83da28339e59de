"""
Notifications Package

Settings, scheduling, report generation and the notification service boundary.
"""

from portfel.notifications.reports import MAX_HISTORY_ENTRIES, ReportDelivery, ReportGenerator
from portfel.notifications.scheduler import NotificationScheduler, ScheduleStatus, next_trigger
from portfel.notifications.service import (
    DeliveredNotification,
    LocalNotificationService,
    NotificationService,
    RecurringTrigger,
)
from portfel.notifications.settings import (
    DEFAULTS,
    NotificationSettingsStore,
    default_settings,
    detect_timezone,
    is_quiet_time,
)

__all__ = [
    "NotificationSettingsStore",
    "DEFAULTS",
    "default_settings",
    "detect_timezone",
    "is_quiet_time",
    "NotificationService",
    "LocalNotificationService",
    "RecurringTrigger",
    "DeliveredNotification",
    "NotificationScheduler",
    "ScheduleStatus",
    "next_trigger",
    "ReportGenerator",
    "ReportDelivery",
    "MAX_HISTORY_ENTRIES",
]
