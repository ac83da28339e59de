"""
Storage Package

Key/value persistence used by every Portfel store.
"""

from portfel.storage.base import (
    LAST_REPORT_SNAPSHOT_KEY,
    NOTIFICATION_HISTORY_KEY,
    NOTIFICATION_SETTINGS_KEY,
    PORTFOLIO_KEY,
    SCHEDULED_NOTIFICATIONS_KEY,
    StorageAdapter,
)
from portfel.storage.memory import MemoryStorage
from portfel.storage.sqlite import SqliteStorage

__all__ = [
    "StorageAdapter",
    "MemoryStorage",
    "SqliteStorage",
    "PORTFOLIO_KEY",
    "NOTIFICATION_SETTINGS_KEY",
    "SCHEDULED_NOTIFICATIONS_KEY",
    "NOTIFICATION_HISTORY_KEY",
    "LAST_REPORT_SNAPSHOT_KEY",
]
