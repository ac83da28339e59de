"""Storage adapter protocol and the logical key namespace."""

from typing import Optional, Protocol, runtime_checkable

# Logical keys, one JSON document each
PORTFOLIO_KEY = "@portfel/portfolio"
NOTIFICATION_SETTINGS_KEY = "@portfel/notification-settings"
SCHEDULED_NOTIFICATIONS_KEY = "@portfel/scheduled-notifications"
NOTIFICATION_HISTORY_KEY = "@portfel/notification-history"
LAST_REPORT_SNAPSHOT_KEY = "@portfel/last-report-snapshot"


@runtime_checkable
class StorageAdapter(Protocol):
    """Minimal key/value persistence: one string value per key."""

    async def get(self, key: str) -> Optional[str]:
        """Return the stored value or None if the key is absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def remove(self, key: str) -> None:
        """Delete ``key``. Removing an absent key is a no-op."""
        ...
