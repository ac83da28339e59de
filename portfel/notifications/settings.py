"""
Notification Settings - Persisted notification preferences.

Usage:
    store = NotificationSettingsStore(storage)
    settings = await store.load()
    await store.update({'enabled': True, 'frequency': 'weekly', 'weekly_day': 'friday'})
    if await store.is_quiet_hours():
        ...

Settings are created from DEFAULTS on first load and persisted. Stored values
are merged over DEFAULTS so fields added later pick up their default.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from portfel.errors import ValidationError
from portfel.models import NotificationSettings, NotificationTime, QuietHours
from portfel.storage.base import NOTIFICATION_SETTINGS_KEY, StorageAdapter

logger = logging.getLogger(__name__)

FALLBACK_TIMEZONE = "UTC"

# Default settings - applied on first load, then editable
DEFAULTS = {
    # Master switch (off until the user opts in)
    "enabled": False,
    "frequency": "daily",
    "time": {"hour": 18, "minute": 0},
    "weekly_day": "monday",
    "include_positions": True,
    "quiet_hours": {
        "enabled": False,
        "start": {"hour": 22, "minute": 0},
        "end": {"hour": 7, "minute": 0},
    },
    # Filled with detect_timezone() when defaults are materialized
    "timezone": None,
}


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def detect_timezone() -> str:
    """
    Best-effort IANA zone name of the host.

    Checks the TZ environment variable, then the /etc/localtime symlink, and
    falls back to UTC.
    """
    tz = os.environ.get("TZ", "").lstrip(":").strip()
    if tz and is_valid_timezone(tz):
        return tz

    localtime = Path("/etc/localtime")
    try:
        target = str(localtime.resolve())
    except OSError:
        target = ""
    if "zoneinfo/" in target:
        name = target.split("zoneinfo/", 1)[1]
        if is_valid_timezone(name):
            return name

    return FALLBACK_TIMEZONE


def default_settings(timezone: Optional[str] = None) -> NotificationSettings:
    """Compiled-in defaults with the given (or detected) timezone."""
    data = dict(DEFAULTS)
    data["timezone"] = timezone or detect_timezone()
    return NotificationSettings.from_dict(data)


def is_quiet_time(quiet_hours: QuietHours, at: NotificationTime) -> bool:
    """
    True if ``at`` falls inside the quiet-hours window.

    The window is [start, end) and wraps past midnight when start > end.
    Disabled quiet hours are never quiet.
    """
    if not quiet_hours.enabled:
        return False

    now = at.minute_of_day
    start = quiet_hours.start.minute_of_day
    end = quiet_hours.end.minute_of_day

    if start <= end:
        return start <= now < end
    # e.g. 22:00 to 07:00
    return now >= start or now < end


def resolve_zone(timezone: str) -> ZoneInfo:
    """ZoneInfo for ``timezone``, or UTC if the name is unknown."""
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {timezone!r}, using {FALLBACK_TIMEZONE}")
        return ZoneInfo(FALLBACK_TIMEZONE)


def local_time(timezone: str, now: Optional[datetime] = None) -> NotificationTime:
    """Hour/minute of ``now`` (default: current time) in ``timezone``."""
    tz = resolve_zone(timezone)
    now = now.astimezone(tz) if now is not None else datetime.now(tz)
    return NotificationTime(now.hour, now.minute)


class NotificationSettingsStore:
    """Loads, saves and updates notification settings."""

    def __init__(self, storage: StorageAdapter, timezone: Optional[str] = None):
        """
        Args:
            storage: Key/value storage adapter
            timezone: Zone used for defaults (detected from the host if None)
        """
        self._storage = storage
        self._timezone = timezone

    def defaults(self) -> NotificationSettings:
        return default_settings(self._timezone)

    async def load(self) -> NotificationSettings:
        """
        Load settings.

        On first use the defaults are written to storage. Unreadable or
        invalid data falls back to defaults without overwriting what is stored.
        """
        try:
            raw = await self._storage.get(NOTIFICATION_SETTINGS_KEY)
        except Exception as e:
            logger.error(f"Failed to load notification settings: {e}")
            return self.defaults()

        if not raw:
            settings = self.defaults()
            await self.save(settings)
            return settings

        try:
            stored = json.loads(raw)
            if not isinstance(stored, dict):
                raise ValidationError("Settings payload is not an object")
            defaults = self.defaults()
            stored = {k: v for k, v in stored.items() if k in DEFAULTS}
            if stored.get("timezone") is None:
                stored.pop("timezone", None)
            return defaults.merged(stored)
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid notification settings, using defaults: {e}")
            return self.defaults()

    async def save(self, settings: NotificationSettings) -> bool:
        """Persist the full settings object."""
        try:
            await self._storage.set(NOTIFICATION_SETTINGS_KEY, json.dumps(settings.to_dict()))
        except Exception as e:
            logger.error(f"Failed to save notification settings: {e}")
            return False
        return True

    async def update(self, changes: dict[str, Any]) -> bool:
        """
        Apply a partial update and persist it.

        Top-level fields are replaced; ``quiet_hours`` is merged field by field.

        Returns:
            False if a field is unknown or invalid, or the write fails
        """
        current = await self.load()
        try:
            updated = current.merged(changes)
        except ValidationError as e:
            logger.error(f"Rejected notification settings update: {e}")
            return False
        if not is_valid_timezone(updated.timezone):
            logger.error(f"Rejected notification settings update: unknown timezone {updated.timezone!r}")
            return False
        return await self.save(updated)

    async def reset(self) -> bool:
        """Restore compiled-in defaults."""
        return await self.save(self.defaults())

    async def clear(self) -> bool:
        """Remove stored settings; the next load recreates defaults."""
        try:
            await self._storage.remove(NOTIFICATION_SETTINGS_KEY)
        except Exception as e:
            logger.error(f"Failed to clear notification settings: {e}")
            return False
        return True

    async def is_quiet_hours(self, at: Optional[NotificationTime | datetime] = None) -> bool:
        """
        Check whether ``at`` falls inside the configured quiet hours.

        Args:
            at: A time of day, an aware/naive datetime (converted to the
                configured timezone when aware), or None for the current time
        """
        settings = await self.load()
        if isinstance(at, NotificationTime):
            moment = at
        elif isinstance(at, datetime) and at.tzinfo is None:
            moment = NotificationTime(at.hour, at.minute)
        else:
            moment = local_time(settings.timezone, at)
        return is_quiet_time(settings.quiet_hours, moment)
