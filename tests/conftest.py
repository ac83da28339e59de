"""Pytest configuration and fixtures."""

from datetime import date, datetime, timezone
from typing import Optional

import pytest

from portfel.errors import NotificationPermissionError, NotificationUnavailableError, StorageError
from portfel.models import Position
from portfel.notifications.service import RecurringTrigger
from portfel.storage.memory import MemoryStorage

TODAY = date(2024, 6, 1)


class CountingStorage(MemoryStorage):
    """MemoryStorage that counts reads and writes per key."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.reads: dict[str, int] = {}
        self.writes: dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        self.reads[key] = self.reads.get(key, 0) + 1
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        self.writes[key] = self.writes.get(key, 0) + 1
        await super().set(key, value)


class FailingStorage(MemoryStorage):
    """MemoryStorage whose reads and/or writes raise StorageError."""

    def __init__(self, initial=None, fail_reads: bool = False, fail_writes: bool = False):
        super().__init__(initial)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise StorageError(key, "read failed")
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError(key, "write failed")
        await super().set(key, value)

    async def remove(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError(key, "remove failed")
        await super().remove(key)


class FakeNotificationService:
    """Records every call made to the notification service."""

    def __init__(self, granted: bool = True, available: bool = True):
        self.granted = granted
        self.available = available
        self.permission_requests = 0
        self.scheduled: dict[str, RecurringTrigger] = {}
        self.cancelled: list[str] = []
        self.sent: list[tuple[str, str]] = []
        self._counter = 0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.granted

    async def schedule_recurring(self, trigger: RecurringTrigger) -> str:
        if not self.available:
            raise NotificationUnavailableError("service down")
        if not self.granted:
            raise NotificationPermissionError("denied")
        self._counter += 1
        notification_id = f"{trigger.type.value}-{self._counter}"
        self.scheduled[notification_id] = trigger
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        self.cancelled.append(notification_id)
        self.scheduled.pop(notification_id, None)

    async def send_immediate(self, title: str, body: str) -> None:
        if not self.available:
            raise NotificationUnavailableError("service down")
        self.sent.append((title, body))


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedNow:
    """Wall clock returning a settable aware datetime."""

    def __init__(self, moment: Optional[datetime] = None):
        self.moment = moment or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.moment


def make_position(
    symbol: str = "PKN",
    quantity: int = 100,
    purchase_price: float = 50.0,
    current_price: Optional[float] = None,
    purchase_date: date = date(2024, 1, 15),
) -> Position:
    return Position(
        symbol=symbol,
        quantity=quantity,
        purchase_price=purchase_price,
        current_price=purchase_price if current_price is None else current_price,
        purchase_date=purchase_date,
    )


@pytest.fixture
def storage():
    return CountingStorage()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def service():
    return FakeNotificationService()
