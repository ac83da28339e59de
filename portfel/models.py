"""
Models - Positions, notification settings, reports and their persisted forms.

Every persisted model has a to_dict()/from_dict() pair producing plain
JSON-compatible dicts. Dates are written as ISO strings. from_dict() raises
ValidationError on malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from portfel.errors import ValidationError


class Frequency(str, Enum):
    """How often scheduled reports are sent."""

    DAILY = "daily"
    WEEKLY = "weekly"
    OFF = "off"


class DayOfWeek(str, Enum):
    """Day of week for weekly reports."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def cron_day(self) -> str:
        """Three-letter day name used by cron triggers."""
        return self.value[:3]

    @property
    def weekday(self) -> int:
        """Python weekday number (Monday = 0)."""
        return list(DayOfWeek).index(self)


class ReportPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def notification_type(self) -> "NotificationType":
        return NotificationType.DAILY_REPORT if self is ReportPeriod.DAILY else NotificationType.WEEKLY_REPORT


class NotificationType(str, Enum):
    DAILY_REPORT = "daily_report"
    WEEKLY_REPORT = "weekly_report"

    @property
    def title(self) -> str:
        return "Portfolio Daily Report" if self is NotificationType.DAILY_REPORT else "Portfolio Weekly Report"

    @property
    def period(self) -> ReportPeriod:
        return ReportPeriod.DAILY if self is NotificationType.DAILY_REPORT else ReportPeriod.WEEKLY


def _enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {name} {value!r} (expected one of: {allowed})") from None


def parse_date(value: Any) -> date:
    """Parse a stored date. Accepts date objects, 'YYYY-MM-DD' and full ISO timestamps."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Invalid date {value!r}")
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}") from None


def parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Invalid timestamp {value!r}")
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid timestamp {value!r}") from None


def _number(data: dict, key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Field '{key}' must be a number")
    return float(value)


def _integer(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        raise ValidationError(f"Field '{key}' must be an integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"Field '{key}' must be an integer")
    return value


def _require(data: Any, *keys: str) -> dict:
    if not isinstance(data, dict):
        raise ValidationError(f"Expected an object, got {type(data).__name__}")
    missing = [k for k in keys if k not in data]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
    return data


# -----------------------------------------------------------------------------
# Portfolio
# -----------------------------------------------------------------------------


@dataclass
class Position:
    """One holding, keyed by ticker symbol."""

    symbol: str
    quantity: int
    purchase_price: float
    current_price: float
    purchase_date: date

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "purchase_price": self.purchase_price,
            "current_price": self.current_price,
            "purchase_date": self.purchase_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Position:
        data = _require(data, "symbol", "quantity", "purchase_price", "purchase_date")
        symbol = data["symbol"]
        if not isinstance(symbol, str):
            raise ValidationError("Field 'symbol' must be a string")
        purchase_price = _number(data, "purchase_price")
        current_price = _number(data, "current_price") if data.get("current_price") is not None else purchase_price
        return cls(
            symbol=symbol.strip().upper(),
            quantity=_integer(data, "quantity"),
            purchase_price=purchase_price,
            current_price=current_price,
            purchase_date=parse_date(data["purchase_date"]),
        )


@dataclass
class PortfolioSummary:
    """Derived totals for a list of positions. Never stored."""

    total_value: float
    total_cost: float
    total_pnl: float
    total_pnl_percent: float
    positions: list[Position] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_value": self.total_value,
            "total_cost": self.total_cost,
            "total_pnl": self.total_pnl,
            "total_pnl_percent": self.total_pnl_percent,
            "positions": [p.to_dict() for p in self.positions],
        }


# -----------------------------------------------------------------------------
# Notification settings
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class NotificationTime:
    """Time of day (24-hour clock)."""

    hour: int
    minute: int

    def __post_init__(self):
        if isinstance(self.hour, bool) or not isinstance(self.hour, int) or not 0 <= self.hour <= 23:
            raise ValidationError(f"Invalid hour {self.hour!r} (must be 0-23)")
        if isinstance(self.minute, bool) or not isinstance(self.minute, int) or not 0 <= self.minute <= 59:
            raise ValidationError(f"Invalid minute {self.minute!r} (must be 0-59)")

    @property
    def minute_of_day(self) -> int:
        return self.hour * 60 + self.minute

    @classmethod
    def parse(cls, value: str) -> NotificationTime:
        """Parse 'HH:MM'."""
        try:
            hour, minute = value.strip().split(":")
            return cls(int(hour), int(minute))
        except ValueError:
            raise ValidationError(f"Invalid time {value!r} (expected HH:MM)") from None

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    def to_dict(self) -> dict:
        return {"hour": self.hour, "minute": self.minute}

    @classmethod
    def from_dict(cls, data: Any) -> NotificationTime:
        if isinstance(data, NotificationTime):
            return data
        data = _require(data, "hour", "minute")
        return cls(hour=_integer(data, "hour"), minute=_integer(data, "minute"))


@dataclass(frozen=True)
class QuietHours:
    """Window during which scheduled notifications must not fire. May wrap past midnight."""

    enabled: bool = False
    start: NotificationTime = NotificationTime(22, 0)
    end: NotificationTime = NotificationTime(7, 0)

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: Any, base: Optional[QuietHours] = None) -> QuietHours:
        """Build quiet hours from a (possibly partial) dict merged over ``base``."""
        if isinstance(data, QuietHours):
            return data
        if not isinstance(data, dict):
            raise ValidationError("Field 'quiet_hours' must be an object")
        base = base or cls()
        enabled = data.get("enabled", base.enabled)
        if not isinstance(enabled, bool):
            raise ValidationError("Field 'quiet_hours.enabled' must be a boolean")
        return cls(
            enabled=enabled,
            start=NotificationTime.from_dict(data["start"]) if "start" in data else base.start,
            end=NotificationTime.from_dict(data["end"]) if "end" in data else base.end,
        )


@dataclass(frozen=True)
class NotificationSettings:
    """User notification preferences."""

    enabled: bool
    frequency: Frequency
    time: NotificationTime
    weekly_day: DayOfWeek
    include_positions: bool
    quiet_hours: QuietHours
    timezone: str

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "frequency": self.frequency.value,
            "time": self.time.to_dict(),
            "weekly_day": self.weekly_day.value,
            "include_positions": self.include_positions,
            "quiet_hours": self.quiet_hours.to_dict(),
            "timezone": self.timezone,
        }

    def merged(self, changes: dict) -> NotificationSettings:
        """
        Return a copy with ``changes`` applied.

        Top-level fields are replaced; ``quiet_hours`` is merged field by field.
        Raises ValidationError for unknown fields or invalid values.
        """
        if not isinstance(changes, dict):
            raise ValidationError("Settings changes must be an object")
        unknown = set(changes) - set(self.to_dict())
        if unknown:
            raise ValidationError(f"Unknown settings field(s): {', '.join(sorted(unknown))}")

        values = self.to_dict()
        for key, value in changes.items():
            if key == "quiet_hours":
                value = QuietHours.from_dict(value, base=self.quiet_hours).to_dict()
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, NotificationTime):
                value = value.to_dict()
            values[key] = value
        return NotificationSettings.from_dict(values)

    @classmethod
    def from_dict(cls, data: Any) -> NotificationSettings:
        data = _require(
            data, "enabled", "frequency", "time", "weekly_day", "include_positions", "quiet_hours", "timezone"
        )
        for flag in ("enabled", "include_positions"):
            if not isinstance(data[flag], bool):
                raise ValidationError(f"Field '{flag}' must be a boolean")
        if not isinstance(data["timezone"], str) or not data["timezone"].strip():
            raise ValidationError("Field 'timezone' must be a non-empty string")
        return cls(
            enabled=data["enabled"],
            frequency=_enum(Frequency, data["frequency"], "frequency"),
            time=NotificationTime.from_dict(data["time"]),
            weekly_day=_enum(DayOfWeek, data["weekly_day"], "weekly_day"),
            include_positions=data["include_positions"],
            quiet_hours=QuietHours.from_dict(data["quiet_hours"]),
            timezone=data["timezone"].strip(),
        )


# -----------------------------------------------------------------------------
# Reports
# -----------------------------------------------------------------------------


@dataclass
class ReportSummary:
    total_value: float
    total_cost: float
    total_pnl: float
    total_pnl_percent: float
    position_count: int

    def to_dict(self) -> dict:
        return {
            "total_value": self.total_value,
            "total_cost": self.total_cost,
            "total_pnl": self.total_pnl,
            "total_pnl_percent": self.total_pnl_percent,
            "position_count": self.position_count,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ReportSummary:
        data = _require(data, "total_value", "total_cost", "total_pnl", "total_pnl_percent", "position_count")
        return cls(
            total_value=_number(data, "total_value"),
            total_cost=_number(data, "total_cost"),
            total_pnl=_number(data, "total_pnl"),
            total_pnl_percent=_number(data, "total_pnl_percent"),
            position_count=_integer(data, "position_count"),
        )


@dataclass
class Mover:
    """A position's price change since the previous snapshot."""

    symbol: str
    change_percent: float

    def to_dict(self) -> dict:
        return {"symbol": self.symbol, "change_percent": self.change_percent}

    @classmethod
    def from_dict(cls, data: Any) -> Mover:
        data = _require(data, "symbol", "change_percent")
        return cls(symbol=str(data["symbol"]), change_percent=_number(data, "change_percent"))


@dataclass
class ReportChanges:
    """Changes since the previous report. Empty when there is no prior snapshot."""

    value_change: Optional[float] = None
    value_change_percent: Optional[float] = None
    top_gainer: Optional[Mover] = None
    top_loser: Optional[Mover] = None

    def to_dict(self) -> dict:
        return {
            "value_change": self.value_change,
            "value_change_percent": self.value_change_percent,
            "top_gainer": self.top_gainer.to_dict() if self.top_gainer else None,
            "top_loser": self.top_loser.to_dict() if self.top_loser else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ReportChanges:
        data = _require(data)
        return cls(
            value_change=_number(data, "value_change") if data.get("value_change") is not None else None,
            value_change_percent=(
                _number(data, "value_change_percent") if data.get("value_change_percent") is not None else None
            ),
            top_gainer=Mover.from_dict(data["top_gainer"]) if data.get("top_gainer") else None,
            top_loser=Mover.from_dict(data["top_loser"]) if data.get("top_loser") else None,
        )


@dataclass
class PositionDetail:
    symbol: str
    quantity: int
    current_price: float
    pnl: float
    pnl_percent: float

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "current_price": self.current_price,
            "pnl": self.pnl,
            "pnl_percent": self.pnl_percent,
        }

    @classmethod
    def from_dict(cls, data: Any) -> PositionDetail:
        data = _require(data, "symbol", "quantity", "current_price", "pnl", "pnl_percent")
        return cls(
            symbol=str(data["symbol"]),
            quantity=_integer(data, "quantity"),
            current_price=_number(data, "current_price"),
            pnl=_number(data, "pnl"),
            pnl_percent=_number(data, "pnl_percent"),
        )


@dataclass
class PortfolioReport:
    """Point-in-time portfolio report."""

    id: str
    generated_at: datetime
    period: ReportPeriod
    summary: ReportSummary
    changes: ReportChanges = field(default_factory=ReportChanges)
    positions: Optional[list[PositionDetail]] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "generated_at": self.generated_at.isoformat(),
            "period": self.period.value,
            "summary": self.summary.to_dict(),
            "changes": self.changes.to_dict(),
            "positions": [p.to_dict() for p in self.positions] if self.positions is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> PortfolioReport:
        data = _require(data, "id", "generated_at", "period", "summary")
        positions = data.get("positions")
        return cls(
            id=str(data["id"]),
            generated_at=parse_datetime(data["generated_at"]),
            period=_enum(ReportPeriod, data["period"], "period"),
            summary=ReportSummary.from_dict(data["summary"]),
            changes=ReportChanges.from_dict(data.get("changes") or {}),
            positions=[PositionDetail.from_dict(p) for p in positions] if positions is not None else None,
        )


@dataclass
class SnapshotPosition:
    quantity: int
    current_price: float
    pnl: float
    pnl_percent: float

    def to_dict(self) -> dict:
        return {
            "quantity": self.quantity,
            "current_price": self.current_price,
            "pnl": self.pnl,
            "pnl_percent": self.pnl_percent,
        }

    @classmethod
    def from_dict(cls, data: Any) -> SnapshotPosition:
        data = _require(data, "quantity", "current_price")
        return cls(
            quantity=_integer(data, "quantity"),
            current_price=_number(data, "current_price"),
            pnl=_number(data, "pnl") if "pnl" in data else 0.0,
            pnl_percent=_number(data, "pnl_percent") if "pnl_percent" in data else 0.0,
        )


@dataclass
class Snapshot:
    """The last generated summary plus per-position prices. Overwritten on every report."""

    timestamp: datetime
    total_value: float
    total_cost: float
    total_pnl: float
    total_pnl_percent: float
    positions: dict[str, SnapshotPosition] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "total_value": self.total_value,
            "total_cost": self.total_cost,
            "total_pnl": self.total_pnl,
            "total_pnl_percent": self.total_pnl_percent,
            "positions": {symbol: p.to_dict() for symbol, p in self.positions.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> Snapshot:
        data = _require(data, "timestamp", "total_value")
        positions = data.get("positions")
        if positions is None:
            positions = {}
        if not isinstance(positions, dict):
            raise ValidationError("Field 'positions' must be an object")
        return cls(
            timestamp=parse_datetime(data["timestamp"]),
            total_value=_number(data, "total_value"),
            total_cost=_number(data, "total_cost") if "total_cost" in data else 0.0,
            total_pnl=_number(data, "total_pnl") if "total_pnl" in data else 0.0,
            total_pnl_percent=_number(data, "total_pnl_percent") if "total_pnl_percent" in data else 0.0,
            positions={symbol: SnapshotPosition.from_dict(p) for symbol, p in positions.items()},
        )


@dataclass
class NotificationHistoryEntry:
    """A generated report kept in the bounded history log."""

    id: str
    type: NotificationType
    generated_at: datetime
    report: PortfolioReport
    opened: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "generated_at": self.generated_at.isoformat(),
            "report": self.report.to_dict(),
            "opened": self.opened,
        }

    @classmethod
    def from_dict(cls, data: Any) -> NotificationHistoryEntry:
        data = _require(data, "id", "type", "generated_at", "report")
        return cls(
            id=str(data["id"]),
            type=_enum(NotificationType, data["type"], "type"),
            generated_at=parse_datetime(data["generated_at"]),
            report=PortfolioReport.from_dict(data["report"]),
            opened=bool(data.get("opened", False)),
        )


@dataclass
class ScheduledNotification:
    """Metadata about a recurring notification registered with the notification service."""

    id: str
    type: NotificationType
    frequency: Frequency
    time: NotificationTime
    weekly_day: Optional[DayOfWeek]
    scheduled_for: datetime
    next_trigger: datetime
    timezone: str = "UTC"

    def matches(self, settings: NotificationSettings) -> bool:
        """True if this registration already reflects ``settings``."""
        if self.frequency != settings.frequency or self.time != settings.time:
            return False
        if self.timezone != settings.timezone:
            return False
        if settings.frequency is Frequency.WEEKLY:
            return self.weekly_day == settings.weekly_day
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "frequency": self.frequency.value,
            "time": self.time.to_dict(),
            "weekly_day": self.weekly_day.value if self.weekly_day else None,
            "scheduled_for": self.scheduled_for.isoformat(),
            "next_trigger": self.next_trigger.isoformat(),
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ScheduledNotification:
        data = _require(data, "id", "type", "frequency", "time", "scheduled_for", "next_trigger")
        weekly_day = data.get("weekly_day")
        return cls(
            id=str(data["id"]),
            type=_enum(NotificationType, data["type"], "type"),
            frequency=_enum(Frequency, data["frequency"], "frequency"),
            time=NotificationTime.from_dict(data["time"]),
            weekly_day=_enum(DayOfWeek, weekly_day, "weekly_day") if weekly_day else None,
            scheduled_for=parse_datetime(data["scheduled_for"]),
            next_trigger=parse_datetime(data["next_trigger"]),
            timezone=str(data.get("timezone") or "UTC"),
        )
