"""
Portfel - Personal portfolio tracker core.

Usage:
    from portfel import SqliteStorage, PortfolioStore, parse_csv

    storage = SqliteStorage('data/portfel.db')
    await storage.connect()

    # Work with positions
    store = PortfolioStore(storage)
    await store.add(Position('PKN', 100, 50.0, 55.0, date(2024, 1, 15)))
    summary = await store.summary()

    # Import a CSV export
    result = parse_csv(content)
    imported = await store.import_positions(result.positions)

    # Reports
    generator = ReportGenerator(store, storage)
    report = await generator.generate(ReportPeriod.DAILY)
"""

from portfel.cache import Cache
from portfel.csv_import import CSVImportResult, generate_sample_csv, parse_csv, validate_csv_file
from portfel.models import (
    DayOfWeek,
    Frequency,
    NotificationSettings,
    NotificationTime,
    PortfolioReport,
    Position,
    QuietHours,
    ReportPeriod,
)
from portfel.notifications import (
    LocalNotificationService,
    NotificationScheduler,
    NotificationSettingsStore,
    ReportDelivery,
    ReportGenerator,
    ScheduleStatus,
)
from portfel.portfolio import ImportSummary, PortfolioStore
from portfel.storage import MemoryStorage, SqliteStorage, StorageAdapter

__all__ = [
    "StorageAdapter",
    "MemoryStorage",
    "SqliteStorage",
    "Cache",
    "Position",
    "PortfolioStore",
    "ImportSummary",
    "CSVImportResult",
    "parse_csv",
    "validate_csv_file",
    "generate_sample_csv",
    "NotificationSettings",
    "NotificationTime",
    "QuietHours",
    "Frequency",
    "DayOfWeek",
    "NotificationSettingsStore",
    "LocalNotificationService",
    "NotificationScheduler",
    "ScheduleStatus",
    "ReportPeriod",
    "PortfolioReport",
    "ReportGenerator",
    "ReportDelivery",
]
