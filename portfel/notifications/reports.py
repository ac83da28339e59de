"""
Reports - Portfolio digests diffed against the previous snapshot.

Usage:
    generator = ReportGenerator(portfolio_store, storage, settings_store)
    report = await generator.generate(ReportPeriod.DAILY)
    body = generator.format_body(report)
    history = await generator.get_history(limit=10)

Only one prior snapshot is kept: each report is compared to the one before it
and then becomes the new baseline.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from portfel.errors import ValidationError
from portfel.models import (
    Mover,
    NotificationHistoryEntry,
    PortfolioReport,
    PortfolioSummary,
    Position,
    PositionDetail,
    ReportChanges,
    ReportPeriod,
    ReportSummary,
    Snapshot,
    SnapshotPosition,
)
from portfel.notifications.service import NotificationService, RecurringTrigger
from portfel.notifications.settings import NotificationSettingsStore
from portfel.portfolio import PortfolioStore
from portfel.storage.base import LAST_REPORT_SNAPSHOT_KEY, NOTIFICATION_HISTORY_KEY, StorageAdapter
from portfel.utils.positions import PositionCalculator

logger = logging.getLogger(__name__)

# Oldest entries are evicted beyond this
MAX_HISTORY_ENTRIES = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _signed(value: float) -> str:
    # Adding 0.0 turns -0.0 into 0.0 so it prints as +0.00
    return f"{round(value, 2) + 0.0:+.2f}"


def _percent(value: float) -> str:
    return f"{_signed(value)}%"


class ReportGenerator:
    """Builds reports, keeps the diff snapshot and the bounded history log."""

    def __init__(
        self,
        portfolio: PortfolioStore,
        storage: StorageAdapter,
        settings_store: Optional[NotificationSettingsStore] = None,
        currency: str = "PLN",
        history_limit: int = MAX_HISTORY_ENTRIES,
        calculator: Optional[PositionCalculator] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            portfolio: Source of positions
            storage: Where the snapshot and history live
            settings_store: Supplies include_positions when generate() is not told
            currency: Currency label used in formatted bodies
            history_limit: Maximum number of history entries kept
            calculator: PositionCalculator (created if None)
            now: Clock returning an aware datetime
        """
        self._portfolio = portfolio
        self._storage = storage
        self._settings_store = settings_store
        self._currency = currency
        self._history_limit = history_limit
        self._calculator = calculator or PositionCalculator()
        self._now = now

    @property
    def currency(self) -> str:
        return self._currency

    async def generate(self, period: ReportPeriod, include_positions: Optional[bool] = None) -> PortfolioReport:
        """
        Generate a report for the current portfolio.

        Never raises for an unreadable portfolio: the report then has no
        positions and no changes.
        The new snapshot is written even if building the report fails.
        """
        generated_at = self._now()

        try:
            positions = await self._portfolio.load(strict=True)
            read_failed = False
        except Exception as e:
            logger.error(f"Failed to read portfolio for report: {e}")
            positions = []
            read_failed = True

        summary = self._calculator.summarize(positions)
        previous = None if read_failed else await self.get_snapshot()

        try:
            if include_positions is None:
                include_positions = await self._include_positions()

            report = PortfolioReport(
                id=f"report-{int(generated_at.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}",
                generated_at=generated_at,
                period=period,
                summary=ReportSummary(
                    total_value=summary.total_value,
                    total_cost=summary.total_cost,
                    total_pnl=summary.total_pnl,
                    total_pnl_percent=summary.total_pnl_percent,
                    position_count=len(positions),
                ),
                changes=self.compare(summary, previous),
                positions=[self._detail(p) for p in positions] if include_positions else None,
            )
            await self._append_history(
                NotificationHistoryEntry(
                    id=report.id,
                    type=period.notification_type,
                    generated_at=generated_at,
                    report=report,
                )
            )
        finally:
            await self._save_snapshot(self._snapshot(summary, generated_at))

        logger.info(f"Generated {period.value} report {report.id} ({len(positions)} positions)")
        return report

    def compare(self, summary: PortfolioSummary, previous: Optional[Snapshot]) -> ReportChanges:
        """
        Changes between ``summary`` and the previous snapshot.

        Top gainer/loser compare each position's current price with the price
        recorded in the snapshot. Positions missing from the snapshot are left
        out, and on ties the first position in portfolio order wins.
        """
        if previous is None:
            return ReportChanges()

        value_change = summary.total_value - previous.total_value
        value_change_percent = (value_change / previous.total_value) * 100 if previous.total_value > 0 else 0.0

        top_gainer: Optional[Mover] = None
        top_loser: Optional[Mover] = None
        for position in summary.positions:
            prior = previous.positions.get(position.symbol)
            if prior is None or prior.current_price <= 0:
                continue
            change = ((position.current_price - prior.current_price) / prior.current_price) * 100
            if change > 0 and (top_gainer is None or change > top_gainer.change_percent):
                top_gainer = Mover(position.symbol, change)
            elif change < 0 and (top_loser is None or change < top_loser.change_percent):
                top_loser = Mover(position.symbol, change)

        return ReportChanges(
            value_change=value_change,
            value_change_percent=value_change_percent,
            top_gainer=top_gainer,
            top_loser=top_loser,
        )

    def format_body(self, report: PortfolioReport) -> str:
        """Short multi-line notification text for ``report``."""
        summary = report.summary
        changes = report.changes
        lines = [f"Portfolio: {summary.total_value:.2f} {self._currency} ({_percent(summary.total_pnl_percent)})"]

        if changes.value_change is not None:
            lines.append(
                f"Change: {_signed(changes.value_change)} {self._currency} "
                f"({_percent(changes.value_change_percent or 0.0)})"
            )
        if changes.top_gainer:
            lines.append(f"Top gainer: {changes.top_gainer.symbol} {_percent(changes.top_gainer.change_percent)}")
        if changes.top_loser:
            lines.append(f"Top loser: {changes.top_loser.symbol} {_percent(changes.top_loser.change_percent)}")

        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def get_history(self, limit: Optional[int] = None) -> list[NotificationHistoryEntry]:
        """History oldest first. With ``limit``, only the most recent entries."""
        history = await self._load_history()
        if limit is None:
            return history
        return history[-limit:] if limit > 0 else []

    async def mark_as_opened(self, report_id: str) -> bool:
        history = await self._load_history()
        for entry in history:
            if entry.id == report_id:
                if entry.opened:
                    return True
                entry.opened = True
                return await self._save_history(history)
        return False

    async def clear_history(self) -> bool:
        try:
            await self._storage.remove(NOTIFICATION_HISTORY_KEY)
        except Exception as e:
            logger.error(f"Failed to clear notification history: {e}")
            return False
        return True

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    async def get_snapshot(self) -> Optional[Snapshot]:
        """The baseline for the next report, or None."""
        try:
            raw = await self._storage.get(LAST_REPORT_SNAPSHOT_KEY)
            return Snapshot.from_dict(json.loads(raw)) if raw else None
        except Exception as e:
            logger.error(f"Failed to load report snapshot: {e}")
            return None

    async def clear_snapshot(self) -> bool:
        try:
            await self._storage.remove(LAST_REPORT_SNAPSHOT_KEY)
        except Exception as e:
            logger.error(f"Failed to clear report snapshot: {e}")
            return False
        return True

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _include_positions(self) -> bool:
        if self._settings_store is None:
            return True
        return (await self._settings_store.load()).include_positions

    def _detail(self, position: Position) -> PositionDetail:
        pnl_percent, pnl = self._calculator.position_profit(position)
        return PositionDetail(
            symbol=position.symbol,
            quantity=position.quantity,
            current_price=position.current_price,
            pnl=pnl,
            pnl_percent=pnl_percent,
        )

    def _snapshot(self, summary: PortfolioSummary, timestamp: datetime) -> Snapshot:
        positions = {}
        for position in summary.positions:
            pnl_percent, pnl = self._calculator.position_profit(position)
            positions[position.symbol] = SnapshotPosition(
                quantity=position.quantity,
                current_price=position.current_price,
                pnl=pnl,
                pnl_percent=pnl_percent,
            )
        return Snapshot(
            timestamp=timestamp,
            total_value=summary.total_value,
            total_cost=summary.total_cost,
            total_pnl=summary.total_pnl,
            total_pnl_percent=summary.total_pnl_percent,
            positions=positions,
        )

    async def _save_snapshot(self, snapshot: Snapshot) -> None:
        try:
            await self._storage.set(LAST_REPORT_SNAPSHOT_KEY, json.dumps(snapshot.to_dict()))
        except Exception as e:
            logger.error(f"Failed to save report snapshot: {e}")

    async def _append_history(self, entry: NotificationHistoryEntry) -> None:
        history = await self._load_history()
        history.append(entry)
        if len(history) > self._history_limit:
            del history[: len(history) - self._history_limit]
        await self._save_history(history)

    async def _load_history(self) -> list[NotificationHistoryEntry]:
        try:
            raw = await self._storage.get(NOTIFICATION_HISTORY_KEY)
            if not raw:
                return []
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValidationError("History payload is not a list")
            return [NotificationHistoryEntry.from_dict(item) for item in data]
        except Exception as e:
            logger.error(f"Failed to load notification history: {e}")
            return []

    async def _save_history(self, history: list[NotificationHistoryEntry]) -> bool:
        try:
            await self._storage.set(NOTIFICATION_HISTORY_KEY, json.dumps([e.to_dict() for e in history]))
        except Exception as e:
            logger.error(f"Failed to save notification history: {e}")
            return False
        return True


class ReportDelivery:
    """Turns a fired trigger into a delivered report notification."""

    def __init__(
        self,
        settings_store: NotificationSettingsStore,
        generator: ReportGenerator,
        service: NotificationService,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self._settings_store = settings_store
        self._generator = generator
        self._service = service
        self._now = now

    async def run(self, period: ReportPeriod) -> Optional[PortfolioReport]:
        """
        Generate and send a report.

        Returns:
            The report, or None if skipped (disabled or inside quiet hours) or
            generation failed
        """
        settings = await self._settings_store.load()
        if not settings.enabled:
            logger.info(f"Skipping {period.value} report: notifications disabled")
            return None

        if await self._settings_store.is_quiet_hours(self._now() if self._now else None):
            logger.info(f"Skipping {period.value} report: quiet hours")
            return None

        try:
            report = await self._generator.generate(period, settings.include_positions)
        except Exception as e:
            logger.error(f"Failed to generate {period.value} report: {e}")
            return None

        try:
            await self._service.send_immediate(period.notification_type.title, self._generator.format_body(report))
        except Exception as e:
            logger.error(f"Failed to deliver {period.value} report: {e}")
        return report

    async def handle_trigger(self, trigger: RecurringTrigger) -> Optional[PortfolioReport]:
        return await self.run(trigger.type.period)
