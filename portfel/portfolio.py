"""
Portfolio Store - Single source of truth for the user's positions.

Usage:
    store = PortfolioStore(storage)
    positions = await store.load()
    await store.add(Position('PKN', 100, 50.0, 55.0, date(2024, 1, 15)))
    await store.update('PKN', {'current_price': 60.0})
    result = await store.import_positions(parsed.positions)

All positions live in one JSON document. Reads are served from a short TTL
cache; every successful write replaces the cache with exactly what was written.
"""

import json
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Optional

from portfel.cache import Cache
from portfel.errors import NotFoundError, ValidationError
from portfel.models import PortfolioSummary, Position, parse_date
from portfel.storage.base import PORTFOLIO_KEY, StorageAdapter
from portfel.utils.positions import PositionCalculator
from portfel.validation import validate_position

logger = logging.getLogger(__name__)

# Cache TTL in seconds
CACHE_TTL_SECONDS = 5.0

_CACHE_KEY = "positions"

# Fields update() may change
UPDATABLE_FIELDS = ("quantity", "purchase_price", "current_price", "purchase_date")


@dataclass
class ImportSummary:
    """Outcome of a batch import."""

    imported: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"imported": self.imported, "errors": list(self.errors)}


def _copy(positions: list[Position]) -> list[Position]:
    return [replace(p) for p in positions]


class PortfolioStore:
    """Cached, merge-aware persistence of positions."""

    def __init__(
        self,
        storage: StorageAdapter,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        calculator: Optional[PositionCalculator] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize the store.

        Args:
            storage: Key/value storage adapter
            ttl_seconds: How long a read or write stays authoritative
            clock: Monotonic clock used by the cache
            calculator: PositionCalculator (created if None)
            today: Callable returning today's date, used for validation
        """
        self._storage = storage
        self._cache: Cache[list[Position]] = Cache("portfolio", ttl_seconds=ttl_seconds, clock=clock)
        self._calculator = calculator or PositionCalculator()
        self._today = today or date.today

    @property
    def cache(self) -> Cache:
        return self._cache

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def load(self, strict: bool = False) -> list[Position]:
        """
        Load the portfolio.

        Returns a copy of the cached list when within TTL, otherwise reads
        through to storage. Unreadable or corrupt data yields an empty list,
        or is re-raised when ``strict`` is set.
        """
        cached = self._cache.get(_CACHE_KEY)
        if cached is not None:
            return _copy(cached)

        try:
            raw = await self._storage.get(PORTFOLIO_KEY)
        except Exception as e:
            logger.error(f"Failed to load portfolio: {e}")
            if strict:
                raise
            return []

        if not raw:
            positions: list[Position] = []
        else:
            try:
                positions = self._deserialize(raw)
            except (ValueError, ValidationError) as e:
                logger.error(f"Invalid portfolio data format, ignoring stored portfolio: {e}")
                if strict:
                    raise
                return []

        self._cache.set(_CACHE_KEY, positions)
        return _copy(positions)

    async def save(self, positions: list[Position]) -> bool:
        """
        Write the full portfolio as a single payload.

        Returns:
            True on success. On failure the cache is left untouched.
        """
        try:
            payload = json.dumps([p.to_dict() for p in positions])
            await self._storage.set(PORTFOLIO_KEY, payload)
        except Exception as e:
            logger.error(f"Failed to save portfolio: {e}")
            return False

        self._cache.set(_CACHE_KEY, _copy(positions))
        return True

    async def clear(self) -> bool:
        """Remove every position and invalidate the cache."""
        try:
            await self._storage.remove(PORTFOLIO_KEY)
        except Exception as e:
            logger.error(f"Failed to clear portfolio: {e}")
            return False
        finally:
            self._cache.invalidate(_CACHE_KEY)
        return True

    # -------------------------------------------------------------------------
    # Single-position operations
    # -------------------------------------------------------------------------

    async def get(self, symbol: str) -> Optional[Position]:
        """Get a position by symbol, or None."""
        symbol = symbol.strip().upper()
        for position in await self.load():
            if position.symbol == symbol:
                return position
        return None

    async def add(self, position: Position) -> bool:
        """
        Add a position, merging into an existing one with the same symbol.

        Returns:
            False if the position is invalid, the merge is invalid or the write fails
        """
        positions = await self._load_for_write(f"add {position.symbol}")
        if positions is None:
            return False
        try:
            self._apply_add(positions, position)
        except ValidationError as e:
            logger.error(f"Rejected position {position.symbol}: {e}")
            return False
        return await self.save(positions)

    async def remove(self, symbol: str) -> bool:
        """Remove a position. Removing an absent symbol succeeds without writing."""
        symbol = symbol.strip().upper()
        positions = await self._load_for_write(f"remove {symbol}")
        if positions is None:
            return False
        remaining = [p for p in positions if p.symbol != symbol]
        if len(remaining) == len(positions):
            return True
        return await self.save(remaining)

    async def update(self, symbol: str, changes: dict[str, Any]) -> bool:
        """
        Shallow-merge ``changes`` into an existing position.

        Returns:
            False (without writing) if the symbol is missing or the result is invalid
        """
        symbol = symbol.strip().upper()
        positions = await self._load_for_write(f"update {symbol}")
        if positions is None:
            return False
        try:
            index = self._index_of(positions, symbol)
            updated = replace(positions[index], **self._coerce_changes(changes))
            errors = validate_position(updated, self._today())
            if errors:
                raise ValidationError(errors)
        except NotFoundError as e:
            logger.error(str(e))
            return False
        except ValidationError as e:
            logger.error(f"Rejected update for {symbol}: {e}")
            return False

        positions[index] = updated
        return await self.save(positions)

    # -------------------------------------------------------------------------
    # Batch import
    # -------------------------------------------------------------------------

    async def import_positions(self, positions: list[Position]) -> ImportSummary:
        """
        Import many positions with one read and one write.

        Each incoming position is merged in order, exactly as sequential add()
        calls would. Invalid positions are skipped and reported.
        """
        result = ImportSummary()
        current = await self._load_for_write("import positions")
        if current is None:
            result.errors.append("Portfolio could not be read; nothing was imported")
            return result

        for position in positions:
            try:
                self._apply_add(current, position)
                result.imported += 1
            except ValidationError as e:
                result.errors.append(f"Failed to import {position.symbol}: {e}")

        if result.imported == 0:
            return result

        if not await self.save(current):
            result.errors.append(f"Failed to save {result.imported} imported position(s)")
            result.imported = 0
        else:
            logger.info(f"Imported {result.imported} position(s) ({len(result.errors)} rejected)")

        return result

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    async def summary(self) -> PortfolioSummary:
        """Portfolio totals for the current positions."""
        return self._calculator.summarize(await self.load())

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _load_for_write(self, action: str) -> Optional[list[Position]]:
        """Load for a read-modify-write. None if the stored portfolio is unreadable."""
        try:
            return await self.load(strict=True)
        except Exception as e:
            logger.error(f"Cannot {action}: stored portfolio is unreadable ({e})")
            return None

    def _apply_add(self, positions: list[Position], position: Position) -> None:
        """Append or merge ``position`` into ``positions`` in place."""
        position = replace(position, symbol=position.symbol.strip().upper())
        errors = validate_position(position, self._today())
        if errors:
            raise ValidationError(errors)

        for i, existing in enumerate(positions):
            if existing.symbol == position.symbol:
                positions[i] = self._calculator.merge(existing, position)
                return
        positions.append(position)

    def _index_of(self, positions: list[Position], symbol: str) -> int:
        for i, position in enumerate(positions):
            if position.symbol == symbol:
                return i
        raise NotFoundError(symbol)

    def _coerce_changes(self, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        coerced = dict(changes)
        if "purchase_date" in coerced:
            coerced["purchase_date"] = parse_date(coerced["purchase_date"])
        if isinstance(coerced.get("quantity"), float) and coerced["quantity"].is_integer():
            coerced["quantity"] = int(coerced["quantity"])
        for key in ("purchase_price", "current_price"):
            if isinstance(coerced.get(key), int) and not isinstance(coerced[key], bool):
                coerced[key] = float(coerced[key])
        return coerced

    def _deserialize(self, raw: str) -> list[Position]:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValidationError("Portfolio payload is not a list")
        return [Position.from_dict(item) for item in data]
