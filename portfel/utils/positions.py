"""
Position Calculator - Single source of truth for position value calculations.

Usage:
    calculator = PositionCalculator()
    value = calculator.calculate_value(position)
    pnl_pct, pnl = calculator.calculate_profit(100, 60.0, 50.0)
    summary = calculator.summarize(positions)
    merged = calculator.merge(existing, incoming)
"""

from dataclasses import replace

from portfel.errors import ValidationError
from portfel.models import PortfolioSummary, Position


class PositionCalculator:
    """Calculates position values, profit/loss and cost-basis merges."""

    def calculate_value(self, position: Position) -> float:
        """Current market value of a position."""
        return position.quantity * position.current_price

    def calculate_cost(self, position: Position) -> float:
        """Total cost basis of a position."""
        return position.quantity * position.purchase_price

    def calculate_profit(self, quantity: float, current_price: float, avg_cost: float) -> tuple[float, float]:
        """
        Calculate profit/loss for a position.

        Args:
            quantity: Number of shares
            current_price: Current price per share
            avg_cost: Average cost per share

        Returns:
            Tuple of (profit_pct, profit_value)
            - profit_pct: Percentage profit/loss
            - profit_value: Absolute profit/loss
        """
        if avg_cost <= 0:
            return 0.0, 0.0

        profit_pct = ((current_price - avg_cost) / avg_cost) * 100
        profit_value = (current_price - avg_cost) * quantity

        return profit_pct, profit_value

    def position_profit(self, position: Position) -> tuple[float, float]:
        """Shortcut for calculate_profit() on a Position."""
        return self.calculate_profit(position.quantity, position.current_price, position.purchase_price)

    def summarize(self, positions: list[Position]) -> PortfolioSummary:
        """
        Calculate portfolio totals.

        P&L percent is relative to total cost and is 0 for an empty portfolio.
        """
        total_cost = sum(self.calculate_cost(p) for p in positions)
        total_value = sum(self.calculate_value(p) for p in positions)
        total_pnl = total_value - total_cost
        total_pnl_percent = (total_pnl / total_cost) * 100 if total_cost > 0 else 0.0

        return PortfolioSummary(
            total_value=total_value,
            total_cost=total_cost,
            total_pnl=total_pnl,
            total_pnl_percent=total_pnl_percent,
            positions=list(positions),
        )

    def merge(self, existing: Position, incoming: Position) -> Position:
        """
        Merge a new lot into an existing position (weighted average cost basis).

        The incoming lot's current price wins and the earliest purchase date is kept.

        Raises:
            ValidationError: if symbols differ or the merged quantity is not positive
        """
        if existing.symbol != incoming.symbol:
            raise ValidationError(f"Cannot merge {incoming.symbol} into {existing.symbol}")

        quantity = existing.quantity + incoming.quantity
        if quantity <= 0:
            raise ValidationError(f"{existing.symbol}: merged quantity must be positive, got {quantity}")

        total_cost = existing.quantity * existing.purchase_price + incoming.quantity * incoming.purchase_price

        return replace(
            existing,
            quantity=quantity,
            purchase_price=total_cost / quantity,
            current_price=incoming.current_price,
            purchase_date=min(existing.purchase_date, incoming.purchase_date),
        )
