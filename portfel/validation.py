"""Field validation shared by manual entry and CSV import."""

import math
import re
from datetime import date, datetime
from typing import Optional

from portfel.models import Position

SYMBOL_PATTERN = re.compile(r"^[A-Z]{3,5}$")


def is_valid_symbol(symbol: str) -> bool:
    return bool(SYMBOL_PATTERN.match(symbol))


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_position(position: Position, today: Optional[date] = None) -> list[str]:
    """
    Validate a position's fields.

    Returns:
        List of human-readable errors (empty if the position is valid)
    """
    today = today or date.today()
    errors = []

    if not isinstance(position.symbol, str) or not is_valid_symbol(position.symbol):
        errors.append(f"Invalid symbol {position.symbol!r} (must be 3-5 uppercase letters)")

    if isinstance(position.quantity, bool) or not isinstance(position.quantity, int) or position.quantity <= 0:
        errors.append(f"Invalid quantity {position.quantity!r} (must be a positive whole number)")

    if not _is_number(position.purchase_price) or position.purchase_price <= 0:
        errors.append(f"Invalid purchase price {position.purchase_price!r} (must be positive)")

    if not _is_number(position.current_price) or position.current_price < 0:
        errors.append(f"Invalid current price {position.current_price!r} (must not be negative)")

    purchase_date = position.purchase_date
    if isinstance(purchase_date, datetime):
        purchase_date = purchase_date.date()
    if not isinstance(purchase_date, date):
        errors.append(f"Invalid purchase date {purchase_date!r}")
    elif purchase_date > today:
        errors.append("Purchase date cannot be in the future")

    return errors
