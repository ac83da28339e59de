"""Tests for position calculations and validation."""

from datetime import date, datetime

import pytest
from conftest import TODAY, make_position

from portfel.errors import ValidationError
from portfel.utils.positions import PositionCalculator
from portfel.validation import is_valid_symbol, validate_position


class TestCalculateProfit:
    def setup_method(self):
        self.calc = PositionCalculator()

    def test_profit(self):
        pct, value = self.calc.calculate_profit(100, 60.0, 50.0)
        assert pct == pytest.approx(20.0)
        assert value == pytest.approx(1000.0)

    def test_loss(self):
        pct, value = self.calc.calculate_profit(10, 40.0, 50.0)
        assert pct == pytest.approx(-20.0)
        assert value == pytest.approx(-100.0)

    def test_zero_cost_returns_zero(self):
        assert self.calc.calculate_profit(10, 40.0, 0.0) == (0.0, 0.0)


class TestSummarize:
    def setup_method(self):
        self.calc = PositionCalculator()

    def test_totals(self):
        positions = [
            make_position("PKN", 100, 50.0, 55.0),
            make_position("JSW", 10, 100.0, 90.0),
        ]
        summary = self.calc.summarize(positions)
        assert summary.total_cost == pytest.approx(6000.0)
        assert summary.total_value == pytest.approx(6400.0)
        assert summary.total_pnl == pytest.approx(400.0)
        assert summary.total_pnl_percent == pytest.approx(400.0 / 6000.0 * 100)
        assert [p.symbol for p in summary.positions] == ["PKN", "JSW"]

    def test_empty_portfolio(self):
        summary = self.calc.summarize([])
        assert summary.total_value == 0
        assert summary.total_pnl_percent == 0.0


class TestMerge:
    def setup_method(self):
        self.calc = PositionCalculator()

    def test_weighted_average_price(self):
        """100 @ 50 on 2024-01-15 plus 50 @ 55 on 2024-01-01."""
        existing = make_position("PKN", 100, 50.0, 50.0, date(2024, 1, 15))
        incoming = make_position("PKN", 50, 55.0, 56.0, date(2024, 1, 1))

        merged = self.calc.merge(existing, incoming)

        assert merged.quantity == 150
        assert merged.purchase_price == pytest.approx(51.6666666667)
        assert merged.purchase_date == date(2024, 1, 1)
        assert merged.current_price == 56.0

    def test_keeps_earlier_existing_date(self):
        existing = make_position("PKN", 10, 50.0, purchase_date=date(2023, 5, 1))
        incoming = make_position("PKN", 10, 60.0, purchase_date=date(2024, 5, 1))
        assert self.calc.merge(existing, incoming).purchase_date == date(2023, 5, 1)

    def test_does_not_mutate_inputs(self):
        existing = make_position("PKN", 10, 50.0)
        self.calc.merge(existing, make_position("PKN", 10, 60.0))
        assert existing.quantity == 10

    def test_different_symbols_rejected(self):
        with pytest.raises(ValidationError):
            self.calc.merge(make_position("PKN"), make_position("JSW"))

    def test_non_positive_total_rejected(self):
        with pytest.raises(ValidationError):
            self.calc.merge(make_position("PKN", 0), make_position("PKN", 0))


class TestValidation:
    @pytest.mark.parametrize("symbol", ["PKN", "ABCD", "ABCDE"])
    def test_valid_symbols(self, symbol):
        assert is_valid_symbol(symbol)

    @pytest.mark.parametrize("symbol", ["PK", "ABCDEF", "pkn", "PK1", "", "P-N"])
    def test_invalid_symbols(self, symbol):
        assert not is_valid_symbol(symbol)

    def test_valid_position(self):
        assert validate_position(make_position(), TODAY) == []

    def test_collects_every_error(self):
        position = make_position("X1", 0, -5.0, purchase_date=date(2030, 1, 1))
        errors = validate_position(position, TODAY)
        # symbol, quantity, purchase price, current price, date
        assert len(errors) == 5

    def test_future_date_rejected(self):
        errors = validate_position(make_position(purchase_date=date(2024, 6, 2)), TODAY)
        assert errors and "future" in errors[0]

    def test_today_is_allowed(self):
        assert validate_position(make_position(purchase_date=TODAY), TODAY) == []

    def test_datetime_purchase_date_is_normalized(self):
        position = make_position(purchase_date=datetime(2024, 1, 15, 10, 30))
        assert validate_position(position, TODAY) == []
