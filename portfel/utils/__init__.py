"""Utility helpers for Portfel."""

from portfel.utils.positions import PositionCalculator

__all__ = ["PositionCalculator"]
