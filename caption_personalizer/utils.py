"""Numeric helpers shared by the voice model and preference memory."""

from decimal import ROUND_HALF_UP, Decimal


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value to [low, high]."""
    return max(low, min(high, float(value)))


def round_half_up(value: float, places: int = 2) -> float:
    """
    Round to `places` decimals with halves rounded away from zero.

    The built-in round() rounds halves to even (0.625 -> 0.62); scores and
    percentages here round 0.625 -> 0.63. The value goes through its shortest
    repr so 0.125 is treated as the decimal 0.125.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))
