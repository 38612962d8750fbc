# ilaw/utils/scoring.py
import math


def round_half_away(value: float) -> int:
    """Rounds to the nearest integer, with .5 going away from zero (2.5 -> 3, -2.5 -> -3)."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def safe_percentage(correct: int | None, total: int | None) -> int:
    """round(correct / total * 100), or 0 when there is nothing to divide by."""
    correct = correct or 0
    total = total or 0
    if total <= 0:
        return 0
    return round_half_away(correct / total * 100)
