"""
Readiness Scorer.

Maps an extraction to a single 0-100 readiness score using fixed weights
over field confidences. Also owns the clamping rules applied to every
number the completion service hands back, since the service is not
trusted to respect bounds.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lead_reasoner.schemas.extraction import ExtractionResult

# Decimal so the weights sum to exactly 1 and 82.5 rounds to 83.
READINESS_WEIGHTS: dict[str, Decimal] = {
    "intent": Decimal("0.25"),
    "urgency": Decimal("0.20"),
    "budget": Decimal("0.20"),
    "timeline": Decimal("0.15"),
    "motivation": Decimal("0.10"),
    "location": Decimal("0.10"),
}

SCORE_MIN = 0
SCORE_MAX = 100


def clamp(value: float, low: float, high: float) -> float:
    """
    Clamp ``value`` into ``[low, high]``. NaN collapses to ``low``.

    Compares before any float conversion so integers too large for a
    float still clamp to the nearest bound.
    """
    if isinstance(value, float) and math.isnan(value):
        return low
    return min(high, max(low, value))


def clamp_confidence(value: float) -> float:
    return float(clamp(value, 0.0, 1.0))


def round_half_up(value: float | Decimal) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_score(value: float) -> int:
    """Clamp a readiness score into [0, 100] and round to the nearest integer."""
    return round_half_up(clamp(value, SCORE_MIN, SCORE_MAX))


def readiness_score(extraction: ExtractionResult) -> int:
    """
    Weighted readiness over extraction confidences.

    ``round(clamp(100 * sum(weight * confidence), 0, 100))`` with half-up
    rounding. Total over any valid extraction.
    """
    total = sum(
        (
            weight * Decimal(str(getattr(extraction, name).confidence))
            for name, weight in READINESS_WEIGHTS.items()
        ),
        Decimal("0"),
    )
    raw = total * 100
    bounded = min(Decimal(SCORE_MAX), max(Decimal(SCORE_MIN), raw))
    return round_half_up(bounded)
