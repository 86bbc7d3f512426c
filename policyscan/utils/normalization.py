"""
Score normalization.

Models are asked for 0-100 scores but sometimes answer on a 0-5 or 0-10
scale. The scale is inferred from the largest score in one response and the
whole batch is rescaled together.
"""

import math
from typing import Any, Iterable, List


def clamp_score(value: Any, default: int = 0) -> int:
    """Coerce a number-ish value to an int in [0, 100]."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return int(round(min(100.0, max(0.0, number))))


def normalize_batch_scores(scores: Iterable[float]) -> List[int]:
    """
    Rescale one response's scores to 0-100.

    max <= 5   -> x20
    max <= 10  -> x10
    max > 100  -> clamp each to 100
    otherwise  -> unchanged

    Order is preserved and every output is an int in [0, 100].
    """
    values = [float(s) for s in scores]
    if not values:
        return []

    top = max(values)
    if top <= 5:
        factor = 20.0
    elif top <= 10:
        factor = 10.0
    else:
        factor = 1.0

    return [clamp_score(v * factor) for v in values]
