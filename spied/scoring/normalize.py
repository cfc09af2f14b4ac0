"""
Score normalization helpers shared by the pattern and phrase scorers.
"""

import math
from typing import Hashable

# Softmax inputs are clipped here so exp() cannot overflow
SOFTMAX_CLIP = 7.0


def normalize_softmax_minmax(
    scores: dict[Hashable, float],
    min_max: bool = True,
    softmax: bool = True,
    one_minus_softmax: bool = False
) -> dict[Hashable, float]:
    """
    Squash scores with a logistic function, then rescale them to [0, 1].

    Args:
        scores: key -> raw score
        min_max: Rescale with (v - min + 1e-10) / (max - min)
        softmax: Apply 1 / (1 + exp(-min(7, v))) first
        one_minus_softmax: Use 1 / (1 + exp(min(7, v))) instead, so high raw
            scores map to low values

    Returns:
        New dict with the same keys. When every value is equal the min-max
        step leaves them at that common value.
    """
    result = dict(scores)
    if softmax:
        sign = 1.0 if one_minus_softmax else -1.0
        result = {k: 1.0 / (1.0 + math.exp(sign * min(SOFTMAX_CLIP, v))) for k, v in result.items()}
    if min_max and result:
        lo = min(result.values())
        hi = max(result.values())
        if hi == lo:
            result = {k: lo for k in result}
        else:
            result = {k: (v - lo + 1e-10) / (hi - lo) for k, v in result.items()}
    return result


def min_max_normalize(values: dict[Hashable, float]) -> dict[Hashable, float]:
    """
    Rescale values to [0, 1] across the candidates.

    A signal that is the same for every candidate carries no preference and
    maps to 1.0 for all of them.
    """
    if not values:
        return {}
    lo = min(values.values())
    hi = max(values.values())
    if hi == lo:
        return {k: 1.0 for k in values}
    return {k: (v - lo) / (hi - lo) for k, v in values.items()}
