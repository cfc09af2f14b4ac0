"""
Frequency-based pattern scores.

P, N and U are the numbers of distinct positive, negative and unlabeled
phrases a pattern extracts, and A = P + N + U:

    RlogF          (P / A) * log(P)
    RlogFPosNeg    (P / (P + N)) * log(P)
    RlogFUnlabNeg  (P / (N + U)) * log(P)
    RlogFNeg       (P / (N + 1)) * log(P)
    YanGarber02    (P / A) * log(P),        only if P / (P + N) > 0.8
    LinICML03      (P / (P + N)) * log(P + 1), only if P / (P + N) > 0.8

A pattern extracting a single positive phrase gets log(1) = 0 from the log(P)
formulas and is therefore dropped.
"""

import math

from spied.config import PRECISION_FILTER_THRESHOLD, PatternScoring
from spied.patterns.base import Pattern
from spied.stats.aggregator import PatternStats

from . import register_pattern_scorer
from .base import PatternScorer


def _ratio(numerator: float, denominator: float) -> float | None:
    return numerator / denominator if denominator else None


@register_pattern_scorer(
    PatternScoring.RLOGF,
    PatternScoring.RLOGF_POS_NEG,
    PatternScoring.RLOGF_UNLAB_NEG,
    PatternScoring.RLOGF_NEG,
    PatternScoring.YAN_GARBER_02,
    PatternScoring.LIN_ICML_03,
)
class FreqBasedPatternScorer(PatternScorer):
    """RlogF family and the precision-filtered confidence scores."""

    name = "freq_based"

    def _score_one(self, pos: int, neg: int, unlab: int) -> float | None:
        option = self.option
        log_p = math.log(pos)
        total = pos + neg + unlab
        if option is PatternScoring.RLOGF:
            ratio = _ratio(pos, total)
        elif option is PatternScoring.RLOGF_POS_NEG:
            ratio = _ratio(pos, pos + neg)
        elif option is PatternScoring.RLOGF_UNLAB_NEG:
            ratio = _ratio(pos, neg + unlab)
        elif option is PatternScoring.RLOGF_NEG:
            ratio = pos / (neg + 1.0)
        else:
            precision = pos / (pos + neg)
            if precision <= PRECISION_FILTER_THRESHOLD:
                return 0.0
            if option is PatternScoring.YAN_GARBER_02:
                return (pos / total) * log_p
            return precision * math.log(pos + 1)
        return None if ratio is None else ratio * log_p

    def compute(self, stats: PatternStats) -> dict[Pattern, float | None]:
        raw: dict[Pattern, float | None] = {}
        for pattern in stats.positive.first_keys():
            pos = stats.positive.distinct_count(pattern)
            if pos == 0:
                continue
            raw[pattern] = self._score_one(
                pos,
                stats.negative.distinct_count(pattern),
                stats.unlabeled.distinct_count(pattern),
            )
        return raw
