"""
Base class for pattern scorers.

A pattern scorer reduces a label's positive/negative/unlabeled counters to
one score per candidate pattern. Subclasses implement compute(); score()
applies the rules every formula shares:

- a pattern with no positive phrase is dropped
- a pattern whose formula has a zero denominator is dropped
- a NaN or infinite score is dropped with a warning
- zero scores are dropped
"""

import math
from abc import ABC, abstractmethod

from spied.config import PatternScoring
from spied.logging_config import debug_log, warning
from spied.patterns.base import Pattern
from spied.stats.aggregator import PatternStats

from ..context import ScoringContext


class PatternScorer(ABC):
    """
    Abstract pattern scorer.

    Class Attributes:
        name: Scorer family name used in logs

    Args:
        context: Shared scoring inputs
        label: Label whose patterns are scored
        option: Formula to apply
        phrase_scorer: Classifier used by the Logreg formulas
    """

    name: str = "BasePatternScorer"

    def __init__(self, context: ScoringContext, label: str, option: PatternScoring, phrase_scorer=None):
        self.context = context
        self.label = label
        self.option = option
        self.phrase_scorer = phrase_scorer

    @abstractmethod
    def compute(self, stats: PatternStats) -> dict[Pattern, float | None]:
        """
        Raw score per pattern with positive support.

        None marks a zero denominator.
        """
        pass

    def score(self, stats: PatternStats) -> dict[Pattern, float]:
        """
        Score every pattern in stats.

        Returns:
            pattern -> finite, non-zero score
        """
        raw = self.compute(stats)
        scores: dict[Pattern, float] = {}
        undefined = 0
        for pattern, value in raw.items():
            if stats.positive.distinct_count(pattern) == 0:
                continue
            if value is None:
                undefined += 1
                continue
            if math.isnan(value) or math.isinf(value):
                warning(f"[PATTERNS] {self.label}: skipping pattern '{pattern}' with {value} score ({self.option.value})")
                continue
            if value != 0.0:
                scores[pattern] = value
        debug_log(
            f"[PATTERNS] {self.label}: {self.option.value} scored {len(scores)} of {len(raw)} patterns"
            + (f" ({undefined} with zero denominator)" if undefined else "")
        )
        return scores

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(option={self.option.value!r}, label={self.label!r})"
