"""
Feature-averaging phrase scorer.

Each enabled signal is min-max normalized across the round's candidates and
the normalized values are averaged per phrase. BOW indicators carry no
ordering and are left to the classifier.
"""

from spied.candidate_phrase import CandidatePhrase
from spied.config import PhraseScoring, PhraseSignal
from spied.exceptions import ConfigurationError
from spied.logging_config import debug_log
from spied.patterns.base import Pattern
from spied.stats.counters import TwoDimensionalCounter

from ..normalize import min_max_normalize
from . import register_phrase_scorer
from .base import PhraseScorer


@register_phrase_scorer(PhraseScoring.AVERAGE_FEATURES)
class AverageFeaturesPhraseScorer(PhraseScorer):
    """Mean of the min-max normalized signals."""

    name = "average_features"

    def __init__(self, context, signals=None):
        super().__init__(context, signals)
        self.averaged_signals = [
            s for s in context.config.phrases.phrase_signals if s is not PhraseSignal.BOW
        ]
        if not self.averaged_signals:
            raise ConfigurationError("The average_features phrase scorer needs at least one non-BOW signal")

    def score_phrases(
        self,
        label: str,
        candidates: set[CandidatePhrase],
        extracted: TwoDimensionalCounter,
        pattern_weights: dict[Pattern, float]
    ) -> dict[CandidatePhrase, float]:
        # min-max ranges depend on the whole candidate set, so every call
        # renormalizes; only the raw feature bags are reused
        if not candidates:
            return {}
        raw = {p: self.raw_features(label, p, extracted, pattern_weights) for p in candidates}
        totals = {p: 0.0 for p in candidates}
        for signal in self.averaged_signals:
            normalized = min_max_normalize({p: feats.get(signal.value, 0.0) for p, feats in raw.items()})
            for p, value in normalized.items():
                totals[p] += value
        n = len(self.averaged_signals)
        scores = {p: totals[p] / n for p in candidates}
        with self._lock:
            for p, score in scores.items():
                self.learned_scores[(label, p)] = score
        debug_log(f"[PHRASES] {label}: averaged {n} signals over {len(candidates)} candidates")
        return scores
