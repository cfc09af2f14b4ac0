"""
Base class for phrase scorers.

A phrase scorer turns the candidate phrases extracted by a label's patterns
into one score per phrase. Both the raw feature bags and the final scores are
cached per (label, phrase) for the current round; start_round() clears them,
since the counters and the known phrases change between rounds.

Example:
    @register_phrase_scorer(PhraseScoring.AVERAGE_FEATURES)
    class AverageFeaturesPhraseScorer(PhraseScorer):
        name = "average_features"

        def score_phrases(self, label, candidates, extracted, pattern_weights):
            ...
"""

import threading
from abc import ABC, abstractmethod

from spied.candidate_phrase import CandidatePhrase
from spied.patterns.base import Pattern
from spied.stats.counters import TwoDimensionalCounter

from ..context import ScoringContext
from .features import PhraseSignals


class PhraseScorer(ABC):
    """
    Abstract phrase scorer.

    Class Attributes:
        name: Scorer name used in logs

    Args:
        context: Shared scoring inputs
        signals: Signal extractor (shared with the pattern scorers)
    """

    name: str = "BasePhraseScorer"

    def __init__(self, context: ScoringContext, signals: PhraseSignals | None = None):
        self.context = context
        self.signals = signals or PhraseSignals(context)
        self.learned_scores: dict[tuple[str, CandidatePhrase], float] = {}
        self.raw_phrase_scores: dict[tuple[str, CandidatePhrase], dict[str, float]] = {}
        self.current_round: int | None = None
        self._lock = threading.Lock()

    def start_round(self, iteration: int):
        """Drop the caches when a new round begins."""
        if iteration == self.current_round:
            return
        with self._lock:
            self.learned_scores.clear()
            self.raw_phrase_scores.clear()
        self.current_round = iteration

    def raw_features(
        self,
        label: str,
        phrase: CandidatePhrase,
        extracted: TwoDimensionalCounter | None,
        pattern_weights: dict[Pattern, float] | None
    ) -> dict[str, float]:
        key = (label, phrase)
        with self._lock:
            cached = self.raw_phrase_scores.get(key)
        if cached is not None:
            return cached
        feats = self.signals.features(
            phrase, label, self.context.config.phrases.phrase_signals, extracted, pattern_weights
        )
        if extracted is None:
            # pattern-selection time: no extraction counts yet, do not cache
            return feats
        with self._lock:
            self.raw_phrase_scores[key] = feats
        return feats

    @abstractmethod
    def score_phrases(
        self,
        label: str,
        candidates: set[CandidatePhrase],
        extracted: TwoDimensionalCounter,
        pattern_weights: dict[Pattern, float]
    ) -> dict[CandidatePhrase, float]:
        """
        Score candidate phrases for a label.

        Args:
            label: Label being learned
            candidates: Phrases extracted this round
            extracted: phrase -> pattern -> extraction count
            pattern_weights: Scores of the label's selected patterns

        Returns:
            phrase -> score (higher is better)
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
