"""
Ratio-based pattern scores.

score(p) = numerator(p) / denominator(p), where the numerator sums a weight
over the positive phrases of p (1 per phrase, or sqrt(count) with
sqrt_pattern_score) and the denominator depends on the formula:

    PosNegOdds       same weight summed over negative phrases
    PosNegUnlabOdds  ... over negative and unlabeled phrases
    RatioAll         ... over all phrases
    SqrtAllRatio     sum_pos sqrt(count) / sum_all sqrt(count)
    PhEvalInPat      1 + sum over all phrases of weight x badness
    Logreg           same, with badness = 1 - classifier probability

The LogP variants multiply by log(number of positive phrases). Patterns
whose denominator is zero are dropped.

Badness of a phrase (PhEvalInPat) is the mean over the enabled
pattern_eval_signals of how unlike the label it looks; other-semantic-class
and common English words always have badness 1.
"""

import math

from spied.candidate_phrase import CandidatePhrase
from spied.config import PatternScoring, PhraseSignal
from spied.exceptions import ConfigurationError
from spied.logging_config import debug_log
from spied.patterns.base import Pattern
from spied.stats.aggregator import PatternStats

from ..normalize import normalize_softmax_minmax
from ..phrases.features import UNKNOWN_WORD_CLASS_WEIGHT, PhraseSignals
from . import register_pattern_scorer
from .base import PatternScorer

# Edit-distance ratios below this count as "the same word"
EDIT_DISTANCE_MATCH_RATIO = 0.2

_BADNESS_OPTIONS = {
    PatternScoring.PH_EVAL_IN_PAT,
    PatternScoring.PH_EVAL_IN_PAT_LOGP,
    PatternScoring.LOGREG,
    PatternScoring.LOGREG_LOGP,
}
_LOGP_OPTIONS = {PatternScoring.PH_EVAL_IN_PAT_LOGP, PatternScoring.LOGREG_LOGP}


@register_pattern_scorer(
    PatternScoring.POS_NEG_ODDS,
    PatternScoring.POS_NEG_UNLAB_ODDS,
    PatternScoring.RATIO_ALL,
    PatternScoring.SQRT_ALL_RATIO,
    PatternScoring.PH_EVAL_IN_PAT,
    PatternScoring.PH_EVAL_IN_PAT_LOGP,
    PatternScoring.LOGREG,
    PatternScoring.LOGREG_LOGP,
)
class RatioModifiedFreqPatternScorer(PatternScorer):
    """Weighted phrase-support ratios."""

    name = "ratio_modified_freq"

    def __init__(self, context, label, option, phrase_scorer=None):
        super().__init__(context, label, option, phrase_scorer)
        self.signals = phrase_scorer.signals if phrase_scorer is not None else PhraseSignals(context)

    def _weight(self, count: float) -> float:
        return math.sqrt(count) if self.context.config.selection.sqrt_pattern_score else 1.0

    # -- phrase badness ---------------------------------------------------------

    def _phrase_eval_badness(self, phrases: list[CandidatePhrase]) -> dict[CandidatePhrase, float]:
        label = self.label
        eval_signals = self.context.config.phrases.pattern_eval_signals
        scored = [p for p in phrases if not self.context.is_generic_word(p)]
        columns: dict[PhraseSignal, dict[CandidatePhrase, float]] = {}

        if PhraseSignal.SEMANTIC_ODDS in eval_signals:
            odds = normalize_softmax_minmax(self.signals.dict_odds_weights(label))
            columns[PhraseSignal.SEMANTIC_ODDS] = {
                p: 1.0 - odds[p.phrase] if p.phrase in odds else 1.0 for p in scored
            }
        for signal, getter, default in (
            (PhraseSignal.GOOGLE_NGRAM, self.signals.google_ngram, 0.0),
            (PhraseSignal.DOMAIN_NGRAM, self.signals.domain_ngram, 1.0),
        ):
            if signal in eval_signals:
                present = {p: getter(p) for p in scored}
                present = {p: v for p, v in present.items() if v > 0}
                norm = normalize_softmax_minmax(present)
                columns[signal] = {p: 1.0 - norm[p] if p in norm else default for p in scored}
        if PhraseSignal.WORD_CLASS in eval_signals:
            raw = {p: self.signals.word_class(p, label) for p in scored}
            norm = normalize_softmax_minmax(raw)
            columns[PhraseSignal.WORD_CLASS] = {
                p: 1.0 - norm[p] if raw[p] != UNKNOWN_WORD_CLASS_WEIGHT else UNKNOWN_WORD_CLASS_WEIGHT
                for p in scored
            }
        if PhraseSignal.EDIT_DIST_OTHER in eval_signals:
            columns[PhraseSignal.EDIT_DIST_OTHER] = {
                p: 1.0 if self.signals.edit_distance_other(p, label) < EDIT_DISTANCE_MATCH_RATIO else 0.0
                for p in scored
            }
        if PhraseSignal.EDIT_DIST_SAME in eval_signals:
            columns[PhraseSignal.EDIT_DIST_SAME] = {
                p: 0.0 if self.signals.edit_distance_same(p, label) < EDIT_DISTANCE_MATCH_RATIO else 1.0
                for p in scored
            }

        badness = {p: 1.0 for p in phrases}
        if columns:
            for p in scored:
                badness[p] = sum(col[p] for col in columns.values()) / len(columns)
        else:
            for p in scored:
                badness[p] = 0.0
        return badness

    def _classifier_badness(self, phrases: list[CandidatePhrase]) -> dict[CandidatePhrase, float]:
        if self.phrase_scorer is None or not hasattr(self.phrase_scorer, "predict"):
            raise ConfigurationError(f"{self.option.value} pattern scoring needs the learned_classifier phrase scorer")
        probs = self.phrase_scorer.predict(self.label, phrases)
        return {p: 1.0 - prob for p, prob in probs.items()}

    # -- scoring ------------------------------------------------------------------

    def compute(self, stats: PatternStats) -> dict[Pattern, float | None]:
        option = self.option
        badness: dict[CandidatePhrase, float] = {}
        if option in _BADNESS_OPTIONS:
            phrases = set()
            for counter in (stats.positive, stats.negative, stats.unlabeled):
                for _, inner in counter.items():
                    phrases.update(inner)
            phrases = sorted(phrases)
            if option in (PatternScoring.LOGREG, PatternScoring.LOGREG_LOGP):
                badness = self._classifier_badness(phrases)
            else:
                badness = self._phrase_eval_badness(phrases)
            debug_log(f"[PATTERNS] {self.label}: evaluated badness of {len(badness)} phrases")

        raw: dict[Pattern, float | None] = {}
        for pattern in stats.positive.first_keys():
            pos = {ph: c for ph, c in stats.positive.counter(pattern).items() if c > 0}
            if not pos:
                continue
            neg = {ph: c for ph, c in stats.negative.counter(pattern).items() if c > 0}
            unl = {ph: c for ph, c in stats.unlabeled.counter(pattern).items() if c > 0}

            if option is PatternScoring.SQRT_ALL_RATIO:
                numerator = sum(math.sqrt(c) for c in pos.values())
                denominator = sum(math.sqrt(c) for bucket in (pos, neg, unl) for c in bucket.values())
            else:
                numerator = sum(self._weight(c) for c in pos.values())
                if option is PatternScoring.POS_NEG_ODDS:
                    denominator = sum(self._weight(c) for c in neg.values())
                elif option is PatternScoring.POS_NEG_UNLAB_ODDS:
                    denominator = sum(self._weight(c) for bucket in (neg, unl) for c in bucket.values())
                elif option is PatternScoring.RATIO_ALL:
                    denominator = sum(self._weight(c) for bucket in (pos, neg, unl) for c in bucket.values())
                else:
                    denominator = 1.0 + sum(
                        self._weight(c) * badness.get(ph, 1.0)
                        for bucket in (pos, neg, unl) for ph, c in bucket.items()
                    )

            if denominator == 0:
                raw[pattern] = None
                continue
            score = numerator / denominator
            if option in _LOGP_OPTIONS:
                score *= math.log(len(pos))
            raw[pattern] = score
        return raw
