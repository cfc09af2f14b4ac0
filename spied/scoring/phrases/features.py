"""
Per-phrase signals.

Every signal is oriented so that a higher value means "more like the label":

- pat_wt_by_freq: sum of extraction count x selected-pattern weight, divided
  by the phrase's processed corpus frequency
- semantic_odds: n-gram odds of the label's seeds vs. the other labels' seeds
  and the other-semantic-class words
- google_ngram / domain_ngram: corpus vs. external frequency ratio
- word_class: share of the phrase's distributional cluster already known for
  the label
- word_vector: cosine similarity to the centroid of the label's known phrases
- edit_dist_same: 1 - normalized edit distance to the closest known phrase
  of the label
- edit_dist_other: normalized edit distance to the closest phrase of any
  other label or other semantic class
- word_shape: how often the phrase's shape occurs among the label's known
  phrases, relative to all labels
- is_first_capital: 1.0 if the phrase starts with an upper-case letter
- bow: one indicator per word (classifier only)
"""

import threading
from collections import Counter

import numpy as np

from spied.candidate_phrase import CandidatePhrase
from spied.config import EDIT_DISTANCE_MAX, EDIT_DISTANCE_MIN_LENGTH, PhraseSignal
from spied.patterns.base import Pattern
from spied.stats.counters import TwoDimensionalCounter
from spied.utils.text_utils import bounded_distance, is_first_capital, word_shape

from ..context import ScoringContext

BOW_PREFIX = "bow-"

# Default word-class weight for phrases in no known cluster
UNKNOWN_WORD_CLASS_WEIGHT = 0.5


def ngrams(phrase: str, max_n: int) -> list[str]:
    words = phrase.split()
    return [
        " ".join(words[i:i + n])
        for n in range(1, max_n + 1)
        for i in range(len(words) - n + 1)
    ]


def edit_distance_ratio(phrase: str, known) -> float:
    """
    Smallest distance / max(len) against known phrases.

    Phrases shorter than EDIT_DISTANCE_MIN_LENGTH, and phrases with nothing
    within EDIT_DISTANCE_MAX edits, get 1.0.
    """
    if len(phrase) < EDIT_DISTANCE_MIN_LENGTH:
        return 1.0
    best = 1.0
    for other in known:
        text = str(other)
        d = bounded_distance(phrase, text, EDIT_DISTANCE_MAX - 1)
        if d is None:
            continue
        ratio = d / max(len(phrase), len(text))
        if ratio < best:
            best = ratio
            if best == 0.0:
                break
    return best


class PhraseSignals:
    """
    Computes signals for one run.

    Label-level aggregates (n-gram odds, cluster and shape counts, vector
    centroids) are derived from the known phrases and cached until
    reset() is called at the start of a round.
    """

    def __init__(self, context: ScoringContext):
        self.context = context
        self._lock = threading.Lock()
        self._dict_odds: dict[str, dict[str, float]] = {}
        self._cluster_counts: dict[str, Counter] = {}
        self._centroids: dict[str, np.ndarray | None] = {}

    def reset(self):
        with self._lock:
            self._dict_odds.clear()
            self._cluster_counts.clear()
            self._centroids.clear()
        for state in self.context.labels.values():
            state.clear_round_caches()

    # -- label-level aggregates -------------------------------------------

    def dict_odds_weights(self, label: str) -> dict[str, float]:
        """
        n-gram -> (count in label seeds + 1) / (count in other seeds and other-semantic words + 1).
        """
        with self._lock:
            cached = self._dict_odds.get(label)
        if cached is not None:
            return cached
        max_n = self.context.config.patterns.num_words_compound

        def _counts(phrases) -> Counter:
            counts: Counter = Counter()
            for p in phrases:
                counts.update(ngrams(str(p), max_n))
            return counts

        own = _counts(self.context.labels[label].seeds)
        others = _counts(self.context.dictionaries.other_semantic_words)
        for other in self.context.other_labels(label):
            others.update(_counts(self.context.labels[other].seeds))
        weights = {g: (c + 1.0) / (others.get(g, 0) + 1.0) for g, c in own.items()}
        with self._lock:
            self._dict_odds[label] = weights
        return weights

    def _word_class(self, phrase: str) -> int | None:
        classes = self.context.word_classes
        cluster = classes.get(phrase)
        if cluster is None:
            cluster = classes.get(phrase.lower())
        return cluster

    def _clusters(self, label: str) -> Counter:
        with self._lock:
            cached = self._cluster_counts.get(label)
        if cached is not None:
            return cached
        counts: Counter = Counter()
        for p in self.context.known_words(label):
            cluster = self._word_class(p.phrase)
            if cluster is not None:
                counts[cluster] += 1
        with self._lock:
            self._cluster_counts[label] = counts
        return counts

    def _vector(self, phrase: str) -> np.ndarray | None:
        vectors = self.context.word_vectors
        key = phrase.replace(" ", "_")
        vec = vectors.get(key)
        if vec is None:
            vec = vectors.get(key.lower())
        return vec

    def _centroid(self, label: str) -> np.ndarray | None:
        with self._lock:
            if label in self._centroids:
                return self._centroids[label]
        found = [v for v in (self._vector(p.phrase) for p in self.context.known_words(label)) if v is not None]
        centroid = np.mean(found, axis=0) if found else None
        with self._lock:
            self._centroids[label] = centroid
        return centroid

    # -- signals ------------------------------------------------------------

    def pat_wt_by_freq(
        self,
        phrase: CandidatePhrase,
        extracted: TwoDimensionalCounter,
        pattern_weights: dict[Pattern, float]
    ) -> float:
        total = 0.0
        for pattern, count in extracted.counter(phrase).items():
            total += count * pattern_weights.get(pattern, 0.0)
        freq = self.context.corpus_stats.processed(phrase.phrase)
        return total / freq if freq > 0 else total

    def semantic_odds(self, phrase: CandidatePhrase, label: str) -> float:
        return self.dict_odds_weights(label).get(phrase.phrase, 0.0)

    def google_ngram(self, phrase: CandidatePhrase) -> float:
        return self.context.corpus_stats.google_ngram_score(phrase.phrase)

    def domain_ngram(self, phrase: CandidatePhrase) -> float:
        return self.context.corpus_stats.domain_ngram_score(phrase.phrase)

    def word_class(self, phrase: CandidatePhrase, label: str) -> float:
        cluster = self._word_class(phrase.phrase)
        if cluster is None:
            return UNKNOWN_WORD_CLASS_WEIGHT
        in_label = self._clusters(label).get(cluster, 0)
        in_all = sum(self._clusters(other).get(cluster, 0) for other in self.context.labels)
        return in_label / (in_all + 1.0)

    def word_vector(self, phrase: CandidatePhrase, label: str) -> float | None:
        """
        Cosine similarity to the label centroid.

        Returns the configured missing_vector_similarity (possibly None) when
        the phrase or the label has no vector.
        """
        missing = self.context.config.phrases.missing_vector_similarity
        vec = self._vector(phrase.phrase)
        centroid = self._centroid(label)
        if vec is None or centroid is None:
            return missing
        denom = float(np.linalg.norm(vec) * np.linalg.norm(centroid))
        if denom == 0.0:
            return missing
        return float(np.dot(vec, centroid) / denom)

    def edit_distance_same(self, phrase: CandidatePhrase, label: str) -> float:
        """Distance ratio to the label's own known phrases (0 = identical)."""
        state = self.context.labels[label]
        known = [p for p in state.known_words() if p != phrase]
        return state.cached(
            state.edit_distance_same_cache, phrase.phrase,
            lambda: edit_distance_ratio(phrase.phrase, known),
        )

    def edit_distance_other(self, phrase: CandidatePhrase, label: str) -> float:
        """Distance ratio to other labels' phrases and other-semantic words."""
        state = self.context.labels[label]

        def _compute():
            others = set(str(p) for p in self.context.other_labels_words(label))
            others |= self.context.dictionaries.other_semantic_words
            return edit_distance_ratio(phrase.phrase, others)

        return state.cached(state.edit_distance_other_cache, phrase.phrase, _compute)

    def word_shape_score(self, phrase: CandidatePhrase, label: str) -> float:
        shape = word_shape(phrase.phrase)
        own = self.context.labels[label].shape_counts().get(shape, 0)
        total = sum(self.context.labels[other].shape_counts().get(shape, 0) for other in self.context.labels)
        return own / (total + 1.0)

    # -- feature bags ---------------------------------------------------------

    def features(
        self,
        phrase: CandidatePhrase,
        label: str,
        signals: list[PhraseSignal],
        extracted: TwoDimensionalCounter | None = None,
        pattern_weights: dict[Pattern, float] | None = None
    ) -> dict[str, float]:
        """
        Feature bag for one phrase.

        Keys are signal names; BOW adds one "bow-<word>" key per word. The
        phrase's own feature bag (if any) is included as well.
        """
        feats: dict[str, float] = dict(phrase.features)
        for signal in signals:
            if signal is PhraseSignal.PAT_WT_BY_FREQ:
                if extracted is not None:
                    feats[signal.value] = self.pat_wt_by_freq(phrase, extracted, pattern_weights or {})
                else:
                    feats[signal.value] = 0.0
            elif signal is PhraseSignal.SEMANTIC_ODDS:
                feats[signal.value] = self.semantic_odds(phrase, label)
            elif signal is PhraseSignal.GOOGLE_NGRAM:
                feats[signal.value] = self.google_ngram(phrase)
            elif signal is PhraseSignal.DOMAIN_NGRAM:
                feats[signal.value] = self.domain_ngram(phrase)
            elif signal is PhraseSignal.WORD_CLASS:
                feats[signal.value] = self.word_class(phrase, label)
            elif signal is PhraseSignal.WORD_VECTOR:
                sim = self.word_vector(phrase, label)
                feats[signal.value] = sim if sim is not None else 0.0
            elif signal is PhraseSignal.EDIT_DIST_SAME:
                feats[signal.value] = 1.0 - self.edit_distance_same(phrase, label)
            elif signal is PhraseSignal.EDIT_DIST_OTHER:
                feats[signal.value] = self.edit_distance_other(phrase, label)
            elif signal is PhraseSignal.WORD_SHAPE:
                feats[signal.value] = self.word_shape_score(phrase, label)
            elif signal is PhraseSignal.IS_FIRST_CAPITAL:
                feats[signal.value] = 1.0 if is_first_capital(phrase.phrase) else 0.0
            elif signal is PhraseSignal.BOW:
                for word in phrase.phrase.split():
                    feats[f"{BOW_PREFIX}{word}"] = 1.0
        return feats
