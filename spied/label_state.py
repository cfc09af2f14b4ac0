"""
Per-label learning state.

One LabelState per category holds everything the controller accumulates for
that label across rounds: the seed dictionary, the phrases and patterns
learned in each iteration, the (possibly annealed) pattern threshold and the
ignore set. It also owns the label's string-comparison caches, which the
phrase scorers fill from worker threads.
"""

import threading
from collections import Counter
from dataclasses import dataclass, field

from spied.candidate_phrase import CandidatePhrase
from spied.patterns.base import Pattern
from spied.utils.text_utils import word_shape


@dataclass
class LabelState:
    """
    Learning state of one label.

    Attributes:
        label: Category name
        seeds: Seed phrases (append-only)
        learned_words: iteration -> {phrase: score}, in acceptance order
        learned_patterns: iteration -> {pattern: score}
        threshold_select_pattern: Current pattern acceptance threshold
        ignore_words: Phrases never accepted for this label
    """
    label: str
    seeds: set[CandidatePhrase] = field(default_factory=set)
    learned_words: dict[int, dict[CandidatePhrase, float]] = field(default_factory=dict)
    learned_patterns: dict[int, dict[Pattern, float]] = field(default_factory=dict)
    threshold_select_pattern: float = 1.0
    ignore_words: set[CandidatePhrase] = field(default_factory=set)
    edit_distance_same_cache: dict[str, float] = field(default_factory=dict)
    edit_distance_other_cache: dict[str, float] = field(default_factory=dict)
    word_shape_counts: dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def add_seeds(self, phrases):
        self.seeds.update(phrases)

    def add_learned_words(self, iteration: int, words: dict[CandidatePhrase, float]):
        self.learned_words.setdefault(iteration, {}).update(words)

    def add_learned_patterns(self, iteration: int, patterns: dict[Pattern, float]):
        self.learned_patterns.setdefault(iteration, {}).update(patterns)

    def remove_learned_patterns(self, patterns):
        """Drop patterns from every iteration (they were evicted by a less restrictive one)."""
        patterns = set(patterns)
        for pats in self.learned_patterns.values():
            for p in patterns & set(pats):
                del pats[p]

    def learned_word_set(self) -> set[CandidatePhrase]:
        words: set[CandidatePhrase] = set()
        for scored in self.learned_words.values():
            words.update(scored)
        return words

    def known_words(self) -> set[CandidatePhrase]:
        """Seeds plus every learned phrase."""
        return self.seeds | self.learned_word_set()

    def all_learned_patterns(self) -> dict[Pattern, float]:
        merged: dict[Pattern, float] = {}
        for iteration in sorted(self.learned_patterns):
            merged.update(self.learned_patterns[iteration])
        return merged

    def num_learned_words(self) -> int:
        return sum(len(words) for words in self.learned_words.values())

    def cached(self, cache: dict, key: str, compute):
        """Thread-safe get-or-compute on one of the caches."""
        with self._lock:
            if key in cache:
                return cache[key]
        value = compute()
        with self._lock:
            cache.setdefault(key, value)
            return cache[key]

    def shape_counts(self) -> dict[str, int]:
        """Word-shape histogram of the known phrases, computed once per round."""
        with self._lock:
            if self.word_shape_counts:
                return self.word_shape_counts
        counts = Counter(word_shape(p.phrase) for p in self.known_words())
        with self._lock:
            if not self.word_shape_counts:
                self.word_shape_counts.update(counts)
            return self.word_shape_counts

    def clear_round_caches(self):
        """Known phrases changed, so distances to them are stale."""
        with self._lock:
            self.edit_distance_same_cache.clear()
            self.edit_distance_other_cache.clear()
            self.word_shape_counts.clear()
