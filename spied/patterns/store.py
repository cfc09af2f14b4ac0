"""
Per-token pattern store.

Holds, for every sentence id and token index, the set of patterns whose
target is that token. Candidate patterns for a label are read from here
(the patterns around its positive tokens), and the entries around relabeled
tokens are recomputed after each round, since a newly labeled token turns
into a label-class element in its neighbours' contexts.
"""

import threading
from typing import Iterable

from spied.data.corpus import Corpus
from spied.data.tokens import DataInstance
from spied.logging_config import debug_log

from .base import Pattern
from .factory import PatternFactory


class PatternStore:
    """
    sent_id -> token index -> patterns.

    Example:
        store = PatternStore.build(corpus, factory)
        store.patterns_at("doc-0", 4)
        store.refresh(sentence, changed_indices=[4])
    """

    def __init__(self, factory: PatternFactory):
        self.factory = factory
        self._patterns: dict[str, dict[int, frozenset]] = {}
        self._lock = threading.Lock()

    @classmethod
    def build(cls, corpus: Corpus, factory: PatternFactory) -> "PatternStore":
        store = cls(factory)
        for sentences, _ in corpus.iter_batches():
            for sentence in sentences.values():
                store.add_sentence(sentence)
        debug_log(f"[PATTERNS] Generated patterns for {len(store)} sentences")
        return store

    def add_sentence(self, sentence: DataInstance):
        computed = {
            i: frozenset(p) for i, p in self.factory.patterns_for_sentence(sentence).items() if p
        }
        with self._lock:
            self._patterns[sentence.sent_id] = computed

    def refresh(self, sentence: DataInstance, changed_indices: Iterable[int] | None = None):
        """
        Recompute the entries of a relabeled sentence.

        Filler words can stretch a context window arbitrarily far, so the whole
        sentence is regenerated whenever any of its tokens changed.
        """
        if changed_indices is not None and not list(changed_indices):
            return
        self.add_sentence(sentence)

    def patterns_at(self, sent_id: str, index: int) -> frozenset:
        with self._lock:
            return self._patterns.get(sent_id, {}).get(index, frozenset())

    def patterns_for(self, sent_id: str) -> dict[int, frozenset]:
        with self._lock:
            return dict(self._patterns.get(sent_id, {}))

    def candidate_patterns(self, corpus: Corpus, label: str) -> set[Pattern]:
        """Patterns generated around tokens currently labeled with label."""
        candidates: set[Pattern] = set()
        for sentences, _ in corpus.iter_batches():
            for sent_id, sentence in sentences.items():
                entry = self.patterns_for(sent_id)
                for i, token in enumerate(sentence):
                    if token.is_labeled(label) and i in entry:
                        candidates.update(entry[i])
        return candidates

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)
