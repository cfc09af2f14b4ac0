"""
Shared inputs of the pattern and phrase scorers.

A ScoringContext is built once per run by the controller and handed to every
scorer, so scorers never reach for global state: the label states, the
negative word lists, the corpus frequency tables and the optional
distributional resources all come from here.
"""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from spied.candidate_phrase import CandidatePhrase, PhraseRegistry
from spied.config import BootstrapConfig
from spied.data.corpus import Corpus
from spied.data.corpus_stats import CorpusStatistics
from spied.data.dictionaries import Dictionaries
from spied.label_state import LabelState


@dataclass
class ScoringContext:
    """
    Everything a scorer may consult.

    Attributes:
        config: Run configuration
        labels: label -> LabelState
        registry: Phrase registry of the run
        dictionaries: Stop, English and other-semantic-class words
        corpus_stats: Raw/processed n-gram frequencies and external tables
        corpus: Sentence store (the classifier reads labeled tokens from it)
        word_classes: word -> distributional cluster id
        word_vectors: word -> vector
        out_dir: Directory for per-label artifacts, or None
    """
    config: BootstrapConfig
    labels: dict[str, LabelState]
    registry: PhraseRegistry
    dictionaries: Dictionaries
    corpus_stats: CorpusStatistics
    corpus: Corpus | None = None
    word_classes: dict[str, int] = field(default_factory=dict)
    word_vectors: dict[str, np.ndarray] = field(default_factory=dict)
    out_dir: Path | None = None

    def other_labels(self, label: str) -> list[str]:
        return [other for other in self.labels if other != label]

    def known_words(self, label: str) -> set[CandidatePhrase]:
        return self.labels[label].known_words()

    def other_labels_words(self, label: str) -> set[CandidatePhrase]:
        words: set[CandidatePhrase] = set()
        for other in self.other_labels(label):
            words |= self.labels[other].known_words()
        return words

    def is_generic_word(self, phrase: CandidatePhrase) -> bool:
        """Other-semantic-class or common English word."""
        d = self.dictionaries
        return (
            phrase.phrase in d.other_semantic_words
            or phrase.phrase.lower() in d.common_english_words
        )

    def label_dir(self, label: str) -> Path | None:
        if self.out_dir is None:
            return None
        return Path(self.out_dir) / self.config.run.identifier / label
