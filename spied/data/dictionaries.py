"""
Word lists that act as negative or neutral evidence.

- stop_words: never credited as phrases, skipped in pattern contexts
- english_words / common_english_words: general vocabulary, treated as
  negatives when training the phrase classifier and as "bad" phrases when
  evaluating patterns
- other_semantic_words: phrases known to belong to categories outside the
  labels being learned

Stop words default to NLTK's English list. The list is downloaded on first use
when the corpus data is missing.
"""

from dataclasses import dataclass, field
from pathlib import Path

import nltk
import numpy as np
from nltk.corpus import stopwords

from spied.config import DEBUG_MODE, RunConfig
from spied.logging_config import debug_log, warning


def load_word_list(path: str | Path, lower: bool = False) -> set[str]:
    """Read one phrase per line, ignoring blanks and '#' comments."""
    words = set()
    with open(path, encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                words.add(line.lower() if lower else line)
    return words


def nltk_stop_words() -> set[str]:
    """NLTK's English stop-word list, downloading it if needed."""
    try:
        return set(stopwords.words('english'))
    except LookupError:
        warning("NLTK stopwords corpus not found. Downloading...")
        nltk.download('stopwords', quiet=not DEBUG_MODE)
        return set(stopwords.words('english'))


def load_word_classes(path: str | Path) -> dict[str, int]:
    """Read "word<TAB>cluster_id" distributional cluster assignments."""
    classes = {}
    with open(path, encoding='utf-8') as f:
        for line in f:
            parts = line.strip().split("\t")
            if len(parts) == 2 and parts[1].lstrip("-").isdigit():
                classes[parts[0]] = int(parts[1])
    debug_log(f"[DICT] Loaded {len(classes)} word classes from {path}")
    return classes


def load_word_vectors(path: str | Path) -> dict[str, np.ndarray]:
    """Read whitespace-separated "word v1 v2 ..." vectors (word2vec text format)."""
    vectors = {}
    with open(path, encoding='utf-8') as f:
        for line in f:
            parts = line.rstrip().split(" ")
            if len(parts) < 3:
                continue  # header line "count dim" or blank
            try:
                vectors[parts[0]] = np.asarray([float(x) for x in parts[1:]], dtype=float)
            except ValueError:
                continue
    debug_log(f"[DICT] Loaded {len(vectors)} word vectors from {path}")
    return vectors


@dataclass
class Dictionaries:
    """Negative/neutral word lists shared by all labels of a run."""
    stop_words: set[str] = field(default_factory=set)
    english_words: set[str] = field(default_factory=set)
    common_english_words: set[str] = field(default_factory=set)
    other_semantic_words: set[str] = field(default_factory=set)

    @classmethod
    def from_config(cls, run: RunConfig) -> "Dictionaries":
        """Load every list named in the run config; stop words fall back to NLTK."""
        if run.stop_words_file:
            stop = load_word_list(run.stop_words_file, lower=True)
        else:
            stop = nltk_stop_words()
        dictionaries = cls(
            stop_words=stop,
            english_words=load_word_list(run.english_words_file, lower=True) if run.english_words_file else set(),
            common_english_words=(
                load_word_list(run.common_english_words_file, lower=True) if run.common_english_words_file else set()
            ),
            other_semantic_words=(
                load_word_list(run.other_semantic_classes_file) if run.other_semantic_classes_file else set()
            ),
        )
        debug_log(
            f"[DICT] {len(dictionaries.stop_words)} stop words, {len(dictionaries.english_words)} English words, "
            f"{len(dictionaries.other_semantic_words)} other-semantic-class words"
        )
        return dictionaries

    def is_stop_word(self, text: str) -> bool:
        return text.lower() in self.stop_words
