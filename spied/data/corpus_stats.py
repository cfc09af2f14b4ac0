"""
Corpus Statistics Store

Frequency tables computed once per corpus and consulted by the phrase
scorers:

1. Raw n-gram frequency (1..K words) over the corpus text
2. Processed frequency (raw frequency after None/Sqrt/Log normalization)
3. Optional external n-gram tables (a domain corpus and a general background
   corpus such as Google n-grams), loaded from "phrase<TAB>count" files

The tables can be cached to JSON and reloaded, so repeated runs over the same
corpus skip the counting pass.
"""

import json
import math
from collections import Counter
from pathlib import Path

from spied.config import FreqNormalization
from spied.logging_config import debug_log, warning

from .corpus import Corpus


def load_frequency_table(path: str | Path) -> Counter:
    """
    Load a "phrase<TAB>count" file.

    Malformed lines are skipped with a warning.
    """
    table: Counter = Counter()
    bad_lines = 0
    with open(path, encoding='utf-8') as f:
        for line in f:
            line = line.rstrip("\n")
            if not line.strip():
                continue
            parts = line.rsplit("\t", 1)
            if len(parts) != 2:
                bad_lines += 1
                continue
            try:
                table[parts[0].strip()] += float(parts[1])
            except ValueError:
                bad_lines += 1
    if bad_lines:
        warning(f"[STATS] Skipped {bad_lines} malformed lines in {path}")
    debug_log(f"[STATS] Loaded {len(table)} entries from {path}")
    return table


class CorpusStatistics:
    """
    Raw and normalized n-gram frequencies for one corpus.

    Example:
        stats = CorpusStatistics(max_ngram=3)
        stats.compute(corpus)
        stats.raw("barack obama")        # 4.0
        stats.processed("barack obama")  # 1 + log(4)
    """

    def __init__(
        self,
        max_ngram: int = 3,
        normalization: FreqNormalization = FreqNormalization.LOG,
        lower: bool = False
    ):
        self.max_ngram = max_ngram
        self.normalization = normalization
        self.lower = lower
        self.raw_freq: Counter = Counter()
        self.processed_freq: dict[str, float] = {}
        self.google_freq: Counter = Counter()
        self.domain_freq: Counter = Counter()

    @property
    def raw_total(self) -> float:
        return float(sum(self.raw_freq.values()))

    def compute(self, corpus: Corpus):
        """Count every 1..max_ngram word sequence in the corpus."""
        counts: Counter = Counter()
        for _, sentence in corpus.items():
            words = [w.lower() if self.lower else w for w in sentence.words()]
            for n in range(1, self.max_ngram + 1):
                for i in range(len(words) - n + 1):
                    counts[" ".join(words[i:i + n])] += 1
        self.raw_freq = counts
        self.normalize()
        debug_log(f"[STATS] Counted {len(self.raw_freq)} distinct n-grams (n <= {self.max_ngram})")

    def normalize(self, normalization: FreqNormalization | None = None):
        """Recompute processed frequencies from raw ones."""
        if normalization is not None:
            self.normalization = normalization
        if self.normalization is FreqNormalization.NONE:
            self.processed_freq = {k: float(v) for k, v in self.raw_freq.items()}
        elif self.normalization is FreqNormalization.SQRT:
            self.processed_freq = {k: math.sqrt(v) for k, v in self.raw_freq.items()}
        else:
            self.processed_freq = {k: 1.0 + math.log(v) for k, v in self.raw_freq.items() if v > 0}

    def _key(self, phrase: str) -> str:
        return phrase.lower() if self.lower else phrase

    def raw(self, phrase: str) -> float:
        return float(self.raw_freq.get(self._key(phrase), 0))

    def processed(self, phrase: str) -> float:
        return self.processed_freq.get(self._key(phrase), 0.0)

    def load_google_ngrams(self, path: str | Path):
        self.google_freq = load_frequency_table(path)

    def load_domain_ngrams(self, path: str | Path):
        self.domain_freq = load_frequency_table(path)

    def _external_ratio_score(self, phrase: str, table: Counter) -> float:
        """
        (1 + raw(g) * sqrt(external_total / raw_total)) / external(g).

        Phrases absent from the external table (or with zero count) score 0.
        """
        external = table.get(phrase, 0)
        if not external:
            return 0.0
        raw_total = self.raw_total
        if raw_total == 0:
            return 1.0 / external
        ratio = sum(table.values()) / raw_total
        return (1.0 + self.raw(phrase) * math.sqrt(ratio)) / external

    def google_ngram_score(self, phrase: str) -> float:
        return self._external_ratio_score(phrase, self.google_freq)

    def domain_ngram_score(self, phrase: str) -> float:
        return self._external_ratio_score(phrase, self.domain_freq)

    def save_cache(self, path: str | Path):
        cache_path = Path(path)
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "max_ngram": self.max_ngram,
            "normalization": self.normalization.value,
            "lower": self.lower,
            "raw_freq": dict(self.raw_freq),
        }
        with open(cache_path, 'w', encoding='utf-8') as f:
            json.dump(data, f)
        debug_log(f"[STATS] Cached {len(self.raw_freq)} n-gram counts to {cache_path}")

    @classmethod
    def load_cache(cls, path: str | Path) -> "CorpusStatistics | None":
        """Load cached counts; returns None if the cache is missing or corrupt."""
        cache_path = Path(path)
        if not cache_path.exists():
            return None
        try:
            with open(cache_path, encoding='utf-8') as f:
                data = json.load(f)
            stats = cls(
                max_ngram=data["max_ngram"],
                normalization=FreqNormalization(data["normalization"]),
                lower=data.get("lower", False),
            )
            stats.raw_freq = Counter(data["raw_freq"])
            stats.normalize()
            return stats
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            warning(f"[STATS] Ignoring unreadable statistics cache {cache_path}: {e}")
            return None
