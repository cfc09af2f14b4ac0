"""
Sufficient-Statistics Aggregator

Counts, for one label, how often each candidate pattern extracts each phrase
and whether the extracted token is positive, negative or unlabeled:

- positive: the token carries the label
- negative: the token carries another label, or the phrase is a stop word,
  an other-semantic-class word or a known word of another label
- unlabeled: everything else

Candidate sentences come from the sentence index. They are optionally
sampled, split into one shard per worker and counted in parallel; partial
counters are merged only after every shard has finished (fork-join).
"""

import random
import re
from dataclasses import dataclass, field
from typing import Iterable

from spied.candidate_phrase import PhraseRegistry
from spied.config import PatternConfig
from spied.data.corpus import Corpus
from spied.data.dictionaries import Dictionaries
from spied.data.tokens import DataInstance, Token
from spied.index.base import SentenceIndex
from spied.logging_config import Timer, debug_log
from spied.parallel import ExecutorStrategy, ParallelTaskRunner, SequentialStrategy
from spied.patterns.base import MatchOptions, Pattern

from .counters import TwoDimensionalCounter


def split_shards(items: list, num_shards: int) -> list[list]:
    """Split items into at most num_shards contiguous, nearly equal slices."""
    if not items:
        return []
    n = min(max(1, num_shards), len(items))
    size = -(-len(items) // n)
    return [items[i:i + size] for i in range(0, len(items), size)]


@dataclass
class PatternStats:
    """
    Positive/negative/unlabeled pattern x phrase counters for one label.

    Attributes:
        positive, negative, unlabeled: pattern -> CandidatePhrase -> count
        num_matches: Number of (pattern, span) matches counted
    """
    positive: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)
    negative: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)
    unlabeled: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)
    num_matches: int = 0

    def merge(self, other: "PatternStats"):
        self.positive.add_all(other.positive)
        self.negative.add_all(other.negative)
        self.unlabeled.add_all(other.unlabeled)
        self.num_matches += other.num_matches

    def remove_patterns(self, patterns: Iterable[Pattern]):
        patterns = list(patterns)
        self.positive.remove_all(patterns)
        self.negative.remove_all(patterns)
        self.unlabeled.remove_all(patterns)

    def patterns(self) -> set[Pattern]:
        return self.positive.first_keys() | self.negative.first_keys() | self.unlabeled.first_keys()


def allowed_for_label(token: Token, label: str, config: PatternConfig) -> bool:
    """Check the per-label POS prefix and NER restrictions on a target token."""
    tags = config.target_allowed_tags_initials.get(label)
    if tags and not any((token.tag or "").startswith(t) for t in tags):
        return False
    ners = config.target_allowed_ners.get(label)
    if ners and token.ner not in ners:
        return False
    return True


def span_phrase(sentence: DataInstance, start: int, end: int, label: str) -> tuple[str, str | None]:
    """
    Phrase credited for a matched span.

    The longest dictionary phrase already matched at the span start wins
    when it is longer than the span text.

    Returns:
        (phrase text, lemma or None)
    """
    tokens = sentence.tokens[start:end]
    text = " ".join(t.word for t in tokens)
    longest = sentence[start].longest_matched.get(label)
    if longest and len(longest) > len(text):
        return longest, None
    lemma = " ".join(t.lemma or t.word for t in tokens)
    return text, lemma


class SufficientStatsAggregator:
    """
    Counts pattern/phrase co-occurrences for a label.

    Args:
        corpus: Sentence store
        index: Sentence index used to find candidate sentences per pattern
        registry: Phrase registry of the run
        dictionaries: Stop and other-semantic-class words
        pattern_config: Per-label target restrictions and the ignore regex
        options: Matching options shared with the pattern factory
        num_threads: Number of shards
        sample_fraction: Fraction of candidate sentences to count
        strategy: Executor for the shards (sequential if None)
        random_seed: Seed for sentence sampling
    """

    def __init__(
        self,
        corpus: Corpus,
        index: SentenceIndex,
        registry: PhraseRegistry,
        dictionaries: Dictionaries,
        pattern_config: PatternConfig,
        options: MatchOptions,
        num_threads: int = 1,
        sample_fraction: float = 1.0,
        strategy: ExecutorStrategy | None = None,
        random_seed: int = 42
    ):
        self.corpus = corpus
        self.index = index
        self.registry = registry
        self.dictionaries = dictionaries
        self.pattern_config = pattern_config
        self.options = options
        self.num_threads = max(1, num_threads)
        self.sample_fraction = sample_fraction
        self.runner = ParallelTaskRunner(strategy or SequentialStrategy())
        self._rng = random.Random(random_seed)
        self._ignore = re.compile(pattern_config.word_ignore_regex)

    def _is_negative(self, token: Token, label: str, phrase: str, lemma: str | None, other_words: set[str]) -> bool:
        if any(other != label for other in token.labeled_as()):
            return True
        other_semantic = self.dictionaries.other_semantic_words
        if phrase in other_semantic or (lemma and lemma in other_semantic):
            return True
        if phrase in other_words or (lemma and lemma in other_words):
            return True
        return self.dictionaries.is_stop_word(phrase)

    def _count_shard(
        self,
        label: str,
        sentences: list[tuple[str, DataInstance]],
        patterns_by_sentence: dict[str, list[Pattern]],
        other_words: set[str]
    ) -> PatternStats:
        stats = PatternStats()
        for sent_id, sentence in sentences:
            for pattern in patterns_by_sentence.get(sent_id, ()):
                for start, end in pattern.matches(sentence, self.options):
                    token = sentence[start]
                    if self._ignore.fullmatch(token.word) or not allowed_for_label(token, label, self.pattern_config):
                        continue
                    text, lemma = span_phrase(sentence, start, end, label)
                    phrase = self.registry.create_or_get(text, lemma=lemma)
                    if token.is_labeled(label):
                        stats.positive.increment(pattern, phrase)
                    elif self._is_negative(token, label, text, lemma, other_words):
                        stats.negative.increment(pattern, phrase)
                    else:
                        stats.unlabeled.increment(pattern, phrase)
                    stats.num_matches += 1
        return stats

    def _sample(self, sent_ids: list[str]) -> list[str]:
        if self.sample_fraction >= 1.0 or not sent_ids:
            return sent_ids
        k = max(1, int(round(len(sent_ids) * self.sample_fraction)))
        return sorted(self._rng.sample(sent_ids, k))

    def compute(
        self,
        label: str,
        patterns: Iterable[Pattern],
        other_words: set[str] | None = None
    ) -> PatternStats:
        """
        Count every candidate pattern's matches for label.

        Args:
            label: Label whose answers decide positive vs. unlabeled
            patterns: Candidate patterns
            other_words: Known phrases of other labels (counted as negative)

        Returns:
            Merged PatternStats over all shards

        Raises:
            RoundFailure: If any shard fails
        """
        other_words = other_words or set()
        with Timer(f"Aggregate statistics for {label}"):
            hits = self.index.query(list(patterns))
            patterns_by_sentence: dict[str, list[Pattern]] = {}
            for pattern, sent_ids in hits.items():
                for sent_id in sent_ids:
                    patterns_by_sentence.setdefault(sent_id, []).append(pattern)
            for plist in patterns_by_sentence.values():
                plist.sort(key=str)

            sent_ids = self._sample(sorted(patterns_by_sentence))
            if not sent_ids:
                return PatternStats()
            # batch files are read here, once each, not inside the workers
            sentences = list(self.corpus.get_many(sent_ids).items())
            items = [(f"{label}-shard-{n}", shard) for n, shard in enumerate(split_shards(sentences, self.num_threads))]
            partials = self.runner.run_all_or_raise(
                lambda shard: self._count_shard(label, shard, patterns_by_sentence, other_words),
                items,
                label=label,
            )

        stats = PatternStats()
        for partial in partials:
            stats.merge(partial)
        debug_log(
            f"[STATS] {label}: {len(stats.patterns())} patterns, {stats.num_matches} matches over "
            f"{len(sent_ids)} sentences in {len(items)} shards"
        )
        return stats
