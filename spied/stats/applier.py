"""
Pattern application.

Runs a label's newly selected patterns over the sentences the index returns
for them and collects the phrases they extract:

- extracted: phrase x pattern extraction counts
- matched_tokens: pattern -> (sentence id, start, end) spans

Spans over tokens already labeled with the label, with another label, or
starting on a stop word or other-semantic-class word are skipped. Sentences
are split into shards and applied in parallel; results are merged after every
shard has finished.
"""

from dataclasses import dataclass, field
from typing import Iterable

from spied.candidate_phrase import CandidatePhrase, PhraseRegistry
from spied.config import PatternConfig
from spied.data.corpus import Corpus
from spied.data.dictionaries import Dictionaries
from spied.data.tokens import DataInstance
from spied.index.base import SentenceIndex
from spied.logging_config import Timer, debug_log
from spied.parallel import ExecutorStrategy, ParallelTaskRunner, SequentialStrategy
from spied.patterns.base import MatchOptions, Pattern

from .aggregator import allowed_for_label, span_phrase, split_shards
from .counters import TwoDimensionalCounter


@dataclass
class ApplyResult:
    """
    Phrases extracted by a set of patterns.

    Attributes:
        extracted: CandidatePhrase -> pattern -> count
        matched_tokens: pattern -> [(sent_id, start, end)]
        already_labeled: Phrases found over tokens that already carry the label
    """
    extracted: TwoDimensionalCounter = field(default_factory=TwoDimensionalCounter)
    matched_tokens: dict[Pattern, list[tuple[str, int, int]]] = field(default_factory=dict)
    already_labeled: set[CandidatePhrase] = field(default_factory=set)

    def merge(self, other: "ApplyResult"):
        self.extracted.add_all(other.extracted)
        for pattern, spans in other.matched_tokens.items():
            self.matched_tokens.setdefault(pattern, []).extend(spans)
        self.already_labeled |= other.already_labeled

    def candidates(self) -> set[CandidatePhrase]:
        return self.extracted.first_keys()


class PatternApplier:
    """
    Applies learned patterns to the corpus.

    Args mirror SufficientStatsAggregator.
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
        strategy: ExecutorStrategy | None = None
    ):
        self.corpus = corpus
        self.index = index
        self.registry = registry
        self.dictionaries = dictionaries
        self.pattern_config = pattern_config
        self.options = options
        self.num_threads = max(1, num_threads)
        self.runner = ParallelTaskRunner(strategy or SequentialStrategy())

    def _apply_shard(
        self,
        label: str,
        sentences: list[tuple[str, DataInstance]],
        patterns_by_sentence: dict[str, list[Pattern]]
    ) -> ApplyResult:
        result = ApplyResult()
        other_semantic = self.dictionaries.other_semantic_words
        for sent_id, sentence in sentences:
            for pattern in patterns_by_sentence.get(sent_id, ()):
                for start, end in pattern.matches(sentence, self.options):
                    tokens = sentence.tokens[start:end]
                    if not allowed_for_label(tokens[0], label, self.pattern_config):
                        continue
                    text, lemma = span_phrase(sentence, start, end, label)
                    if any(t.is_labeled(label) for t in tokens):
                        result.already_labeled.add(self.registry.create_or_get(text, lemma=lemma))
                        continue
                    if any(t.labeled_as() for t in tokens):
                        continue
                    if self.dictionaries.is_stop_word(text) or text in other_semantic:
                        continue
                    phrase = self.registry.create_or_get(text, lemma=lemma)
                    result.extracted.increment(phrase, pattern)
                    result.matched_tokens.setdefault(pattern, []).append((sent_id, start, end))
        return result

    def apply(self, label: str, patterns: Iterable[Pattern]) -> ApplyResult:
        """
        Apply patterns for label over their candidate sentences.

        Raises:
            RoundFailure: If any shard fails
        """
        patterns = sorted(patterns, key=str)
        with Timer(f"Apply {len(patterns)} patterns for {label}"):
            patterns_by_sentence: dict[str, list[Pattern]] = {}
            for pattern, sent_ids in self.index.query(patterns).items():
                for sent_id in sent_ids:
                    patterns_by_sentence.setdefault(sent_id, []).append(pattern)
            sent_ids = sorted(patterns_by_sentence)
            if not sent_ids:
                return ApplyResult()
            sentences = list(self.corpus.get_many(sent_ids).items())
            items = [(f"{label}-apply-{i}", shard) for i, shard in enumerate(split_shards(sentences, self.num_threads))]
            partials = self.runner.run_all_or_raise(
                lambda shard: self._apply_shard(label, shard, patterns_by_sentence),
                items,
                label=label,
            )

        result = ApplyResult()
        for partial in partials:
            result.merge(partial)
        debug_log(
            f"[APPLY] {label}: {len(result.candidates())} candidate phrases, "
            f"{len(result.already_labeled)} already labeled, over {len(sent_ids)} sentences"
        )
        return result
