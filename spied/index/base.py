"""
Base class for sentence indexes.

A sentence index answers one question: which sentences contain every
(key, value) attribute a pattern needs? Each token contributes
"key:value" terms (word, lemma, tag, ner, lowercased text and one
answer_<label> term per label it carries); a pattern's relevant words are
turned into terms the same way and intersected.

Values in a very small stop-list (punctuation, articles, a few
prepositions) are never required by a query, so patterns built on them
still retrieve candidate sentences. A pattern with no remaining constraints
retrieves every sentence; the exact match test narrows them down.

Backends must be behaviourally interchangeable: for the same sentences and
patterns every backend returns the same id sets.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable

from spied.data.tokens import LEMMA_KEY, TEXT_KEY, WORD_KEY, DataInstance, Token
from spied.patterns.base import Pattern

# Never used as query constraints
INDEX_STOP_LIST = frozenset({".", ",", "in", "on", "of", "a", "the", "an"})

_TEXT_KEYS = (TEXT_KEY, WORD_KEY, LEMMA_KEY)


def term(key: str, value: str) -> str:
    return f"{key}:{value}"


def token_terms(token: Token, index_processed_text: bool = True) -> set[str]:
    """Index terms contributed by one token."""
    terms = set()
    for key, values in token.attributes().items():
        if key == TEXT_KEY:
            if not index_processed_text:
                continue
            values = {v for v in values if v.lower() not in INDEX_STOP_LIST}
        terms.update(term(key, v) for v in values)
    return terms


def sentence_terms(sentence: DataInstance, index_processed_text: bool = True) -> set[str]:
    terms: set[str] = set()
    for token in sentence:
        terms.update(token_terms(token, index_processed_text))
    return terms


def query_terms(pattern: Pattern) -> set[str]:
    """Terms a sentence must contain to possibly match pattern."""
    terms = set()
    for key, values in pattern.relevant_words().items():
        for value in values:
            if key in _TEXT_KEYS and value.lower() in INDEX_STOP_LIST:
                continue
            terms.add(term(key, value))
    return terms


class SentenceIndex(ABC):
    """
    Abstract sentence index.

    Class Attributes:
        name: Backend name used in configuration ("memory", "sqlite")
        index_raw_text: Whether lowercased token text is indexed; set by add()
        and kept for later update() calls

    Example:
        index = create_index(config.index)
        index.add(corpus_sentences, index_raw_text=True)
        hits = index.query(patterns)        # pattern -> set of sentence ids
        index.update(sentence.tokens, sentence.sent_id)
        index.finish_updating()
    """

    name: str = "BaseIndex"
    index_raw_text: bool = True

    @abstractmethod
    def add(self, sentences: dict[str, DataInstance], index_raw_text: bool = True) -> None:
        """
        Index a batch of sentences.

        Args:
            sentences: Sentence id -> sentence
            index_raw_text: Also index the lowercased token text
        """
        pass

    @abstractmethod
    def update(self, tokens: list[Token], sent_id: str) -> None:
        """
        Re-index one sentence after relabeling.

        Replaces every term previously stored for sent_id, so repeated updates
        for the same id are idempotent.
        """
        pass

    def finish_updating(self) -> None:
        """Flush pending updates. Backends without buffering need not override."""
        return None

    @abstractmethod
    def sentences_with_terms(self, terms: set[str]) -> set[str]:
        """Ids of sentences containing every term (all ids when terms is empty)."""
        pass

    def query(self, patterns: Iterable[Pattern]) -> dict[Pattern, set[str]]:
        """
        Candidate sentences per pattern.

        A pattern whose terms are missing from the index maps to an empty set.
        """
        return {pattern: self.sentences_with_terms(query_terms(pattern)) for pattern in patterns}

    @abstractmethod
    def sentence_ids(self) -> set[str]:
        pass

    @abstractmethod
    def save(self, directory: str | Path) -> None:
        pass

    @abstractmethod
    def load(self, directory: str | Path) -> None:
        pass

    def __len__(self) -> int:
        return len(self.sentence_ids())

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, sentences={len(self)})"
