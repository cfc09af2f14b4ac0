"""
Base classes for context patterns.

Patterns are frozen dataclasses: equality and hashing come from their
fields, and no pattern changes after construction. Ordering falls back to the
string form so ties in score break deterministically.

Relations between two patterns p and q of the same variant:
- p.subsumes(q): p's context contains q's context, i.e. p is the longer,
  more specific rule. Every pattern subsumes itself.
- p.equal_context(q): 0 when p == q, EQUAL_CONTEXT_MAX when the contexts
  differ, otherwise p's target restrictions minus q's (negative means p is
  less restrictive).
"""

import re
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from spied.data.tokens import ANSWER_KEY_PREFIX, LEMMA_KEY, WORD_KEY, DataInstance, Token

EQUAL_CONTEXT_MAX = sys.maxsize


class Genre(Enum):
    PREV = "PREV"
    NEXT = "NEXT"
    PREVNEXT = "PREVNEXT"
    DEP = "DEP"


@dataclass(frozen=True)
class ContextToken:
    """
    One context element: a literal (key "text" or "lemma") or a label class
    (key "answer_<LABEL>", matching any token labeled LABEL).
    """
    key: str
    value: str

    @property
    def is_label_class(self) -> bool:
        return self.key.startswith(ANSWER_KEY_PREFIX)

    def matches(self, token: Token, options: "MatchOptions") -> bool:
        if self.is_label_class:
            return token.is_labeled(self.value)
        if self.key == WORD_KEY:
            return token.word == self.value
        if self.key == LEMMA_KEY:
            return token.processed_text(use_lemma=True, lower=options.lower) == self.value
        return token.word.lower() == self.value

    def __str__(self) -> str:
        return f"[{self.value}]" if self.is_label_class else self.value


@dataclass(frozen=True)
class TargetSlot:
    """
    Restrictions on the phrase a pattern extracts.

    Attributes:
        tag: Required POS tag prefix, or None
        ner: Required NER tag, or None
        num_words_compound: Maximum number of tokens in the extracted phrase
    """
    tag: str | None = None
    ner: str | None = None
    num_words_compound: int = 1

    @property
    def restrictions(self) -> int:
        return int(self.tag is not None) + int(self.ner is not None)

    def allows(self, token: Token, options: "MatchOptions") -> bool:
        if self.tag is not None and not (token.tag or "").startswith(self.tag):
            return False
        if self.ner is not None and token.ner != self.ner:
            return False
        return options.is_content(token)

    def __str__(self) -> str:
        parts = []
        if self.tag:
            parts.append(f"tag:{self.tag}")
        if self.ner:
            parts.append(f"ner:{self.ner}")
        inner = ",".join(parts)
        return f"{{{inner}}}{{1,{self.num_words_compound}}}" if inner else f"[]{{1,{self.num_words_compound}}}"


@dataclass(frozen=True)
class MatchOptions:
    """Corpus-wide settings shared by pattern generation and matching."""
    filler_words: frozenset = field(default_factory=frozenset)
    stop_words: frozenset = field(default_factory=frozenset)
    use_lemma: bool = False
    lower: bool = True
    word_ignore_regex: str = "[^a-zA-Z]*"

    def is_filler(self, token: Token) -> bool:
        return token.word.lower() in self.filler_words

    def is_stop(self, text: str) -> bool:
        return text.lower() in self.stop_words

    def is_content(self, token: Token) -> bool:
        """Tokens that can be part of an extracted phrase."""
        if self.is_stop(token.word):
            return False
        return re.fullmatch(self.word_ignore_regex, token.word) is None


def subsumes_array(longer, shorter) -> bool:
    """
    True if shorter occurs as a contiguous run inside longer.

    Also true if both are None; false if only one of them is None.
    """
    if longer is None and shorter is None:
        return True
    if longer is None or shorter is None:
        return False
    n, m = len(longer), len(shorter)
    if m > n:
        return False
    if m == 0:
        return True
    return any(tuple(longer[i:i + m]) == tuple(shorter) for i in range(n - m + 1))


class Pattern(ABC):
    """
    Abstract context pattern.

    Subclasses are frozen dataclasses and implement the comparison and match
    operations for their own variant.
    """

    @property
    @abstractmethod
    def genre(self) -> Genre:
        pass

    @abstractmethod
    def relevant_words(self) -> dict[str, set[str]]:
        """Minimal (key -> values) constraints a sentence must contain to match."""
        pass

    @abstractmethod
    def subsumes(self, other: "Pattern") -> bool:
        pass

    @abstractmethod
    def equal_context(self, other: "Pattern") -> int:
        pass

    @abstractmethod
    def matches(self, sentence: DataInstance, options: MatchOptions) -> list[tuple[int, int]]:
        """
        Apply the pattern to a sentence.

        Returns:
            (start, end) token spans of extracted phrases, end exclusive.
        """
        pass

    @abstractmethod
    def to_string_simple(self) -> str:
        """Human-readable form with the target in <b></b>."""
        pass

    def same_genre(self, other: "Pattern") -> bool:
        return type(self) is type(other) and self.genre == other.genre

    def __lt__(self, other: "Pattern") -> bool:
        return str(self) < str(other)


def extend_target(
    sentence: DataInstance,
    start: int,
    slot: TargetSlot,
    options: MatchOptions
) -> list[int]:
    """
    Possible exclusive end offsets of a target starting at start, shortest first.
    """
    ends = []
    end = start
    while end < len(sentence) and end - start < slot.num_words_compound:
        if not slot.allows(sentence[end], options):
            break
        end += 1
        ends.append(end)
    return ends
