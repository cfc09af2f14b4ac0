"""
Surface (token-sequence) patterns.

A surface pattern is "prev-context TARGET next-context", where either
context may be absent. The genre is PREV, NEXT or PREVNEXT depending on which
contexts are present. Filler words (articles, quotes) are skipped both when a
pattern is generated and when it is matched, so "the president Obama" and
"president Obama" share the pattern "president X".
"""

from dataclasses import dataclass

from spied.data.tokens import DataInstance

from .base import (
    EQUAL_CONTEXT_MAX,
    ContextToken,
    Genre,
    MatchOptions,
    Pattern,
    TargetSlot,
    extend_target,
    subsumes_array,
)


def _context_positions(sentence: DataInstance, start: int, step: int, n: int, options: MatchOptions) -> list[int]:
    """Positions of the n nearest non-filler tokens walking from start by step."""
    positions = []
    i = start
    while 0 <= i < len(sentence) and len(positions) < n:
        if not options.is_filler(sentence[i]):
            positions.append(i)
        i += step
    return positions


@dataclass(frozen=True)
class SurfacePattern(Pattern):
    """
    Token-sequence context around a target slot.

    Attributes:
        prev: Context tokens before the target (left to right), or None
        target: Restrictions on the extracted phrase
        next: Context tokens after the target, or None
    """
    prev: tuple[ContextToken, ...] | None
    target: TargetSlot
    next: tuple[ContextToken, ...] | None

    @property
    def genre(self) -> Genre:
        if self.prev and self.next:
            return Genre.PREVNEXT
        if self.prev:
            return Genre.PREV
        return Genre.NEXT

    def relevant_words(self) -> dict[str, set[str]]:
        words: dict[str, set[str]] = {}
        for element in (self.prev or ()) + (self.next or ()):
            words.setdefault(element.key, set()).add(element.value)
        return words

    def subsumes(self, other: Pattern) -> bool:
        if not isinstance(other, SurfacePattern):
            return False
        return subsumes_array(self.next, other.next) and subsumes_array(self.prev, other.prev)

    def equal_context(self, other: Pattern) -> int:
        if self == other:
            return 0
        if not isinstance(other, SurfacePattern) or self.prev != other.prev or self.next != other.next:
            return EQUAL_CONTEXT_MAX
        return self.target.restrictions - other.target.restrictions

    def _prev_matches(self, sentence: DataInstance, start: int, options: MatchOptions) -> bool:
        positions = _context_positions(sentence, start - 1, -1, len(self.prev), options)
        if len(positions) < len(self.prev):
            return False
        # positions run right to left, nearest token first
        return all(el.matches(sentence[pos], options) for el, pos in zip(reversed(self.prev), positions))

    def _next_matches(self, sentence: DataInstance, end: int, options: MatchOptions) -> bool:
        positions = _context_positions(sentence, end, 1, len(self.next), options)
        if len(positions) < len(self.next):
            return False
        return all(el.matches(sentence[pos], options) for el, pos in zip(self.next, positions))

    def matches(self, sentence: DataInstance, options: MatchOptions) -> list[tuple[int, int]]:
        spans = []
        for start in range(len(sentence)):
            if self.prev and not self._prev_matches(sentence, start, options):
                continue
            ends = extend_target(sentence, start, self.target, options)
            if self.next:
                ends = [end for end in ends if self._next_matches(sentence, end, options)]
            if ends:
                spans.append((start, ends[-1]))
        return spans

    def to_string_simple(self) -> str:
        prev = " ".join(str(el) for el in self.prev) if self.prev else ""
        nxt = " ".join(str(el) for el in self.next) if self.next else ""
        restriction = self.target.tag or self.target.ner or "X"
        return f"{prev} <b>{restriction}</b> {nxt}".strip()

    def __str__(self) -> str:
        prev = " ".join(str(el) for el in self.prev) if self.prev else ""
        nxt = " ".join(str(el) for el in self.next) if self.next else ""
        return f"{prev} {self.target} {nxt}".strip()
