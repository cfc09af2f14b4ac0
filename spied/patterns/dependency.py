"""
Dependency patterns.

A dependency pattern is the chain of (relation, governor) edges from the
target token up towards the root, e.g. "X <-nsubj- say" or
"X <-dobj- treat <-ccomp- recommend". The target phrase is the matched token
plus the compound modifiers directly before it, up to the slot's word limit.
"""

from dataclasses import dataclass

from spied.data.tokens import LEMMA_KEY, TEXT_KEY, DataInstance

from .base import EQUAL_CONTEXT_MAX, Genre, MatchOptions, Pattern, TargetSlot, subsumes_array

COMPOUND_RELATIONS = frozenset({"compound", "nn", "flat", "flat:name"})


@dataclass(frozen=True)
class DependencyPattern(Pattern):
    """
    Attributes:
        path: (relation, head text) edges, nearest governor first
        target: Restrictions on the extracted phrase
        use_lemma: Whether head texts are lemmas (otherwise lowercased words)
    """
    path: tuple[tuple[str, str], ...]
    target: TargetSlot
    use_lemma: bool = True

    @property
    def genre(self) -> Genre:
        return Genre.DEP

    def relevant_words(self) -> dict[str, set[str]]:
        key = LEMMA_KEY if self.use_lemma else TEXT_KEY
        return {key: {head for _, head in self.path}}

    def subsumes(self, other: Pattern) -> bool:
        if not isinstance(other, DependencyPattern):
            return False
        return subsumes_array(self.path, other.path)

    def equal_context(self, other: Pattern) -> int:
        if self == other:
            return 0
        if not isinstance(other, DependencyPattern) or self.path != other.path:
            return EQUAL_CONTEXT_MAX
        return self.target.restrictions - other.target.restrictions

    def _compound_start(self, sentence: DataInstance, index: int, options: MatchOptions) -> int:
        start = index
        while (
            start > 0
            and index - start + 1 < self.target.num_words_compound
            and sentence[start - 1].head == index
            and (sentence[start - 1].deprel or "") in COMPOUND_RELATIONS
            and options.is_content(sentence[start - 1])
        ):
            start -= 1
        return start

    def matches(self, sentence: DataInstance, options: MatchOptions) -> list[tuple[int, int]]:
        if not sentence.has_dependencies:
            return []
        spans = []
        depth = len(self.path)
        for i, token in enumerate(sentence):
            if not self.target.allows(token, options):
                continue
            if tuple(sentence.head_path(i, depth, use_lemma=self.use_lemma)) == self.path:
                spans.append((self._compound_start(sentence, i, options), i + 1))
        return spans

    def to_string_simple(self) -> str:
        edges = " ".join(f"<-{rel}- {head}" for rel, head in self.path)
        restriction = self.target.tag or self.target.ner or "X"
        return f"<b>{restriction}</b> {edges}"

    def __str__(self) -> str:
        edges = " ".join(f"<-{rel}- {head}" for rel, head in self.path)
        return f"{self.target} {edges}"
