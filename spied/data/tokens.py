"""
Token and sentence records.

A Token carries the annotations read from the upstream pipeline plus the
fields the bootstrapper writes back while labeling:

- answers: label -> label name when the token belongs to that label's
  category, otherwise BACKGROUND_SYMBOL
- matched_phrases: label -> phrases (text) matched over this token
- longest_matched: label -> longest phrase (text) matched over this token

Phrases are stored as text so that sentences pickle cleanly in batch mode;
callers turn them into CandidatePhrase via the run's registry.
"""

from dataclasses import dataclass, field

from spied.config import BACKGROUND_SYMBOL

# Attribute keys used for index postings and pattern constraints
WORD_KEY = "word"
LEMMA_KEY = "lemma"
TAG_KEY = "tag"
NER_KEY = "ner"
TEXT_KEY = "text"
ANSWER_KEY_PREFIX = "answer_"


def answer_key(label: str) -> str:
    return f"{ANSWER_KEY_PREFIX}{label}"


@dataclass
class Token:
    """One annotated token."""
    word: str
    lemma: str | None = None
    tag: str | None = None
    ner: str | None = None
    head: int | None = None
    deprel: str | None = None
    answers: dict[str, str] = field(default_factory=dict)
    matched_phrases: dict[str, set[str]] = field(default_factory=dict)
    longest_matched: dict[str, str] = field(default_factory=dict)

    def answer(self, label: str) -> str:
        return self.answers.get(label, BACKGROUND_SYMBOL)

    def is_labeled(self, label: str) -> bool:
        return self.answer(label) == label

    def labeled_as(self) -> list[str]:
        """Labels this token currently belongs to."""
        return [label for label, ans in self.answers.items() if ans == label]

    def processed_text(self, use_lemma: bool = False, lower: bool = True) -> str:
        text = (self.lemma or self.word) if use_lemma else self.word
        return text.lower() if lower else text

    def set_answer(self, label: str, value: bool = True):
        self.answers[label] = label if value else BACKGROUND_SYMBOL

    def add_matched_phrase(self, label: str, phrase: str):
        self.matched_phrases.setdefault(label, set()).add(phrase)
        longest = self.longest_matched.get(label)
        if longest is None or len(phrase) > len(longest):
            self.longest_matched[label] = phrase

    def attributes(self) -> dict[str, set[str]]:
        """
        Indexable key -> values of this token.

        Includes the raw annotations, the lowercased text and one
        answer_<label> entry per label the token belongs to.
        """
        attrs: dict[str, set[str]] = {WORD_KEY: {self.word}, TEXT_KEY: {self.word.lower()}}
        lemma = self.lemma or self.word
        attrs[LEMMA_KEY] = {lemma, lemma.lower()}
        if self.tag:
            attrs[TAG_KEY] = {self.tag}
        if self.ner:
            attrs[NER_KEY] = {self.ner}
        for label in self.labeled_as():
            attrs[answer_key(label)] = {label}
        return attrs


@dataclass
class DataInstance:
    """
    One sentence: its id, tokens and (implicitly, through Token.head) an
    optional dependency graph.
    """
    sent_id: str
    tokens: list[Token]

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self):
        return iter(self.tokens)

    def __getitem__(self, i: int) -> Token:
        return self.tokens[i]

    @property
    def has_dependencies(self) -> bool:
        return any(t.head is not None for t in self.tokens)

    def words(self) -> list[str]:
        return [t.word for t in self.tokens]

    def text(self) -> str:
        return " ".join(self.words())

    def head_path(self, index: int, depth: int, use_lemma: bool = True) -> list[tuple[str, str]]:
        """
        Walk up the dependency graph from a token.

        Returns:
            Up to depth (relation, head text) pairs, nearest head first.
        """
        path = []
        current = index
        seen = {index}
        while len(path) < depth:
            token = self.tokens[current]
            if token.head is None or token.head < 0 or token.head >= len(self.tokens) or token.head in seen:
                break
            head = self.tokens[token.head]
            path.append((token.deprel or "dep", head.processed_text(use_lemma=use_lemma)))
            seen.add(token.head)
            current = token.head
        return path

    def find_phrase(self, phrase_tokens: list[str], lower: bool = True) -> list[int]:
        """Start offsets where the token sequence occurs in this sentence."""
        n = len(phrase_tokens)
        if n == 0:
            return []
        target = [t.lower() for t in phrase_tokens] if lower else phrase_tokens
        words = [t.word.lower() if lower else t.word for t in self.tokens]
        return [i for i in range(len(words) - n + 1) if words[i:i + n] == target]
