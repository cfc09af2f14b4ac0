"""
Candidate phrase records and the per-run phrase registry.

Every phrase the bootstrapper reasons about (seeds, learned phrases, phrases
credited by the aggregator) is a CandidatePhrase obtained from one
PhraseRegistry. The registry guarantees that equal trimmed text always yields
the same instance, so phrases can be compared and hashed cheaply and feature
updates are visible to every holder.

The registry is constructed once per run and passed to every component that
creates phrases; two runs in the same process do not share phrases.

Example:
    registry = PhraseRegistry()
    a = registry.create_or_get("  Barack Obama ")
    b = registry.create_or_get("Barack Obama", lemma="barack obama")
    assert a is b and a.lemma == "barack obama"
"""

import threading


class CandidatePhrase:
    """
    A phrase that may belong to a category.

    Attributes:
        phrase: Normalized (trimmed) phrase text; the identity of the record
        lemma: Optional lemma form of the phrase
        features: Accumulating feature bag (name -> value)
    """

    __slots__ = ('phrase', 'lemma', 'features')

    def __init__(self, phrase: str, lemma: str | None = None, features: dict[str, float] | None = None):
        self.phrase = phrase
        self.lemma = lemma
        self.features: dict[str, float] = dict(features) if features else {}

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, CandidatePhrase):
            return NotImplemented
        return self.phrase == other.phrase

    def __hash__(self):
        return hash(self.phrase)

    def __lt__(self, other: "CandidatePhrase") -> bool:
        return self.phrase < other.phrase

    def __repr__(self) -> str:
        return f"CandidatePhrase({self.phrase!r})"

    def __str__(self) -> str:
        return self.phrase

    def to_dict(self) -> dict:
        return {"phrase": self.phrase, "lemma": self.lemma, "features": dict(self.features)}


def normalize_phrase(text: str) -> str:
    return text.strip()


class PhraseRegistry:
    """
    Deduplicated, thread-safe store of CandidatePhrase instances.

    Aggregation workers call create_or_get concurrently; a single lock guards
    lookup-and-insert so concurrent creation of the same text can never
    produce two instances. Lemma and feature merges are last-writer-wins.
    """

    def __init__(self):
        self._phrases: dict[str, CandidatePhrase] = {}
        self._lock = threading.Lock()

    def create_or_get(
        self,
        text: str,
        lemma: str | None = None,
        features: dict[str, float] | None = None
    ) -> CandidatePhrase:
        """
        Return the canonical instance for text, creating it on first use.

        Args:
            text: Phrase text; leading/trailing whitespace is ignored.
            lemma: If given, set as the phrase's lemma.
            features: If given, merged into the phrase's feature bag.

        Returns:
            The single CandidatePhrase for the trimmed text.
        """
        key = normalize_phrase(text)
        with self._lock:
            phrase = self._phrases.get(key)
            if phrase is None:
                phrase = CandidatePhrase(key, lemma, features)
                self._phrases[key] = phrase
                return phrase
            if lemma is not None:
                phrase.lemma = lemma
            if features:
                phrase.features.update(features)
            return phrase

    def get(self, text: str) -> CandidatePhrase | None:
        """Look up a phrase without creating it."""
        with self._lock:
            return self._phrases.get(normalize_phrase(text))

    def delete(self, phrase: CandidatePhrase | str) -> bool:
        """
        Evict a phrase from the registry.

        Holders of the evicted instance keep it; a later create_or_get for the
        same text returns a fresh instance.

        Returns:
            True if the phrase was present.
        """
        key = phrase.phrase if isinstance(phrase, CandidatePhrase) else normalize_phrase(phrase)
        with self._lock:
            return self._phrases.pop(key, None) is not None

    def __contains__(self, text: str) -> bool:
        with self._lock:
            return normalize_phrase(text) in self._phrases

    def __len__(self) -> int:
        with self._lock:
            return len(self._phrases)

    def phrases(self) -> list[CandidatePhrase]:
        """Snapshot of all registered phrases."""
        with self._lock:
            return list(self._phrases.values())
