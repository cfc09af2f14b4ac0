"""
Tests for CandidatePhrase and the phrase registry.
"""

import threading

from spied.candidate_phrase import CandidatePhrase, PhraseRegistry


class TestCandidatePhrase:
    """Identity and ordering of phrases."""

    def test_equality_by_text(self):
        """Two phrases with the same text are equal and hash alike."""
        a = CandidatePhrase("Barack Obama")
        b = CandidatePhrase("Barack Obama", lemma="barack obama")
        assert a == b
        assert len({a, b}) == 1

    def test_ordering_by_text(self):
        """Phrases sort by their text."""
        phrases = [CandidatePhrase("b"), CandidatePhrase("a"), CandidatePhrase("c")]
        assert [p.phrase for p in sorted(phrases)] == ["a", "b", "c"]


class TestPhraseRegistry:
    """Deduplication and eviction."""

    def test_same_trimmed_text_returns_same_instance(self):
        """create_or_get ignores surrounding whitespace and returns one instance."""
        registry = PhraseRegistry()
        assert registry.create_or_get("Obama") is registry.create_or_get("  Obama ")

    def test_lemma_and_features_are_merged(self):
        """A later call fills in the lemma and merges features."""
        registry = PhraseRegistry()
        phrase = registry.create_or_get("Obama", features={"a": 1.0})
        registry.create_or_get("Obama", lemma="obama", features={"b": 2.0})
        assert phrase.lemma == "obama"
        assert phrase.features == {"a": 1.0, "b": 2.0}

    def test_delete_gives_fresh_instance(self):
        """After delete, create_or_get returns a new instance."""
        registry = PhraseRegistry()
        old = registry.create_or_get("Paris")
        assert registry.delete("Paris")
        assert "Paris" not in registry
        assert registry.create_or_get("Paris") is not old

    def test_concurrent_inserts_are_not_lost(self):
        """Concurrent create_or_get calls agree on one instance per text."""
        registry = PhraseRegistry()
        seen = []

        def worker():
            seen.append([registry.create_or_get(f"w{i}") for i in range(200)])

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 200
        for other in seen[1:]:
            assert all(a is b for a, b in zip(seen[0], other))
