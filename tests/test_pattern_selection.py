"""
Tests for pattern selection: thresholds, caps, support pruning and the
subsumption rules that keep the learned set free of redundant patterns.
"""

import json

from spied.candidate_phrase import CandidatePhrase
from spied.config import SelectionConfig
from spied.label_state import LabelState
from spied.patterns import ContextToken, SurfacePattern, TargetSlot
from spied.selection import PatternSelector, write_patterns_justification
from spied.stats import PatternStats


def surface(prev=None, nxt=None, tag=None):
    return SurfacePattern(
        tuple(ContextToken("text", v) for v in prev) if prev else None,
        TargetSlot(tag=tag),
        tuple(ContextToken("text", v) for v in nxt) if nxt else None,
    )


PRESIDENT = surface(prev=["president"])
FORMER_PRESIDENT = surface(prev=["former", "president"])
PRESIDENT_NN = surface(prev=["president"], tag="NN")
SPOKE = surface(nxt=["spoke"])
SENATOR = surface(prev=["senator"])


def _stats(*patterns, positive=1, unlabeled=1):
    stats = PatternStats()
    for pattern in patterns:
        for i in range(positive):
            stats.positive.increment(pattern, CandidatePhrase(f"pos{i}"))
        for i in range(unlabeled):
            stats.unlabeled.increment(pattern, CandidatePhrase(f"unl{i}"))
    return stats


def _state(threshold=0.5):
    return LabelState("PERSON", threshold_select_pattern=threshold)


class TestWalk:
    """Ordering, threshold and cap."""

    def test_threshold_stops_walk(self):
        """Scores below the label threshold are not selected."""
        selector = PatternSelector(SelectionConfig())
        result = selector.select(_state(), {PRESIDENT: 1.0, SPOKE: 0.4}, _stats(PRESIDENT, SPOKE))
        assert result.selected == {PRESIDENT: 1.0}

    def test_num_patterns_cap(self):
        """At most num_patterns patterns are chosen, best first."""
        selector = PatternSelector(SelectionConfig(num_patterns=1))
        result = selector.select(_state(), {PRESIDENT: 1.0, SPOKE: 2.0}, _stats(PRESIDENT, SPOKE))
        assert result.selected == {SPOKE: 2.0}

    def test_ties_broken_by_string(self):
        """Equal scores are ordered by the pattern's string form."""
        selector = PatternSelector(SelectionConfig(num_patterns=1))
        result = selector.select(_state(), {SENATOR: 1.0, PRESIDENT: 1.0}, _stats(SENATOR, PRESIDENT))
        assert list(result.selected) == [PRESIDENT]

    def test_needs_unlabeled_support(self):
        """A pattern that would extract nothing new is skipped."""
        selector = PatternSelector(SelectionConfig())
        stats = _stats(PRESIDENT, unlabeled=0)
        assert selector.select(_state(), {PRESIDENT: 1.0}, stats).selected == {}

    def test_ignore_patterns(self):
        """Patterns named in ignore_patterns are never selected."""
        selector = PatternSelector(SelectionConfig(ignore_patterns=[str(PRESIDENT)]))
        result = selector.select(_state(), {PRESIDENT: 1.0, SPOKE: 0.9}, _stats(PRESIDENT, SPOKE))
        assert result.selected == {SPOKE: 0.9}


class TestSupportPruning:
    """Minimum phrase support."""

    def test_under_supported_pattern_pruned(self):
        """Patterns with too few positive phrases are removed from the counters."""
        selector = PatternSelector(SelectionConfig(min_pos_phrase_support_for_pattern=2))
        stats = _stats(PRESIDENT)
        stats.positive.increment(SPOKE, CandidatePhrase("a"))
        stats.positive.increment(SPOKE, CandidatePhrase("b"))
        stats.unlabeled.increment(SPOKE, CandidatePhrase("c"))

        result = selector.select(_state(), {PRESIDENT: 1.0, SPOKE: 1.0}, stats)

        assert result.pruned == {PRESIDENT}
        assert PRESIDENT not in stats.patterns()
        assert result.selected == {SPOKE: 1.0}


class TestSubsumption:
    """Redundancy among chosen and learned patterns."""

    def test_more_specific_candidate_rejected(self):
        """The general pattern wins whichever of the two scores higher."""
        selector = PatternSelector(SelectionConfig())
        stats = _stats(PRESIDENT, FORMER_PRESIDENT)

        specific_first = selector.select(_state(), {FORMER_PRESIDENT: 2.0, PRESIDENT: 1.0}, stats)
        general_first = selector.select(_state(), {PRESIDENT: 2.0, FORMER_PRESIDENT: 1.0}, stats)

        assert set(specific_first.selected) == {PRESIDENT}
        assert set(general_first.selected) == {PRESIDENT}

    def test_different_genres_coexist(self):
        """Subsumption is only checked within one genre."""
        both = surface(prev=["president"], nxt=["spoke"])
        selector = PatternSelector(SelectionConfig())
        result = selector.select(_state(), {PRESIDENT: 1.0, both: 0.9}, _stats(PRESIDENT, both))
        assert set(result.selected) == {PRESIDENT, both}

    def test_candidate_subsuming_learned_pattern_rejected(self):
        """A candidate more specific than a learned pattern adds nothing."""
        state = _state()
        state.add_learned_patterns(0, {PRESIDENT: 1.0})
        selector = PatternSelector(SelectionConfig())
        result = selector.select(state, {FORMER_PRESIDENT: 1.0}, _stats(FORMER_PRESIDENT))
        assert result.selected == {}

    def test_less_restrictive_candidate_evicts_learned(self):
        """Same context, fewer target restrictions: the learned pattern is evicted."""
        state = _state()
        state.add_learned_patterns(0, {PRESIDENT_NN: 1.0})
        selector = PatternSelector(SelectionConfig())
        result = selector.select(state, {PRESIDENT: 1.0}, _stats(PRESIDENT))
        assert result.selected == {PRESIDENT: 1.0}
        assert result.evicted == {PRESIDENT_NN}

    def test_more_restrictive_candidate_rejected(self):
        """Same context, more target restrictions: the learned pattern stays."""
        state = _state()
        state.add_learned_patterns(0, {PRESIDENT: 1.0})
        selector = PatternSelector(SelectionConfig())
        result = selector.select(state, {PRESIDENT_NN: 1.0}, _stats(PRESIDENT_NN))
        assert result.selected == {}
        assert result.evicted == set()

    def test_learned_patterns_not_reselected(self):
        """A pattern learned earlier is not a candidate again."""
        state = _state()
        state.add_learned_patterns(0, {PRESIDENT: 1.0})
        selector = PatternSelector(SelectionConfig())
        assert selector.select(state, {PRESIDENT: 3.0}, _stats(PRESIDENT)).selected == {}


class TestJustification:
    """patterns.json output."""

    def test_writes_one_entry_per_iteration(self, tmp_path):
        """Each iteration's entry lists the supporting phrases and score."""
        stats = _stats(PRESIDENT)
        write_patterns_justification(tmp_path, 0, {PRESIDENT: 1.5}, stats)
        write_patterns_justification(tmp_path, 1, {}, stats)

        with open(tmp_path / "patterns.json", encoding='utf-8') as f:
            history = json.load(f)

        assert len(history) == 2
        entry = history[0][PRESIDENT.to_string_simple()]
        assert entry == {"Positive": ["pos0"], "Negative": [], "Unlabeled": ["unl0"], "Score": 1.5}
        assert history[1] == {}
