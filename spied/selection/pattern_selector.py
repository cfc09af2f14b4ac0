"""
Pattern selection.

Picks at most num_patterns patterns per label and round from the scored
candidates:

1. Patterns below the minimum positive or unlabeled support are pruned from
   the counters.
2. Ignored patterns and patterns already learned are removed.
3. Candidates are walked by descending score (ties broken by string form).
   The walk stops at the first score below the label's threshold.
4. A candidate without unlabeled support is skipped.
5. Against patterns learned in earlier rounds: if the contexts are equal, the
   less restrictive pattern wins (a more restrictive learned pattern is
   evicted); otherwise a candidate that subsumes a learned pattern is skipped.
6. Against patterns chosen earlier in the same walk (same genre only): a
   candidate that subsumes a chosen pattern is skipped; a candidate subsumed
   by a chosen pattern replaces it, unless their contexts are equal and the
   candidate is not less restrictive.

Patterns with identical contexts and restrictions are never both kept, so
selection cannot oscillate between them across rounds.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

from spied.config import SelectionConfig
from spied.label_state import LabelState
from spied.logging_config import debug_log
from spied.patterns.base import EQUAL_CONTEXT_MAX, Pattern
from spied.stats.aggregator import PatternStats

PATTERNS_JUSTIFICATION_FILE = "patterns.json"


@dataclass
class PatternSelection:
    """
    Outcome of one selection walk.

    Attributes:
        selected: pattern -> score, in selection order
        evicted: Previously learned patterns replaced by less restrictive ones
        pruned: Patterns dropped for insufficient support
    """
    selected: dict[Pattern, float] = field(default_factory=dict)
    evicted: set[Pattern] = field(default_factory=set)
    pruned: set[Pattern] = field(default_factory=set)


class PatternSelector:
    """
    Args:
        config: Selection options (caps, minimum support, ignore list)
    """

    def __init__(self, config: SelectionConfig):
        self.config = config
        self._ignore = set(config.ignore_patterns)

    def prune_by_support(self, stats: PatternStats) -> set[Pattern]:
        """Remove under-supported patterns from all three counters."""
        cfg = self.config
        pruned = {
            p for p in stats.patterns()
            if stats.positive.distinct_count(p) < cfg.min_pos_phrase_support_for_pattern
            or stats.unlabeled.distinct_count(p) < cfg.min_unlab_phrase_support_for_pattern
        }
        stats.remove_patterns(pruned)
        return pruned

    def _is_ignored(self, pattern: Pattern) -> bool:
        return str(pattern) in self._ignore or pattern.to_string_simple() in self._ignore

    def select(self, state: LabelState, scores: dict[Pattern, float], stats: PatternStats) -> PatternSelection:
        """
        Choose this round's patterns for one label.

        Args:
            state: Label state (learned patterns and current threshold)
            scores: Candidate scores from a pattern scorer
            stats: The label's counters (pruned in place)

        Returns:
            PatternSelection
        """
        result = PatternSelection(pruned=self.prune_by_support(stats))
        learned = state.all_learned_patterns()
        candidates = {
            p: s for p, s in scores.items()
            if p not in result.pruned and p not in learned and not self._is_ignored(p)
        }
        ordered = sorted(candidates.items(), key=lambda kv: (-kv[1], str(kv[0])))

        chosen: dict[Pattern, float] = {}
        for pattern, score in ordered:
            if len(chosen) >= self.config.num_patterns:
                break
            if score < state.threshold_select_pattern:
                debug_log(
                    f"[PATTERNS] {state.label}: max remaining score {score:.4f} is below the threshold "
                    f"{state.threshold_select_pattern:.4f}; not adding more patterns"
                )
                break
            if stats.unlabeled.distinct_count(pattern) == 0:
                continue

            skip = False
            evict_learned = set()
            for prior in learned:
                if prior in result.evicted:
                    continue
                rest = pattern.equal_context(prior)
                if rest != EQUAL_CONTEXT_MAX:
                    if rest < 0:
                        evict_learned.add(prior)
                        continue
                    skip = True
                    break
                if pattern.subsumes(prior):
                    skip = True
                    break
            if skip:
                continue

            evict_chosen = set()
            for other in chosen:
                if not pattern.same_genre(other):
                    continue
                if pattern.subsumes(other):
                    skip = True
                    break
                if other.subsumes(pattern):
                    rest = pattern.equal_context(other)
                    if rest == EQUAL_CONTEXT_MAX or rest < 0:
                        evict_chosen.add(other)
                    else:
                        skip = True
                        break
            if skip:
                continue

            for other in evict_chosen:
                del chosen[other]
            result.evicted |= evict_learned
            chosen[pattern] = score

        result.selected = chosen
        debug_log(
            f"[PATTERNS] {state.label}: selected {len(chosen)} patterns, evicted {len(result.evicted)}, "
            f"pruned {len(result.pruned)}"
        )
        for pattern, score in chosen.items():
            debug_log(f"  {pattern}: {score:.4f}")
        return result


def write_patterns_justification(
    label_dir: Path,
    iteration: int,
    selected: dict[Pattern, float],
    stats: PatternStats
):
    """
    Append this round's selected patterns to patterns.json.

    The file is a JSON array with one object per iteration mapping each
    pattern to its positive, negative and unlabeled phrases and its score.
    """
    label_dir.mkdir(parents=True, exist_ok=True)
    path = label_dir / PATTERNS_JUSTIFICATION_FILE
    history = []
    if path.exists():
        with open(path, encoding='utf-8') as f:
            history = json.load(f)
    entry = {}
    for pattern, score in selected.items():
        entry[pattern.to_string_simple()] = {
            "Positive": sorted(str(p) for p in stats.positive.counter(pattern)),
            "Negative": sorted(str(p) for p in stats.negative.counter(pattern)),
            "Unlabeled": sorted(str(p) for p in stats.unlabeled.counter(pattern)),
            "Score": score,
        }
    while len(history) <= iteration:
        history.append({})
    history[iteration] = entry
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(history, f, indent=2)
