"""
Phrase selection.

Chooses which scored candidate phrases a label learns this round. Candidates
are walked by descending score (ties broken by phrase) until num_words_to_add
are accepted or a score falls below threshold_word_extract. A phrase is
skipped when too few non-redundant patterns extracted it, and rejected (and
remembered in the label's ignore set) when it matches an ignore word exactly,
or within one edit when fuzzy matching is on.

With bpb word scoring each phrase is scored by the best weight among the
patterns that extracted it, and only the single best phrase is accepted.
"""

import json
from pathlib import Path

from spied.candidate_phrase import CandidatePhrase
from spied.config import SelectionConfig
from spied.label_state import LabelState
from spied.logging_config import debug_log
from spied.patterns.base import Pattern
from spied.stats.counters import TwoDimensionalCounter
from spied.utils.text_utils import contains_fuzzy

WORDS_JUSTIFICATION_FILE = "words.json"


def num_non_redundant_patterns(patterns) -> int:
    """
    Count patterns whose string form neither contains nor is contained in
    that of a later pattern (in sorted order).
    """
    texts = sorted(str(p) for p in patterns)
    count = 0
    for i, text in enumerate(texts):
        if not any(text in later or later in text for later in texts[i + 1:]):
            count += 1
    return count


def bpb_scores(candidates, extracted: TwoDimensionalCounter, pattern_weights: dict[Pattern, float]) -> dict[CandidatePhrase, float]:
    """Best-pattern-based score: the highest weight among extracting patterns."""
    scores = {}
    for phrase in candidates:
        weights = [pattern_weights[p] for p in extracted.counter(phrase) if p in pattern_weights]
        if weights:
            scores[phrase] = max(weights)
    return scores


class PhraseSelector:
    """
    Args:
        config: Selection options
    """

    def __init__(self, config: SelectionConfig):
        self.config = config

    def _is_ignored(self, phrase: CandidatePhrase, ignore: set[CandidatePhrase]) -> bool:
        if phrase in ignore:
            return True
        if self.config.fuzzy_match:
            return contains_fuzzy(ignore, phrase.phrase, self.config.min_len_fuzzy) is not None
        return False

    def choose_top_words(
        self,
        state: LabelState,
        scores: dict[CandidatePhrase, float],
        extracted: TwoDimensionalCounter,
        ignore: set[CandidatePhrase],
        limit: int | None = None
    ) -> dict[CandidatePhrase, float]:
        """
        Pick the phrases to learn.

        Args:
            state: Label state; rejected phrases are added to its ignore set
            scores: phrase -> score
            extracted: phrase -> pattern -> count, from this round's application
            ignore: Phrases that may not be learned (other labels' phrases,
                the label's own ignore set)
            limit: Optional cap tighter than num_words_to_add

        Returns:
            phrase -> score in acceptance order
        """
        cfg = self.config
        cap = cfg.num_words_to_add if limit is None else min(limit, cfg.num_words_to_add)
        chosen: dict[CandidatePhrase, float] = {}
        for phrase, score in sorted(scores.items(), key=lambda kv: (-kv[1], kv[0].phrase)):
            if len(chosen) >= cap:
                break
            if score < cfg.threshold_word_extract:
                debug_log(f"[PHRASES] {state.label}: {phrase} scored {score:.4f}, below the word threshold; stopping")
                break
            applied = num_non_redundant_patterns(extracted.counter(phrase))
            if applied < cfg.threshold_num_patterns_applied:
                debug_log(f"[PHRASES] {state.label}: {phrase} extracted by only {applied} non-redundant patterns")
                continue
            if self._is_ignored(phrase, ignore | state.ignore_words):
                state.ignore_words.add(phrase)
                continue
            chosen[phrase] = score
        debug_log(f"[PHRASES] {state.label}: accepted {len(chosen)} phrases: {[p.phrase for p in chosen]}")
        return chosen

    def choose_bpb(
        self,
        state: LabelState,
        candidates,
        extracted: TwoDimensionalCounter,
        pattern_weights: dict[Pattern, float],
        ignore: set[CandidatePhrase]
    ) -> dict[CandidatePhrase, float]:
        """Accept only the best phrase by best-pattern score."""
        scores = bpb_scores(candidates, extracted, pattern_weights)
        return self.choose_top_words(state, scores, extracted, ignore, limit=1)


def write_words_justification(
    label_dir: Path,
    iteration: int,
    words: dict[CandidatePhrase, float],
    extracted: TwoDimensionalCounter,
    reasons: TwoDimensionalCounter | None = None
):
    """
    Record why each phrase was learned in words.json.

    One array entry per iteration, each a list of {entity, score, patterns,
    reasonwords}; reasonwords are the positive phrases the extracting
    patterns were learned from.
    """
    label_dir.mkdir(parents=True, exist_ok=True)
    path = label_dir / WORDS_JUSTIFICATION_FILE
    history = []
    if path.exists():
        with open(path, encoding='utf-8') as f:
            history = json.load(f)
    entry = []
    for phrase, score in words.items():
        patterns = sorted(extracted.counter(phrase), key=str)
        reason_words = set()
        if reasons is not None:
            for pattern in patterns:
                reason_words.update(str(p) for p in reasons.counter(pattern))
        entry.append({
            "entity": phrase.phrase,
            "score": score,
            "patterns": [p.to_string_simple() for p in patterns],
            "reasonwords": sorted(reason_words),
        })
    while len(history) <= iteration:
        history.append([])
    history[iteration] = entry
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(history, f, indent=2)
