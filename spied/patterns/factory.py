"""
Pattern generation.

PatternFactory creates every candidate pattern around a target token:

- Surface: for each window size 1..max_window, the previous and next
  context tokens (filler words skipped). A context token already labeled
  with one of the run's labels is generalized to the label class. A context
  made only of stop words is kept only if it holds more than
  num_min_stop_words_to_add of them; a context stops at a URL.
- Dependency: the governor path of length 1..max_window.

No patterns are generated around stop words or tokens matching
word_ignore_regex.
"""

from spied.config import PatternConfig, PatternType
from spied.data.tokens import LEMMA_KEY, TEXT_KEY, WORD_KEY, DataInstance, answer_key

from .base import ContextToken, MatchOptions, Pattern, TargetSlot
from .dependency import DependencyPattern
from .surface import SurfacePattern


class PatternFactory:
    """
    Builds patterns and the matching options they share.

    Args:
        config: Pattern generation options
        stop_words: Lowercased stop words
        labels: Every label of the run (for label-class context tokens)
    """

    def __init__(self, config: PatternConfig, stop_words: set[str], labels: list[str]):
        self.config = config
        self.labels = list(labels)
        self.options = MatchOptions(
            filler_words=frozenset(w.lower() for w in config.filler_words) if config.use_filler_words else frozenset(),
            stop_words=frozenset(w.lower() for w in stop_words),
            use_lemma=config.use_lemma_context_tokens,
            lower=config.lower_case_context,
            word_ignore_regex=config.word_ignore_regex,
        )

    def _context_key(self) -> str:
        if self.config.use_lemma_context_tokens:
            return LEMMA_KEY
        return TEXT_KEY if self.config.lower_case_context else WORD_KEY

    def _target_slots(self, sentence: DataInstance, i: int) -> list[TargetSlot]:
        cfg = self.config
        token = sentence[i]
        ner = token.ner if cfg.use_target_ner_restriction else None
        slots = []
        if cfg.add_pattern_without_pos:
            slots.append(TargetSlot(tag=None, ner=ner, num_words_compound=cfg.num_words_compound))
        if cfg.use_pos and token.tag:
            tag = token.tag[:2] if cfg.use_coarse_pos else token.tag
            slots.append(TargetSlot(tag=tag, ner=ner, num_words_compound=cfg.num_words_compound))
        return slots

    def _context(self, sentence: DataInstance, i: int, step: int, window: int) -> tuple[ContextToken, ...] | None:
        """
        Context of up to window tokens on one side of i.

        Returns:
            Left-to-right context, or None when it is empty, crosses a URL
            or is made of too few non-stop words.
        """
        key = self._context_key()
        elements: list[ContextToken] = []
        num_stop = 0
        num_non_stop = 0
        j = i + step
        while 0 <= j < len(sentence) and len(elements) < window:
            token = sentence[j]
            j += step
            if self.options.is_filler(token):
                continue
            labeled = [label for label in token.labeled_as() if label in self.labels]
            if labeled:
                elements.append(ContextToken(answer_key(labeled[0]), labeled[0]))
                num_non_stop += 1
                continue
            if token.word.startswith("http"):
                return None
            if key == LEMMA_KEY:
                value = token.processed_text(use_lemma=True, lower=self.config.lower_case_context)
            elif key == TEXT_KEY:
                value = token.word.lower()
            else:
                value = token.word
            elements.append(ContextToken(key, value))
            if self.options.is_stop(value):
                num_stop += 1
            else:
                num_non_stop += 1
        if not elements:
            return None
        if not (num_non_stop > 0 or num_stop > self.config.num_min_stop_words_to_add):
            return None
        if not all(el.value.isascii() for el in elements):
            return None
        if step < 0:
            elements.reverse()
        return tuple(elements)

    def _surface_patterns(self, sentence: DataInstance, i: int) -> set[Pattern]:
        cfg = self.config
        slots = self._target_slots(sentence, i)
        patterns: set[Pattern] = set()
        for window in range(1, cfg.max_window + 1):
            prev = self._context(sentence, i, -1, window) if cfg.use_previous_context else None
            nxt = self._context(sentence, i, 1, window) if cfg.use_next_context else None
            prev_ok = prev is not None and len(prev) >= cfg.min_window
            next_ok = nxt is not None and len(nxt) >= cfg.min_window
            for slot in slots:
                if prev_ok:
                    patterns.add(SurfacePattern(prev, slot, None))
                if next_ok:
                    patterns.add(SurfacePattern(None, slot, nxt))
                if prev is not None and nxt is not None and len(prev) + len(nxt) >= cfg.min_window:
                    patterns.add(SurfacePattern(prev, slot, nxt))
        return patterns

    def _dependency_patterns(self, sentence: DataInstance, i: int) -> set[Pattern]:
        patterns: set[Pattern] = set()
        slots = self._target_slots(sentence, i)
        for depth in range(max(1, self.config.min_window), self.config.max_window + 1):
            path = sentence.head_path(i, depth, use_lemma=True)
            if len(path) < depth:
                break
            for slot in slots:
                patterns.add(DependencyPattern(tuple(path), slot, use_lemma=True))
        return patterns

    def patterns_for_token(self, sentence: DataInstance, i: int) -> set[Pattern]:
        """Every pattern that has token i as its target."""
        if not self.options.is_content(sentence[i]):
            return set()
        if self.config.pattern_type is PatternType.DEP:
            return self._dependency_patterns(sentence, i)
        return self._surface_patterns(sentence, i)

    def patterns_for_sentence(self, sentence: DataInstance) -> dict[int, set[Pattern]]:
        return {i: self.patterns_for_token(sentence, i) for i in range(len(sentence))}
