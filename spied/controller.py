"""
Iteration Controller - Bootstrapped Pattern-Based Entity Learning

Drives the bootstrapping loop. Starting from each label's seed dictionary,
every round does, per label:

1. Statistics: count how often each candidate pattern (the patterns around
   the label's currently labeled tokens) matches positive, negative and
   unlabeled phrases.
2. Pattern selection: score the patterns and accept the best ones.
3. Application: run the accepted patterns over the corpus to collect
   candidate phrases.
4. Phrase selection: score the candidates and accept the best ones.
5. Relabeling: mark the accepted phrases' tokens with the label and push the
   changed sentences into the index and the pattern store.

Labels are processed in sorted order within a round. A round in which no
label accepted a pattern either ends the run or, with
tune_threshold_keep_running, lowers every label's pattern threshold and
continues. The run never exceeds num_iterations rounds.

Failures stay with the label that caused them: a failed parallel phase skips
that label for the round, a classifier that cannot be trained skips only its
phrase expansion.

Output layout (per label, when out_dir is set):
    <out_dir>/<identifier>/<label>/
        seeds.txt
        learnedwords.txt
        learnedpatterns.json
        learnedpatterns.pkl
        patterns.json
        words.json
        matched_tokens.json   (write_matched_tokens_files)
"""

import json
import pickle
import threading
from dataclasses import dataclass, field
from pathlib import Path

from spied.candidate_phrase import CandidatePhrase, PhraseRegistry
from spied.config import THRESHOLD_ANNEAL_FACTOR, BootstrapConfig, WordScoring
from spied.data.corpus import Corpus
from spied.data.corpus_stats import CorpusStatistics
from spied.data.dictionaries import Dictionaries, load_word_classes, load_word_vectors
from spied.exceptions import ClassifierTrainingError, RoundFailure
from spied.index import create_index
from spied.label_state import LabelState
from spied.logging_config import Timer, debug_log, info, warning
from spied.parallel import ExecutorStrategy, create_strategy
from spied.patterns.factory import PatternFactory
from spied.patterns.store import PatternStore
from spied.scoring import ScoringContext, get_pattern_scorer, get_phrase_scorer
from spied.selection import (
    PatternSelector,
    PhraseSelector,
    write_patterns_justification,
    write_words_justification,
)
from spied.stats import PatternApplier, PatternStats, SufficientStatsAggregator

SEEDS_FILE = "seeds.txt"
LEARNED_WORDS_FILE = "learnedwords.txt"
LEARNED_PATTERNS_JSON = "learnedpatterns.json"
LEARNED_PATTERNS_PKL = "learnedpatterns.pkl"
MATCHED_TOKENS_FILE = "matched_tokens.json"
ITERATION_HEADER = "###Iteration"


@dataclass
class RoundOutcome:
    """What one label accepted in one round."""
    label: str
    patterns: dict = field(default_factory=dict)
    words: dict[CandidatePhrase, float] = field(default_factory=dict)
    failed: bool = False


class BootstrapController:
    """
    Runs the bootstrapping loop over one corpus.

    Args:
        config: Validated run configuration
        corpus: Sentences to learn from (their tokens are relabeled in place)
        dictionaries: Negative word lists; loaded from config.run when None
        strategy: Executor for the parallel phases; sized from
            run.num_threads when None

    Example:
        controller = BootstrapController(config, corpus)
        states = controller.run()
        states["PERSON"].learned_word_set()
    """

    def __init__(
        self,
        config: BootstrapConfig,
        corpus: Corpus,
        dictionaries: Dictionaries | None = None,
        strategy: ExecutorStrategy | None = None
    ):
        self.config = config
        self.corpus = corpus
        self.labels = sorted(config.labels)
        self.dictionaries = dictionaries or Dictionaries.from_config(config.run)
        self.strategy = strategy or create_strategy(config.run.num_threads)
        self.registry = PhraseRegistry()
        self.out_dir = Path(config.run.out_dir) if config.run.out_dir else None
        self.iteration = 0
        self._stop_event = threading.Event()

        self.states: dict[str, LabelState] = {}
        for label in self.labels:
            state = LabelState(label, threshold_select_pattern=config.selection.threshold_select_pattern)
            state.add_seeds(self.registry.create_or_get(s) for s in config.run.seed_words[label])
            self.states[label] = state

        self._stats: dict[str, PatternStats] = {label: PatternStats() for label in self.labels}
        self._matched_tokens: dict[str, dict[str, list]] = {label: {} for label in self.labels}

        with Timer("Prepare corpus"):
            seeded = self._label_phrases_in_corpus(
                {label: self.states[label].seeds for label in self.labels}, update_index=False
            )
            self.index = create_index(config.index)
            if config.index.load_index:
                for sent_id in sorted(seeded):
                    self.index.update(self.corpus.get(sent_id).tokens, sent_id)
                self.index.finish_updating()
            else:
                for sentences, _ in corpus.iter_batches():
                    self.index.add(sentences, True)
            self.factory = PatternFactory(config.patterns, self.dictionaries.stop_words, self.labels)
            self.store = PatternStore.build(corpus, self.factory)

        self.context = self._build_context()
        self.phrase_scorer = get_phrase_scorer(config.phrases.phrase_scoring, self.context)
        self.aggregator = SufficientStatsAggregator(
            corpus,
            self.index,
            self.registry,
            self.dictionaries,
            config.patterns,
            self.factory.options,
            num_threads=config.run.num_threads,
            sample_fraction=config.run.sample_sentences_for_sufficient_stats,
            strategy=self.strategy,
            random_seed=config.run.random_seed,
        )
        self.applier = PatternApplier(
            corpus,
            self.index,
            self.registry,
            self.dictionaries,
            config.patterns,
            self.factory.options,
            num_threads=config.run.num_threads,
            strategy=self.strategy,
        )
        self.pattern_selector = PatternSelector(config.selection)
        self.phrase_selector = PhraseSelector(config.selection)
        debug_log(
            f"[CONTROLLER] Ready: {len(self.labels)} labels, {len(corpus)} sentences, "
            f"{len(seeded)} sentences contain seed phrases"
        )

    def _build_context(self) -> ScoringContext:
        phrases = self.config.phrases
        corpus_stats = None
        if phrases.stats_cache_file:
            corpus_stats = CorpusStatistics.load_cache(phrases.stats_cache_file)
            if corpus_stats is not None:
                corpus_stats.normalize(phrases.freq_normalization)
                debug_log(f"[CONTROLLER] Reusing corpus statistics from {phrases.stats_cache_file}")
        if corpus_stats is None:
            corpus_stats = CorpusStatistics(
                max_ngram=phrases.ngram_max_words,
                normalization=phrases.freq_normalization,
            )
            corpus_stats.compute(self.corpus)
            if phrases.stats_cache_file:
                corpus_stats.save_cache(phrases.stats_cache_file)
        if phrases.google_ngram_file:
            corpus_stats.load_google_ngrams(phrases.google_ngram_file)
        if phrases.domain_ngram_file:
            corpus_stats.load_domain_ngrams(phrases.domain_ngram_file)
        return ScoringContext(
            config=self.config,
            labels=self.states,
            registry=self.registry,
            dictionaries=self.dictionaries,
            corpus_stats=corpus_stats,
            corpus=self.corpus,
            word_classes=load_word_classes(phrases.word_class_file) if phrases.word_class_file else {},
            word_vectors=load_word_vectors(phrases.word_vector_file) if phrases.word_vector_file else {},
            out_dir=self.out_dir,
        )

    def cancel(self):
        """Ask the run to stop before its next round."""
        self._stop_event.set()

    # -- relabeling ---------------------------------------------------------------

    def _label_phrases_in_corpus(self, phrases_by_label: dict, update_index: bool = True) -> set[str]:
        """
        Mark every occurrence of the given phrases with their label.

        Returns:
            Ids of the sentences whose labels changed
        """
        wanted = {
            label: [(p, p.phrase.split()) for p in sorted(phrases)]
            for label, phrases in phrases_by_label.items() if phrases
        }
        changed_ids: set[str] = set()
        if not wanted:
            return changed_ids
        for sentences, batch_file in self.corpus.iter_batches():
            changed_in_batch = False
            for sent_id, sentence in sentences.items():
                changed_indices = set()
                for label, entries in wanted.items():
                    for phrase, words in entries:
                        for start in sentence.find_phrase(words, lower=True):
                            for i in range(start, start + len(words)):
                                token = sentence[i]
                                if not token.is_labeled(label):
                                    changed_indices.add(i)
                                token.set_answer(label)
                                token.add_matched_phrase(label, phrase.phrase)
                if changed_indices:
                    changed_ids.add(sent_id)
                    changed_in_batch = True
                    if update_index:
                        self.index.update(sentence.tokens, sent_id)
                        self.store.refresh(sentence, changed_indices)
            if changed_in_batch:
                self.corpus.write_back(sentences, batch_file)
        if update_index:
            self.index.finish_updating()
        return changed_ids

    # -- one label, one round -----------------------------------------------------

    def _learn_patterns(self, state: LabelState) -> dict:
        label = state.label
        run = self.config.run
        candidates = self.store.candidate_patterns(self.corpus, label)
        other_words = set()
        if run.use_other_labels_words_as_negative:
            other_words = {p.phrase for p in self.context.other_labels_words(label)}
        fresh = self.aggregator.compute(label, candidates, other_words)

        stats = self._stats[label]
        stats.remove_patterns(fresh.patterns())
        stats.merge(fresh)

        scorer = get_pattern_scorer(self.config.selection.pattern_scoring, self.context, label, self.phrase_scorer)
        scores = scorer.score(stats)
        selection = self.pattern_selector.select(state, scores, stats)
        if selection.evicted:
            debug_log(f"[CONTROLLER] {label}: evicting {len(selection.evicted)} more restrictive learned patterns")
            state.remove_learned_patterns(selection.evicted)
            stats.remove_patterns(selection.evicted)
        if selection.selected:
            state.add_learned_patterns(self.iteration, selection.selected)
            if self.out_dir is not None:
                write_patterns_justification(
                    self.context.label_dir(label), self.iteration, selection.selected, stats
                )
        return selection.selected

    def _ignore_set(self, state: LabelState) -> set[CandidatePhrase]:
        ignore = set(state.ignore_words)
        if self.config.run.use_other_labels_words_as_negative:
            ignore |= self.context.other_labels_words(state.label)
        return ignore

    def _learn_words(self, state: LabelState, patterns: dict) -> dict[CandidatePhrase, float]:
        label = state.label
        limit = None
        if self.config.run.max_extract_num_words is not None:
            limit = self.config.run.max_extract_num_words - state.num_learned_words()
            if limit <= 0:
                return {}

        applied = self.applier.apply(label, patterns)
        if self.config.run.write_matched_tokens_files:
            for pattern, spans in applied.matched_tokens.items():
                self._matched_tokens[label].setdefault(pattern.to_string_simple(), []).extend(
                    [list(span) for span in spans]
                )
        candidates = applied.candidates() - state.known_words() - state.ignore_words - applied.already_labeled
        if not candidates:
            debug_log(f"[CONTROLLER] {label}: no new candidate phrases")
            return {}

        weights = state.all_learned_patterns()
        ignore = self._ignore_set(state)
        if self.config.phrases.word_scoring is WordScoring.BPB:
            words = self.phrase_selector.choose_bpb(state, candidates, applied.extracted, weights, ignore)
        else:
            scores = self.phrase_scorer.score_phrases(label, candidates, applied.extracted, weights)
            words = self.phrase_selector.choose_top_words(state, scores, applied.extracted, ignore, limit=limit)
        if words:
            state.add_learned_words(self.iteration, words)
            if self.out_dir is not None:
                write_words_justification(
                    self.context.label_dir(label), self.iteration, words, applied.extracted, self._stats[label].positive
                )
        return words

    def _run_label(self, state: LabelState) -> RoundOutcome:
        outcome = RoundOutcome(state.label)
        try:
            outcome.patterns = self._learn_patterns(state)
        except (RoundFailure, ClassifierTrainingError) as e:
            warning(f"[CONTROLLER] Round {self.iteration} failed for {state.label}: {e}")
            outcome.failed = True
            return outcome
        if not outcome.patterns:
            return outcome
        try:
            outcome.words = self._learn_words(state, outcome.patterns)
        except ClassifierTrainingError as e:
            warning(f"[CONTROLLER] {state.label}: skipping phrase expansion in round {self.iteration}: {e}")
        except RoundFailure as e:
            warning(f"[CONTROLLER] Applying patterns failed for {state.label}: {e}")
            outcome.failed = True
        return outcome

    def _label_done(self, state: LabelState) -> bool:
        cap = self.config.run.max_extract_num_words
        return cap is not None and state.num_learned_words() >= cap

    def _shed_registry(self) -> int:
        """
        Evict registry phrases no label can use again: absent from the corpus
        n-gram counts and from every dictionary, seed, learned or ignore set.
        """
        keep = set()
        for state in self.states.values():
            keep |= state.known_words()
            keep |= state.ignore_words
        d = self.dictionaries
        stats = self.context.corpus_stats
        shed = 0
        for phrase in self.registry.phrases():
            if phrase in keep or stats.raw(phrase.phrase) > 0:
                continue
            lowered = phrase.phrase.lower()
            if (lowered in d.stop_words or lowered in d.english_words
                    or lowered in d.common_english_words or phrase.phrase in d.other_semantic_words):
                continue
            shed += self.registry.delete(phrase)
        if shed:
            debug_log(f"[CONTROLLER] Evicted {shed} unused phrases from the registry")
        return shed

    # -- main loop ----------------------------------------------------------------

    def run(self) -> dict[str, LabelState]:
        """
        Bootstrap until convergence, cancellation or num_iterations rounds.

        Returns:
            label -> LabelState with everything learned
        """
        run = self.config.run
        self._save_seeds()
        try:
            while self.iteration < run.num_iterations:
                if self._stop_event.is_set():
                    info(f"[CONTROLLER] Cancelled before round {self.iteration}")
                    break
                active = [label for label in self.labels if not self._label_done(self.states[label])]
                if not active:
                    info("[CONTROLLER] Every label reached max_extract_num_words")
                    break

                with Timer(f"Round {self.iteration}"):
                    self.phrase_scorer.start_round(self.iteration)
                    self.phrase_scorer.signals.reset()
                    outcomes = [self._run_label(self.states[label]) for label in active]
                    new_words = {o.label: set(o.words) for o in outcomes if o.words}
                    if run.label_matched_tokens and new_words:
                        self._label_phrases_in_corpus(new_words)
                    for state in self.states.values():
                        state.clear_round_caches()
                    self._shed_registry()

                for o in outcomes:
                    info(
                        f"[CONTROLLER] Round {self.iteration} {o.label}: {len(o.patterns)} patterns, "
                        f"{len(o.words)} phrases{' (failed)' if o.failed else ''}"
                    )
                self._save_state()
                self.iteration += 1

                if not any(o.patterns for o in outcomes):
                    if not run.tune_threshold_keep_running:
                        info(f"[CONTROLLER] No label learned a pattern in round {self.iteration - 1}; converged")
                        break
                    for state in self.states.values():
                        state.threshold_select_pattern *= THRESHOLD_ANNEAL_FACTOR
                    debug_log(
                        "[CONTROLLER] Annealed pattern thresholds: "
                        + ", ".join(f"{s.label}={s.threshold_select_pattern:.4f}" for s in self.states.values())
                    )
        finally:
            if self.config.index.save_index:
                self.index.save(self.config.index.index_dir)
            self.strategy.shutdown(wait=True)
        return self.states

    # -- persistence --------------------------------------------------------------

    def _label_dir(self, label: str) -> Path | None:
        path = self.context.label_dir(label)
        if path is not None:
            path.mkdir(parents=True, exist_ok=True)
        return path

    def _save_seeds(self):
        for label, state in self.states.items():
            path = self._label_dir(label)
            if path is None:
                return
            (path / SEEDS_FILE).write_text(
                "".join(f"{p.phrase}\n" for p in sorted(state.seeds)), encoding='utf-8'
            )

    def _save_state(self):
        """Write every label's learned phrases and patterns so far."""
        for label, state in self.states.items():
            path = self._label_dir(label)
            if path is None:
                return
            lines = []
            for iteration in sorted(state.learned_words):
                lines.append(f"{ITERATION_HEADER} {iteration}")
                lines.extend(f"{p.phrase}\t{score}" for p, score in state.learned_words[iteration].items())
            (path / LEARNED_WORDS_FILE).write_text("\n".join(lines) + ("\n" if lines else ""), encoding='utf-8')

            as_text = {
                str(iteration): [p.to_string_simple() for p in patterns]
                for iteration, patterns in sorted(state.learned_patterns.items())
            }
            with open(path / LEARNED_PATTERNS_JSON, 'w', encoding='utf-8') as f:
                json.dump(as_text, f, indent=2)
            with open(path / LEARNED_PATTERNS_PKL, 'wb') as f:
                pickle.dump(state.learned_patterns, f)

            if self.config.run.write_matched_tokens_files:
                with open(path / MATCHED_TOKENS_FILE, 'w', encoding='utf-8') as f:
                    json.dump(self._matched_tokens[label], f, indent=2)
        debug_log(f"[CONTROLLER] Saved state after round {self.iteration}")

    def load_saved_state(self) -> int:
        """
        Resume from the files a previous run wrote under out_dir.

        Seeds, learned phrases and learned patterns are restored, the corpus
        is relabeled with them, and the next round continues after the last
        saved iteration.

        Returns:
            The iteration the run will continue from
        """
        if self.out_dir is None:
            return self.iteration
        last = -1
        restored = {}
        for label, state in self.states.items():
            path = self.context.label_dir(label)
            if path is None or not path.exists():
                continue
            seeds_file = path / SEEDS_FILE
            if seeds_file.exists():
                state.add_seeds(
                    self.registry.create_or_get(line)
                    for line in seeds_file.read_text(encoding='utf-8').splitlines() if line.strip()
                )
            words_file = path / LEARNED_WORDS_FILE
            if words_file.exists():
                iteration = None
                for line in words_file.read_text(encoding='utf-8').splitlines():
                    if line.startswith(ITERATION_HEADER):
                        iteration = int(line[len(ITERATION_HEADER):].strip())
                        last = max(last, iteration)
                    elif line.strip() and iteration is not None:
                        text, _, score = line.rpartition("\t")
                        state.add_learned_words(iteration, {self.registry.create_or_get(text): float(score)})
            patterns_file = path / LEARNED_PATTERNS_PKL
            if patterns_file.exists():
                with open(patterns_file, 'rb') as f:
                    saved = pickle.load(f)
                for iteration, patterns in saved.items():
                    state.add_learned_patterns(iteration, patterns)
                    last = max(last, iteration)
            restored[label] = state.known_words()

        self._label_phrases_in_corpus(restored)
        self.iteration = last + 1
        info(f"[CONTROLLER] Restored saved state; continuing from round {self.iteration}")
        return self.iteration
