"""
End-to-end tests for the bootstrapping loop on a three-sentence corpus:

    s1  President Obama spoke today .
    s2  President Clinton spoke today .
    s3  Visit Paris tomorrow .

Seeded with Obama, one round learns the patterns around it and, through
them, Clinton.
"""

import json
from pathlib import Path

import pytest

from spied.candidate_phrase import CandidatePhrase
from spied.config import THRESHOLD_ANNEAL_FACTOR
from spied.controller import (
    LEARNED_PATTERNS_JSON,
    LEARNED_PATTERNS_PKL,
    LEARNED_WORDS_FILE,
    MATCHED_TOKENS_FILE,
    SEEDS_FILE,
    BootstrapController,
)
from spied.data.corpus import Corpus
from spied.data.dictionaries import Dictionaries
from spied.data.tokens import DataInstance, Token
from spied.exceptions import RoundFailure

CLINTON = CandidatePhrase("Clinton")


def _label_dir(config):
    return Path(config.run.out_dir) / config.run.identifier / "PERSON"


class TestBootstrapRun:
    """One and several rounds over the minimal corpus."""

    def test_learns_clinton(self, make_config, person_corpus, dictionaries):
        """The patterns shared with the seed extract Clinton, not Paris."""
        controller = BootstrapController(make_config(), person_corpus, dictionaries)
        states = controller.run()

        person = states["PERSON"]
        assert person.learned_words == {0: {CLINTON: 1.0}}
        assert {p.to_string_simple() for p in person.learned_patterns[0]} == {
            "<b>X</b> spoke",
            "president <b>X</b>",
            "president <b>X</b> spoke",
        }
        assert CandidatePhrase("Paris") not in person.known_words()

    def test_learned_phrase_is_labeled_in_corpus(self, make_config, person_corpus, dictionaries):
        """Accepted phrases are marked on their tokens."""
        BootstrapController(make_config(), person_corpus, dictionaries).run()
        assert person_corpus.get("s2")[1].is_labeled("PERSON")
        assert not person_corpus.get("s3")[1].is_labeled("PERSON")

    def test_label_matched_tokens_off(self, make_config, person_corpus, dictionaries):
        """Without relabeling only the seed tokens carry the label."""
        config = make_config(run={"label_matched_tokens": False})
        BootstrapController(config, person_corpus, dictionaries).run()
        assert person_corpus.get("s1")[1].is_labeled("PERSON")
        assert not person_corpus.get("s2")[1].is_labeled("PERSON")

    def test_converges_when_nothing_new(self, make_config, person_corpus, dictionaries):
        """The second round finds no new pattern and ends the run."""
        config = make_config(run={"num_iterations": 5})
        controller = BootstrapController(config, person_corpus, dictionaries)
        states = controller.run()

        assert controller.iteration == 2
        assert list(states["PERSON"].learned_patterns) == [0]

    def test_unsupported_patterns_stop_run(self, make_config, person_corpus, dictionaries):
        """With no pattern passing the support filter the run stops after one round."""
        config = make_config(
            selection={"min_pos_phrase_support_for_pattern": 5},
            run={"num_iterations": 3},
        )
        controller = BootstrapController(config, person_corpus, dictionaries)
        states = controller.run()

        assert controller.iteration == 1
        assert states["PERSON"].learned_words == {}
        assert states["PERSON"].threshold_select_pattern == 0.5

    def test_threshold_annealing(self, make_config, person_corpus, dictionaries):
        """tune_threshold_keep_running lowers the threshold after each empty round."""
        config = make_config(
            selection={"min_pos_phrase_support_for_pattern": 5},
            run={"num_iterations": 3, "tune_threshold_keep_running": True},
        )
        controller = BootstrapController(config, person_corpus, dictionaries)
        states = controller.run()

        assert controller.iteration == 3
        assert states["PERSON"].threshold_select_pattern == pytest.approx(0.5 * THRESHOLD_ANNEAL_FACTOR ** 3)

    def test_max_extract_num_words(self, make_config, person_corpus, dictionaries):
        """A label that reached its phrase cap is not run again."""
        config = make_config(run={"num_iterations": 3, "max_extract_num_words": 1})
        controller = BootstrapController(config, person_corpus, dictionaries)
        states = controller.run()

        assert states["PERSON"].num_learned_words() == 1
        assert controller.iteration == 1

    def test_cancel_before_run(self, make_config, person_corpus, dictionaries):
        """A cancelled run stops before its first round."""
        controller = BootstrapController(make_config(), person_corpus, dictionaries)
        controller.cancel()
        states = controller.run()
        assert controller.iteration == 0
        assert states["PERSON"].learned_patterns == {}

    def test_batched_corpus(self, make_config, person_sentences, dictionaries, tmp_path):
        """Batch files give the same result and keep the relabeling."""
        batch_dir = tmp_path / "batches"
        corpus = Corpus.from_sentences(person_sentences, batch_dir=batch_dir, max_sentences_per_batch=2)
        config = make_config(run={"batch_process_sents": True, "batch_dir": str(batch_dir), "max_sentences_per_batch": 2})

        states = BootstrapController(config, corpus, dictionaries).run()

        assert states["PERSON"].learned_words == {0: {CLINTON: 1.0}}
        assert corpus.get("s2")[1].is_labeled("PERSON")

    def test_lemma_context_without_lemmas(self, make_config, dictionaries):
        """Lemma-context patterns still learn when the input carries no lemmas."""
        corpus = Corpus.from_sentences([
            DataInstance(sid, [Token(word=w) for w in text.split()])
            for sid, text in [
                ("s1", "President Obama spoke today ."),
                ("s2", "President Clinton spoke today ."),
                ("s3", "Visit Paris tomorrow ."),
            ]
        ])
        config = make_config(patterns={"use_lemma_context_tokens": True})

        states = BootstrapController(config, corpus, dictionaries).run()

        assert states["PERSON"].learned_words == {0: {CLINTON: 1.0}}
        assert len(states["PERSON"].learned_patterns[0]) == 3

    def test_unused_phrases_evicted(self, make_config, person_corpus, dictionaries):
        """Phrases outside the corpus and every word list leave the registry after a round."""
        controller = BootstrapController(make_config(), person_corpus, dictionaries)
        controller.registry.create_or_get("Zanzibar")
        controller.run()

        assert "Zanzibar" not in controller.registry
        assert "Clinton" in controller.registry
        assert "Obama" in controller.registry


class TestFailures:
    """Failures stay with the label and round that caused them."""

    def test_statistics_failure_skips_label(self, make_config, person_corpus, dictionaries, monkeypatch):
        """A failed statistics phase leaves the label unchanged."""
        controller = BootstrapController(make_config(), person_corpus, dictionaries)

        def fail(label, *args, **kwargs):
            raise RoundFailure("worker died", label=label)

        monkeypatch.setattr(controller.aggregator, "compute", fail)
        states = controller.run()

        assert states["PERSON"].learned_patterns == {}
        assert controller.iteration == 1

    def test_classifier_failure_skips_phrase_expansion(self, make_config, person_corpus):
        """An untrainable classifier keeps the round's patterns but learns no phrase."""
        config = make_config(phrases={"phrase_scoring": "learned_classifier", "per_select_rand": 0.0})
        controller = BootstrapController(config, person_corpus, Dictionaries())
        states = controller.run()

        assert states["PERSON"].learned_patterns[0]
        assert states["PERSON"].learned_words == {}


class TestPersistence:
    """Files written after each round and resuming from them."""

    def test_output_files(self, make_config, person_corpus, dictionaries):
        """Seeds, learned phrases, patterns and justifications are written per label."""
        config = make_config(run={"write_matched_tokens_files": True})
        BootstrapController(config, person_corpus, dictionaries).run()
        label_dir = _label_dir(config)

        assert (label_dir / SEEDS_FILE).read_text(encoding='utf-8') == "Obama\n"
        assert (label_dir / LEARNED_WORDS_FILE).read_text(encoding='utf-8') == "###Iteration 0\nClinton\t1.0\n"
        with open(label_dir / LEARNED_PATTERNS_JSON, encoding='utf-8') as f:
            assert len(json.load(f)["0"]) == 3
        assert (label_dir / LEARNED_PATTERNS_PKL).exists()
        with open(label_dir / "words.json", encoding='utf-8') as f:
            words = json.load(f)
        assert words[0][0]["entity"] == "Clinton"
        assert words[0][0]["reasonwords"] == ["Obama"]
        with open(label_dir / MATCHED_TOKENS_FILE, encoding='utf-8') as f:
            matched = json.load(f)
        assert ["s2", 1, 2] in matched["president <b>X</b>"]

    def test_resume(self, make_config, person_corpus, dictionaries, make_sentence):
        """A new controller restores phrases and patterns and continues after them."""
        config = make_config(run={"num_iterations": 5})
        BootstrapController(make_config(), person_corpus, dictionaries).run()

        fresh = Corpus.from_sentences([
            make_sentence("s1", "President Obama spoke today ."),
            make_sentence("s2", "President Clinton spoke today ."),
            make_sentence("s3", "Visit Paris tomorrow ."),
        ])
        controller = BootstrapController(config, fresh, dictionaries)

        assert controller.load_saved_state() == 1
        person = controller.states["PERSON"]
        assert CLINTON in person.known_words()
        assert len(person.learned_patterns[0]) == 3
        assert fresh.get("s2")[1].is_labeled("PERSON")
