"""
Tests for the phrase signals, the normalization helpers and both phrase
scorers.
"""

import numpy as np
import pytest

from spied.config import PhraseScoring, PhraseSignal
from spied.data.dictionaries import Dictionaries
from spied.exceptions import ClassifierTrainingError, ConfigurationError
from spied.patterns import ContextToken, SurfacePattern, TargetSlot
from spied.scoring import PhraseSignals, get_phrase_scorer, min_max_normalize, normalize_softmax_minmax
from spied.scoring.phrases.learned_classifier import MODEL_FILE_NAME
from spied.stats import TwoDimensionalCounter

PRESIDENT_X = SurfacePattern((ContextToken("text", "president"),), TargetSlot(), None)
VISIT_X = SurfacePattern((ContextToken("text", "visit"),), TargetSlot(), None)

TWO_LABELS = {"seed_words": {"PERSON": ["Obama"], "LOCATION": ["Paris"]}}


@pytest.fixture
def context(make_config, make_context, person_corpus):
    return make_context(make_config(run=TWO_LABELS), person_corpus)


def _extracted(context, counts):
    """(phrase text, pattern) -> count."""
    counter = TwoDimensionalCounter()
    for (text, pattern), count in counts.items():
        counter.increment(context.registry.create_or_get(text), pattern, count)
    return counter


class TestNormalization:
    """Softmax / min-max helpers."""

    def test_softmax_minmax_range(self):
        """Outputs span [0, 1] and keep the order of the inputs."""
        result = normalize_softmax_minmax({"a": -2.0, "b": 0.0, "c": 3.0})
        assert result["c"] == pytest.approx(1.0)
        assert result["a"] == pytest.approx(0.0, abs=1e-6)
        assert result["a"] < result["b"] < result["c"]

    def test_one_minus_softmax_reverses_order(self):
        """one_minus_softmax maps high raw scores to low values."""
        result = normalize_softmax_minmax({"a": 0.0, "b": 3.0}, one_minus_softmax=True)
        assert result["a"] > result["b"]

    def test_softmax_clips_large_inputs(self):
        """Huge scores do not overflow."""
        result = normalize_softmax_minmax({"a": 1e6, "b": 7.0}, min_max=False)
        assert result["a"] == result["b"]

    def test_min_max_constant_signal(self):
        """A signal equal for every candidate maps to 1.0."""
        assert min_max_normalize({"a": 3.0, "b": 3.0}) == {"a": 1.0, "b": 1.0}
        assert min_max_normalize({}) == {}


class TestPhraseSignals:
    """Individual signals, each higher-is-better."""

    def test_pat_wt_by_freq(self, context):
        """Weighted extraction counts divided by the processed corpus frequency."""
        signals = PhraseSignals(context)
        extracted = _extracted(context, {("Clinton", PRESIDENT_X): 2})
        clinton = context.registry.get("Clinton")
        # "Clinton" occurs once: processed frequency 1 + log(1) = 1
        assert signals.pat_wt_by_freq(clinton, extracted, {PRESIDENT_X: 0.5}) == pytest.approx(1.0)

    def test_pat_wt_by_freq_unseen_phrase(self, context):
        """A phrase absent from the corpus keeps its undivided weight."""
        signals = PhraseSignals(context)
        extracted = _extracted(context, {("Carter", PRESIDENT_X): 3})
        carter = context.registry.get("Carter")
        assert signals.pat_wt_by_freq(carter, extracted, {PRESIDENT_X: 1.0}) == pytest.approx(3.0)

    def test_semantic_odds(self, context):
        """Seed n-grams get add-one odds against other labels' seeds."""
        signals = PhraseSignals(context)
        obama = context.registry.get("Obama")
        assert signals.semantic_odds(obama, "PERSON") == pytest.approx(2.0)
        assert signals.semantic_odds(context.registry.create_or_get("Clinton"), "PERSON") == 0.0

    def test_edit_distance_same(self, context):
        """A near copy of a known phrase scores close to 1."""
        signals = PhraseSignals(context)
        near = context.registry.create_or_get("Obamaa")
        feats = signals.features(near, "PERSON", [PhraseSignal.EDIT_DIST_SAME])
        assert feats["edit_dist_same"] == pytest.approx(1 - 1 / 6)

    def test_edit_distance_other(self, context):
        """A near copy of another label's phrase has a small distance."""
        signals = PhraseSignals(context)
        assert signals.edit_distance_other(context.registry.create_or_get("Pariss"), "PERSON") == pytest.approx(1 / 6)
        assert signals.edit_distance_other(context.registry.create_or_get("Clinton"), "PERSON") == 1.0

    def test_short_phrases_have_no_distance(self, context):
        """Phrases under four characters are never close to anything."""
        signals = PhraseSignals(context)
        assert signals.edit_distance_other(context.registry.create_or_get("Par"), "PERSON") == 1.0

    def test_word_class(self, context):
        """Share of the phrase's cluster among the label's known phrases."""
        context.word_classes.update({"Obama": 1, "Clinton": 1, "Paris": 2})
        signals = PhraseSignals(context)
        assert signals.word_class(context.registry.create_or_get("Clinton"), "PERSON") == pytest.approx(0.5)
        assert signals.word_class(context.registry.create_or_get("Rome"), "PERSON") == 0.5
        assert signals.word_class(context.registry.create_or_get("Berlin"), "PERSON") == 0.5
        context.word_classes["Berlin"] = 2
        signals.reset()
        assert signals.word_class(context.registry.get("Berlin"), "PERSON") == 0.0

    def test_word_vector(self, context):
        """Cosine similarity to the centroid of the label's known phrases."""
        context.word_vectors.update({
            "Obama": np.array([1.0, 0.0]),
            "Clinton": np.array([2.0, 0.0]),
            "Paris": np.array([0.0, 1.0]),
        })
        signals = PhraseSignals(context)
        assert signals.word_vector(context.registry.create_or_get("Clinton"), "PERSON") == pytest.approx(1.0)
        assert signals.word_vector(context.registry.get("Paris"), "PERSON") == pytest.approx(0.0)

    def test_missing_vector_is_unknown(self, context):
        """Without a vector the similarity is unknown by default."""
        signals = PhraseSignals(context)
        assert signals.word_vector(context.registry.create_or_get("Carter"), "PERSON") is None

    def test_missing_vector_configured(self, make_config, make_context):
        """missing_vector_similarity supplies a value for phrases without vectors."""
        context = make_context(make_config(run=TWO_LABELS, phrases={"missing_vector_similarity": 0.3}))
        signals = PhraseSignals(context)
        assert signals.word_vector(context.registry.create_or_get("Carter"), "PERSON") == 0.3

    def test_word_shape(self, make_config, make_context):
        """Shapes common among the label's phrases score higher."""
        context = make_context(make_config(run={"seed_words": {"PERSON": ["Obama"], "ORG": ["NASA"]}}))
        signals = PhraseSignals(context)
        assert signals.word_shape_score(context.registry.create_or_get("Clinton"), "PERSON") == pytest.approx(0.5)
        assert signals.word_shape_score(context.registry.create_or_get("IBM"), "PERSON") == 0.0

    def test_bow_and_capitalization(self, context):
        """BOW adds one key per word; is_first_capital is an indicator."""
        signals = PhraseSignals(context)
        phrase = context.registry.create_or_get("Barack Obama")
        feats = signals.features(phrase, "PERSON", [PhraseSignal.BOW, PhraseSignal.IS_FIRST_CAPITAL])
        assert feats == {"bow-Barack": 1.0, "bow-Obama": 1.0, "is_first_capital": 1.0}


class TestAverageFeatures:
    """Mean of min-max normalized signals."""

    def _scorer(self, make_config, make_context, person_corpus):
        config = make_config(run=TWO_LABELS, phrases={"phrase_signals": ["pat_wt_by_freq", "is_first_capital"]})
        context = make_context(config, person_corpus)
        return context, get_phrase_scorer(PhraseScoring.AVERAGE_FEATURES, context)

    def test_averages_normalized_signals(self, make_config, make_context, person_corpus):
        """The strongest candidate on every signal scores 1, the weakest 0."""
        context, scorer = self._scorer(make_config, make_context, person_corpus)
        extracted = _extracted(context, {("Clinton", PRESIDENT_X): 2, ("tomorrow", VISIT_X): 1})
        clinton, tomorrow = context.registry.get("Clinton"), context.registry.get("tomorrow")

        scores = scorer.score_phrases("PERSON", {clinton, tomorrow}, extracted, {PRESIDENT_X: 1.0, VISIT_X: 1.0})

        assert scores[clinton] == pytest.approx(1.0)
        assert scores[tomorrow] == pytest.approx(0.0)

    def test_scores_cached_within_round(self, make_config, make_context, person_corpus):
        """Scores are reused until the next round starts."""
        context, scorer = self._scorer(make_config, make_context, person_corpus)
        scorer.start_round(0)
        extracted = _extracted(context, {("Clinton", PRESIDENT_X): 2, ("tomorrow", VISIT_X): 1})
        clinton, tomorrow = context.registry.get("Clinton"), context.registry.get("tomorrow")
        weights = {PRESIDENT_X: 1.0, VISIT_X: 1.0}
        scorer.score_phrases("PERSON", {clinton, tomorrow}, extracted, weights)

        swapped = _extracted(context, {("Clinton", PRESIDENT_X): 1, ("tomorrow", VISIT_X): 5})
        assert scorer.score_phrases("PERSON", {clinton, tomorrow}, swapped, weights)[clinton] == pytest.approx(1.0)

        scorer.start_round(1)
        rescored = scorer.score_phrases("PERSON", {clinton, tomorrow}, swapped, weights)
        assert rescored[clinton] == pytest.approx(0.5)

    def test_new_candidates_renormalize_earlier_ones(self, make_config, make_context, person_corpus):
        """A phrase scored alone is rescaled when stronger candidates join."""
        context, scorer = self._scorer(make_config, make_context, person_corpus)
        scorer.start_round(0)
        extracted = _extracted(context, {("Clinton", PRESIDENT_X): 2, ("tomorrow", VISIT_X): 1})
        clinton, tomorrow = context.registry.get("Clinton"), context.registry.get("tomorrow")
        weights = {PRESIDENT_X: 1.0, VISIT_X: 1.0}

        assert scorer.score_phrases("PERSON", {tomorrow}, extracted, weights)[tomorrow] == pytest.approx(1.0)

        scores = scorer.score_phrases("PERSON", {clinton, tomorrow}, extracted, weights)
        assert scores[clinton] == pytest.approx(1.0)
        assert scores[tomorrow] == pytest.approx(0.0)

    def test_bow_only_is_rejected(self, make_config, make_context):
        """Averaging needs a signal with an ordering."""
        context = make_context(make_config(phrases={"phrase_signals": ["bow"]}))
        with pytest.raises(ConfigurationError):
            get_phrase_scorer(PhraseScoring.AVERAGE_FEATURES, context)


class TestLearnedClassifier:
    """Logistic regression over feature bags."""

    def _context(self, make_config, make_context, tmp_path=None):
        config = make_config(
            run={"seed_words": {"PERSON": ["Obama", "Clinton", "Bush"]}},
            phrases={"phrase_scoring": "learned_classifier", "phrase_signals": ["is_first_capital"]},
        )
        context = make_context(config)
        context.out_dir = tmp_path
        return context

    def test_dataset_excludes_negatives_from_positives(self, make_config, make_context):
        """Positives never overlap the negative set, and negatives are capped."""
        context = self._context(make_config, make_context)
        context.dictionaries.stop_words.add("bush")
        scorer = get_phrase_scorer(PhraseScoring.LEARNED_CLASSIFIER, context)

        positives, negatives = scorer.build_dataset("PERSON")

        assert [p.phrase for p in positives] == ["Clinton", "Obama"]
        assert len(negatives) <= len(positives)
        assert not set(positives) & set(negatives)

    def test_no_negatives(self, make_config, make_context):
        """Training without any negative phrase is a training error."""
        context = self._context(make_config, make_context)
        context.dictionaries = Dictionaries()
        scorer = get_phrase_scorer(PhraseScoring.LEARNED_CLASSIFIER, context)
        with pytest.raises(ClassifierTrainingError, match="negative"):
            scorer.build_dataset("PERSON")

    def test_predicts_label_like_phrases(self, make_config, make_context, tmp_path):
        """Capitalized candidates look like the capitalized seeds."""
        context = self._context(make_config, make_context, tmp_path)
        scorer = get_phrase_scorer(PhraseScoring.LEARNED_CLASSIFIER, context)
        carter = context.registry.create_or_get("Carter")
        today = context.registry.create_or_get("today")

        probs = scorer.predict("PERSON", [carter, today])

        assert probs[carter] > 0.5 > probs[today]
        assert (tmp_path / context.config.run.identifier / "PERSON" / MODEL_FILE_NAME).exists()

    def test_score_phrases_uses_predictions(self, make_config, make_context):
        """score_phrases returns the positive-class probability."""
        context = self._context(make_config, make_context)
        scorer = get_phrase_scorer(PhraseScoring.LEARNED_CLASSIFIER, context)
        scorer.start_round(0)
        carter = context.registry.create_or_get("Carter")
        extracted = _extracted(context, {("Carter", PRESIDENT_X): 1})

        scores = scorer.score_phrases("PERSON", {carter}, extracted, {PRESIDENT_X: 1.0})

        assert 0.5 < scores[carter] <= 1.0
