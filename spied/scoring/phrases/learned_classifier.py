"""
Learned-classifier phrase scorer.

Trains a logistic-regression model per label and round on the same feature
bags the averaging scorer uses, then scores candidates by the predicted
probability of the positive class.

Training data:
- Positives: phrases over tokens labeled with the label, and the label's
  known phrases, minus anything in a negative set
- Negatives: other labels' phrases and the stop, English and
  other-semantic-class words (sampled with per_select_neg), plus sampled
  unknown phrases (per_select_rand). With subsample_unk_as_neg_using_sim,
  only unknowns whose word-vector similarity to the label is below
  positive_similarity_threshold_low_precision become negatives.
- Negatives are capped at the number of positives.

Model Storage:
    <out_dir>/<identifier>/<label>/classifier.pkl
    Contains: {'model', 'scaler', 'vectorizer', 'feature_names'}
"""

import pickle
import random

import numpy as np
from sklearn.feature_extraction import DictVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.preprocessing import StandardScaler

from spied.candidate_phrase import CandidatePhrase
from spied.config import PhraseScoring
from spied.exceptions import ClassifierTrainingError
from spied.logging_config import debug_log, warning
from spied.patterns.base import Pattern
from spied.stats.counters import TwoDimensionalCounter

from . import register_phrase_scorer
from .base import PhraseScorer

MODEL_FILE_NAME = "classifier.pkl"


@register_phrase_scorer(PhraseScoring.LEARNED_CLASSIFIER)
class LearnedClassifierPhraseScorer(PhraseScorer):
    """Logistic regression over phrase feature bags."""

    name = "learned_classifier"

    def __init__(self, context, signals=None):
        super().__init__(context, signals)
        # (label, trained with extraction counts) -> model data
        self._models: dict[tuple[str, bool], dict] = {}
        self._rng = random.Random(context.config.phrases.random_seed)

    def start_round(self, iteration: int):
        if iteration != self.current_round:
            self._models.clear()
        super().start_round(iteration)

    def _negative_pool(self, label: str) -> set[CandidatePhrase]:
        registry = self.context.registry
        d = self.context.dictionaries
        pool = set(self.context.other_labels_words(label))
        for text in sorted(d.stop_words | d.english_words | d.other_semantic_words):
            pool.add(registry.create_or_get(text))
        return pool

    def _unknown_pool(self, label: str, exclude: set[CandidatePhrase]) -> list[CandidatePhrase]:
        corpus = self.context.corpus
        if corpus is None:
            return []
        stop_words = self.context.dictionaries.stop_words
        seen: dict[str, CandidatePhrase] = {}
        for _, sentence in corpus.items():
            for token in sentence:
                if token.labeled_as() or token.word.lower() in stop_words or not token.word.isalpha():
                    continue
                if token.word not in seen:
                    phrase = self.context.registry.create_or_get(token.word, lemma=token.lemma)
                    if phrase not in exclude:
                        seen[token.word] = phrase
        return [seen[w] for w in sorted(seen)]

    def build_dataset(self, label: str) -> tuple[list[CandidatePhrase], list[CandidatePhrase]]:
        """
        Sample training phrases for label.

        Returns:
            (positives, negatives), both sorted by phrase text

        Raises:
            ClassifierTrainingError: If either side is empty
        """
        cfg = self.context.config.phrases
        negative_pool = self._negative_pool(label)

        positives = set(self.context.known_words(label))
        if self.context.corpus is not None:
            for _, sentence in self.context.corpus.items():
                for token in sentence:
                    if token.is_labeled(label):
                        text = token.longest_matched.get(label) or token.word
                        positives.add(self.context.registry.create_or_get(text))
        positives = {
            p for p in positives
            if p not in negative_pool and not self.context.dictionaries.is_stop_word(p.phrase)
        }

        negatives = [p for p in sorted(negative_pool) if self._rng.random() < cfg.per_select_neg]
        for p in self._unknown_pool(label, positives | negative_pool):
            if self._rng.random() >= cfg.per_select_rand:
                continue
            if cfg.subsample_unk_as_neg_using_sim:
                sim = self.signals.word_vector(p, label)
                if sim is None or sim >= cfg.positive_similarity_threshold_low_precision:
                    continue
            negatives.append(p)
        negatives = [p for p in negatives if p not in positives]

        if len(negatives) > len(positives):
            negatives = sorted(self._rng.sample(negatives, len(positives)))

        debug_log(f"[CLASSIFIER] {label}: {len(positives)} positive, {len(negatives)} negative phrases")
        if not positives:
            raise ClassifierTrainingError(f"No positive training phrases for label '{label}'")
        if not negatives:
            raise ClassifierTrainingError(f"No negative training phrases for label '{label}'")
        return sorted(positives), negatives

    def train(
        self,
        label: str,
        extracted: TwoDimensionalCounter | None = None,
        pattern_weights: dict[Pattern, float] | None = None
    ) -> dict:
        """
        Train (or reuse this round's) model for label.

        Raises:
            ClassifierTrainingError: On a degenerate dataset or a failed fit
        """
        key = (label, extracted is not None)
        if key in self._models:
            return self._models[key]
        positives, negatives = self.build_dataset(label)
        phrases = positives + negatives
        y = np.array([1] * len(positives) + [0] * len(negatives))
        bags = [self.raw_features(label, p, extracted, pattern_weights) for p in phrases]

        vectorizer = DictVectorizer(sparse=False)
        X = vectorizer.fit_transform(bags)
        if X.shape[1] == 0:
            raise ClassifierTrainingError(f"No features for label '{label}'; enable at least one phrase signal")

        scaler = StandardScaler()
        X_scaled = scaler.fit_transform(X)
        model = LogisticRegression(
            C=self.context.config.phrases.lr_c,
            class_weight='balanced',
            max_iter=1000,
            random_state=self.context.config.phrases.random_seed,
            solver='lbfgs',
        )
        try:
            model.fit(X_scaled, y)
        except ValueError as e:
            raise ClassifierTrainingError(f"Classifier training failed for label '{label}': {e}") from e

        feature_names = list(vectorizer.get_feature_names_out())
        model_data = {
            'model': model,
            'scaler': scaler,
            'vectorizer': vectorizer,
            'feature_names': feature_names,
        }
        self._models[key] = model_data
        self._log_weights(label, model, feature_names)
        self._save_model(label, model_data)
        return model_data

    def _log_weights(self, label: str, model: LogisticRegression, feature_names: list[str]):
        weights = sorted(zip(feature_names, model.coef_[0]), key=lambda x: abs(x[1]), reverse=True)
        debug_log(f"[CLASSIFIER] {label} feature weights (top 5):")
        for name, coef in weights[:5]:
            debug_log(f"  {name}: {coef:.3f}")

    def _save_model(self, label: str, model_data: dict):
        label_dir = self.context.label_dir(label)
        if label_dir is None:
            return
        path = label_dir / MODEL_FILE_NAME
        try:
            label_dir.mkdir(parents=True, exist_ok=True)
            with open(path, 'wb') as f:
                pickle.dump(model_data, f)
            debug_log(f"[CLASSIFIER] Model saved to {path}")
        except OSError as e:
            warning(f"[CLASSIFIER] Failed to save model to {path}: {e}")

    def predict(
        self,
        label: str,
        phrases: list[CandidatePhrase],
        extracted: TwoDimensionalCounter | None = None,
        pattern_weights: dict[Pattern, float] | None = None
    ) -> dict[CandidatePhrase, float]:
        """Positive-class probability per phrase."""
        if not phrases:
            return {}
        model_data = self.train(label, extracted, pattern_weights)
        bags = [self.raw_features(label, p, extracted, pattern_weights) for p in phrases]
        X = model_data['scaler'].transform(model_data['vectorizer'].transform(bags))
        probs = model_data['model'].predict_proba(X)[:, 1]
        return {p: float(prob) for p, prob in zip(phrases, probs)}

    def score_phrases(
        self,
        label: str,
        candidates: set[CandidatePhrase],
        extracted: TwoDimensionalCounter,
        pattern_weights: dict[Pattern, float]
    ) -> dict[CandidatePhrase, float]:
        todo = sorted(p for p in candidates if (label, p) not in self.learned_scores)
        if todo:
            scores = self.predict(label, todo, extracted, pattern_weights)
            with self._lock:
                for p, score in scores.items():
                    self.learned_scores[(label, p)] = score
        return {p: self.learned_scores[(label, p)] for p in candidates}
