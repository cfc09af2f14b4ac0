"""
Phrase Scorers Package

Pluggable strategies that score the phrases extracted by a label's patterns.
Each scorer is registered via decorator under its PhraseScoring option.

Usage:
    from spied.scoring.phrases import get_phrase_scorer

    scorer = get_phrase_scorer(PhraseScoring.AVERAGE_FEATURES, context)
    scorer.start_round(iteration)
    scores = scorer.score_phrases(label, candidates, extracted, pattern_weights)

Registration:
    @register_phrase_scorer(PhraseScoring.LEARNED_CLASSIFIER)
    class LearnedClassifierPhraseScorer(PhraseScorer):
        name = "learned_classifier"
        ...
"""

from typing import Type

from spied.config import PhraseScoring
from spied.scoring.phrases.base import PhraseScorer
from spied.scoring.phrases.features import PhraseSignals

# Registry of available scorers (class references, not instances)
_PHRASE_SCORER_REGISTRY: dict[PhraseScoring, Type[PhraseScorer]] = {}


def register_phrase_scorer(option: PhraseScoring):
    """
    Decorator to register a phrase scorer class.

    Raises:
        ValueError: If option is already registered
    """
    def decorator(cls: Type[PhraseScorer]) -> Type[PhraseScorer]:
        if option in _PHRASE_SCORER_REGISTRY:
            raise ValueError(
                f"Phrase scorer '{option.value}' is already registered. "
                f"Existing: {_PHRASE_SCORER_REGISTRY[option].__name__}, New: {cls.__name__}"
            )
        _PHRASE_SCORER_REGISTRY[option] = cls
        return cls
    return decorator


def get_phrase_scorer(option: PhraseScoring, context, signals: PhraseSignals | None = None) -> PhraseScorer:
    """
    Instantiate the scorer registered for option.

    Raises:
        ValueError: If no scorer is registered for option
    """
    if option not in _PHRASE_SCORER_REGISTRY:
        available = ", ".join(o.value for o in _PHRASE_SCORER_REGISTRY)
        raise ValueError(f"Unknown phrase scorer '{option.value}'. Available: {available}")
    return _PHRASE_SCORER_REGISTRY[option](context, signals)


def get_available_phrase_scorers() -> list[PhraseScoring]:
    return list(_PHRASE_SCORER_REGISTRY)


# Import scorers to trigger registration
# These imports must be at the bottom to avoid circular imports
from spied.scoring.phrases.average_features import AverageFeaturesPhraseScorer  # noqa: E402, F401
from spied.scoring.phrases.learned_classifier import LearnedClassifierPhraseScorer  # noqa: E402, F401

__all__ = [
    "AverageFeaturesPhraseScorer",
    "LearnedClassifierPhraseScorer",
    "PhraseScorer",
    "PhraseSignals",
    "get_available_phrase_scorers",
    "get_phrase_scorer",
    "register_phrase_scorer",
]
