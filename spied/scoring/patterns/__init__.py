"""
Pattern Scorers Package

Pluggable formulas that reduce a label's sufficient statistics to one score
per candidate pattern. Each scorer class registers the PatternScoring options
it implements.

Usage:
    from spied.scoring.patterns import get_pattern_scorer

    scorer = get_pattern_scorer(config.selection.pattern_scoring, context, label)
    scores = scorer.score(stats)

Registration:
    @register_pattern_scorer(PatternScoring.RLOGF, PatternScoring.RLOGF_POS_NEG)
    class FreqBasedPatternScorer(PatternScorer):
        name = "freq_based"
        ...
"""

from typing import Type

from spied.config import PatternScoring
from spied.scoring.patterns.base import PatternScorer

# Registry of available scorers (class references, not instances)
_PATTERN_SCORER_REGISTRY: dict[PatternScoring, Type[PatternScorer]] = {}


def register_pattern_scorer(*options: PatternScoring):
    """
    Decorator to register a pattern scorer class for one or more options.

    Raises:
        ValueError: If an option is already registered
    """
    def decorator(cls: Type[PatternScorer]) -> Type[PatternScorer]:
        for option in options:
            if option in _PATTERN_SCORER_REGISTRY:
                raise ValueError(
                    f"Pattern scoring '{option.value}' is already registered. "
                    f"Existing: {_PATTERN_SCORER_REGISTRY[option].__name__}, New: {cls.__name__}"
                )
            _PATTERN_SCORER_REGISTRY[option] = cls
        return cls
    return decorator


def get_pattern_scorer(option: PatternScoring, context, label: str, phrase_scorer=None) -> PatternScorer:
    """
    Instantiate the scorer implementing option for label.

    Raises:
        ValueError: If no scorer implements option
    """
    if option not in _PATTERN_SCORER_REGISTRY:
        available = ", ".join(o.value for o in _PATTERN_SCORER_REGISTRY)
        raise ValueError(f"Unknown pattern scoring '{option.value}'. Available: {available}")
    return _PATTERN_SCORER_REGISTRY[option](context, label, option, phrase_scorer)


def get_available_pattern_scorings() -> list[PatternScoring]:
    return list(_PATTERN_SCORER_REGISTRY)


# Import scorers to trigger registration
# These imports must be at the bottom to avoid circular imports
from spied.scoring.patterns.freq_based import FreqBasedPatternScorer  # noqa: E402, F401
from spied.scoring.patterns.ratio_modified import RatioModifiedFreqPatternScorer  # noqa: E402, F401

__all__ = [
    "FreqBasedPatternScorer",
    "PatternScorer",
    "RatioModifiedFreqPatternScorer",
    "get_available_pattern_scorings",
    "get_pattern_scorer",
    "register_pattern_scorer",
]
