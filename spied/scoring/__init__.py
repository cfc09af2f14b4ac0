"""
Scoring for SPIED.

Components:
    ScoringContext - shared inputs (label states, dictionaries, frequencies)
    patterns - pattern scorers keyed by PatternScoring
    phrases - phrase scorers keyed by PhraseScoring, and the phrase signals
    normalize - softmax / min-max helpers
"""

from .context import ScoringContext
from .normalize import min_max_normalize, normalize_softmax_minmax
from .patterns import PatternScorer, get_pattern_scorer, register_pattern_scorer
from .phrases import PhraseScorer, PhraseSignals, get_phrase_scorer, register_phrase_scorer

__all__ = [
    'PatternScorer',
    'PhraseScorer',
    'PhraseSignals',
    'ScoringContext',
    'get_pattern_scorer',
    'get_phrase_scorer',
    'min_max_normalize',
    'normalize_softmax_minmax',
    'register_pattern_scorer',
    'register_phrase_scorer',
]
