"""
Per-round selection of patterns and phrases, plus the justification files
written alongside each selection.
"""

from .pattern_selector import PatternSelection, PatternSelector, write_patterns_justification
from .phrase_selector import PhraseSelector, bpb_scores, num_non_redundant_patterns, write_words_justification

__all__ = [
    'PatternSelection',
    'PatternSelector',
    'PhraseSelector',
    'bpb_scores',
    'num_non_redundant_patterns',
    'write_patterns_justification',
    'write_words_justification',
]
