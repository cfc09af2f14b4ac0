"""
Utility Modules for SPIED

Shared string helpers used by the scorers and selectors.
"""

from .text_utils import (
    bounded_distance,
    contains_fuzzy,
    damerau_distance,
    is_first_capital,
    is_fuzzy_match,
    word_shape,
)

__all__ = [
    'bounded_distance',
    'contains_fuzzy',
    'damerau_distance',
    'is_first_capital',
    'is_fuzzy_match',
    'word_shape',
]
