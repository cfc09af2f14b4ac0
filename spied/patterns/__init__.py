"""
Context patterns.

A pattern is an immutable context rule around a target slot. The
bootstrapper treats patterns through a small interface: the (key, value)
constraints needed for index lookup, a genre tag, subsumption and
equal-context comparisons, and a match test against a sentence.

Variants:
    SurfacePattern - token-sequence context (previous and/or next tokens)
    DependencyPattern - path of dependency edges above the target

Usage:
    factory = PatternFactory(config.patterns, stop_words, labels)
    store = PatternStore.build(corpus, factory)
    for pattern in store.patterns_at(sent_id, 3):
        spans = pattern.matches(sentence, factory.options)
"""

from .base import EQUAL_CONTEXT_MAX, ContextToken, Genre, MatchOptions, Pattern, TargetSlot, subsumes_array
from .dependency import DependencyPattern
from .factory import PatternFactory
from .store import PatternStore
from .surface import SurfacePattern

__all__ = [
    'ContextToken',
    'DependencyPattern',
    'EQUAL_CONTEXT_MAX',
    'Genre',
    'MatchOptions',
    'Pattern',
    'PatternFactory',
    'PatternStore',
    'SurfacePattern',
    'TargetSlot',
    'subsumes_array',
]
