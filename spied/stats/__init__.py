"""
Pattern/phrase sufficient statistics and pattern application.

Usage:
    aggregator = SufficientStatsAggregator(corpus, index, registry, dictionaries,
                                           config.patterns, factory.options, num_threads=4)
    stats = aggregator.compute("PERSON", candidate_patterns)
    stats.positive.distinct_count(pattern)

    applier = PatternApplier(corpus, index, registry, dictionaries, config.patterns, factory.options)
    applied = applier.apply("PERSON", selected_patterns)
    applied.extracted.counter(phrase)       # pattern -> count
"""

from .aggregator import PatternStats, SufficientStatsAggregator, allowed_for_label, span_phrase
from .applier import ApplyResult, PatternApplier
from .counters import TwoDimensionalCounter

__all__ = [
    'ApplyResult',
    'PatternApplier',
    'PatternStats',
    'SufficientStatsAggregator',
    'TwoDimensionalCounter',
    'allowed_for_label',
    'span_phrase',
]
