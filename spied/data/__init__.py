"""
Corpus data structures for SPIED.

The upstream NLP pipeline supplies annotated tokens (word, lemma, POS, NER and
optionally a dependency head). The bootstrapper only reads those attributes and
writes back per-label answers and matched-phrase bookkeeping.

Components:
    Token, DataInstance - one token / one sentence
    Corpus - sentence store, in memory or batched on disk
    CorpusStatistics - n-gram frequency tables (corpus and external)
    Dictionaries - stop words, English words, other-semantic-class words
    readers - TSV / JSON-lines readers and a spaCy annotator
"""

from .corpus import Corpus
from .corpus_stats import CorpusStatistics
from .dictionaries import Dictionaries
from .tokens import DataInstance, Token

__all__ = [
    'Corpus',
    'CorpusStatistics',
    'DataInstance',
    'Dictionaries',
    'Token',
]
