"""
Shared fixtures: small hand-built corpora and explicit word lists, so tests
never download NLTK data or load a spaCy model.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from spied.config import BootstrapConfig
from spied.data.corpus import Corpus
from spied.data.dictionaries import Dictionaries
from spied.data.tokens import DataInstance, Token

STOP_WORDS = {"the", "a", "an", "and", "of", "in", "to", "is", "was", "."}


def build_sentence(sent_id: str, text: str, tags: dict[int, str] | None = None) -> DataInstance:
    """Whitespace-tokenized sentence; tags maps token index -> POS tag."""
    tags = tags or {}
    tokens = [Token(word=w, lemma=w.lower(), tag=tags.get(i)) for i, w in enumerate(text.split())]
    return DataInstance(sent_id, tokens)


@pytest.fixture
def make_sentence():
    return build_sentence


@pytest.fixture
def dictionaries():
    return Dictionaries(stop_words=set(STOP_WORDS))


@pytest.fixture
def person_sentences():
    """Obama and Clinton share contexts; Paris does not."""
    return [
        build_sentence("s1", "President Obama spoke today ."),
        build_sentence("s2", "President Clinton spoke today ."),
        build_sentence("s3", "Visit Paris tomorrow ."),
    ]


@pytest.fixture
def person_corpus(person_sentences):
    return Corpus.from_sentences(person_sentences)


@pytest.fixture
def make_config(tmp_path):
    """Config factory with per-section overrides."""
    def _make(**sections):
        data = {
            "patterns": {"num_words_compound": 1},
            "selection": {
                "threshold_select_pattern": 0.5,
                "threshold_word_extract": 0.0,
                "threshold_num_patterns_applied": 1,
            },
            "run": {
                "seed_words": {"PERSON": ["Obama"]},
                "num_iterations": 1,
                "num_threads": 1,
                "out_dir": str(tmp_path / "out"),
            },
        }
        for name, overrides in sections.items():
            data.setdefault(name, {}).update(overrides)
        return BootstrapConfig.from_dict(data)
    return _make


@pytest.fixture
def make_context(dictionaries):
    """
    ScoringContext factory for a config; corpus statistics are computed when
    a corpus is given.
    """
    from spied.candidate_phrase import PhraseRegistry
    from spied.data.corpus_stats import CorpusStatistics
    from spied.label_state import LabelState
    from spied.scoring import ScoringContext

    def _make(config, corpus=None):
        registry = PhraseRegistry()
        states = {}
        for label in config.labels:
            state = LabelState(label, threshold_select_pattern=config.selection.threshold_select_pattern)
            state.add_seeds(registry.create_or_get(s) for s in config.run.seed_words[label])
            states[label] = state
        corpus_stats = CorpusStatistics(max_ngram=config.phrases.ngram_max_words)
        if corpus is not None:
            corpus_stats.compute(corpus)
        return ScoringContext(
            config=config,
            labels=states,
            registry=registry,
            dictionaries=dictionaries,
            corpus_stats=corpus_stats,
            corpus=corpus,
        )
    return _make
