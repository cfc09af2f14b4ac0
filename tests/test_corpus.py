"""
Tests for the sentence store and the corpus frequency tables.
"""

import math
import pickle

import pytest

from spied.config import FreqNormalization
from spied.data.corpus import Corpus
from spied.data.corpus_stats import CorpusStatistics, load_frequency_table
from spied.exceptions import DataError


class TestCorpus:
    """In-memory and batch-file storage."""

    def test_duplicate_ids_rejected(self, make_sentence):
        """Two sentences with one id are a data error."""
        with pytest.raises(DataError, match="Duplicate"):
            Corpus.from_sentences([make_sentence("a", "x"), make_sentence("a", "y")])

    def test_get_many_skips_missing(self, person_corpus):
        """Unknown ids are skipped, known ones returned."""
        found = person_corpus.get_many(["s1", "nope"])
        assert list(found) == ["s1"]
        with pytest.raises(DataError):
            person_corpus.get("nope")

    def test_batches_round_trip(self, person_sentences, tmp_path):
        """Batch mode stores sentences across files and persists write-backs."""
        corpus = Corpus.from_sentences(person_sentences, batch_dir=tmp_path, max_sentences_per_batch=2)
        assert corpus.is_batched
        assert len(list(tmp_path.glob("batch_*.pkl"))) == 2
        assert len(corpus) == 3

        for sentences, batch_file in corpus.iter_batches():
            if "s3" in sentences:
                sentences["s3"][1].set_answer("LOCATION")
                corpus.write_back(sentences, batch_file)

        reopened_first = corpus.get("s1")
        assert reopened_first.text() == "President Obama spoke today ."
        assert corpus.get("s3")[1].is_labeled("LOCATION")

    def test_get_many_reads_each_batch_once(self, make_sentence, tmp_path, monkeypatch):
        """Ids interleaved across batch files still load every file only once."""
        corpus = Corpus.from_sentences(
            [make_sentence(f"s{n}", "Obama spoke") for n in range(30)],
            batch_dir=tmp_path, max_sentences_per_batch=10,
        )
        loads = []
        real_load = pickle.load
        monkeypatch.setattr("spied.data.corpus.pickle.load", lambda f: loads.append(f.name) or real_load(f))

        found = corpus.get_many(sorted(corpus.sentence_ids()))

        assert len(found) == 30
        assert len(loads) == 3
        assert list(found)[:3] == ["s0", "s1", "s10"]


class TestCorpusStatistics:
    """Raw and processed n-gram frequencies."""

    @pytest.fixture
    def corpus(self, make_sentence):
        return Corpus.from_sentences([
            make_sentence("a", "Barack Obama spoke"),
            make_sentence("b", "Barack Obama left"),
        ])

    def test_counts_ngrams(self, corpus):
        """Every 1..max_ngram word sequence is counted."""
        stats = CorpusStatistics(max_ngram=2)
        stats.compute(corpus)
        assert stats.raw("Barack Obama") == 2
        assert stats.raw("Obama spoke") == 1
        assert stats.raw("Barack Obama spoke") == 0

    @pytest.mark.parametrize("normalization, expected", [
        (FreqNormalization.NONE, 2.0),
        (FreqNormalization.SQRT, math.sqrt(2)),
        (FreqNormalization.LOG, 1 + math.log(2)),
    ])
    def test_processed_frequency(self, corpus, normalization, expected):
        """Processed frequencies follow the configured normalization."""
        stats = CorpusStatistics(max_ngram=2, normalization=normalization)
        stats.compute(corpus)
        assert stats.processed("Obama") == pytest.approx(expected)

    def test_lower_casing(self, corpus):
        """With lower=True lookups ignore case."""
        stats = CorpusStatistics(max_ngram=1, lower=True)
        stats.compute(corpus)
        assert stats.raw("OBAMA") == 2

    def test_domain_ngram_score(self, corpus, tmp_path):
        """(1 + raw * sqrt(external_total / raw_total)) / external count."""
        table = tmp_path / "domain.tsv"
        table.write_text("Obama\t4\nClinton\t2\n", encoding='utf-8')
        stats = CorpusStatistics(max_ngram=1)
        stats.compute(corpus)
        stats.load_domain_ngrams(table)

        # raw unigrams: Barack 2, Obama 2, spoke 1, left 1
        expected = (1 + 2 * math.sqrt(6 / 6)) / 4
        assert stats.domain_ngram_score("Obama") == pytest.approx(expected)
        assert stats.domain_ngram_score("Clinton") == pytest.approx(0.5)
        assert stats.domain_ngram_score("spoke") == 0.0

    def test_frequency_table_skips_bad_lines(self, tmp_path):
        """Malformed lines are skipped, repeated phrases add up."""
        path = tmp_path / "table.tsv"
        path.write_text("obama\t3\nno count here\nobama\t2\nparis\tmany\n\n", encoding='utf-8')
        assert load_frequency_table(path) == {"obama": 5.0}

    def test_cache_round_trip(self, corpus, tmp_path):
        """Cached counts reload with the same processed frequencies."""
        stats = CorpusStatistics(max_ngram=2, normalization=FreqNormalization.SQRT)
        stats.compute(corpus)
        stats.save_cache(tmp_path / "cache" / "stats.json")

        loaded = CorpusStatistics.load_cache(tmp_path / "cache" / "stats.json")

        assert loaded.raw_freq == stats.raw_freq
        assert loaded.processed("Barack Obama") == pytest.approx(math.sqrt(2))

    def test_unreadable_cache(self, tmp_path):
        """A missing or corrupt cache gives None."""
        assert CorpusStatistics.load_cache(tmp_path / "missing.json") is None
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding='utf-8')
        assert CorpusStatistics.load_cache(broken) is None
