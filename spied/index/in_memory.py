"""
In-memory inverted index.

Postings are hash sets of sentence ids keyed by "key:value". The terms of
each sentence are kept as well, so an update can remove exactly the
postings the sentence contributed before adding its new ones.
"""

import json
import threading
from pathlib import Path

from spied.data.tokens import DataInstance, Token
from spied.exceptions import DataError
from spied.logging_config import debug_log

from . import register_index
from .base import SentenceIndex, sentence_terms, token_terms

INDEX_FILE_NAME = "index.json"


@register_index
class InMemorySentenceIndex(SentenceIndex):
    """Hash-set postings held in process memory."""

    name = "memory"

    def __init__(self, index_dir: str | Path | None = None):
        self.index_dir = Path(index_dir) if index_dir else None
        self._postings: dict[str, set[str]] = {}
        self._terms_of: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def _store(self, sent_id: str, terms: set[str]):
        old = self._terms_of.get(sent_id, set())
        for t in old - terms:
            ids = self._postings.get(t)
            if ids is not None:
                ids.discard(sent_id)
                if not ids:
                    del self._postings[t]
        for t in terms - old:
            self._postings.setdefault(t, set()).add(sent_id)
        self._terms_of[sent_id] = terms

    def add(self, sentences: dict[str, DataInstance], index_raw_text: bool = True) -> None:
        self.index_raw_text = index_raw_text
        with self._lock:
            for sent_id, sentence in sentences.items():
                self._store(sent_id, sentence_terms(sentence, index_raw_text))
        debug_log(f"[INDEX] Indexed {len(sentences)} sentences in memory ({len(self._postings)} terms)")

    def update(self, tokens: list[Token], sent_id: str) -> None:
        terms: set[str] = set()
        for token in tokens:
            terms.update(token_terms(token, self.index_raw_text))
        with self._lock:
            self._store(sent_id, terms)

    def sentences_with_terms(self, terms: set[str]) -> set[str]:
        with self._lock:
            if not terms:
                return set(self._terms_of)
            # smallest postings list first
            postings = []
            for t in terms:
                ids = self._postings.get(t)
                if not ids:
                    return set()
                postings.append(ids)
            postings.sort(key=len)
            result = set(postings[0])
            for ids in postings[1:]:
                result &= ids
                if not result:
                    break
            return result

    def sentence_ids(self) -> set[str]:
        with self._lock:
            return set(self._terms_of)

    def save(self, directory: str | Path) -> None:
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            data = {sent_id: sorted(terms) for sent_id, terms in self._terms_of.items()}
        with open(out_dir / INDEX_FILE_NAME, 'w', encoding='utf-8') as f:
            json.dump(data, f)
        debug_log(f"[INDEX] Saved {len(data)} sentences to {out_dir / INDEX_FILE_NAME}")

    def load(self, directory: str | Path) -> None:
        path = Path(directory) / INDEX_FILE_NAME
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DataError(f"Cannot load index from {path}: {e}") from e
        with self._lock:
            self._postings.clear()
            self._terms_of.clear()
            for sent_id, terms in data.items():
                self._store(sent_id, set(terms))
        debug_log(f"[INDEX] Loaded {len(data)} sentences from {path}")
