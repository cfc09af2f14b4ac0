"""
Sentence store for a bootstrapping run.

Two modes:
- In memory: all DataInstances live in one dict.
- Batch ("batch processing mode"): sentences are pickled into batch files of
  at most max_sentences_per_batch sentences under batch_dir, read back one
  batch at a time and written back after relabeling. Only the id -> batch
  file map stays in memory.

Example:
    corpus = Corpus.from_sentences(instances)
    for sentences, batch_file in corpus.iter_batches():
        ...
        corpus.write_back(sentences, batch_file)
"""

import pickle
import threading
from pathlib import Path
from typing import Iterable, Iterator

from spied.exceptions import DataError
from spied.logging_config import debug_log, warning

from .tokens import DataInstance


class Corpus:
    """
    Owns every sentence of the run.

    Args:
        sentences: Sentence id -> DataInstance (in-memory mode).
        batch_dir: If given, sentences are stored in batch files here.
        max_sentences_per_batch: Batch file size in batch mode.
    """

    def __init__(
        self,
        sentences: dict[str, DataInstance] | None = None,
        batch_dir: str | Path | None = None,
        max_sentences_per_batch: int = 100
    ):
        self.batch_dir = Path(batch_dir) if batch_dir else None
        self.max_sentences_per_batch = max_sentences_per_batch
        self._sentences: dict[str, DataInstance] = {}
        self._batch_of: dict[str, Path] = {}
        self._batch_files: list[Path] = []
        # last batch read, so per-id lookups inside one batch do not reread it
        self._cached_batch: tuple[Path, dict[str, DataInstance]] | None = None
        self._lock = threading.Lock()

        if sentences:
            if self.batch_dir:
                self._write_batches(sentences)
            else:
                self._sentences = dict(sentences)

    @classmethod
    def from_sentences(
        cls,
        instances: Iterable[DataInstance],
        batch_dir: str | Path | None = None,
        max_sentences_per_batch: int = 100
    ) -> "Corpus":
        sentences = {}
        for inst in instances:
            if inst.sent_id in sentences:
                raise DataError(f"Duplicate sentence id: {inst.sent_id}")
            sentences[inst.sent_id] = inst
        return cls(sentences, batch_dir=batch_dir, max_sentences_per_batch=max_sentences_per_batch)

    @property
    def is_batched(self) -> bool:
        return self.batch_dir is not None

    def _write_batches(self, sentences: dict[str, DataInstance]):
        self.batch_dir.mkdir(parents=True, exist_ok=True)
        ids = list(sentences)
        for n, start in enumerate(range(0, len(ids), self.max_sentences_per_batch)):
            batch_ids = ids[start:start + self.max_sentences_per_batch]
            batch_file = self.batch_dir / f"batch_{n:05d}.pkl"
            batch = {sid: sentences[sid] for sid in batch_ids}
            with open(batch_file, 'wb') as f:
                pickle.dump(batch, f)
            self._batch_files.append(batch_file)
            for sid in batch_ids:
                self._batch_of[sid] = batch_file
        debug_log(f"[CORPUS] Wrote {len(ids)} sentences into {len(self._batch_files)} batch files in {self.batch_dir}")

    def _read_batch(self, batch_file: Path) -> dict[str, DataInstance]:
        with self._lock:
            if self._cached_batch and self._cached_batch[0] == batch_file:
                return self._cached_batch[1]
        with open(batch_file, 'rb') as f:
            batch = pickle.load(f)
        with self._lock:
            self._cached_batch = (batch_file, batch)
        return batch

    def __len__(self) -> int:
        return len(self._batch_of) if self.is_batched else len(self._sentences)

    def __contains__(self, sent_id: str) -> bool:
        return sent_id in (self._batch_of if self.is_batched else self._sentences)

    def sentence_ids(self) -> list[str]:
        return list(self._batch_of) if self.is_batched else list(self._sentences)

    def get(self, sent_id: str) -> DataInstance:
        """
        Fetch one sentence.

        Raises:
            DataError: If the id is not stored.
        """
        if self.is_batched:
            batch_file = self._batch_of.get(sent_id)
            if batch_file is None:
                raise DataError(f"Sentence {sent_id} not found in any batch file")
            sentence = self._read_batch(batch_file).get(sent_id)
        else:
            sentence = self._sentences.get(sent_id)
        if sentence is None:
            raise DataError(f"Sentence {sent_id} not found in the corpus")
        return sentence

    def get_many(self, sent_ids: Iterable[str]) -> dict[str, DataInstance]:
        """
        Fetch several sentences, skipping ids that are not stored.

        A missing id is a data error local to this lookup: it is logged and
        the remaining sentences are returned. In batch mode each batch file
        holding a requested id is read once, whatever the order of the ids.
        """
        sent_ids = list(sent_ids)
        batches: dict[Path, dict[str, DataInstance]] = {}
        if self.is_batched:
            for batch_file in dict.fromkeys(self._batch_of[sid] for sid in sent_ids if sid in self._batch_of):
                batches[batch_file] = self._read_batch(batch_file)
        found = {}
        for sid in sent_ids:
            if self.is_batched:
                batch_file = self._batch_of.get(sid)
                sentence = batches[batch_file].get(sid) if batch_file else None
            else:
                sentence = self._sentences.get(sid)
            if sentence is None:
                warning(f"[CORPUS] Sentence {sid} not found in the corpus; skipping")
                continue
            found[sid] = sentence
        return found

    def iter_batches(self) -> Iterator[tuple[dict[str, DataInstance], Path | None]]:
        """
        Yield (sentences, batch_file) pairs covering the whole corpus.

        In memory there is a single pair with batch_file None.
        """
        if not self.is_batched:
            yield self._sentences, None
            return
        for batch_file in self._batch_files:
            yield self._read_batch(batch_file), batch_file

    def items(self) -> Iterator[tuple[str, DataInstance]]:
        for sentences, _ in self.iter_batches():
            yield from sentences.items()

    def write_back(self, sentences: dict[str, DataInstance], batch_file: Path | None):
        """Persist a relabeled batch (no-op in memory mode)."""
        if batch_file is None:
            return
        with open(batch_file, 'wb') as f:
            pickle.dump(sentences, f)
        with self._lock:
            self._cached_batch = (batch_file, sentences)
