"""
Disk-backed sentence index on SQLite.

One row per (sentence, term); a query is a boolean AND over term lookups,
answered with GROUP BY / HAVING COUNT(DISTINCT term) = number of terms.
Updates delete the sentence's rows and insert the new ones inside one
transaction. Each call opens its own connection, so the index can be
queried from worker threads.
"""

import sqlite3
from pathlib import Path

from spied.data.tokens import DataInstance, Token
from spied.exceptions import DataError
from spied.logging_config import debug_log

from . import register_index
from .base import SentenceIndex, sentence_terms, token_terms

DB_FILE_NAME = "sentences.sqlite"


@register_index
class SQLiteSentenceIndex(SentenceIndex):
    """
    Args:
        index_dir: Directory holding the database file
    """

    name = "sqlite"

    def __init__(self, index_dir: str | Path):
        if index_dir is None:
            raise DataError("The sqlite index needs a directory")
        self.index_dir = Path(index_dir)
        self.index_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.index_dir / DB_FILE_NAME
        self._pending = 0
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("CREATE TABLE IF NOT EXISTS sentences (sent_id TEXT PRIMARY KEY)")
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS terms (
                        sent_id TEXT NOT NULL,
                        term TEXT NOT NULL,
                        PRIMARY KEY (sent_id, term)
                    )
                    """
                )
                conn.execute("CREATE INDEX IF NOT EXISTS terms_by_term ON terms (term)")
        finally:
            conn.close()

    @staticmethod
    def _replace(conn: sqlite3.Connection, sent_id: str, terms: set[str]) -> None:
        conn.execute("INSERT OR IGNORE INTO sentences (sent_id) VALUES (?)", (sent_id,))
        conn.execute("DELETE FROM terms WHERE sent_id = ?", (sent_id,))
        conn.executemany(
            "INSERT INTO terms (sent_id, term) VALUES (?, ?)",
            [(sent_id, t) for t in terms],
        )

    def add(self, sentences: dict[str, DataInstance], index_raw_text: bool = True) -> None:
        self.index_raw_text = index_raw_text
        conn = self._connect()
        try:
            with conn:
                for sent_id, sentence in sentences.items():
                    self._replace(conn, sent_id, sentence_terms(sentence, index_raw_text))
        finally:
            conn.close()
        debug_log(f"[INDEX] Indexed {len(sentences)} sentences in {self.db_path}")

    def update(self, tokens: list[Token], sent_id: str) -> None:
        terms: set[str] = set()
        for token in tokens:
            terms.update(token_terms(token, self.index_raw_text))
        conn = self._connect()
        try:
            with conn:
                self._replace(conn, sent_id, terms)
        finally:
            conn.close()
        self._pending += 1

    def finish_updating(self) -> None:
        if self._pending:
            debug_log(f"[INDEX] Committed {self._pending} sentence updates")
        self._pending = 0

    def sentences_with_terms(self, terms: set[str]) -> set[str]:
        conn = self._connect()
        try:
            if not terms:
                return {row[0] for row in conn.execute("SELECT sent_id FROM sentences")}
            ordered = sorted(terms)
            placeholders = ", ".join("?" for _ in ordered)
            rows = conn.execute(
                f"""
                SELECT sent_id FROM terms
                WHERE term IN ({placeholders})
                GROUP BY sent_id
                HAVING COUNT(DISTINCT term) = ?
                """,
                (*ordered, len(ordered)),
            )
            return {row[0] for row in rows}
        finally:
            conn.close()

    def sentence_ids(self) -> set[str]:
        conn = self._connect()
        try:
            return {row[0] for row in conn.execute("SELECT sent_id FROM sentences")}
        finally:
            conn.close()

    def save(self, directory: str | Path) -> None:
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        target = out_dir / DB_FILE_NAME
        if target.resolve() == self.db_path.resolve():
            return
        src = self._connect()
        dst = sqlite3.connect(target)
        try:
            src.backup(dst)
        finally:
            dst.close()
            src.close()
        debug_log(f"[INDEX] Saved index snapshot to {target}")

    def load(self, directory: str | Path) -> None:
        source = Path(directory) / DB_FILE_NAME
        if not source.exists():
            raise DataError(f"No index snapshot at {source}")
        if source.resolve() == self.db_path.resolve():
            return
        src = sqlite3.connect(source)
        dst = self._connect()
        try:
            src.backup(dst)
        finally:
            dst.close()
            src.close()
        debug_log(f"[INDEX] Loaded index snapshot from {source}")
