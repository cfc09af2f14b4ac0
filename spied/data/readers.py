"""
Corpus readers.

Three input formats are supported:

- TSV: one token per line as "word<TAB>lemma<TAB>tag<TAB>ner[<TAB>head<TAB>deprel]",
  blank line between sentences. Missing columns are left unset; head is the
  1-based index of the governor (0 for root), as in CoNLL files.
- JSON lines: one sentence per line, {"id": ..., "tokens": [{"word": ...,
  "lemma": ..., "tag": ..., "ner": ..., "head": ..., "deprel": ...}, ...]}
- Raw text: annotated on the fly with a spaCy pipeline (SpacyAnnotator).
"""

import json
from pathlib import Path
from typing import Iterator

import spacy

from spied.config import BACKGROUND_SYMBOL
from spied.exceptions import DataError
from spied.logging_config import debug_log

from .tokens import DataInstance, Token


def _conll_head(value: str | None) -> int | None:
    if value is None or value in ("", "_"):
        return None
    head = int(value)
    return head - 1 if head > 0 else None


def read_tsv(path: str | Path, id_prefix: str | None = None) -> list[DataInstance]:
    """
    Read a column-formatted corpus.

    Raises:
        DataError: On a line with fewer than one column or an unparsable head.
    """
    prefix = id_prefix if id_prefix is not None else Path(path).stem
    sentences = []
    tokens: list[Token] = []

    def _flush():
        if tokens:
            sentences.append(DataInstance(f"{prefix}-{len(sentences)}", list(tokens)))
            tokens.clear()

    with open(path, encoding='utf-8') as f:
        for line_no, line in enumerate(f, start=1):
            line = line.rstrip("\n")
            if not line.strip():
                _flush()
                continue
            cols = line.split("\t")
            cols += [None] * (6 - len(cols))
            try:
                head = _conll_head(cols[4])
            except ValueError as e:
                raise DataError(f"{path}:{line_no}: bad head index {cols[4]!r}") from e
            tokens.append(Token(
                word=cols[0],
                lemma=cols[1] or None,
                tag=cols[2] or None,
                ner=cols[3] or None,
                head=head,
                deprel=cols[5] or None,
            ))
    _flush()
    debug_log(f"[READER] Read {len(sentences)} sentences from {path}")
    return sentences


def read_jsonl(path: str | Path) -> list[DataInstance]:
    """Read one JSON sentence per line."""
    sentences = []
    with open(path, encoding='utf-8') as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                tokens = [
                    Token(
                        word=t["word"],
                        lemma=t.get("lemma"),
                        tag=t.get("tag"),
                        ner=t.get("ner"),
                        head=t.get("head"),
                        deprel=t.get("deprel"),
                    )
                    for t in record["tokens"]
                ]
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                raise DataError(f"{path}:{line_no}: malformed sentence record: {e}") from e
            sentences.append(DataInstance(str(record.get("id", f"{Path(path).stem}-{line_no}")), tokens))
    debug_log(f"[READER] Read {len(sentences)} sentences from {path}")
    return sentences


class SpacyAnnotator:
    """
    Turns raw text into DataInstances using a spaCy pipeline.

    Args:
        model: spaCy model name, tried in order until one loads.
        nlp: A pre-loaded pipeline (skips loading).

    Example:
        annotator = SpacyAnnotator()
        sentences = annotator.annotate(text, doc_id="note-17")
    """

    def __init__(self, model: str | list[str] = ("en_core_web_lg", "en_core_web_sm"), nlp=None):
        self.models = [model] if isinstance(model, str) else list(model)
        self._nlp = nlp

    @property
    def nlp(self):
        if self._nlp is None:
            last_error = None
            for name in self.models:
                try:
                    self._nlp = spacy.load(name)
                    debug_log(f"[READER] Loaded spaCy model {name}")
                    break
                except OSError as e:
                    last_error = e
            if self._nlp is None:
                raise DataError(f"No spaCy model available from {self.models}: {last_error}")
        return self._nlp

    def annotate(self, text: str, doc_id: str = "doc") -> list[DataInstance]:
        doc = self.nlp(text)
        return list(self._sentences(doc, doc_id))

    def _sentences(self, doc, doc_id: str) -> Iterator[DataInstance]:
        has_parse = doc.has_annotation("DEP")
        spans = doc.sents if (has_parse or doc.has_annotation("SENT_START")) else [doc[:]]
        for n, span in enumerate(spans):
            kept = [tok for tok in span if not tok.is_space]
            position = {tok.i: k for k, tok in enumerate(kept)}
            tokens = []
            for tok in kept:
                head = None
                if has_parse and tok.head.i != tok.i:
                    head = position.get(tok.head.i)
                tokens.append(Token(
                    word=tok.text,
                    lemma=tok.lemma_ or None,
                    tag=tok.tag_ or None,
                    ner=tok.ent_type_ or BACKGROUND_SYMBOL,
                    head=head,
                    deprel=tok.dep_ if has_parse else None,
                ))
            if tokens:
                yield DataInstance(f"{doc_id}-{n}", tokens)


def read_text(path: str | Path, annotator: SpacyAnnotator | None = None) -> list[DataInstance]:
    """Annotate a plain-text file paragraph by paragraph."""
    annotator = annotator or SpacyAnnotator()
    text = Path(path).read_text(encoding='utf-8')
    sentences = []
    for n, paragraph in enumerate(p for p in text.split("\n\n") if p.strip()):
        sentences.extend(annotator.annotate(paragraph, doc_id=f"{Path(path).stem}-{n}"))
    return sentences
