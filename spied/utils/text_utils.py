"""
Text Utility Functions

String comparisons shared by the phrase scorers and the phrase selector:
word shapes, Damerau-Levenshtein distances and fuzzy matching.
"""

import re

from nltk.metrics.distance import edit_distance

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")


def word_shape(word: str) -> str:
    """
    Collapse a word into its character-class shape.

    Upper-case letters map to X, lower-case to x, digits to d; other
    characters are kept. Runs of the same class collapse to one symbol.

    Example:
        >>> word_shape("Obama")
        'Xx'
        >>> word_shape("COVID-19")
        'X-d'
    """
    shape = []
    for ch in word:
        if _UPPER.match(ch):
            s = "X"
        elif _LOWER.match(ch):
            s = "x"
        elif _DIGIT.match(ch):
            s = "d"
        else:
            s = ch
        if not shape or shape[-1] != s:
            shape.append(s)
    return "".join(shape)


def damerau_distance(a: str, b: str) -> int:
    """Edit distance counting adjacent transpositions as one edit."""
    return edit_distance(a, b, transpositions=True)


def bounded_distance(a: str, b: str, max_distance: int) -> int | None:
    """
    Damerau distance, or None when it exceeds max_distance.

    The length difference is a lower bound on the distance, which prunes
    most comparisons against a dictionary without computing the table.
    """
    if abs(len(a) - len(b)) > max_distance:
        return None
    d = damerau_distance(a, b)
    return d if d <= max_distance else None


def is_fuzzy_match(known: str, candidate: str, min_len: int) -> bool:
    """
    True when candidate equals known, or is one edit away from it and
    longer than min_len characters.
    """
    if known == candidate:
        return True
    if len(candidate) > min_len:
        return bounded_distance(known, candidate, 1) == 1
    return False


def contains_fuzzy(words, candidate: str, min_len: int) -> str | None:
    """
    First entry of words that fuzzy-matches candidate, or None.

    Args:
        words: Iterable of phrase strings (or objects whose str() is the phrase).
        candidate: Phrase being checked.
        min_len: Candidates of this length or shorter only match exactly.
    """
    for w in words:
        text = str(w)
        if is_fuzzy_match(text, candidate, min_len):
            return text
    return None


def is_first_capital(phrase: str) -> bool:
    return bool(phrase) and phrase[0].isupper()
