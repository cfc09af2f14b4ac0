"""
Two-dimensional counters.

Pattern x phrase -> count tables used for the positive, negative and
unlabeled sufficient statistics, and (transposed) for phrase x pattern
extraction counts.
"""

from collections import Counter, defaultdict
from typing import Hashable, Iterable, Iterator


class TwoDimensionalCounter:
    """
    Nested counter: first key -> second key -> count.

    Example:
        pos = TwoDimensionalCounter()
        pos.increment(pattern, phrase)
        pos.distinct_count(pattern)   # number of distinct phrases
        pos.total(pattern)            # number of matches
    """

    def __init__(self):
        self._counts: dict[Hashable, Counter] = defaultdict(Counter)

    def increment(self, first: Hashable, second: Hashable, by: float = 1.0):
        self._counts[first][second] += by

    def get_count(self, first: Hashable, second: Hashable) -> float:
        inner = self._counts.get(first)
        return inner.get(second, 0.0) if inner else 0.0

    def counter(self, first: Hashable) -> Counter:
        """The inner counter for first (empty if absent); not a copy."""
        return self._counts.get(first) or Counter()

    def first_keys(self) -> set:
        return set(self._counts)

    def distinct_count(self, first: Hashable) -> int:
        inner = self._counts.get(first)
        return sum(1 for v in inner.values() if v > 0) if inner else 0

    def total(self, first: Hashable) -> float:
        inner = self._counts.get(first)
        return float(sum(inner.values())) if inner else 0.0

    def total_count(self) -> float:
        return float(sum(sum(inner.values()) for inner in self._counts.values()))

    def remove(self, first: Hashable):
        self._counts.pop(first, None)

    def remove_all(self, firsts: Iterable[Hashable]):
        for first in firsts:
            self._counts.pop(first, None)

    def add_all(self, other: "TwoDimensionalCounter"):
        for first, inner in other._counts.items():
            self._counts[first].update(inner)

    def transposed(self) -> "TwoDimensionalCounter":
        flipped = TwoDimensionalCounter()
        for first, inner in self._counts.items():
            for second, count in inner.items():
                flipped.increment(second, first, count)
        return flipped

    def items(self) -> Iterator[tuple[Hashable, Counter]]:
        return iter(self._counts.items())

    def __contains__(self, first: Hashable) -> bool:
        return first in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"TwoDimensionalCounter(keys={len(self._counts)}, total={self.total_count()})"
