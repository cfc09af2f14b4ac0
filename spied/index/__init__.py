"""
Sentence Index Registry.

Provides registration and discovery of sentence index backends.

Example:
    from spied.index import create_index

    index = create_index(config.index)
    index.add(sentences)
"""

from typing import Type

from spied.config import IndexConfig
from spied.exceptions import ConfigurationError
from spied.index.base import INDEX_STOP_LIST, SentenceIndex, query_terms, sentence_terms

# Backend registry - maps name to class
_INDEX_REGISTRY: dict[str, Type[SentenceIndex]] = {}


def register_index(cls: Type[SentenceIndex]) -> Type[SentenceIndex]:
    """
    Decorator to register an index backend.

    Example:
        @register_index
        class InMemorySentenceIndex(SentenceIndex):
            name = "memory"
    """
    _INDEX_REGISTRY[cls.name] = cls
    return cls


def get_all_indexes() -> dict[str, Type[SentenceIndex]]:
    return _INDEX_REGISTRY.copy()


def get_index(name: str) -> Type[SentenceIndex] | None:
    return _INDEX_REGISTRY.get(name)


def create_index(config: IndexConfig) -> SentenceIndex:
    """
    Instantiate the configured backend, loading a saved snapshot if asked to.

    Raises:
        ConfigurationError: If the backend is not registered
    """
    cls = get_index(config.backend.value)
    if cls is None:
        raise ConfigurationError(f"Unknown index backend: {config.backend.value}")
    index = cls(config.index_dir)
    if config.load_index:
        index.load(config.index_dir)
    return index


# Import backends to trigger registration
# These imports must be at the bottom to avoid circular imports
from spied.index.in_memory import InMemorySentenceIndex  # noqa: E402, F401
from spied.index.sqlite_index import SQLiteSentenceIndex  # noqa: E402, F401

__all__ = [
    "INDEX_STOP_LIST",
    "InMemorySentenceIndex",
    "SQLiteSentenceIndex",
    "SentenceIndex",
    "create_index",
    "get_all_indexes",
    "get_index",
    "query_terms",
    "register_index",
    "sentence_terms",
]
