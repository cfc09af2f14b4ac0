"""
Exception types for SPIED.

The bootstrapper distinguishes failures by how far they are allowed to travel:

- ConfigurationError: fatal, raised before any corpus work starts.
- DataError: recovered locally (a missing sentence or empty postings list is
  treated as an empty result and logged).
- ClassifierTrainingError: aborts phrase expansion for one label in one round.
- RoundFailure: a worker-pool phase failed; the controller isolates it to the
  offending label.
"""


class SpiedError(Exception):
    """Base class for all bootstrapper errors."""
    pass


class ConfigurationError(SpiedError):
    """
    Raised when options are missing or inconsistent (e.g. no seed dictionary
    for a label, or batch mode without a batch directory).
    """
    pass


class DataError(SpiedError):
    """
    Raised when stored data does not match what the index or the corpus
    refers to (e.g. a sentence id with no backing sentence).
    """
    pass


class ClassifierTrainingError(SpiedError):
    """
    Raised when the phrase classifier cannot be trained, typically because
    the sampled dataset has no positive or no negative examples.
    """
    pass


class RoundFailure(SpiedError):
    """Raised when a parallel phase of a round fails for a label."""

    def __init__(self, message: str, label: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.label = label
        self.cause = cause
