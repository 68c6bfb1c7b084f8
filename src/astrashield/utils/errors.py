"""Exception types raised by the risk pipeline."""

from __future__ import annotations

from typing import Any


class AstraShieldError(Exception):
    """Base class for all package errors."""


class PropagationError(AstraShieldError, ValueError):
    """SGP4 could not produce a state for an element set."""


class StoreError(AstraShieldError):
    """The object store rejected or failed an operation."""


class ConjunctionPersistError(StoreError):
    """Conjunctions could not be persisted even record by record.

    Attributes:
        persisted: Number of conjunctions written before giving up.
        failed: Number of conjunctions that could not be written.
    """

    def __init__(self, persisted: int, failed: int) -> None:
        super().__init__(
            f"Failed to persist {failed} conjunction(s) ({persisted} persisted)"
        )
        self.persisted = persisted
        self.failed = failed


class DetectionCancelled(AstraShieldError):
    """A detection run observed a cancellation request.

    Attributes:
        partial: Results gathered before the run stopped.
    """

    def __init__(self, stage: str, partial: list[Any] | None = None) -> None:
        super().__init__(f"Conjunction detection cancelled during {stage}")
        self.stage = stage
        self.partial = partial or []


class FetchError(AstraShieldError):
    """No element-set source could be reached."""


class ObjectNotFoundError(StoreError, LookupError):
    """No stored object has the requested catalog id."""
