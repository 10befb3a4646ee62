"""Exceptions raised by the Observation algebra.

Both are precondition failures: they are raised synchronously at the call site
and should propagate. An ``InvalidObservation`` means upstream evidence was
malformed; an ``IncompatibleMerge`` means evidence for different alleles (or
different copy-number models) was routed to the same reduction step.
"""

from __future__ import annotations

from typing import Optional


class ObservationError(ValueError):
    """Base class for all varobs evidence errors."""


class InvalidObservation(ObservationError):
    """Raised when an Observation invariant is violated."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class IncompatibleMerge(ObservationError):
    """Raised when two Observations cannot be merged."""

    def __init__(
        self,
        message: str,
        *,
        left: Optional[str] = None,
        right: Optional[str] = None,
        key: Optional[object] = None,
    ) -> None:
        super().__init__(message)
        self.left = left
        self.right = right
        self.key = key

    def with_key(self, key: object) -> "IncompatibleMerge":
        """Return a copy of this error annotated with the reduction key."""
        return IncompatibleMerge(
            f"{self} (key={key})",
            left=self.left,
            right=self.right,
            key=key,
        )
