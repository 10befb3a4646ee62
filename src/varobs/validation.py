from __future__ import annotations

import logging
import math
from typing import Any, Iterable

import numpy as np

from .errors import InvalidObservation

logger = logging.getLogger(__name__)


def check_count(name: str, value: Any) -> int:
    """Ensure ``value`` is a non-negative integer count; raise InvalidObservation otherwise."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
        raise InvalidObservation(
            f"{name} must be an integer, got {type(value).__name__} ({value!r})",
            field=name,
        )
    value = int(value)
    if value < 0:
        raise InvalidObservation(f"{name} must be >= 0, got {value}", field=name)
    return value


def check_square_map_q(value: Any) -> float:
    """Ensure the squared mapping-quality sum is a finite, non-negative real."""
    if isinstance(value, (bool, np.bool_, str, bytes)):
        raise InvalidObservation(
            f"square_map_q must be a real number, got {type(value).__name__} ({value!r})",
            field="square_map_q",
        )
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidObservation(
            f"square_map_q must be a real number, got {value!r}", field="square_map_q"
        ) from None
    # NaN fails this comparison as well
    if not v >= 0.0 or math.isinf(v):
        raise InvalidObservation(f"square_map_q must be >= 0 and finite, got {v}", field="square_map_q")
    return v


def check_flag(name: str, value: Any) -> bool:
    if not isinstance(value, (bool, np.bool_)):
        raise InvalidObservation(f"{name} must be a bool, got {value!r}", field=name)
    return bool(value)


def as_log_likelihoods(name: str, values: Iterable[float]) -> np.ndarray:
    """Copy a likelihood sequence into a freshly owned 1-D float64 array."""
    try:
        src = np.asarray(values)
        # strings, bools and out-of-range (object) values are not log-likelihoods
        if src.dtype.kind not in "iuf":
            raise TypeError(src.dtype)
        arr = np.array(src, dtype=np.float64, copy=True)
    except (TypeError, ValueError, OverflowError):
        raise InvalidObservation(
            f"{name} must be a sequence of real numbers", field=name
        ) from None
    if arr.ndim != 1:
        raise InvalidObservation(
            f"{name} must be one-dimensional, got shape {arr.shape}", field=name
        )
    return arr


def check_invariants(
    *,
    allele_forward_strand: int,
    other_forward_strand: int,
    allele_log_likelihoods: np.ndarray,
    other_log_likelihoods: np.ndarray,
    allele_coverage: int,
    other_coverage: int,
    total_coverage: int,
) -> None:
    """Check the cross-field invariants of an Observation.

    Per-field type and sign checks are done by the ``check_*`` helpers above;
    this covers the relations between fields.
    """
    n_allele = len(allele_log_likelihoods)
    n_other = len(other_log_likelihoods)
    if n_allele != n_other:
        raise InvalidObservation(
            "allele_log_likelihoods and other_log_likelihoods must have equal length "
            f"({n_allele} != {n_other})",
            field="other_log_likelihoods",
        )
    if n_allele - 1 <= 0:
        raise InvalidObservation(
            f"copy number must be > 0 (got {n_allele} likelihoods, i.e. copy number {n_allele - 1})",
            field="allele_log_likelihoods",
        )
    if total_coverage <= 0:
        raise InvalidObservation(
            f"total_coverage must be > 0, got {total_coverage}", field="total_coverage"
        )
    if allele_forward_strand > allele_coverage:
        raise InvalidObservation(
            f"allele_forward_strand ({allele_forward_strand}) exceeds "
            f"allele_coverage ({allele_coverage})",
            field="allele_forward_strand",
        )
    if other_forward_strand > other_coverage:
        raise InvalidObservation(
            f"other_forward_strand ({other_forward_strand}) exceeds "
            f"other_coverage ({other_coverage})",
            field="other_forward_strand",
        )
