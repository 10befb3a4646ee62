from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import IncompatibleMerge
from .validation import (
    as_log_likelihoods,
    check_count,
    check_flag,
    check_invariants,
    check_square_map_q,
)


@dataclass(frozen=True)
class SiteAllele:
    """Key identifying one candidate allele at one genomic site.

    Coordinates are 0-based in internal representation.
    """

    chrom: str
    pos0: int
    allele: str

    def __str__(self) -> str:
        return f"{self.chrom}:{self.pos0 + 1}:{self.allele}"


@dataclass(frozen=True, eq=False)
class Observation:
    """Read evidence for one allele at one site.

    Observations are combined with :meth:`merge` into a single Observation per
    site/allele. The merge is associative and commutative, so partial results
    built on different read partitions can be combined in any order.

    Attributes
    ----------
    allele_forward_strand:
        Reads supporting the allele observed on the forward strand.
    other_forward_strand:
        Reads covering the site but not matching the allele, forward strand.
    square_map_q:
        Sum of squared mapping qualities over the reads at the site.
    allele_log_likelihoods:
        Log-likelihoods of the evidence under 0..copy_number copies of the allele.
    other_log_likelihoods:
        Log-likelihoods under 0..copy_number copies of the other allele.
    allele_coverage:
        Reads matching the allele.
    other_coverage:
        Reads covering the site but not matching the allele.
    total_coverage:
        Reads covering the site. May exceed ``allele_coverage + other_coverage``.
    is_ref:
        True if this record represents the reference allele.

    The likelihood sequences are always copied into arrays owned by the
    instance. :meth:`merge_inplace` is the only operation that writes to them.
    """

    allele_forward_strand: int
    other_forward_strand: int
    square_map_q: float
    allele_log_likelihoods: np.ndarray
    other_log_likelihoods: np.ndarray
    allele_coverage: int
    other_coverage: int
    total_coverage: int = 1
    is_ref: bool = True

    def __post_init__(self) -> None:
        _set = object.__setattr__
        for name in ("allele_forward_strand", "other_forward_strand", "allele_coverage", "other_coverage"):
            _set(self, name, check_count(name, getattr(self, name)))
        _set(self, "total_coverage", check_count("total_coverage", self.total_coverage))
        _set(self, "square_map_q", check_square_map_q(self.square_map_q))
        _set(self, "is_ref", check_flag("is_ref", self.is_ref))
        _set(
            self,
            "allele_log_likelihoods",
            as_log_likelihoods("allele_log_likelihoods", self.allele_log_likelihoods),
        )
        _set(
            self,
            "other_log_likelihoods",
            as_log_likelihoods("other_log_likelihoods", self.other_log_likelihoods),
        )
        self._check()

    @classmethod
    def _adopt(
        cls,
        *,
        allele_log_likelihoods: np.ndarray,
        other_log_likelihoods: np.ndarray,
        **scalars: object,
    ) -> "Observation":
        """Build an instance that takes ownership of the given arrays without copying."""
        obs = cls.__new__(cls)
        object.__setattr__(obs, "allele_log_likelihoods", allele_log_likelihoods)
        object.__setattr__(obs, "other_log_likelihoods", other_log_likelihoods)
        for name, value in scalars.items():
            object.__setattr__(obs, name, value)
        obs._check()
        return obs

    def _check(self) -> None:
        check_invariants(
            allele_forward_strand=self.allele_forward_strand,
            other_forward_strand=self.other_forward_strand,
            allele_log_likelihoods=self.allele_log_likelihoods,
            other_log_likelihoods=self.other_log_likelihoods,
            allele_coverage=self.allele_coverage,
            other_coverage=self.other_coverage,
            total_coverage=self.total_coverage,
        )

    @property
    def coverage(self) -> int:
        """Reads at the site that either match or do not match the allele."""
        return self.allele_coverage + self.other_coverage

    @property
    def copy_number(self) -> int:
        return len(self.allele_log_likelihoods) - 1

    def _counts(self) -> Tuple[int, int, int, int, int, bool]:
        return (
            self.allele_forward_strand,
            self.other_forward_strand,
            self.allele_coverage,
            self.other_coverage,
            self.total_coverage,
            self.is_ref,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Observation):
            return NotImplemented
        return (
            self._counts() == other._counts()
            and self.square_map_q == other.square_map_q
            and np.array_equal(self.allele_log_likelihoods, other.allele_log_likelihoods)
            and np.array_equal(self.other_log_likelihoods, other.other_log_likelihoods)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            "Observation("
            f"allele_forward_strand={self.allele_forward_strand}, "
            f"other_forward_strand={self.other_forward_strand}, "
            f"square_map_q={self.square_map_q!r}, "
            f"allele_log_likelihoods={self.allele_log_likelihoods.tolist()!r}, "
            f"other_log_likelihoods={self.other_log_likelihoods.tolist()!r}, "
            f"allele_coverage={self.allele_coverage}, "
            f"other_coverage={self.other_coverage}, "
            f"total_coverage={self.total_coverage}, "
            f"is_ref={self.is_ref})"
        )

    def allclose(self, other: "Observation", *, rtol: float = 1e-9, atol: float = 0.0) -> bool:
        """Compare counts exactly and real-valued fields within floating-point tolerance."""
        if self._counts() != other._counts() or self.copy_number != other.copy_number:
            return False
        return (
            math.isclose(self.square_map_q, other.square_map_q, rel_tol=rtol, abs_tol=atol)
            and bool(np.allclose(self.allele_log_likelihoods, other.allele_log_likelihoods, rtol=rtol, atol=atol))
            and bool(np.allclose(self.other_log_likelihoods, other.other_log_likelihoods, rtol=rtol, atol=atol))
        )

    def duplicate(self, set_ref: Optional[bool] = None) -> "Observation":
        """Return a copy whose likelihood arrays are not shared with this instance."""
        return Observation(
            self.allele_forward_strand,
            self.other_forward_strand,
            self.square_map_q,
            self.allele_log_likelihoods,
            self.other_log_likelihoods,
            self.allele_coverage,
            self.other_coverage,
            total_coverage=self.total_coverage,
            is_ref=self.is_ref if set_ref is None else set_ref,
        )

    def invert(self) -> "Observation":
        """Return the same evidence seen from the other allele's point of view."""
        return Observation(
            self.other_forward_strand,
            self.allele_forward_strand,
            self.square_map_q,
            self.other_log_likelihoods,
            self.allele_log_likelihoods,
            self.other_coverage,
            self.allele_coverage,
            total_coverage=self.total_coverage,
            is_ref=not self.is_ref,
        )

    def null_out(self) -> "Observation":
        """Return an Observation with all allele related fields zeroed.

        The allele likelihoods of this instance become the ``other`` likelihoods
        of the result, so a called-against allele keeps its copy-number curve
        as a baseline. ``total_coverage`` is kept.
        """
        return Observation(
            0,
            0,
            0.0,
            np.zeros_like(self.allele_log_likelihoods),
            self.allele_log_likelihoods,
            0,
            0,
            total_coverage=self.total_coverage,
            is_ref=False,
        )

    def _check_mergeable(self, other: "Observation") -> None:
        if self.copy_number != other.copy_number:
            raise IncompatibleMerge(
                f"Cannot merge observations with copy numbers {self.copy_number} and {other.copy_number}",
                left=f"copy_number={self.copy_number}",
                right=f"copy_number={other.copy_number}",
            )
        if self.is_ref != other.is_ref:
            raise IncompatibleMerge(
                f"Cannot merge a {'reference' if self.is_ref else 'non-reference'} observation "
                f"with a {'reference' if other.is_ref else 'non-reference'} observation",
                left=f"is_ref={self.is_ref}",
                right=f"is_ref={other.is_ref}",
            )

    def _summed_scalars(self, other: "Observation") -> dict:
        return {
            "allele_forward_strand": self.allele_forward_strand + other.allele_forward_strand,
            "other_forward_strand": self.other_forward_strand + other.other_forward_strand,
            "square_map_q": self.square_map_q + other.square_map_q,
            "allele_coverage": self.allele_coverage + other.allele_coverage,
            "other_coverage": self.other_coverage + other.other_coverage,
            "total_coverage": self.total_coverage + other.total_coverage,
            "is_ref": self.is_ref,
        }

    def merge(self, other: "Observation") -> "Observation":
        """Return the sum of two observations for the same allele at the same site.

        Log-likelihoods are added element-wise; counts and ``square_map_q`` are
        summed. Neither operand is modified.

        Raises
        ------
        IncompatibleMerge
            If copy numbers or reference flags differ.
        """
        self._check_mergeable(other)
        return Observation._adopt(
            allele_log_likelihoods=self.allele_log_likelihoods + other.allele_log_likelihoods,
            other_log_likelihoods=self.other_log_likelihoods + other.other_log_likelihoods,
            **self._summed_scalars(other),
        )

    def merge_inplace(self, other: "Observation") -> "Observation":
        """Consuming merge: like :meth:`merge`, but reuses this instance's storage.

        ``other``'s likelihoods are added into this instance's arrays, and the
        returned Observation takes ownership of them. Only call this on an
        instance you exclusively own (e.g. one returned by :meth:`duplicate` or
        by a previous merge) and do not use it afterwards. Nothing is modified
        if the operands are incompatible.
        """
        self._check_mergeable(other)
        allele = self.allele_log_likelihoods
        other_ll = self.other_log_likelihoods
        np.add(allele, other.allele_log_likelihoods, out=allele)
        np.add(other_ll, other.other_log_likelihoods, out=other_ll)
        return Observation._adopt(
            allele_log_likelihoods=allele,
            other_log_likelihoods=other_ll,
            **self._summed_scalars(other),
        )
