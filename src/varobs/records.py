"""JSON-lines codec for keyed Observations.

Each line holds one observation for one allele at one site::

    {"chrom": "chr1", "pos0": 99, "allele": "A",
     "observation": {"allele_forward_strand": 2, "other_forward_strand": 1, ...}}

Paths ending in ``.gz`` are read and written gzip-compressed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Tuple

from .errors import InvalidObservation
from .models import Observation, SiteAllele
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)

_FIELDS = (
    "allele_forward_strand",
    "other_forward_strand",
    "square_map_q",
    "allele_log_likelihoods",
    "other_log_likelihoods",
    "allele_coverage",
    "other_coverage",
    "total_coverage",
    "is_ref",
)
_REQUIRED = _FIELDS[:7]


def observation_to_dict(obs: Observation) -> Dict[str, Any]:
    return {
        "allele_forward_strand": obs.allele_forward_strand,
        "other_forward_strand": obs.other_forward_strand,
        "square_map_q": obs.square_map_q,
        "allele_log_likelihoods": obs.allele_log_likelihoods.tolist(),
        "other_log_likelihoods": obs.other_log_likelihoods.tolist(),
        "allele_coverage": obs.allele_coverage,
        "other_coverage": obs.other_coverage,
        "total_coverage": obs.total_coverage,
        "is_ref": obs.is_ref,
    }


def observation_from_dict(d: Mapping[str, Any]) -> Observation:
    """Build an Observation from a mapping; ``total_coverage`` and ``is_ref`` are optional."""
    unknown = sorted(set(d) - set(_FIELDS))
    if unknown:
        raise InvalidObservation(f"Unknown observation field(s): {', '.join(unknown)}")
    missing = [k for k in _REQUIRED if k not in d]
    if missing:
        raise InvalidObservation(
            f"Missing observation field(s): {', '.join(missing)}", field=missing[0]
        )
    return Observation(**dict(d))


def site_from_dict(d: Mapping[str, Any]) -> SiteAllele:
    try:
        chrom, pos0, allele = d["chrom"], d["pos0"], d["allele"]
    except KeyError as e:
        raise InvalidObservation(f"Record is missing site field {e}") from None
    if isinstance(pos0, bool) or not isinstance(pos0, int) or pos0 < 0:
        raise InvalidObservation(f"Invalid site field pos0: expected a non-negative integer, got {pos0!r}")
    if not isinstance(chrom, str) or not isinstance(allele, str):
        raise InvalidObservation(f"Invalid site fields: chrom and allele must be strings, got {chrom!r}, {allele!r}")
    return SiteAllele(chrom=chrom, pos0=pos0, allele=allele)


def record_to_dict(site: SiteAllele, obs: Observation) -> Dict[str, Any]:
    return {
        "chrom": site.chrom,
        "pos0": site.pos0,
        "allele": site.allele,
        "observation": observation_to_dict(obs),
    }


def read_records(path: str | Path) -> Iterator[Tuple[SiteAllele, Observation]]:
    """Yield ``(SiteAllele, Observation)`` pairs from a JSON-lines file.

    Blank lines are skipped. Any malformed line raises InvalidObservation
    naming the file and line number.
    """
    with open_textmaybe_gzip(path, "rt") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
                if not isinstance(rec, dict) or not isinstance(rec.get("observation"), dict):
                    raise InvalidObservation("record must be an object with an 'observation' object")
                site = site_from_dict(rec)
                obs = observation_from_dict(rec["observation"])
            except json.JSONDecodeError as e:
                raise InvalidObservation(f"{path}:{lineno}: invalid JSON ({e.msg})") from None
            except InvalidObservation as e:
                raise InvalidObservation(f"{path}:{lineno}: {e}", field=e.field) from None
            yield site, obs


def write_records(path: str | Path, pairs: Iterable[Tuple[SiteAllele, Observation]]) -> int:
    """Write ``(SiteAllele, Observation)`` pairs as JSON lines; return the count written."""
    n = 0
    with open_textmaybe_gzip(path, "wt") as fh:
        for site, obs in pairs:
            fh.write(json.dumps(record_to_dict(site, obs), sort_keys=True) + "\n")
            n += 1
    logger.info("Wrote %d records to %s", n, path)
    return n
