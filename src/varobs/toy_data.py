from __future__ import annotations

import math
import random
from pathlib import Path
from typing import Dict, List, Tuple

from .models import Observation, SiteAllele
from .records import write_records
from .utils import ensure_outdir, phred_to_error_prob, write_json

_BASES = "ACGT"


def _read_log_likelihoods(matches: bool, copy_number: int, e: float) -> List[float]:
    """log P(read | g copies of the allele) for g in 0..copy_number under a simple error model."""
    out = []
    for g in range(copy_number + 1):
        if matches:
            p = ((copy_number - g) * e + g * (1.0 - e)) / copy_number
        else:
            p = ((copy_number - g) * (1.0 - e) + g * e) / copy_number
        out.append(math.log(max(p, 1e-300)))
    return out


def _read_observation(
    *,
    supports_ref: bool,
    informative: bool,
    forward: bool,
    mapq: int,
    baseq: int,
    copy_number: int,
) -> Observation:
    """Per-read Observation from the reference allele's point of view."""
    if not informative:
        # Read covers the site with a base matching neither allele.
        zeros = [0.0] * (copy_number + 1)
        return Observation(0, 0, float(mapq * mapq), zeros, zeros, 0, 0, total_coverage=1, is_ref=True)

    e = phred_to_error_prob(baseq)
    return Observation(
        allele_forward_strand=int(forward and supports_ref),
        other_forward_strand=int(forward and not supports_ref),
        square_map_q=float(mapq * mapq),
        allele_log_likelihoods=_read_log_likelihoods(supports_ref, copy_number, e),
        other_log_likelihoods=_read_log_likelihoods(not supports_ref, copy_number, e),
        allele_coverage=int(supports_ref),
        other_coverage=int(not supports_ref),
        total_coverage=1,
        is_ref=True,
    )


def make_toy_observations(
    *,
    sites: int = 5,
    reads_per_site: int = 20,
    copy_number: int = 2,
    seed: int = 7,
    contig: str = "chr1",
) -> List[Tuple[SiteAllele, Observation]]:
    """Generate per-read observations for a few biallelic sites.

    Each read yields one record for the reference allele and its inverse for
    the alternate allele. Reads at site ``i`` support the alternate allele with
    probability ``i / (sites - 1)``, so the sites range from homozygous
    reference to homozygous alternate.
    """
    if sites < 1 or reads_per_site < 1:
        raise ValueError("sites and reads_per_site must be >= 1")
    if copy_number < 1:
        raise ValueError("copy_number must be >= 1")

    rng = random.Random(seed)
    out: List[Tuple[SiteAllele, Observation]] = []
    for i in range(sites):
        pos0 = 100 + 50 * i
        ref = _BASES[i % 4]
        alt = _BASES[(i + 1) % 4]
        alt_fraction = i / (sites - 1) if sites > 1 else 0.5
        ref_key = SiteAllele(contig, pos0, ref)
        alt_key = SiteAllele(contig, pos0, alt)

        for _ in range(reads_per_site):
            obs = _read_observation(
                supports_ref=rng.random() >= alt_fraction,
                informative=rng.random() >= 0.05,
                forward=rng.random() < 0.5,
                mapq=rng.randint(20, 60),
                baseq=rng.randint(15, 40),
                copy_number=copy_number,
            )
            out.append((ref_key, obs))
            out.append((alt_key, obs.invert()))
    return out


def make_toy_data(
    *,
    outdir: str | Path,
    sites: int = 5,
    reads_per_site: int = 20,
    copy_number: int = 2,
    seed: int = 7,
) -> Dict[str, object]:
    """Write a small per-read observation file suitable for quick demos/tests.

    The outputs include:
    - observations.jsonl.gz
    - toy_summary.json

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)

    records = make_toy_observations(
        sites=sites,
        reads_per_site=reads_per_site,
        copy_number=copy_number,
        seed=seed,
    )
    obs_path = outdir_p / "observations.jsonl.gz"
    n = write_records(obs_path, records)

    summary = {
        "observations": str(obs_path),
        "records": n,
        "sites": sites,
        "copy_number": copy_number,
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
