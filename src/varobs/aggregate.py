from __future__ import annotations

import logging
import math
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from .models import Observation, SiteAllele
from .records import read_records, write_records
from .reduce import DEFAULT_CHUNK_SIZE, merge_sites
from .utils import ensure_outdir, write_json

logger = logging.getLogger(__name__)


def rms_mapq(obs: Observation) -> float:
    """Root-mean-square mapping quality over the reads covering the site."""
    return math.sqrt(obs.square_map_q / obs.total_coverage)


def allele_strand_fraction(obs: Observation) -> Optional[float]:
    """Fraction of allele-supporting reads on the forward strand (None without allele coverage)."""
    if obs.allele_coverage == 0:
        return None
    return obs.allele_forward_strand / obs.allele_coverage


def site_row(site: SiteAllele, obs: Observation) -> Dict[str, Any]:
    return {
        "site": str(site),
        "is_ref": obs.is_ref,
        "allele_coverage": obs.allele_coverage,
        "other_coverage": obs.other_coverage,
        "total_coverage": obs.total_coverage,
        "allele_forward_strand": obs.allele_forward_strand,
        "rms_mapq": rms_mapq(obs),
        "best_copies": int(np.argmax(obs.allele_log_likelihoods)),
    }


def summarize(merged: Dict[SiteAllele, Observation], *, records_total: int) -> Dict[str, Any]:
    coverages = [obs.coverage for obs in merged.values()]
    fractions = [f for f in (allele_strand_fraction(o) for o in merged.values()) if f is not None]
    ref_alleles = sum(1 for o in merged.values() if o.is_ref)
    return {
        "counts": {
            "records_total": records_total,
            "site_alleles": len(merged),
            "sites": len({(k.chrom, k.pos0) for k in merged}),
            "ref_alleles": ref_alleles,
            "alt_alleles": len(merged) - ref_alleles,
            "uncovered_alleles": sum(1 for o in merged.values() if o.allele_coverage == 0),
        },
        "coverages": coverages,
        "strand_fractions": fractions,
    }


def merge_file(
    *,
    input_path: str | Path,
    outdir: str | Path,
    strategy: str = "fold",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int = 1,
    merged_path: Optional[str | Path] = None,
    progress: bool = True,
) -> Tuple[Dict[str, Any], Dict[SiteAllele, Observation]]:
    """Main workhorse: read keyed observations, merge per site/allele, write outputs.

    Returns the summary dict (also written to ``summary.json``) and the merged
    observations.
    """
    t0 = time.time()
    outdir_path = ensure_outdir(outdir)
    if merged_path is None:
        merged_path = outdir_path / "merged.jsonl.gz"

    records_total = 0

    def _counted(pairs: Iterable[Tuple[SiteAllele, Observation]]):
        nonlocal records_total
        for pair in pairs:
            records_total += 1
            yield pair

    it: Iterable[Tuple[SiteAllele, Observation]] = read_records(input_path)
    if progress:
        it = tqdm(it, unit="obs", desc="Merging observations")

    try:
        merged = merge_sites(_counted(it), strategy=strategy, chunk_size=chunk_size, workers=workers)
    finally:
        if isinstance(it, tqdm):
            it.close()
    logger.info("Merged %d records into %d site/alleles", records_total, len(merged))

    write_records(merged_path, merged.items())

    dt = time.time() - t0
    summary = {
        "input_path": str(input_path),
        "merged_path": str(merged_path),
        "strategy": strategy,
        "chunk_size": int(chunk_size),
        "workers": int(workers),
        **summarize(merged, records_total=records_total),
        "runtime_seconds": float(dt),
    }

    write_json(outdir_path / "summary.json", summary)
    return summary, merged


def top_site_rows(merged: Dict[SiteAllele, Observation], n: int = 25) -> List[Dict[str, Any]]:
    ranked = sorted(merged.items(), key=lambda kv: (-kv[1].coverage, str(kv[0])))
    return [site_row(k, o) for k, o in ranked[:n]]
