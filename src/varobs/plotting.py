from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence

import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def plot_coverage_hist(
    *,
    coverages: Sequence[int],
    out_png: str | Path,
    title: str = "Merged coverage per site/allele",
    max_bin: int = 100,
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    # Collapse tail into max_bin+
    hist: Dict[int, int] = {}
    for c in coverages:
        k = min(int(c), max_bin + 1)
        hist[k] = hist.get(k, 0) + 1

    xs = sorted(hist)
    ys = [hist[x] for x in xs]
    labels = [f"{x}+" if x > max_bin else str(x) for x in xs]

    plt.figure()
    plt.bar(range(len(xs)), ys)
    plt.xlabel("Coverage (allele + other reads)")
    plt.ylabel("Site/allele count")
    plt.title(title)
    plt.xticks(range(len(xs)), labels, rotation=90 if len(xs) > 20 else 0)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_strand_fraction(
    *,
    fractions: Sequence[float],
    out_png: str | Path,
    title: str = "Allele forward-strand fraction",
    nbins: int = 20,
) -> None:
    """Plot the forward-strand fraction of allele-supporting reads.

    Unbiased evidence clusters around 0.5; mass near 0 or 1 points at
    strand-bias artifacts. Site/alleles without allele coverage should be left
    out of ``fractions`` by the caller.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    edges: List[float] = [i / nbins for i in range(nbins + 1)]

    plt.figure()
    plt.hist(list(fractions), bins=edges)
    plt.xlabel("Forward-strand fraction")
    plt.ylabel("Site/allele count")
    plt.title(title)
    plt.xlim(0.0, 1.0)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
