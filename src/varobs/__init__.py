"""varobs: per-site variant evidence accumulator.

An :class:`Observation` summarizes the read evidence for one allele at one
site. Observations merge associatively and commutatively, so evidence gathered
on independent read partitions can be combined in any order:

    from varobs import Observation, merge_all

    site_total = merge_all(per_read_observations)

Most users of the file-based workflow should use the CLI:

    varobs merge --input observations.jsonl.gz --outdir results/

"""

from __future__ import annotations

__all__ = [
    "__version__",
    "IncompatibleMerge",
    "InvalidObservation",
    "Observation",
    "ObservationError",
    "SiteAllele",
    "merge_all",
    "merge_chunked",
    "reduce_by_site",
    "tree_merge",
]

__version__ = "0.1.0"

from .errors import IncompatibleMerge, InvalidObservation, ObservationError
from .models import Observation, SiteAllele
from .reduce import merge_all, merge_chunked, reduce_by_site, tree_merge
