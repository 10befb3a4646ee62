"""Local reduction of Observations.

Every helper here treats its inputs as read-only. Accumulators are created
with :meth:`Observation.duplicate` (or a pure :meth:`Observation.merge`) and
only those owned accumulators are passed to :meth:`Observation.merge_inplace`,
so no input is ever aliased into two merges.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Hashable, Iterable, List, Tuple, TypeVar

from .errors import IncompatibleMerge
from .models import Observation
from .utils import chunked

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

DEFAULT_CHUNK_SIZE = 1024


def merge_all(observations: Iterable[Observation]) -> Observation:
    """Sequential left fold of ``observations``."""
    it = iter(observations)
    try:
        first = next(it)
    except StopIteration:
        raise ValueError("merge_all() requires at least one observation") from None

    acc = first.duplicate()
    n = 1
    for obs in it:
        acc = acc.merge_inplace(obs)
        n += 1
    logger.debug("Folded %d observations", n)
    return acc


def tree_merge(observations: Iterable[Observation]) -> Observation:
    """Pairwise tree reduction of ``observations``.

    The first round uses the pure merge so every intermediate is freshly
    allocated; later rounds merge in place into those intermediates.
    """
    level: List[Observation] = list(observations)
    if not level:
        raise ValueError("tree_merge() requires at least one observation")

    owned = False
    rounds = 0
    while len(level) > 1:
        nxt: List[Observation] = []
        for i in range(0, len(level) - 1, 2):
            left, right = level[i], level[i + 1]
            nxt.append(left.merge_inplace(right) if owned else left.merge(right))
        if len(level) % 2 == 1:
            tail = level[-1]
            nxt.append(tail if owned else tail.duplicate())
        level = nxt
        owned = True
        rounds += 1

    logger.debug("Tree reduction finished after %d rounds", rounds)
    return level[0] if owned else level[0].duplicate()


def merge_chunked(
    observations: Iterable[Observation],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int = 1,
) -> Observation:
    """Reduce ``observations`` the way independent workers would.

    The input is split into partitions of ``chunk_size``; each partition is
    folded on its own (on a thread pool when ``workers > 1``) and the partials
    are then tree-merged.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    if workers < 1:
        raise ValueError("workers must be >= 1")

    chunks = list(chunked(observations, chunk_size))
    if not chunks:
        raise ValueError("merge_chunked() requires at least one observation")

    if workers == 1 or len(chunks) == 1:
        partials = [merge_all(c) for c in chunks]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            partials = list(pool.map(merge_all, chunks))

    logger.debug("Reduced %d partitions with %d worker(s)", len(partials), workers)
    return tree_merge(partials)


def reduce_by_site(pairs: Iterable[Tuple[K, Observation]]) -> Dict[K, Observation]:
    """Fold ``(key, observation)`` pairs into one merged Observation per key.

    Keys are returned in first-seen order. An incompatible pair under one key
    raises :class:`IncompatibleMerge` annotated with that key.
    """
    merged: Dict[K, Observation] = {}
    for key, obs in pairs:
        acc = merged.get(key)
        if acc is None:
            merged[key] = obs.duplicate()
            continue
        try:
            merged[key] = acc.merge_inplace(obs)
        except IncompatibleMerge as e:
            raise e.with_key(key) from e
    return merged


def group_by_site(pairs: Iterable[Tuple[K, Observation]]) -> Dict[K, List[Observation]]:
    """Collect observations per key, preserving first-seen key order."""
    groups: Dict[K, List[Observation]] = {}
    for key, obs in pairs:
        groups.setdefault(key, []).append(obs)
    return groups


STRATEGIES = ("fold", "tree", "chunked")


def merge_sites(
    pairs: Iterable[Tuple[K, Observation]],
    *,
    strategy: str = "fold",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int = 1,
) -> Dict[K, Observation]:
    """Merge keyed observations per key with the named reduction strategy.

    ``fold`` streams through the input; ``tree`` and ``chunked`` first collect
    each key's observations.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown merge strategy '{strategy}'. Choose from: {', '.join(STRATEGIES)}")
    if strategy == "fold":
        return reduce_by_site(pairs)

    merged: Dict[K, Observation] = {}
    for key, group in group_by_site(pairs).items():
        try:
            if strategy == "tree":
                merged[key] = tree_merge(group)
            else:
                merged[key] = merge_chunked(group, chunk_size=chunk_size, workers=workers)
        except IncompatibleMerge as e:
            raise e.with_key(key) from e
    return merged
