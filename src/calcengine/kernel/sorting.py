"""Chunked sort with a stable k-way merge.

Arrays below ``direct_threshold`` are sorted in one pass. Larger arrays are
cut into ``chunk_size`` slices, each slice is sorted on its own, and the
sorted slices are merged by repeatedly taking the smallest head. Equal
items keep their input order: chunk sorts are stable and merge ties go to
the earliest chunk.

Chunks are sorted sequentially. Cancellation and progress are checked
after every chunk and every ``chunk_size`` merged items.
"""

import heapq
from collections.abc import Callable, Sequence
from functools import cmp_to_key
from typing import Any

from calcengine.cancellation import CancelToken, check
from calcengine.kernel.rules import Comparator

#: Arrays shorter than this are sorted in a single pass.
DIRECT_SORT_THRESHOLD = 100_000

#: Items per independently sorted chunk.
CHUNK_SIZE = 10_000

ProgressCallback = Callable[[float], None]

# Share of reported progress spent on chunk sorting; the rest is the merge.
_SORT_PHASE_SHARE = 0.5


def _sorted(items: Sequence[Any], comparator: Comparator | None) -> list[Any]:
    if comparator is None:
        return sorted(items)
    return sorted(items, key=cmp_to_key(comparator))


def sort_large_array(
    items: Sequence[Any],
    comparator: Comparator | None = None,
    *,
    direct_threshold: int = DIRECT_SORT_THRESHOLD,
    chunk_size: int = CHUNK_SIZE,
    token: CancelToken | None = None,
    progress: ProgressCallback | None = None,
) -> list[Any]:
    """Return a new list holding ``items`` in comparator order.

    Args:
        items: Items to sort. Never mutated.
        comparator: Three-way ``(a, b) -> int``; None for natural ordering.
        direct_threshold: Length at which chunking starts.
        chunk_size: Items per chunk.
        token: Optional cancel token polled between chunks.
        progress: Optional callback receiving fractions in (0, 1].

    Raises:
        TaskCancelledError: If the token fires mid-sort.
    """
    check(token)
    if len(items) < direct_threshold:
        return _sorted(items, comparator)

    chunks: list[list[Any]] = []
    total_chunks = -(-len(items) // chunk_size)
    for start in range(0, len(items), chunk_size):
        chunks.append(_sorted(items[start : start + chunk_size], comparator))
        check(token)
        if progress is not None:
            progress(_SORT_PHASE_SHARE * len(chunks) / total_chunks)

    return merge_sorted_chunks(
        chunks, comparator, chunk_size=chunk_size, token=token, progress=progress
    )


def merge_sorted_chunks(
    chunks: list[list[Any]],
    comparator: Comparator | None = None,
    *,
    chunk_size: int = CHUNK_SIZE,
    token: CancelToken | None = None,
    progress: ProgressCallback | None = None,
) -> list[Any]:
    """k-way merge of individually sorted chunks.

    Ties are resolved in favour of the earlier chunk, so merging stable
    chunk sorts gives a stable overall sort.
    """
    if not chunks:
        return []
    if len(chunks) == 1:
        return list(chunks[0])

    key = cmp_to_key(comparator) if comparator is not None else None
    total = sum(len(chunk) for chunk in chunks)
    merged: list[Any] = []

    for item in heapq.merge(*chunks, key=key):
        merged.append(item)
        if len(merged) % chunk_size == 0:
            check(token)
            if progress is not None:
                progress(_SORT_PHASE_SHARE + (1 - _SORT_PHASE_SHARE) * len(merged) / total)

    if progress is not None and len(merged) % chunk_size:
        progress(1.0)
    return merged
