"""Order-preserving filter over large datasets."""

from collections.abc import Sequence
from typing import Any

from calcengine.cancellation import CancelToken, check
from calcengine.kernel.rules import Predicate

#: Items scanned between cancellation checks.
CHECK_INTERVAL = 10_000


def filter_large_dataset(
    items: Sequence[Any],
    predicate: Predicate,
    *,
    token: CancelToken | None = None,
) -> list[Any]:
    """Return the items for which ``predicate(item, index)`` is truthy, in input order."""
    result: list[Any] = []
    for index, item in enumerate(items):
        if index % CHECK_INTERVAL == 0:
            check(token)
        if predicate(item, index):
            result.append(item)
    return result
