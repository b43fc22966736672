"""Computation kernel: pure, stateless functions over in-memory data.

No I/O and no shared state. Each function works on its own copy of the
input and returns fresh output.
"""

from calcengine.kernel.aggregation import aggregate_price_data
from calcengine.kernel.filtering import filter_large_dataset
from calcengine.kernel.indicators import (
    calculate_bollinger_bands,
    calculate_ma,
    calculate_rsi,
)
from calcengine.kernel.rules import build_comparator, build_predicate
from calcengine.kernel.series import SharedSeries, share_series, to_series
from calcengine.kernel.sorting import merge_sorted_chunks, sort_large_array

__all__ = [
    "SharedSeries",
    "aggregate_price_data",
    "build_comparator",
    "build_predicate",
    "calculate_bollinger_bands",
    "calculate_ma",
    "calculate_rsi",
    "filter_large_dataset",
    "merge_sorted_chunks",
    "share_series",
    "sort_large_array",
    "to_series",
]
