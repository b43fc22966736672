"""Tests for the order-preserving filter."""

import pytest

from calcengine.cancellation import CancelToken
from calcengine.exceptions import TaskCancelledError
from calcengine.kernel.filtering import filter_large_dataset
from calcengine.kernel.rules import build_predicate


class TestFilterLargeDataset:
    """Tests for filter_large_dataset."""

    def test_keeps_matching_items_in_order(self) -> None:
        """Matching items keep their original order."""
        data = [5, 1, 8, 3, 9, 2]
        assert filter_large_dataset(data, lambda item, index: item > 2) == [5, 8, 3, 9]

    def test_predicate_receives_index(self) -> None:
        """The predicate receives each item's index."""
        data = ["a", "b", "c", "d"]
        assert filter_large_dataset(data, lambda item, index: index % 2 == 1) == ["b", "d"]

    def test_no_matches(self) -> None:
        """No matches yield an empty list."""
        assert filter_large_dataset([1, 2, 3], lambda item, index: False) == []

    def test_empty_input(self) -> None:
        """Empty input yields an empty list."""
        assert filter_large_dataset([], lambda item, index: True) == []

    def test_duplicates_preserved_exactly(self) -> None:
        """Duplicate items are all kept."""
        data = [2, 2, 1, 2]
        assert filter_large_dataset(data, lambda item, index: item == 2) == [2, 2, 2]

    def test_matches_list_comprehension_on_large_input(self) -> None:
        """Output equals a plain comprehension across checkpoints."""
        data = list(range(25_000))
        pred = build_predicate({"op": "every_nth", "step": 7, "offset": 3})
        expected = [x for i, x in enumerate(data) if i >= 3 and (i - 3) % 7 == 0]
        assert filter_large_dataset(data, pred) == expected

    def test_with_spec_predicate_on_records(self) -> None:
        """Spec predicates filter records by field."""
        data = [{"price": 10}, {"price": 20}, {"price": 30}]
        pred = build_predicate({"op": "gte", "field": "price", "value": 20})
        assert filter_large_dataset(data, pred) == [{"price": 20}, {"price": 30}]

    def test_cancelled_token_aborts(self) -> None:
        """A cancelled token aborts the filter."""
        token = CancelToken()
        token.cancel()
        with pytest.raises(TaskCancelledError):
            filter_large_dataset([1, 2, 3], lambda item, index: True, token=token)
