"""Tests for CancelToken."""

import time

import pytest

from calcengine.cancellation import CancelToken, check
from calcengine.exceptions import TaskCancelledError


class TestCancelToken:
    """Tests for CancelToken."""

    def test_fresh_token_not_cancelled(self) -> None:
        """A new token without a deadline is not cancelled."""
        token = CancelToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_sets_flag(self) -> None:
        """cancel() flips the flag and raise_if_cancelled raises."""
        token = CancelToken()
        token.cancel()
        assert token.cancelled is True
        with pytest.raises(TaskCancelledError, match="Task was cancelled"):
            token.raise_if_cancelled()

    def test_cancel_is_idempotent_and_keeps_first_reason(self) -> None:
        """Repeated cancels keep the first reason."""
        token = CancelToken()
        token.cancel("first")
        token.cancel("second")
        with pytest.raises(TaskCancelledError, match="first"):
            token.raise_if_cancelled()

    def test_deadline_expires(self) -> None:
        """A passed deadline reads as cancelled with a timeout reason."""
        token = CancelToken(timeout=0.01)
        time.sleep(0.03)
        assert token.cancelled is True
        with pytest.raises(TaskCancelledError, match="timed out"):
            token.raise_if_cancelled()

    def test_generous_deadline_not_expired(self) -> None:
        """A far deadline does not cancel the token."""
        assert CancelToken(timeout=60).cancelled is False

    def test_check_accepts_none(self) -> None:
        """check(None) is a no-op."""
        check(None)
