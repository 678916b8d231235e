"""Tests for ReconcileContext."""

import time

import pytest

from sentinel_cainjector import CanceledError, ReconcileContext


class TestReconcileContext:
    """Test cases for ReconcileContext."""

    def test_background_has_no_deadline(self):
        ctx = ReconcileContext.background()
        assert ctx.remaining() is None
        assert not ctx.canceled
        ctx.raise_if_canceled()

    def test_cancel(self):
        ctx = ReconcileContext(timeout=60)
        ctx.cancel()

        assert ctx.canceled
        with pytest.raises(CanceledError):
            ctx.raise_if_canceled()

    def test_deadline_expires(self):
        ctx = ReconcileContext(timeout=0)

        assert ctx.expired
        assert ctx.remaining() == 0.0
        with pytest.raises(CanceledError, match="deadline"):
            ctx.raise_if_canceled()

    def test_sleep_stops_at_deadline(self):
        ctx = ReconcileContext(timeout=0.05)
        start = time.monotonic()

        with pytest.raises(CanceledError):
            ctx.sleep(5)
        assert time.monotonic() - start < 1

    def test_sleep_without_cancellation(self):
        ctx = ReconcileContext(timeout=10)
        ctx.sleep(0.01)
        assert not ctx.canceled
