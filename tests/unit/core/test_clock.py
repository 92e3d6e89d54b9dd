"""Tests for the UTC clock helpers."""

from datetime import datetime, timezone

import pytest

from componentos.core.time import (
    format_epoch_ms,
    from_epoch_ms,
    to_epoch_ms,
    to_iso_z,
    utc_now_iso,
    utc_now_ms,
)


class TestClock:
    """Epoch milliseconds and formatting."""

    def test_epoch_ms_round_trip(self):
        moment = datetime(2026, 1, 31, 12, 34, 56, 789000, tzinfo=timezone.utc)

        ms = to_epoch_ms(moment)

        assert ms == 1769862896789
        assert from_epoch_ms(ms) == moment

    def test_naive_datetime_rejected(self):
        with pytest.raises(ValueError):
            to_epoch_ms(datetime(2026, 1, 31))

    def test_format_epoch_ms(self):
        assert format_epoch_ms(1769862896789) == "2026-01-31 12:34:56 UTC"

    def test_iso_z(self):
        moment = datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)

        assert to_iso_z(moment) == "2026-01-31T12:00:00.000000Z"
        assert utc_now_iso().endswith("Z")

    def test_now_is_monotonic_enough(self):
        first = utc_now_ms()
        assert utc_now_ms() >= first
