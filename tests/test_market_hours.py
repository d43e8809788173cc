"""Tests for market hours."""

from datetime import datetime, timedelta, timezone

import pytest

from venueswap.cross_chain.market_hours import (
    format_duration,
    get_market_status,
    is_market_open,
    time_until_close,
    time_until_open,
)


def utc(day: int, hour: int, minute: int = 0) -> datetime:
    """January 2025: the 13th is a Monday."""
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


class TestIsMarketOpen:
    """Tests for the trading window."""

    @pytest.mark.parametrize(
        "now,expected",
        [
            (utc(15, 14, 29), False),
            (utc(15, 14, 30), True),
            (utc(15, 18, 0), True),
            (utc(15, 21, 0), True),
            (utc(15, 21, 1), False),
            (utc(18, 16, 0), False),
            (utc(19, 16, 0), False),
        ],
    )
    def test_window(self, now, expected):
        """Test weekday window boundaries are inclusive and weekends closed."""
        assert is_market_open(now) is expected

    def test_naive_datetime_is_utc(self):
        """Test naive datetimes are read as UTC."""
        assert is_market_open(datetime(2025, 1, 15, 15, 0)) is True

    def test_other_timezone_is_converted(self):
        """Test aware datetimes are converted to UTC first."""
        new_york = timezone(timedelta(hours=-5))

        # 10:00 in New York is 15:00 UTC
        assert is_market_open(datetime(2025, 1, 15, 10, 0, tzinfo=new_york)) is True


class TestCountdowns:
    """Tests for time until open and close."""

    def test_before_open_same_day(self):
        """Test the countdown before the open on a weekday."""
        assert time_until_open(utc(15, 10, 0)) == timedelta(hours=4, minutes=30)

    def test_after_close_friday(self):
        """Test Friday evening counts down to Monday."""
        assert time_until_open(utc(17, 22, 0)) == timedelta(days=2, hours=16, minutes=30)

    def test_saturday(self):
        """Test Saturday counts down to Monday."""
        assert time_until_open(utc(18, 10, 0)) == timedelta(days=2, hours=4, minutes=30)

    def test_sunday(self):
        """Test Sunday counts down to Monday."""
        assert time_until_open(utc(19, 16, 0)) == timedelta(hours=22, minutes=30)

    def test_zero_while_open(self):
        """Test no wait while the market is open."""
        assert time_until_open(utc(15, 16, 0)) == timedelta(0)

    def test_until_close(self):
        """Test the countdown to today's close."""
        assert time_until_close(utc(15, 16, 0)) == timedelta(hours=5)
        assert time_until_close(utc(18, 16, 0)) == timedelta(0)


class TestMarketStatus:
    """Tests for the status message."""

    def test_format_duration(self):
        """Test hours and minutes formatting."""
        assert format_duration(timedelta(hours=2, minutes=5)) == "2h 5m"
        assert format_duration(timedelta(days=1, minutes=30)) == "24h 30m"

    def test_open_message(self):
        """Test the open message includes the time to close."""
        status = get_market_status(utc(15, 16, 0))

        assert status.is_open is True
        assert status.message == "Market is open. Closes in 5h 0m"

    def test_closed_message(self):
        """Test the closed message includes the time to open."""
        status = get_market_status(utc(15, 10, 0))

        assert status.is_open is False
        assert status.message == "Market is closed. Opens in 4h 30m"
