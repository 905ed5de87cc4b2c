"""Tests for rate calculations and formatting helpers."""

from datetime import UTC, datetime, timedelta

import pytest

from funnel_analytics.metrics import (
    calculate_percent_change,
    end_of_day,
    format_date,
    format_date_short,
    format_time,
    generate_date_range,
    get_conversion_rate,
    get_drop_off_rate,
    group_by,
    sort_by,
    start_of_day,
    truncate_text,
)


class TestRates:
    """Tests for conversion and drop-off rates."""

    def test_conversion_rate_without_sessions_is_zero(self) -> None:
        assert get_conversion_rate(0, 0) == 0

    def test_conversion_rate_half(self) -> None:
        assert get_conversion_rate(5, 10) == 50

    def test_drop_off_rate_without_entrances_is_zero(self) -> None:
        assert get_drop_off_rate(3, 0) == 0

    @pytest.mark.parametrize(
        ("exits", "entrances", "expected"),
        [(0, 4, 0.0), (1, 4, 25.0), (4, 4, 100.0), (3, 2, 150.0)],
    )
    def test_drop_off_rate(self, exits: int, entrances: int, expected: float) -> None:
        assert get_drop_off_rate(exits, entrances) == pytest.approx(expected)

    def test_percent_change_from_zero(self) -> None:
        assert calculate_percent_change(5, 0) == 100
        assert calculate_percent_change(0, 0) == 0

    def test_percent_change(self) -> None:
        assert calculate_percent_change(15, 10) == pytest.approx(50.0)
        assert calculate_percent_change(5, 10) == pytest.approx(-50.0)


class TestFormatTime:
    """Tests for duration formatting."""

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (0, "0s"),
            (45, "45s"),
            (59, "59s"),
            (60, "1m 0s"),
            (125, "2m 5s"),
            (3599, "59m 59s"),
            (3600, "1h 0m"),
            (3725, "1h 2m"),
        ],
    )
    def test_format_time(self, seconds: int, expected: str) -> None:
        assert format_time(seconds) == expected

    def test_fractional_seconds_are_truncated(self) -> None:
        assert format_time(45.9) == "45s"


class TestDates:
    """Tests for date formatting and windows."""

    def test_format_date(self) -> None:
        assert format_date(datetime(2025, 3, 5, 14, 7)) == "Mar 5, 2025 14:07"

    def test_format_date_short(self) -> None:
        assert format_date_short(datetime(2025, 11, 21)) == "Nov 21"

    def test_day_bounds(self) -> None:
        moment = datetime(2025, 3, 5, 14, 7, 30, tzinfo=UTC)
        assert start_of_day(moment) == datetime(2025, 3, 5, tzinfo=UTC)
        assert end_of_day(moment) == datetime(2025, 3, 5, 23, 59, 59, 999000, tzinfo=UTC)

    def test_generate_date_range(self) -> None:
        now = datetime(2025, 3, 10, tzinfo=UTC)
        start, end = generate_date_range(7, now)
        assert end == now
        assert end - start == timedelta(days=7)


class TestCollections:
    """Tests for generic helpers."""

    def test_truncate_text(self) -> None:
        assert truncate_text("short", 10) == "short"
        assert truncate_text("a longer string", 8) == "a longer..."

    def test_sort_by_is_stable_and_copies(self) -> None:
        items = [("b", 2), ("a", 1), ("c", 2)]
        result = sort_by(items, key=lambda i: i[1])
        assert result == [("a", 1), ("b", 2), ("c", 2)]
        assert items[0] == ("b", 2)

        assert sort_by(items, key=lambda i: i[0], descending=True)[0] == ("c", 2)

    def test_group_by_stringifies_keys(self) -> None:
        groups = group_by([1, 2, 3, 4], key=lambda n: n % 2 == 0)
        assert groups == {"False": [1, 3], "True": [2, 4]}
