"""
Rate calculations and display formatting helpers.

Shared by the query layer (rates) and the dashboard views (formatting,
date windows, generic sort and group helpers).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

T = TypeVar("T")


def get_conversion_rate(completed: int, total: int) -> float:
    """Percentage of sessions that completed; 0 when there are none."""
    if total == 0:
        return 0.0
    return (completed / total) * 100


def get_drop_off_rate(exits: int, entrances: int) -> float:
    """Percentage of step entrances that ended in an exit; 0 without entrances."""
    if entrances == 0:
        return 0.0
    return (exits / entrances) * 100


def calculate_percent_change(current: float, previous: float) -> float:
    """Relative change from previous to current, in percent.

    From zero, any growth counts as 100% and no growth as 0%.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return ((current - previous) / previous) * 100


def format_time(seconds: float) -> str:
    """Format a duration: ``45s``, ``2m 5s``, ``1h 2m``."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"

    minutes, remaining_seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s"

    hours, remaining_minutes = divmod(minutes, 60)
    return f"{hours}h {remaining_minutes}m"


def format_date(value: datetime) -> str:
    """Format as ``Mar 5, 2025 14:07``."""
    return f"{value:%b} {value.day}, {value:%Y %H:%M}"


def format_date_short(value: datetime) -> str:
    """Format as ``Mar 5``."""
    return f"{value:%b} {value.day}"


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def generate_date_range(days: int, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return ``(now - days, now)``."""
    end = now or datetime.now(UTC)
    return end - timedelta(days=days), end


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def sort_by(items: Iterable[T], key: Callable[[T], Any], descending: bool = False) -> list[T]:
    """Stable sort returning a new list."""
    return sorted(items, key=key, reverse=descending)


def group_by(items: Iterable[T], key: Callable[[T], Any]) -> dict[str, list[T]]:
    """Group items by the string form of ``key(item)``, preserving order."""
    groups: dict[str, list[T]] = {}
    for item in items:
        groups.setdefault(str(key(item)), []).append(item)
    return groups
