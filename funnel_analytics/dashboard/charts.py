"""
Chart series built from summaries and step statistics.

Plain data only; drawing is left to whatever front end consumes them.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import AnalyticsSummary, StepStats

PALETTE = ("#0088FE", "#00C49F", "#FFBB28", "#FF8042", "#8884D8")

COMPLETED_COLOR = "#00C49F"
ABANDONED_COLOR = "#FF8042"
IN_PROGRESS_COLOR = "#FFBB28"


@dataclass(frozen=True)
class ChartDataPoint:
    name: str
    value: float
    color: str


@dataclass(frozen=True)
class StepChartData:
    name: str
    entrances: int
    exits: int
    drop_off_rate: float
    avg_time: float


@dataclass(frozen=True)
class TimeSeriesPoint:
    date: str
    sessions: int
    completed: int
    abandoned: int


def status_chart_data(summary: AnalyticsSummary | None) -> list[ChartDataPoint]:
    """Completed / Abandoned / In Progress split of a summary."""
    if summary is None:
        return []
    return [
        ChartDataPoint("Completed", summary.completed_sessions, COMPLETED_COLOR),
        ChartDataPoint("Abandoned", summary.abandoned_sessions, ABANDONED_COLOR),
        ChartDataPoint("In Progress", summary.in_progress_sessions, IN_PROGRESS_COLOR),
    ]


def step_chart_data(stats: list[StepStats]) -> list[StepChartData]:
    return [
        StepChartData(
            name=s.step_name,
            entrances=s.entrances,
            exits=s.exits,
            drop_off_rate=s.drop_off_rate,
            avg_time=s.average_time_spent,
        )
        for s in stats
    ]


def device_chart_data(desktop: int, mobile: int, tablet: int) -> list[ChartDataPoint]:
    return [
        ChartDataPoint("Desktop", desktop, PALETTE[0]),
        ChartDataPoint("Mobile", mobile, PALETTE[1]),
        ChartDataPoint("Tablet", tablet, PALETTE[2]),
    ]
