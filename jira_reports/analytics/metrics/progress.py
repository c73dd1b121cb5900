"""Day-by-day sprint burn: points completed per calendar day since sprint start."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

import pandas as pd

from jira_reports.core.config import ReportConfig
from jira_reports.core.models import NormalizedIssue

from .history import ResolutionPolicy, local_date, resolve_transition_with_fallback
from .points import format_points
from .velocity import round_half_up


@dataclass(frozen=True, slots=True)
class CompletedIssue:
    record: NormalizedIssue
    completed_on: date
    approximate: bool = False


@dataclass(frozen=True, slots=True)
class DailyProgress:
    day: date
    completed_today: float
    cumulative_completed: float
    remaining: float
    percent_complete: float

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "completedToday": format_points(self.completed_today),
            "cumulativeCompleted": format_points(self.cumulative_completed),
            "remaining": format_points(self.remaining),
            "percentComplete": self.percent_complete,
        }


def completion_dates(
    records: Iterable[NormalizedIssue],
    config: ReportConfig,
) -> list[CompletedIssue]:
    """Completion day for every record currently in a completed status.

    The most recent transition into a completed status wins; issues with no
    such transition fall back to their updated date and are flagged approximate.
    """
    out: list[CompletedIssue] = []
    for rec in records:
        fact = resolve_transition_with_fallback(
            rec.issue,
            config.completed_statuses,
            policy=ResolutionPolicy.MOST_RECENT,
            tz=config.timezone,
        )
        if not fact.found:
            continue
        out.append(CompletedIssue(rec, local_date(fact.timestamp, config.timezone), fact.approximate))
    return out


def daily_progress(
    records: Iterable[NormalizedIssue],
    sprint_start: date,
    today: date,
    config: ReportConfig,
) -> list[DailyProgress]:
    """One row per calendar day from ``sprint_start`` to ``today`` inclusive.

    Points completed before the sprint started are folded into the first day.
    """
    records = list(records)
    total = float(sum(r.points for r in records))
    if today < sprint_start:
        return []
    done = completion_dates(records, config)
    per_day = (
        pd.Series(
            [c.record.points for c in done],
            index=[max(c.completed_on, sprint_start) for c in done],
            dtype="float64",
        )
        .groupby(level=0)
        .sum()
    )

    rows: list[DailyProgress] = []
    cumulative = 0.0
    day = sprint_start
    while day <= today:
        completed = float(per_day.get(day, 0.0))
        cumulative += completed
        pct = round_half_up(cumulative / total * 100, 1) if total else 0.0
        rows.append(DailyProgress(day, completed, cumulative, total - cumulative, pct))
        day += timedelta(days=1)
    return rows
