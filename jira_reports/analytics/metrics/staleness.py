"""Time-in-status and stale issue detection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

import pandas as pd

from jira_reports.core.config import ReportConfig
from jira_reports.core.models import NormalizedIssue
from jira_reports.core.status import is_completed

from .history import hours_between, last_status_change
from .points import format_points
from .velocity import round_whole


@dataclass(frozen=True, slots=True)
class StatusAge:
    record: NormalizedIssue
    last_change: datetime | None
    hours_in_status: float | None
    stale: bool

    def to_dict(self) -> dict:
        return {
            "key": self.record.key,
            "summary": self.record.issue.summary,
            "type": self.record.issuetype,
            "status": self.record.status,
            "points": format_points(self.record.points),
            "priority": self.record.issue.priority or "None",
            "assignee": self.record.assignee,
            "lastStatusChange": self.last_change.isoformat() if self.last_change else None,
            "hoursInStatus": round(self.hours_in_status, 1) if self.hours_in_status is not None else None,
            "timeInStatus": format_duration(self.hours_in_status),
            "isStale": self.stale,
        }


def format_duration(hours: float | None) -> str:
    if hours is None:
        return "Unknown"
    total = round_whole(hours)
    if total < 24:
        return f"{total} hours"
    days, rest = divmod(total, 24)
    return f"{days} days" if rest == 0 else f"{days} days {rest} hours"


def status_ages(
    records: Iterable[NormalizedIssue],
    now: datetime,
    config: ReportConfig,
) -> list[StatusAge]:
    """Hours since the last status change for every active (non-completed) record.

    A record without any status change in its history counts as stale, since
    its age cannot be determined.
    """
    out: list[StatusAge] = []
    for rec in records:
        if is_completed(rec.status, config):
            continue
        changed = last_status_change(rec.issue.histories)
        hours = hours_between(changed, now)
        stale = True if hours is None else hours > config.stale_threshold_hours
        out.append(StatusAge(rec, changed, hours, stale))
    return out


def compute_stale(ages: Iterable[StatusAge]) -> list[StatusAge]:
    """Stale entries sorted longest-in-status first (unknown ages last)."""
    stale = [a for a in ages if a.stale]
    if not stale:
        return []
    order = (
        pd.Series([a.hours_in_status for a in stale], dtype="float64")
        .fillna(0)
        .sort_values(ascending=False, kind="mergesort")
        .index
    )
    return [stale[i] for i in order]
