"""Sprint scope change analysis: initial scope, mid-sprint additions and point increases."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from jira_reports.core.config import ReportConfig
from jira_reports.core.models import NormalizedIssue
from jira_reports.core.status import is_completed

from .history import PointChange, TransitionFact, resolve_sprint_addition, story_point_changes
from .points import format_points


@dataclass(slots=True)
class ScopedIssue:
    record: NormalizedIssue
    added: TransitionFact
    added_after_start: bool = False

    def to_dict(self) -> dict:
        return {
            "key": self.record.key,
            "summary": self.record.issue.summary,
            "type": self.record.issuetype,
            "status": self.record.status,
            "points": format_points(self.record.points),
            "addedDate": self.added.timestamp.isoformat() if self.added.timestamp else None,
            "addedDateApproximate": self.added.approximate,
        }


@dataclass(slots=True)
class PointIncrease:
    key: str
    summary: str
    change: PointChange

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "summary": self.summary,
            "changeDate": self.change.created.isoformat(),
            "author": self.change.author,
            "fromPoints": format_points(self.change.from_points),
            "toPoints": format_points(self.change.to_points),
            "increase": format_points(self.change.increase),
        }


@dataclass(slots=True)
class ScopeAnalysis:
    initial: list[ScopedIssue] = field(default_factory=list)
    added: list[ScopedIssue] = field(default_factory=list)
    increases: list[PointIncrease] = field(default_factory=list)
    completed: list[NormalizedIssue] = field(default_factory=list)
    remaining: list[NormalizedIssue] = field(default_factory=list)

    @property
    def initial_points(self) -> float:
        return sum(s.record.points for s in self.initial)

    @property
    def added_points(self) -> float:
        return sum(s.record.points for s in self.added)

    @property
    def increased_points(self) -> float:
        return sum(i.change.increase for i in self.increases)

    @property
    def total_current_points(self) -> float:
        return self.initial_points + self.added_points + self.increased_points

    @property
    def completed_points(self) -> float:
        return sum(r.points for r in self.completed)

    @property
    def remaining_points(self) -> float:
        return sum(r.points for r in self.remaining)

    @property
    def scope_increase_percent(self) -> int:
        """Added plus increased points relative to the initial scope (0 with no initial scope)."""
        if not self.initial_points:
            return 0
        return int((self.added_points + self.increased_points) / self.initial_points * 100 + 0.5)

    @property
    def progress_percent(self) -> int:
        if not self.total_current_points:
            return 0
        return int(self.completed_points / self.total_current_points * 100 + 0.5)


def analyze_scope(
    records: Iterable[NormalizedIssue],
    sprint_name: str,
    sprint_start: datetime,
    config: ReportConfig,
    *,
    sprint_field_id: str | None = None,
    story_points_field_id: str | None = None,
) -> ScopeAnalysis:
    """Split the sprint's issues by when they joined it and collect point increases.

    An issue joins the initial scope when it was added (first match on the
    sprint field) on or before ``sprint_start``. Point increases only count
    changes made on or after ``sprint_start`` that raised the estimate.
    """
    out = ScopeAnalysis()
    for rec in records:
        added = resolve_sprint_addition(rec.issue, sprint_name, sprint_field_id=sprint_field_id)
        late = added.timestamp is not None and added.timestamp > sprint_start
        scoped = ScopedIssue(rec, added, added_after_start=late)
        if late:
            out.added.append(scoped)
        else:
            out.initial.append(scoped)

        for change in story_point_changes(rec.issue.histories, story_points_field_id):
            if change.created >= sprint_start and change.increase > 0:
                out.increases.append(PointIncrease(rec.key, rec.issue.summary or "", change))

        if is_completed(rec.status, config):
            out.completed.append(rec)
        else:
            out.remaining.append(rec)

    out.added.sort(key=lambda s: s.added.timestamp or sprint_start)
    out.increases.sort(key=lambda i: i.change.created)
    return out
