"""Status history resolution: when did an issue move into a given status.

The changelog is scanned in the order Jira returns it (chronological). Two
policies are supported and callers choose one explicitly:

* ``MOST_RECENT`` answers "did the issue reach this status within the window"
  (completion, moved to QA today); the last qualifying entry wins.
* ``FIRST_MATCH`` answers "when did the issue first enter this status/sprint"
  (scope analysis); the earliest qualifying entry wins.

When an issue is already in a target status but its changelog has no
qualifying entry (history trimmed, issue created directly in that status), the
``*_with_fallback`` helpers substitute the issue's updated or created
timestamp. That value is an approximation and is flagged ``approximate=True``.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

import pandas as pd
import pytz

from jira_reports.core.config import TIMEZONE
from jira_reports.core.mappers import parse_points
from jira_reports.core.models import HistoryItemModel, IssueModel
from jira_reports.core.status import status_in, status_key


class ResolutionPolicy(enum.Enum):
    MOST_RECENT = "most_recent"
    FIRST_MATCH = "first_match"


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    def __contains__(self, value: date) -> bool:
        return self.start <= value <= self.end


DateConstraint = date | DateRange


@dataclass(frozen=True, slots=True)
class TransitionFact:
    timestamp: datetime | None
    approximate: bool = False
    source: str = "history"

    @property
    def found(self) -> bool:
        return self.timestamp is not None


@dataclass(frozen=True, slots=True)
class PointChange:
    created: datetime
    author: str
    from_points: float
    to_points: float

    @property
    def increase(self) -> float:
        return self.to_points - self.from_points


def _tz(tz) -> pytz.BaseTzInfo:
    if tz is None:
        return pytz.timezone(TIMEZONE)
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def local_date(value: datetime | None, tz=None) -> date | None:
    """Calendar date of ``value`` in ``tz`` (naive datetimes are taken as UTC)."""
    if value is None or pd.isna(value):
        return None
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize(pytz.UTC)
    return ts.tz_convert(_tz(tz)).date()


def satisfies(value: datetime | None, constraint: DateConstraint | None, tz=None) -> bool:
    if constraint is None:
        return value is not None
    day = local_date(value, tz)
    if day is None:
        return False
    if isinstance(constraint, DateRange):
        return day in constraint
    return day == constraint


def resolve_transition(
    histories: Sequence[HistoryItemModel] | None,
    targets: Iterable[str],
    date_constraint: DateConstraint | None = None,
    policy: ResolutionPolicy = ResolutionPolicy.MOST_RECENT,
    *,
    field: str = "status",
    tz=None,
) -> datetime | None:
    """Timestamp of the qualifying transition into one of ``targets``, or ``None``.

    Only change items whose field equals ``field`` are inspected; their new
    value label is compared case-insensitively with each target.
    """
    if not histories:
        return None
    target_list = list(targets)
    field_key = field.lower()
    match: datetime | None = None
    for entry in histories:
        if entry.created is None:
            continue
        hit = any(
            (item.field or "").lower() == field_key and status_in(item.to_string, target_list)
            for item in entry.items
        )
        if not hit or not satisfies(entry.created, date_constraint, tz):
            continue
        if policy is ResolutionPolicy.FIRST_MATCH:
            return entry.created
        match = entry.created
    return match


def resolve_transition_with_fallback(
    issue: IssueModel,
    targets: Iterable[str],
    date_constraint: DateConstraint | None = None,
    policy: ResolutionPolicy = ResolutionPolicy.MOST_RECENT,
    *,
    fallback: str = "updated",
    tz=None,
) -> TransitionFact:
    """Like ``resolve_transition`` but falls back to an issue timestamp.

    The fallback only applies when the issue's current status is one of
    ``targets`` and its history holds no transition into them at all; it
    uses ``issue.updated`` (or ``issue.created`` when ``fallback="created"``)
    and the result is marked approximate.
    """
    target_list = list(targets)
    found = resolve_transition(issue.histories, target_list, date_constraint, policy, tz=tz)
    if found is not None:
        return TransitionFact(found)
    if not status_in(issue.status, target_list):
        return TransitionFact(None)
    if date_constraint is not None and resolve_transition(issue.histories, target_list, tz=tz) is not None:
        return TransitionFact(None)
    stamp = issue.created if fallback == "created" else (issue.updated or issue.created)
    if stamp is None or not satisfies(stamp, date_constraint, tz):
        return TransitionFact(None)
    return TransitionFact(stamp, approximate=True, source=fallback)


def matched_status(
    histories: Sequence[HistoryItemModel] | None,
    targets: Iterable[str],
    date_constraint: DateConstraint | None = None,
    *,
    tz=None,
) -> str | None:
    """The status label of the most recent qualifying transition (as written in Jira)."""
    target_list = list(targets)
    label = None
    for entry in histories or []:
        if not satisfies(entry.created, date_constraint, tz):
            continue
        for item in entry.items:
            if (item.field or "").lower() == "status" and status_in(item.to_string, target_list):
                label = item.to_string
    return label


def last_status_change(histories: Sequence[HistoryItemModel] | None) -> datetime | None:
    """Most recent status change of any value."""
    latest = None
    for entry in histories or []:
        if entry.created is None:
            continue
        if any((item.field or "").lower() == "status" for item in entry.items):
            if latest is None or entry.created > latest:
                latest = entry.created
    return latest


def resolve_sprint_addition(
    issue: IssueModel,
    sprint_name: str,
    *,
    sprint_field_id: str | None = None,
) -> TransitionFact:
    """When ``issue`` was first added to ``sprint_name``.

    Sprint changes list every sprint the issue belongs to in one comma-joined
    label, so containment rather than equality is tested. Without a matching
    entry the creation timestamp is returned, flagged approximate.
    """
    wanted = status_key(sprint_name)
    for entry in issue.histories:
        if entry.created is None:
            continue
        for item in entry.items:
            is_sprint = (item.field or "").lower() == "sprint" or (
                sprint_field_id is not None and item.field_id == sprint_field_id
            )
            if is_sprint and wanted and wanted in status_key(item.to_string):
                return TransitionFact(entry.created)
    return TransitionFact(issue.created, approximate=True, source="created")


def story_point_changes(
    histories: Sequence[HistoryItemModel] | None,
    field_id: str | None = None,
) -> list[PointChange]:
    changes: list[PointChange] = []
    for entry in histories or []:
        if entry.created is None:
            continue
        for item in entry.items:
            name = (item.field or "").lower()
            if name in {"story points", "story point estimate"} or (field_id and item.field_id == field_id):
                changes.append(
                    PointChange(
                        created=entry.created,
                        author=entry.author or "Unknown",
                        from_points=parse_points(item.from_string) or 0.0,
                        to_points=parse_points(item.to_string) or 0.0,
                    )
                )
    return changes


def hours_between(start: datetime | None, end: datetime) -> float | None:
    if start is None:
        return None
    return (end - start).total_seconds() / 3600.0
