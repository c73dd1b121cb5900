"""Group normalized issues into count/point buckets along one dimension."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

import pandas as pd

from jira_reports.analytics.metrics.points import format_points
from jira_reports.core.models import NormalizedIssue

KeyFunc = Callable[[NormalizedIssue], str]


@dataclass(slots=True)
class Bucket:
    key: str
    count: int
    points: float
    defaulted_points: float = 0.0
    percent_of_total: float = 0.0
    label: str | None = None

    def percent_of(self, total: float) -> float:
        if not total:
            return 0.0
        return round(self.points / total * 100, 1)

    def to_dict(self) -> dict:
        out = {
            "key": self.key,
            "count": self.count,
            "points": format_points(self.points),
            "defaultedPoints": format_points(self.defaulted_points),
            "percentOfTotal": self.percent_of_total,
        }
        if self.label is not None:
            out["label"] = self.label
        return out


def _key_func(key: str | KeyFunc) -> KeyFunc:
    if callable(key):
        return key
    return lambda rec: str(getattr(rec, key))


def _frame(records: Iterable[NormalizedIssue], key: str | KeyFunc) -> pd.DataFrame:
    fn = _key_func(key)
    rows = [
        {
            "bucket": fn(r) or "Unknown",
            "key": r.key,
            "points": float(r.points),
            "defaulted_points": float(r.points) if r.defaulted else 0.0,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=["bucket", "key", "points", "defaulted_points"])


def aggregate(
    records: Iterable[NormalizedIssue],
    key: str | KeyFunc,
    *,
    total: float | None = None,
    order: Sequence[str] | None = None,
) -> list[Bucket]:
    """One bucket per distinct key with count, points and share of ``total``.

    ``total`` defaults to the points of ``records``. Buckets sort by points
    descending, ties by key; pass ``order`` to force a fixed display order
    (keys not listed follow in the default order).
    """
    df = _frame(records, key)
    if df.empty:
        return []
    agg = (
        df.groupby("bucket", sort=False)
        .agg(
            issues=("key", "count"),
            points=("points", "sum"),
            defaulted_points=("defaulted_points", "sum"),
        )
        .reset_index()
        .sort_values(by=["points", "bucket"], ascending=[False, True], kind="mergesort")
    )
    grand_total = float(df["points"].sum()) if total is None else float(total)
    buckets = [
        Bucket(
            key=str(row.bucket),
            count=int(row.issues),
            points=float(row.points),
            defaulted_points=float(row.defaulted_points),
        )
        for row in agg.itertuples(index=False)
    ]
    for b in buckets:
        b.percent_of_total = b.percent_of(grand_total)
    if order:
        rank = {name: i for i, name in enumerate(order)}
        buckets.sort(key=lambda b: rank.get(b.key, len(rank)))
    return buckets


def aggregate_by_category(records: Iterable[NormalizedIssue], categories: Sequence[str] | None = None) -> list[Bucket]:
    """Buckets per status category, optionally including empty categories in ``categories`` order."""
    records = list(records)
    buckets = aggregate(records, "category")
    if categories:
        present = {b.key for b in buckets}
        for name in categories:
            if name not in present:
                buckets.append(Bucket(key=name, count=0, points=0.0))
        rank = {name: i for i, name in enumerate(categories)}
        buckets.sort(key=lambda b: rank.get(b.key, len(rank)))
    return buckets


def aggregate_by_assignee(records: Iterable[NormalizedIssue]) -> list[Bucket]:
    """Buckets keyed on account id (stable across display-name changes), labelled by name."""
    records = list(records)
    names = {r.assignee_id: r.assignee for r in records}
    buckets = aggregate(records, "assignee_id")
    for b in buckets:
        b.label = names.get(b.key, b.key)
    return buckets


def aggregate_by_type(records: Iterable[NormalizedIssue]) -> list[Bucket]:
    return aggregate(records, "issuetype")


def aggregate_by_team(records: Iterable[NormalizedIssue]) -> list[Bucket]:
    return aggregate(records, "team")


def aggregate_by_fix_version(records: Iterable[NormalizedIssue]) -> list[Bucket]:
    return aggregate(records, "fix_version")


@dataclass(slots=True)
class CompletionRow:
    key: str
    label: str
    total_issues: int
    total_points: float
    completed_issues: int
    completed_points: float

    @property
    def percent_complete(self) -> int:
        if not self.total_points:
            return 0
        return int(self.completed_points / self.total_points * 100 + 0.5)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "name": self.label,
            "totalIssues": self.total_issues,
            "totalPoints": format_points(self.total_points),
            "completedIssues": self.completed_issues,
            "completedPoints": format_points(self.completed_points),
            "percentComplete": self.percent_complete,
        }


def completion_breakdown(
    records: Iterable[NormalizedIssue],
    key: str | KeyFunc,
    is_complete: Callable[[NormalizedIssue], bool],
    *,
    label: KeyFunc | None = None,
) -> list[CompletionRow]:
    """Per-key totals next to the completed subset, sorted by total points descending."""
    records = list(records)
    fn = _key_func(key)
    totals = {b.key: b for b in aggregate(records, fn)}
    done = {b.key: b for b in aggregate([r for r in records if is_complete(r)], fn)}
    labels = {fn(r): (label(r) if label else fn(r)) for r in records}
    rows = [
        CompletionRow(
            key=k,
            label=labels.get(k, k),
            total_issues=b.count,
            total_points=b.points,
            completed_issues=done[k].count if k in done else 0,
            completed_points=done[k].points if k in done else 0.0,
        )
        for k, b in totals.items()
    ]
    return rows


@dataclass(slots=True)
class PointSummary:
    issue_count: int
    total_points: float
    measured_points: float
    assumed_points: float
    defaulted_count: int

    def to_dict(self) -> dict:
        return {
            "issueCount": self.issue_count,
            "totalPoints": format_points(self.total_points),
            "measuredPoints": format_points(self.measured_points),
            "assumedPoints": format_points(self.assumed_points),
            "defaultedIssues": self.defaulted_count,
        }


def summarize(records: Iterable[NormalizedIssue]) -> PointSummary:
    records = list(records)
    assumed = sum(r.points for r in records if r.defaulted)
    total = sum(r.points for r in records)
    return PointSummary(
        issue_count=len(records),
        total_points=total,
        measured_points=total - assumed,
        assumed_points=assumed,
        defaulted_count=sum(1 for r in records if r.defaulted),
    )
