"""Helpers shared by the report builders."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

import pytz

from jira_reports.analytics.aggregations.buckets import aggregate_by_type
from jira_reports.analytics.metrics.points import format_points
from jira_reports.core.mappers import parse_dt
from jira_reports.core.models import NormalizedIssue
from jira_reports.core.service import FetchResult, IssueService


def local_now(tz: str, now: datetime | None = None) -> datetime:
    zone = pytz.timezone(tz)
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        return zone.localize(now)
    return now.astimezone(zone)


def report_header(name: str, service: IssueService, now: datetime, **extra) -> dict:
    out = {
        "report": name,
        "generatedAt": now.isoformat(),
        "date": now.date().isoformat(),
        "project": service.config.project_key,
    }
    out.update(extra)
    return out


def fetch_records(
    service: IssueService,
    jql: str,
    *,
    expand_changelog: bool = False,
) -> tuple[list[NormalizedIssue], FetchResult]:
    result = service.fetch_issues(jql, expand_changelog=expand_changelog)
    return service.normalize(result.issues), result


def fetch_summary(*results: FetchResult) -> dict:
    """Search/fetch counts and accumulated warnings of one or more fetches."""
    return {
        "searched": sum(r.searched for r in results),
        "fetched": sum(len(r.issues) for r in results),
        "skipped": [key for r in results for key in r.skipped],
    }


def collect_warnings(*results: FetchResult) -> list[str]:
    return [w for r in results for w in r.warnings]


def issue_row(rec: NormalizedIssue, **extra) -> dict:
    row = {
        "key": rec.key,
        "summary": rec.issue.summary or "",
        "type": rec.issuetype,
        "status": rec.status,
        "category": rec.category,
        "points": format_points(rec.points),
        "defaulted": rec.defaulted,
        "assignee": rec.assignee,
        "priority": rec.issue.priority or "None",
    }
    row.update(extra)
    return row


def type_breakdown(records: Iterable[NormalizedIssue]) -> dict[str, dict]:
    return {
        b.key: {"count": b.count, "points": format_points(b.points)}
        for b in aggregate_by_type(records)
    }


def total_points(records: Iterable[NormalizedIssue]) -> int | float:
    return format_points(sum(r.points for r in records))


def sprint_details(records: Iterable[NormalizedIssue], sprint_name: str) -> dict | None:
    """The sprint field entry named ``sprint_name`` from the first issue that carries it."""
    for rec in records:
        for entry in rec.issue.sprints:
            if entry.get("name") == sprint_name:
                return entry
    return None


def sprint_start(
    records: Iterable[NormalizedIssue],
    sprint_name: str,
    tz: str,
    override: date | None = None,
) -> datetime | None:
    """Sprint start as an aware datetime, from ``override`` or the issues' sprint field."""
    if override is not None:
        return pytz.timezone(tz).localize(datetime.combine(override, datetime.min.time()))
    details = sprint_details(records, sprint_name)
    if not details:
        return None
    return parse_dt(details.get("startDate"))
