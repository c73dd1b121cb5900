"""Delivered work: completed points in a date range and completed epics of a fix version."""

from __future__ import annotations

from datetime import date, datetime

from jira_reports.analytics.metrics.history import DateRange, ResolutionPolicy, resolve_transition_with_fallback
from jira_reports.analytics.metrics.points import format_points
from jira_reports.core import jql
from jira_reports.core.service import IssueService
from jira_reports.core.status import is_terminal

from .common import collect_warnings, fetch_records, fetch_summary, issue_row, local_now, report_header, total_points


def build_completed_points(
    service: IssueService,
    start: date,
    end: date,
    *,
    now: datetime | None = None,
) -> dict:
    """Stories and bugs whose most recent move into a completed status falls in ``start..end``."""
    config = service.config
    window = DateRange(start, end)
    now = local_now(config.timezone, now)
    records, result = fetch_records(
        service,
        jql.changed_to_during_jql(
            config.project_key,
            config.completed_statuses,
            start,
            end,
            types=config.estimable_types,
        ),
        expand_changelog=True,
    )

    completed = []
    for rec in records:
        fact = resolve_transition_with_fallback(
            rec.issue,
            config.completed_statuses,
            window,
            ResolutionPolicy.MOST_RECENT,
            tz=config.timezone,
        )
        if fact.found:
            completed.append((rec, fact))
    completed.sort(key=lambda pair: (pair[1].timestamp, pair[0].key))

    breakdown = {}
    for type_name in sorted(config.estimable_types):
        subset = [rec for rec, _ in completed if rec.issuetype == type_name]
        breakdown[type_name] = {
            "count": len(subset),
            "points": total_points(subset),
            "withPoints": sum(1 for r in subset if not r.defaulted),
            "withoutPoints": sum(1 for r in subset if r.defaulted),
        }

    report = report_header("completed-points", service, now, startDate=start.isoformat(), endDate=end.isoformat())
    report.update(
        {
            "summary": {
                "totalIssues": len(completed),
                "totalStoryPoints": total_points(rec for rec, _ in completed),
                "measuredPoints": format_points(sum(rec.points for rec, _ in completed if not rec.defaulted)),
                "defaultedPoints": format_points(sum(rec.points for rec, _ in completed if rec.defaulted)),
                "approximateDates": sum(1 for _, fact in completed if fact.approximate),
                "breakdown": breakdown,
            },
            "issues": [
                issue_row(
                    rec,
                    completedDate=fact.timestamp.isoformat(),
                    completedDateApproximate=fact.approximate,
                )
                for rec, fact in completed
            ],
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report


def build_completed_epics(
    service: IssueService,
    fix_version: str,
    *,
    now: datetime | None = None,
) -> dict:
    """Epics of ``fix_version`` that reached a terminal status."""
    config = service.config
    now = local_now(config.timezone, now)
    records, result = fetch_records(
        service,
        jql.epics_for_version_jql(config.project_key, fix_version, config.terminal_statuses),
    )
    records = sorted((r for r in records if is_terminal(r.status, config)), key=lambda r: r.key)
    report = report_header("completed-epics", service, now, fixVersion=fix_version)
    report.update(
        {
            "summary": {
                "totalEpics": len(records),
                "totalStoryPoints": total_points(records),
            },
            "epics": [
                issue_row(
                    rec,
                    resolutionDate=rec.issue.resolution_date.isoformat() if rec.issue.resolution_date else None,
                    fixVersions=list(rec.issue.fix_versions),
                )
                for rec in records
            ],
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report
