"""Sprint burn reports built from Jira: daily progress with velocity, and scope change summary."""

from __future__ import annotations

import logging
from datetime import date, datetime

from jira_reports.analytics.metrics.history import local_date
from jira_reports.analytics.metrics.points import format_points
from jira_reports.analytics.metrics.progress import daily_progress
from jira_reports.analytics.metrics.scope import analyze_scope
from jira_reports.analytics.metrics.velocity import (
    compute_velocity,
    delivery_status,
    project_overrun,
    sprint_dates,
    working_day_counts,
)
from jira_reports.core import jql
from jira_reports.core.service import IssueService

from .common import (
    collect_warnings,
    fetch_records,
    fetch_summary,
    issue_row,
    local_now,
    report_header,
    sprint_details,
    sprint_start,
)

logger = logging.getLogger(__name__)


def build_sprint_progress(
    service: IssueService,
    *,
    sprint: str | None = None,
    start_date: date | None = None,
    now: datetime | None = None,
) -> dict:
    """Per-day completion since sprint start plus the velocity snapshot and projection.

    The sprint start comes from ``start_date`` or, failing that, the sprint
    field of the fetched issues. Without either the daily table is empty and
    a warning is recorded.
    """
    config = service.config
    sprint = sprint or config.sprint_name
    now = local_now(config.timezone, now)
    today = now.date()
    records, result = fetch_records(
        service,
        jql.sprint_jql(config.project_key, sprint, types=config.estimable_types),
        expand_changelog=True,
    )
    warnings = collect_warnings(result)
    started = sprint_start(records, sprint, config.timezone, start_date)
    report = report_header("sprint-progress", service, now, sprint=sprint)
    if started is None:
        warnings.append(f"No start date found for {sprint}; pass --start-date")
        report.update({"startDate": None, "days": [], "fetch": fetch_summary(result), "warnings": warnings})
        return report

    first_day = local_date(started, config.timezone)
    days = daily_progress(records, first_day, today, config)
    committed = float(sum(r.points for r in records))
    delivered = days[-1].cumulative_completed if days else 0.0
    total_wd, elapsed_wd = working_day_counts(sprint_dates(first_day, config.sprint_length_days), today)
    snapshot = compute_velocity(
        committed,
        total_wd,
        elapsed_wd,
        delivered,
        sprint_name=sprint,
        start_date=first_day,
    )
    projection = project_overrun(snapshot.remaining_points, snapshot.current_velocity, snapshot.remaining_days)
    percent = days[-1].percent_complete if days else 0.0

    report.update(
        {
            "startDate": first_day.isoformat(),
            "summary": {
                "totalIssues": len(records),
                "totalStoryPoints": format_points(committed),
                "completedStoryPoints": format_points(delivered),
                "remainingStoryPoints": format_points(committed - delivered),
                "percentComplete": percent,
                "status": delivery_status(percent),
            },
            "velocity": snapshot.to_dict(),
            "projection": projection.to_dict(),
            "days": [d.to_dict() for d in days],
            "fetch": fetch_summary(result),
            "warnings": warnings,
        }
    )
    return report


def build_burndown_summary(
    service: IssueService,
    *,
    sprint: str | None = None,
    start_date: date | None = None,
    now: datetime | None = None,
) -> dict:
    """Initial versus added scope and point increases since the sprint started."""
    config = service.config
    sprint = sprint or config.sprint_name
    now = local_now(config.timezone, now)
    records, result = fetch_records(
        service,
        jql.sprint_jql(config.project_key, sprint, types=config.estimable_types),
        expand_changelog=True,
    )
    warnings = collect_warnings(result)
    started = sprint_start(records, sprint, config.timezone, start_date)
    details = sprint_details(records, sprint) or {}
    report = report_header(
        "burndown-summary",
        service,
        now,
        sprint=sprint,
        sprintState=details.get("state"),
        endDate=details.get("endDate"),
    )
    if started is None:
        warnings.append(f"No start date found for {sprint}; pass --start-date")
        report.update({"startDate": None, "fetch": fetch_summary(result), "warnings": warnings})
        return report

    lookup = service.lookup
    scope = analyze_scope(
        records,
        sprint,
        started,
        config,
        sprint_field_id=lookup.sprint,
        story_points_field_id=lookup.story_points,
    )
    approximate = sum(1 for s in [*scope.initial, *scope.added] if s.added.approximate)
    if approximate:
        logger.debug("%s issues have no sprint change in history; creation date used", approximate)

    report.update(
        {
            "startDate": started.isoformat(),
            "summary": {
                "initialScopePoints": format_points(scope.initial_points),
                "initialScopeIssues": len(scope.initial),
                "addedScopePoints": format_points(scope.added_points),
                "addedScopeIssues": len(scope.added),
                "pointIncreases": format_points(scope.increased_points),
                "totalCurrentPoints": format_points(scope.total_current_points),
                "completedPoints": format_points(scope.completed_points),
                "remainingPoints": format_points(scope.remaining_points),
                "scopeIncreasePercent": scope.scope_increase_percent,
                "progressPercent": scope.progress_percent,
                "approximateAddedDates": approximate,
            },
            "addedScope": [s.to_dict() for s in scope.added],
            "pointIncreaseDetails": [i.to_dict() for i in scope.increases],
            "completed": [issue_row(r) for r in sorted(scope.completed, key=lambda r: r.key)],
            "remaining": [issue_row(r) for r in sorted(scope.remaining, key=lambda r: r.key)],
            "fetch": fetch_summary(result),
            "warnings": warnings,
        }
    )
    return report
