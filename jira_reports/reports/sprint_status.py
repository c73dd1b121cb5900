"""Daily sprint status reports: status snapshot, today's movements, QA and review queues, stale work."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from jira_reports.analytics.aggregations.buckets import aggregate, aggregate_by_category, summarize
from jira_reports.analytics.metrics.history import (
    ResolutionPolicy,
    matched_status,
    resolve_transition,
    resolve_transition_with_fallback,
)
from jira_reports.analytics.metrics.points import format_points
from jira_reports.analytics.metrics.staleness import compute_stale, status_ages
from jira_reports.core import jql
from jira_reports.core.models import NormalizedIssue
from jira_reports.core.service import FetchResult, IssueService
from jira_reports.core.status import status_in

from .common import (
    collect_warnings,
    fetch_records,
    fetch_summary,
    issue_row,
    local_now,
    report_header,
    total_points,
    type_breakdown,
)

logger = logging.getLogger(__name__)


def build_points_by_status(
    service: IssueService,
    *,
    sprint: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Story points of the sprint's stories and bugs per status category.

    Issues in the completed category only count when they were completed
    today; earlier completions are reported as a separate count.
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

    completed_label = service.status_map.categorize(config.completed_statuses[0]) if config.completed_statuses else None
    included: list[NormalizedIssue] = []
    completed_earlier = 0
    for rec in records:
        if rec.category == completed_label:
            done_today = resolve_transition(rec.issue.histories, config.completed_statuses, today, tz=config.timezone)
            if done_today is None:
                completed_earlier += 1
                continue
        included.append(rec)

    buckets = aggregate_by_category(included, service.status_map.labels)
    categories = []
    for b in buckets:
        row = b.to_dict()
        row["label"] = f"{b.key} Today" if b.key == completed_label else b.key
        row["issues"] = [issue_row(r) for r in included if r.category == b.key]
        categories.append(row)

    report = report_header("points-by-status", service, now, sprint=sprint)
    report.update(
        {
            "summary": summarize(included).to_dict(),
            "completedBeforeToday": completed_earlier,
            "categories": categories,
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report


def _moved_today(service: IssueService, statuses: Sequence[str], now: datetime) -> tuple[dict, FetchResult]:
    config = service.config
    today = now.date()
    records, result = fetch_records(
        service,
        jql.updated_in_status_jql(config.project_key, statuses, today),
        expand_changelog=True,
    )
    moved = []
    for rec in records:
        if rec.issuetype not in config.countable_types:
            continue
        at = resolve_transition(rec.issue.histories, statuses, today, ResolutionPolicy.MOST_RECENT, tz=config.timezone)
        if at is None:
            continue
        moved.append((rec, at))
    moved.sort(key=lambda pair: pair[0].key)
    by_assignee: dict[str, list[str]] = {}
    for rec, _ in moved:
        by_assignee.setdefault(rec.assignee, []).append(rec.key)
    group = {
        "statuses": list(statuses),
        "count": len(moved),
        "points": total_points(r for r, _ in moved),
        "typeBreakdown": type_breakdown(r for r, _ in moved),
        "byAssignee": dict(sorted(by_assignee.items())),
        "issues": [
            issue_row(
                rec,
                movedTo=matched_status(rec.issue.histories, statuses, today, tz=config.timezone),
                movedAt=at.isoformat(),
            )
            for rec, at in moved
        ],
    }
    return group, result


def build_work_done_today(service: IssueService, *, now: datetime | None = None) -> dict:
    """Issues that moved into completed, QA or dev statuses today."""
    config = service.config
    now = local_now(config.timezone, now)
    groups = {}
    results = []
    for name, statuses in (
        ("completed", config.completed_statuses),
        ("movedToQA", config.qa_statuses),
        ("movedToDev", config.dev_statuses),
    ):
        group, result = _moved_today(service, statuses, now)
        groups[name] = group
        results.append(result)
        logger.info("%s: %s issues, %s points", name, group["count"], group["points"])

    merged: dict[str, dict] = {}
    for group in groups.values():
        for type_name, data in group["typeBreakdown"].items():
            entry = merged.setdefault(type_name, {"count": 0, "points": 0})
            entry["count"] += data["count"]
            entry["points"] = format_points(entry["points"] + data["points"])
    report = report_header("work-done-today", service, now)
    report.update(
        {
            "summary": {
                "totalIssues": sum(g["count"] for g in groups.values()),
                "totalStoryPoints": format_points(sum(g["points"] for g in groups.values())),
                "breakdown": dict(sorted(merged.items(), key=lambda kv: -kv[1]["points"])),
            },
            **groups,
            "fetch": fetch_summary(*results),
            "warnings": collect_warnings(*results),
        }
    )
    return report


def build_issues_in_qa(
    service: IssueService,
    *,
    sprint: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Stories and bugs currently in QA, largest first, with when they entered QA."""
    config = service.config
    sprint = sprint or config.sprint_name
    now = local_now(config.timezone, now)
    records, result = fetch_records(
        service,
        jql.sprint_jql(config.project_key, sprint, types=config.estimable_types, statuses=config.qa_statuses),
        expand_changelog=True,
    )
    records = [r for r in records if status_in(r.status, config.qa_statuses)]
    records.sort(key=lambda r: (-r.points, r.key))
    rows = []
    for rec in records:
        entered = resolve_transition_with_fallback(rec.issue, config.qa_statuses, tz=config.timezone)
        rows.append(
            issue_row(
                rec,
                enteredQA=entered.timestamp.isoformat() if entered.timestamp else None,
                enteredQAApproximate=entered.approximate,
            )
        )
    report = report_header("issues-in-qa", service, now, sprint=sprint)
    report.update(
        {
            "summary": {
                "totalIssues": len(records),
                "totalStoryPoints": total_points(records),
                "typeBreakdown": type_breakdown(records),
            },
            "issues": rows,
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report


def build_moved_to_qa(service: IssueService, *, now: datetime | None = None) -> dict:
    """Issues currently in QA whose move into QA happened today."""
    config = service.config
    now = local_now(config.timezone, now)
    today = now.date()
    records, result = fetch_records(service, jql.status_jql(config.project_key, config.qa_statuses), expand_changelog=True)
    moved = []
    for rec in records:
        at = resolve_transition(rec.issue.histories, config.qa_statuses, today, tz=config.timezone)
        if at is not None:
            moved.append((rec, at))
    moved.sort(key=lambda pair: pair[1])
    report = report_header("moved-to-qa", service, now)
    report.update(
        {
            "summary": {
                "totalIssues": len(moved),
                "totalStoryPoints": total_points(r for r, _ in moved),
                "typeBreakdown": type_breakdown(r for r, _ in moved),
                "inQA": len(records),
            },
            "issues": [issue_row(rec, movedAt=at.isoformat()) for rec, at in moved],
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report


def build_time_in_status(
    service: IssueService,
    *,
    sprint: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Active sprint work that has sat in the same status past the stale threshold."""
    config = service.config
    sprint = sprint or config.sprint_name
    now = local_now(config.timezone, now)
    records, result = fetch_records(
        service,
        jql.sprint_jql(
            config.project_key,
            sprint,
            types=config.estimable_types,
            exclude_statuses=config.completed_statuses,
        ),
        expand_changelog=True,
    )
    ages = status_ages(records, now, config)
    stale = compute_stale(ages)
    by_status = aggregate([a.record for a in stale], "status")
    report = report_header("time-in-status", service, now, sprint=sprint)
    report.update(
        {
            "summary": {
                "thresholdHours": config.stale_threshold_hours,
                "totalActiveIssues": len(ages),
                "staleIssues": len(stale),
                "stalePoints": total_points(a.record for a in stale),
                "byStatus": [b.to_dict() for b in by_status],
            },
            "issues": [a.to_dict() for a in stale],
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report


def build_dev_review(
    service: IssueService,
    *,
    sprint: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Per-assignee load of issues in development and in review."""
    config = service.config
    sprint = sprint or config.sprint_name
    now = local_now(config.timezone, now)
    records, result = fetch_records(
        service,
        jql.sprint_jql(
            config.project_key,
            sprint,
            types=config.estimable_types,
            statuses=[*config.dev_statuses, *config.review_statuses],
        ),
    )

    assignees: dict[str, dict] = {}
    for rec in records:
        entry = assignees.setdefault(
            rec.assignee_id,
            {
                "name": rec.assignee,
                "accountId": rec.issue.assignee.account_id if rec.issue.assignee else None,
                "email": rec.issue.assignee.email if rec.issue.assignee else None,
                "totalPoints": 0.0,
                "inDev": {"count": 0, "points": 0.0, "issues": []},
                "inReview": {"count": 0, "points": 0.0, "issues": []},
            },
        )
        entry["totalPoints"] += rec.points
        if status_in(rec.status, config.dev_statuses):
            bucket = entry["inDev"]
        elif status_in(rec.status, config.review_statuses):
            bucket = entry["inReview"]
        else:
            continue
        bucket["count"] += 1
        bucket["points"] += rec.points
        bucket["issues"].append(issue_row(rec))

    rows = sorted(assignees.values(), key=lambda a: -a["totalPoints"])
    for row in rows:
        row["totalPoints"] = format_points(row["totalPoints"])
        for name in ("inDev", "inReview"):
            row[name]["points"] = format_points(row[name]["points"])

    in_dev = [r for r in records if status_in(r.status, config.dev_statuses)]
    in_review = [r for r in records if status_in(r.status, config.review_statuses)]
    report = report_header("dev-review", service, now, sprint=sprint)
    report.update(
        {
            "summary": {
                "totalIssues": len(records),
                "totalStoryPoints": total_points(records),
                "inDevIssues": len(in_dev),
                "inDevPoints": total_points(in_dev),
                "inReviewIssues": len(in_review),
                "inReviewPoints": total_points(in_review),
                "assignees": len(rows),
            },
            "assignees": rows,
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report
