"""Sprint allocation per assignee and per team, with completion share."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from jira_reports.analytics.aggregations.buckets import completion_breakdown
from jira_reports.core import jql
from jira_reports.core.models import NormalizedIssue
from jira_reports.core.service import IssueService
from jira_reports.core.status import is_completed

from .common import collect_warnings, fetch_records, fetch_summary, local_now, report_header, total_points


def _sprint_records(service: IssueService, sprint: str):
    config = service.config
    records, result = fetch_records(service, jql.sprint_jql(config.project_key, sprint, types=config.countable_types))
    return [r for r in records if r.issuetype in config.countable_types], result


def build_assignee_allocation(
    service: IssueService,
    *,
    sprints: Sequence[str] | None = None,
    now: datetime | None = None,
) -> dict:
    """Points assigned to and completed by each person, per sprint and overall."""
    config = service.config
    sprints = list(sprints or [config.sprint_name])
    now = local_now(config.timezone, now)

    def done(rec: NormalizedIssue) -> bool:
        return is_completed(rec.status, config)

    per_sprint: dict[str, dict[str, dict]] = {}
    everything: list[NormalizedIssue] = []
    results = []
    for sprint in sprints:
        records, result = _sprint_records(service, sprint)
        results.append(result)
        everything.extend(records)
        rows = completion_breakdown(records, "assignee_id", done, label=lambda r: r.assignee)
        per_sprint[sprint] = {row.key: row.to_dict() for row in rows}

    overall = completion_breakdown(everything, "assignee_id", done, label=lambda r: r.assignee)
    assignees = []
    for row in sorted(overall, key=lambda r: -r.total_points):
        entry = row.to_dict()
        entry["accountId"] = entry.pop("key")
        entry["sprints"] = {sprint: per_sprint[sprint].get(row.key) for sprint in sprints}
        assignees.append(entry)

    report = report_header("assignee-allocation", service, now, sprints=sprints)
    report.update(
        {
            "summary": {
                "totalIssues": len(everything),
                "totalStoryPoints": total_points(everything),
                "completedStoryPoints": total_points(r for r in everything if done(r)),
                "assignees": len(assignees),
            },
            "assignees": assignees,
            "fetch": fetch_summary(*results),
            "warnings": collect_warnings(*results),
        }
    )
    return report


def build_team_allocation(
    service: IssueService,
    *,
    sprint: str | None = None,
    now: datetime | None = None,
) -> dict:
    config = service.config
    sprint = sprint or config.sprint_name
    now = local_now(config.timezone, now)
    records, result = _sprint_records(service, sprint)
    rows = completion_breakdown(records, "team", lambda r: is_completed(r.status, config))
    rows.sort(key=lambda r: -r.total_points)
    report = report_header("team-allocation", service, now, sprint=sprint)
    report.update(
        {
            "summary": {
                "totalIssues": len(records),
                "totalStoryPoints": total_points(records),
                "teams": len(rows),
            },
            "teams": [row.to_dict() for row in rows],
            "fetch": fetch_summary(result),
            "warnings": collect_warnings(result),
        }
    )
    return report
