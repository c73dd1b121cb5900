"""Report-data builders: each returns a plain, JSON-serializable dict."""

from jira_reports.reports.allocation import build_assignee_allocation, build_team_allocation
from jira_reports.reports.burndown import build_burndown_summary, build_sprint_progress
from jira_reports.reports.completion import build_completed_epics, build_completed_points
from jira_reports.reports.sprint_plan import build_sprint_report, build_sprint_sheets
from jira_reports.reports.sprint_status import (
    build_dev_review,
    build_issues_in_qa,
    build_moved_to_qa,
    build_points_by_status,
    build_time_in_status,
    build_work_done_today,
)

__all__ = [
    "build_assignee_allocation",
    "build_burndown_summary",
    "build_completed_epics",
    "build_completed_points",
    "build_dev_review",
    "build_issues_in_qa",
    "build_moved_to_qa",
    "build_points_by_status",
    "build_sprint_progress",
    "build_sprint_report",
    "build_sprint_sheets",
    "build_team_allocation",
    "build_time_in_status",
    "build_work_done_today",
]
