"""JQL query builders for the report searches."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date


def quote(value: str) -> str:
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def in_list(values: Iterable[str]) -> str:
    return "(" + ", ".join(quote(v) for v in values) + ")"


def sprint_jql(
    project_key: str,
    sprint: str,
    *,
    types: Iterable[str] | None = None,
    statuses: Iterable[str] | None = None,
    exclude_statuses: Iterable[str] | None = None,
    assignee: str | None = None,
) -> str:
    jql = f"project = {project_key} AND sprint = {quote(sprint)}"
    if types:
        jql += f" AND issuetype in {in_list(sorted(types))}"
    if statuses:
        jql += f" AND status in {in_list(statuses)}"
    if exclude_statuses:
        jql += f" AND status NOT IN {in_list(exclude_statuses)}"
    if assignee:
        jql += f" AND assignee = {quote(assignee)}"
    return jql


def updated_in_status_jql(project_key: str, statuses: Iterable[str], since: date) -> str:
    return f"project = {project_key} AND status in {in_list(statuses)} AND updated >= {quote(since.isoformat())}"


def status_jql(project_key: str, statuses: Iterable[str]) -> str:
    return f"project = {project_key} AND status in {in_list(statuses)}"


def changed_to_during_jql(
    project_key: str,
    statuses: Iterable[str],
    start: date,
    end: date,
    *,
    types: Iterable[str] | None = None,
) -> str:
    jql = f"project = {project_key}"
    if types:
        jql += f" AND issuetype in {in_list(sorted(types))}"
    return (
        f"{jql} AND status changed to {in_list(statuses)} "
        f"during ({quote(start.isoformat())}, {quote(end.isoformat())})"
    )


def epics_for_version_jql(project_key: str, fix_version: str, statuses: Iterable[str]) -> str:
    return (
        f"project = {project_key} AND issuetype = Epic AND fixVersion = {quote(fix_version)} "
        f"AND status in {in_list(statuses)}"
    )
