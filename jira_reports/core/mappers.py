"""Mapping raw Jira issue JSON into IssueModel instances."""

from __future__ import annotations

from typing import Any

import pandas as pd

from .fields import FieldLookup
from .models import AssigneeModel, ChangeItemModel, HistoryItemModel, IssueModel


def parse_dt(val):
    if not val:
        return None
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def parse_points(value: Any) -> float | None:
    """Read a story point value; non-numeric content counts as missing."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if pd.isna(value) else float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def extract_team(value: Any) -> str | None:
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return extract_team(value[0]) if value else None
    if isinstance(value, dict):
        return value.get("value") or value.get("name")
    return str(value)


def _map_histories(raw: dict[str, Any]) -> list[HistoryItemModel]:
    histories_raw = (raw.get("changelog") or {}).get("histories", []) or []
    histories = []
    for h in histories_raw:
        items = [
            ChangeItemModel(
                field=it.get("field"),
                field_id=it.get("fieldId"),
                from_string=it.get("fromString"),
                to_string=it.get("toString"),
            )
            for it in h.get("items") or []
            if isinstance(it, dict)
        ]
        histories.append(
            HistoryItemModel(
                author=(h.get("author") or {}).get("displayName"),
                created=parse_dt(h.get("created")),
                items=items,
            )
        )
    return histories


def map_issue(raw: dict[str, Any], lookup: FieldLookup) -> IssueModel:
    fields = raw.get("fields", {}) or {}
    assignee_raw = fields.get("assignee")
    assignee = None
    if assignee_raw:
        assignee = AssigneeModel(
            display_name=assignee_raw.get("displayName") or "Unassigned",
            account_id=assignee_raw.get("accountId"),
            email=assignee_raw.get("emailAddress"),
        )
    sprints_raw = fields.get(lookup.sprint) or []
    sprints = [s for s in sprints_raw if isinstance(s, dict)] if isinstance(sprints_raw, list) else []
    return IssueModel(
        key=raw.get("key") or str(raw.get("id") or ""),
        summary=fields.get("summary"),
        issuetype=(fields.get("issuetype") or {}).get("name") if fields.get("issuetype") else None,
        status=(fields.get("status") or {}).get("name") if fields.get("status") else None,
        created=parse_dt(fields.get("created")),
        updated=parse_dt(fields.get("updated")),
        story_points=parse_points(fields.get(lookup.story_points)),
        assignee=assignee,
        priority=(fields.get("priority") or {}).get("name") if fields.get("priority") else None,
        resolution_date=parse_dt(fields.get("resolutiondate")),
        team=extract_team(fields.get(lookup.team)) if lookup.team else None,
        fix_versions=[v.get("name") for v in fields.get("fixVersions") or [] if isinstance(v, dict) and v.get("name")],
        sprints=sprints,
        histories=_map_histories(raw),
    )
