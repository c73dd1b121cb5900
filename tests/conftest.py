"""Test configuration ensuring local package import when editable install not active.

If users invoke `pytest` outside the project's virtualenv, we still add the project
root to sys.path so `import jira_reports` works. Shared factories for raw Jira
issue payloads and a network-free API double live here too.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jira_reports.core.config import DEFAULT_CONFIG, FIELD_IDS  # noqa: E402
from jira_reports.core.errors import IssueFetchError  # noqa: E402
from jira_reports.core.fields import FieldLookup  # noqa: E402
from jira_reports.core.jira_client import JiraAPI  # noqa: E402
from jira_reports.core.mappers import map_issue  # noqa: E402
from jira_reports.core.service import IssueService  # noqa: E402

CATALOGUE = [
    {"id": "summary", "name": "Summary"},
    {"id": FIELD_IDS["story_points"], "name": "Story Points"},
    {"id": FIELD_IDS["sprint"], "name": "Sprint"},
    {"id": FIELD_IDS["team"], "name": "Team"},
]
LOOKUP = FieldLookup(FIELD_IDS["story_points"], FIELD_IDS["sprint"], FIELD_IDS["team"])


class DummyAPI(JiraAPI):
    def __init__(self, issues=None, failing=(), catalogue=None):
        self.server = "https://example.atlassian.net"
        self.issues = {raw["key"]: raw for raw in issues or []}
        self.failing = set(failing)
        self.catalogue = CATALOGUE if catalogue is None else catalogue
        self.queries: list[str] = []

    def search_issue_keys(self, jql, max_results=1000):
        self.queries.append(jql)
        return list(self.issues)[:max_results]

    def fetch_issue_raw(self, issue_key, fields=None, *, expand_changelog=False):
        if issue_key in self.failing:
            raise IssueFetchError(issue_key, f"Failed to fetch issue {issue_key}: boom")
        return self.issues[issue_key]

    def fetch_fields(self):
        return list(self.catalogue)


def history_entry(created, field, to, frm=None, *, field_id=None, author="Alice"):
    return {
        "created": created,
        "author": {"displayName": author},
        "items": [{"field": field, "fieldId": field_id, "fromString": frm, "toString": to}],
    }


def raw_issue(
    key,
    *,
    issuetype="Story",
    status="In Dev",
    points=None,
    assignee="Alice",
    account_id=None,
    created="2025-03-01T09:00:00.000+0000",
    updated="2025-03-03T09:00:00.000+0000",
    histories=(),
    sprints=None,
    team=None,
    fix_versions=(),
    summary=None,
):
    fields = {
        "summary": summary or f"Issue {key}",
        "issuetype": {"name": issuetype},
        "status": {"name": status},
        "created": created,
        "updated": updated,
        "priority": {"name": "Medium"},
        "resolutiondate": None,
        "fixVersions": [{"name": v} for v in fix_versions],
        FIELD_IDS["story_points"]: points,
        FIELD_IDS["sprint"]: sprints or [],
        FIELD_IDS["team"]: {"value": team} if team else None,
    }
    if assignee:
        fields["assignee"] = {
            "displayName": assignee,
            "accountId": account_id or f"id-{assignee.lower()}",
            "emailAddress": f"{assignee.lower()}@example.com",
        }
    return {"key": key, "fields": fields, "changelog": {"histories": list(histories)}}


@pytest.fixture
def make_raw():
    return raw_issue


@pytest.fixture
def change():
    return history_entry


@pytest.fixture
def make_records():
    def _make(*raws, config=DEFAULT_CONFIG):
        service = IssueService(DummyAPI(), config)
        return service.normalize([map_issue(raw, LOOKUP) for raw in raws])

    return _make


@pytest.fixture
def make_service():
    def _make(issues, *, failing=(), config=DEFAULT_CONFIG, catalogue=None):
        return IssueService(DummyAPI(issues, failing=failing, catalogue=catalogue), config)

    return _make
