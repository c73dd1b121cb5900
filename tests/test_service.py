from types import SimpleNamespace

import pytest
import requests

from jira_reports.analytics.aggregations.buckets import aggregate
from jira_reports.core.config import DEFAULT_CONFIG, FIELD_IDS
from jira_reports.core.errors import IssueFetchError, JiraReportError, TransportError, UnauthorizedError
from jira_reports.core.fields import FieldLookup
from jira_reports.core.jira_client import JiraAPI, translate_error
from jira_reports.core.mappers import map_issue
from jira_reports.core.service import IssueService


def test_partial_fetch_failure_is_skipped(make_raw, make_service):
    issues = [
        make_raw("A", status="Closed", points=5),
        make_raw("B", issuetype="Story", status="In Dev", points=0),
        make_raw("C", status="In Dev", points=8),
    ]
    service = make_service(issues, failing={"C"})
    result = service.fetch_issues("project = VER10")
    records = service.normalize(result.issues)

    assert result.searched == 3
    assert result.skipped == ["C"]
    assert len(result.warnings) == 1
    assert "C" in result.warnings[0]

    buckets = {b.key: b.points for b in aggregate(records, "status")}
    assert len(records) == 2
    assert sum(r.points for r in records) == 7
    assert buckets == {"Closed": 5.0, "In Dev": 2.0}


def test_parallel_fetch_keeps_search_order(make_raw, make_service):
    issues = [make_raw(f"VER10-{i}", points=i) for i in range(1, 11)]
    config = DEFAULT_CONFIG.with_overrides(fetch_min_parallel=2, fetch_max_workers=4)
    service = make_service(issues, failing={"VER10-4"}, config=config)
    progress = []
    result = service.fetch_issues("project = VER10", progress=lambda *args: progress.append(args))
    assert [i.key for i in result.issues] == [f"VER10-{i}" for i in range(1, 11) if i != 4]
    assert progress[-1] == ("Fetching issue details", 10, 10)


def test_empty_search_is_a_valid_result(make_service):
    result = make_service([]).fetch_issues("project = VER10")
    assert result.searched == 0
    assert result.issues == []
    assert result.warnings == []


def test_field_discovery_transport_failure_uses_fallbacks(make_service):
    service = make_service([])

    def _down():
        raise TransportError("down")

    service.api.fetch_fields = _down
    assert service.lookup.story_points == DEFAULT_CONFIG.field_fallbacks["story_points"]


def test_field_discovery_server_error_uses_fallbacks(make_service):
    service = make_service([])

    def _broken():
        raise JiraReportError("Field discovery failed: oops", status_code=500)

    service.api.fetch_fields = _broken
    result = service.fetch_issues("project = VER10")
    assert result.searched == 0
    assert service.lookup.story_points == DEFAULT_CONFIG.field_fallbacks["story_points"]


def test_field_discovery_rejected_credentials_propagate(make_service):
    service = make_service([])

    def _rejected():
        raise UnauthorizedError("Field discovery: authentication rejected")

    service.api.fetch_fields = _rejected
    with pytest.raises(UnauthorizedError):
        service.fetch_issues("project = VER10")


def test_search_failure_propagates(make_service):
    service = make_service([])

    def _unauthorized(jql, max_results=1000):
        raise UnauthorizedError("Issue search: authentication rejected")

    service.api.search_issue_keys = _unauthorized
    with pytest.raises(UnauthorizedError):
        service.fetch_issues("project = VER10")


def test_translate_error():
    err = translate_error(requests.exceptions.ConnectionError("refused"), context="Issue search")
    assert isinstance(err, TransportError)

    class Rejected(Exception):
        status_code = 401

    assert isinstance(translate_error(Rejected(), context="x"), UnauthorizedError)
    assert UnauthorizedError().hint

    class ServerError(Exception):
        status_code = 500
        text = "oops"

    generic = translate_error(ServerError(), context="Fetch VER10-1")
    assert type(generic) is JiraReportError
    assert generic.status_code == 500
    assert str(generic) == "[500] Fetch VER10-1 failed: oops"


def test_map_issue_fields(make_raw, change):
    raw = make_raw(
        "VER10-1",
        points="3",
        team="Core",
        fix_versions=("R1",),
        sprints=[{"id": 1, "name": "NH Sprint 31", "startDate": "2025-03-03T09:00:00.000Z"}, "junk"],
        histories=[change("2025-03-03T10:00:00.000+0000", "status", "In Dev", "To Do")],
    )

    issue = map_issue(raw, FieldLookup(FIELD_IDS["story_points"], FIELD_IDS["sprint"], FIELD_IDS["team"]))
    assert issue.story_points == 3.0
    assert issue.team == "Core"
    assert issue.fix_versions == ["R1"]
    assert [s["name"] for s in issue.sprints] == ["NH Sprint 31"]
    assert issue.histories[0].items[0].to_string == "In Dev"
    assert issue.assignee_id == "id-alice"

    [record] = IssueService(None).normalize([issue])
    assert record.category == "In Dev"
    assert record.fix_version == "R1"


class _StubClient:
    """Stands in for ``jira.JIRA``: serves raw payloads, fails for selected keys."""

    def __init__(self, payloads, failures=None, session=None):
        self.payloads = payloads
        self.failures = failures or {}
        self._session = session

    def issue(self, key, fields=None, expand=None):
        if key in self.failures:
            raise self.failures[key]
        return SimpleNamespace(raw=self.payloads[key])

    def fields(self):
        return []


class _StubSession:
    def __init__(self, outcome):
        self.outcome = outcome

    def get(self, url, params=None):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _client_api(client):
    api = JiraAPI.__new__(JiraAPI)
    api.server = "https://example.atlassian.net"
    api.client = client
    return api


def test_mid_body_failure_skips_only_that_issue(make_raw):
    payloads = {key: make_raw(key, points=2) for key in ("A", "B")}
    client = _StubClient(
        payloads,
        failures={"C": requests.exceptions.ChunkedEncodingError("connection broken mid-body")},
    )
    api = _client_api(client)
    api.search_issue_keys = lambda jql, max_results=1000: ["A", "B", "C"]

    result = IssueService(api).fetch_issues("project = VER10")
    assert [i.key for i in result.issues] == ["A", "B"]
    assert result.skipped == ["C"]
    assert "mid-body" in result.warnings[0]


def test_fetch_issue_raw_wraps_library_failures():
    client = _StubClient(
        {},
        failures={
            "R": requests.exceptions.TooManyRedirects("loop"),
            "J": ValueError("Expecting value: line 1 column 1"),
        },
    )
    api = _client_api(client)
    for key in ("R", "J"):
        with pytest.raises(IssueFetchError):
            api.fetch_issue_raw(key)


def test_search_transport_and_body_failures():
    api = _client_api(_StubClient({}, session=_StubSession(requests.exceptions.ChunkedEncodingError("cut"))))
    with pytest.raises(TransportError):
        api.search_issue_keys("project = VER10")

    def _not_json():
        raise ValueError("Expecting value")

    response = SimpleNamespace(status_code=200, text="<html>", json=_not_json)
    api = _client_api(_StubClient({}, session=_StubSession(response)))
    with pytest.raises(JiraReportError, match="unreadable response"):
        api.search_issue_keys("project = VER10")
