from datetime import date

import pytest

from jira_reports.core import jql
from jira_reports.core.config import DEFAULT_CONFIG
from jira_reports.core.errors import FieldLookupError
from jira_reports.core.fields import build_field_lookup
from jira_reports.core.status import StatusCategoryMap, status_in, status_key


def test_field_lookup_from_catalogue():
    catalogue = [
        {"id": "customfield_20000", "name": "Story Points"},
        {"id": "customfield_20001", "name": "Sprint"},
    ]
    lookup = build_field_lookup(catalogue, DEFAULT_CONFIG)
    assert lookup.story_points == "customfield_20000"
    assert lookup.sprint == "customfield_20001"
    # team falls back to the configured id
    assert lookup.team == DEFAULT_CONFIG.field_fallbacks["team"]
    assert "customfield_20000" in lookup.detail_fields()


def test_field_lookup_prefers_configured_id_among_duplicates():
    catalogue = [
        {"id": "customfield_1", "name": "Story Points"},
        {"id": "customfield_10003", "name": "Story points"},
    ]
    assert build_field_lookup(catalogue, DEFAULT_CONFIG).story_points == "customfield_10003"


def test_field_lookup_without_fallback_raises():
    config = DEFAULT_CONFIG.with_overrides(field_fallbacks={"story_points": None, "sprint": "customfield_1"})
    with pytest.raises(FieldLookupError):
        build_field_lookup([], config)


def test_status_normalization():
    assert status_key("  READY   for Review ") == "ready for review"
    assert status_in("closed", ["Ready for Release", "Closed"])
    assert not status_in(None, ["Closed"])
    mapping = StatusCategoryMap.from_config(DEFAULT_CONFIG)
    assert mapping.categorize("ready for review") == "In Review"
    assert mapping.categorize("Blocked") == "Other"
    assert mapping.labels[-1] == "Other"


def test_sprint_jql():
    query = jql.sprint_jql(
        "VER10",
        'NH "Sprint" 31',
        types={"Story", "Bug"},
        exclude_statuses=["Closed"],
    )
    assert query == (
        'project = VER10 AND sprint = "NH \\"Sprint\\" 31" AND issuetype in ("Bug", "Story")'
        ' AND status NOT IN ("Closed")'
    )


def test_date_jql():
    query = jql.changed_to_during_jql("VER10", ["Closed"], date(2025, 3, 1), date(2025, 3, 7))
    assert query.endswith('status changed to ("Closed") during ("2025-03-01", "2025-03-07")')
    assert jql.updated_in_status_jql("VER10", ["In QA"], date(2025, 3, 3)).endswith('updated >= "2025-03-03"')
    assert 'fixVersion = "R1"' in jql.epics_for_version_jql("VER10", "R1", ["Done"])
