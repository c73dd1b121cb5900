from datetime import UTC, date, datetime

import pytest

from jira_reports.analytics.metrics.history import (
    DateRange,
    ResolutionPolicy,
    last_status_change,
    local_date,
    matched_status,
    resolve_sprint_addition,
    resolve_transition,
    resolve_transition_with_fallback,
    story_point_changes,
)
from jira_reports.core.models import ChangeItemModel, HistoryItemModel, IssueModel

T1 = datetime(2025, 3, 3, 10, 0, tzinfo=UTC)
T2 = datetime(2025, 3, 4, 15, 0, tzinfo=UTC)


def _entry(when, to, field="status", frm=None, field_id=None):
    return HistoryItemModel(
        author="Alice",
        created=when,
        items=[ChangeItemModel(field=field, field_id=field_id, from_string=frm, to_string=to)],
    )


def _issue(status, histories, *, updated=T2, created=T1):
    return IssueModel(
        key="VER10-7",
        summary="Checkout",
        issuetype="Story",
        status=status,
        created=created,
        updated=updated,
        histories=histories,
    )


def test_no_matching_status_returns_none():
    histories = [_entry(T1, "In Dev"), _entry(T2, "In Review")]
    assert resolve_transition(histories, ["Closed"]) is None
    assert resolve_transition([], ["Closed"]) is None
    assert resolve_transition(None, ["Closed"]) is None


def test_policies_pick_last_or_first():
    histories = [_entry(T1, "Closed"), _entry(T2, "Ready for Release")]
    targets = ["Ready for Release", "Closed"]
    assert resolve_transition(histories, targets, policy=ResolutionPolicy.MOST_RECENT) == T2
    assert resolve_transition(histories, targets, policy=ResolutionPolicy.FIRST_MATCH) == T1


def test_status_match_is_case_insensitive():
    histories = [_entry(T1, "READY FOR REVIEW")]
    assert resolve_transition(histories, ["Ready for Review"]) == T1


def test_date_constraint_and_range():
    histories = [_entry(T1, "Closed"), _entry(T2, "Closed")]
    assert resolve_transition(histories, ["Closed"], date(2025, 3, 3), tz="UTC") == T1
    assert resolve_transition(histories, ["Closed"], date(2025, 3, 5), tz="UTC") is None
    window = DateRange(date(2025, 3, 1), date(2025, 3, 3))
    assert resolve_transition(histories, ["Closed"], window, tz="UTC") == T1


def test_only_status_field_items_count():
    histories = [_entry(T1, "Closed", field="resolution")]
    assert resolve_transition(histories, ["Closed"]) is None


def test_date_range_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        DateRange(date(2025, 3, 5), date(2025, 3, 1))


def test_local_date_uses_timezone():
    late = datetime(2025, 3, 3, 23, 30, tzinfo=UTC)
    assert local_date(late, "UTC") == date(2025, 3, 3)
    assert local_date(late, "Asia/Tokyo") == date(2025, 3, 4)
    assert local_date(None) is None


def test_fallback_is_flagged_approximate():
    issue = _issue("Closed", [])
    fact = resolve_transition_with_fallback(issue, ["Closed"])
    assert fact.timestamp == T2
    assert fact.approximate is True
    assert fact.source == "updated"

    created = resolve_transition_with_fallback(issue, ["Closed"], fallback="created")
    assert created.timestamp == T1


def test_fallback_needs_current_status_in_targets():
    issue = _issue("In Dev", [])
    assert resolve_transition_with_fallback(issue, ["Closed"]).found is False


def test_history_match_beats_fallback():
    issue = _issue("Closed", [_entry(T1, "Closed")])
    fact = resolve_transition_with_fallback(issue, ["Closed"])
    assert fact.timestamp == T1
    assert fact.approximate is False


def test_matched_status_and_last_change():
    histories = [_entry(T1, "In QA"), _entry(T2, "In Dev", field="assignee"), _entry(T2, "in qa")]
    assert matched_status(histories, ["In QA"]) == "in qa"
    assert last_status_change(histories) == T2
    assert last_status_change([]) is None


def test_sprint_addition_first_match_and_fallback():
    histories = [
        _entry(T1, "NH Sprint 30, NH Sprint 31", field="Sprint"),
        _entry(T2, "NH Sprint 31", field="Sprint"),
    ]
    fact = resolve_sprint_addition(_issue("In Dev", histories), "NH Sprint 31")
    assert fact.timestamp == T1
    assert fact.approximate is False

    missing = resolve_sprint_addition(_issue("In Dev", []), "NH Sprint 31")
    assert missing.timestamp == T1
    assert missing.approximate is True


def test_story_point_changes():
    histories = [
        _entry(T1, "5", field="Story Points", frm="3"),
        _entry(T2, "8", field="custom", frm=None, field_id="customfield_10003"),
    ]
    changes = story_point_changes(histories, "customfield_10003")
    assert [c.increase for c in changes] == [2.0, 8.0]
    assert changes[0].author == "Alice"


def test_no_fallback_when_history_match_is_outside_window():
    issue = _issue("Closed", [_entry(T1, "Closed")], updated=T2)
    fact = resolve_transition_with_fallback(issue, ["Closed"], date(2025, 3, 4), tz="UTC")
    assert fact.found is False
