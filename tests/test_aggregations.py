from jira_reports.analytics.aggregations.buckets import (
    aggregate,
    aggregate_by_assignee,
    aggregate_by_category,
    aggregate_by_fix_version,
    aggregate_by_team,
    completion_breakdown,
    summarize,
)


def _records(make_raw, make_records):
    return make_records(
        make_raw("VER10-1", status="Closed", points=5, assignee="Alice", team="Core"),
        make_raw("VER10-2", status="In Dev", points=None, assignee="Bob", team="Core"),
        make_raw("VER10-3", status="In QA", points=3, assignee="Alice"),
        make_raw("VER10-4", status="Blocked", points=1, assignee=None, team="Web"),
        make_raw("VER10-5", issuetype="Epic", status="In Dev", points=None, assignee="Bob"),
    )


def test_bucket_points_sum_to_total(make_raw, make_records):
    records = _records(make_raw, make_records)
    total = sum(r.points for r in records)
    for key in ("category", "status", "assignee_id", "team", "issuetype"):
        buckets = aggregate(records, key)
        assert sum(b.points for b in buckets) == total
        assert sum(b.count for b in buckets) == len(records)


def test_category_buckets_in_display_order(make_raw, make_records):
    records = _records(make_raw, make_records)
    buckets = aggregate_by_category(records, ["In Dev", "In Review", "In QA", "Completed", "Other"])
    assert [b.key for b in buckets] == ["In Dev", "In Review", "In QA", "Completed", "Other"]
    by_key = {b.key: b for b in buckets}
    assert by_key["In Review"].count == 0
    assert by_key["Completed"].points == 5
    assert by_key["In Dev"].defaulted_points == 2
    assert by_key["Other"].percent_of_total == 9.1


def test_zero_total_percent_is_zero(make_raw, make_records):
    records = make_records(make_raw("VER10-9", issuetype="Epic", points=None))
    buckets = aggregate(records, "status")
    assert buckets[0].points == 0
    assert buckets[0].percent_of_total == 0.0
    assert aggregate([], "status") == []


def test_assignee_buckets_keyed_by_account(make_raw, make_records):
    records = make_records(
        make_raw("VER10-1", points=3, assignee="Alice", account_id="acc-1"),
        make_raw("VER10-2", points=2, assignee="Alice Smith", account_id="acc-1"),
        make_raw("VER10-3", points=1, assignee=None),
    )
    buckets = aggregate_by_assignee(records)
    assert [b.key for b in buckets] == ["acc-1", "unassigned"]
    assert buckets[0].points == 5
    assert buckets[1].label == "Unassigned"


def test_team_and_completion_breakdown(make_raw, make_records):
    records = _records(make_raw, make_records)
    teams = {b.key: b.points for b in aggregate_by_team(records)}
    assert teams == {"Core": 7.0, "Unassigned": 3.0, "Web": 1.0}

    rows = completion_breakdown(records, "team", lambda r: r.status == "Closed")
    core = next(r for r in rows if r.key == "Core")
    assert core.completed_points == 5
    assert core.percent_complete == 71
    assert core.to_dict()["totalPoints"] == 7


def test_summary_splits_measured_and_assumed(make_raw, make_records):
    summary = summarize(_records(make_raw, make_records))
    assert summary.issue_count == 5
    assert summary.total_points == 11
    assert summary.assumed_points == 2
    assert summary.to_dict()["measuredPoints"] == 9


def test_fix_version_keys_stay_disjoint(make_raw, make_records):
    records = make_records(
        make_raw("VER10-1", points=3, fix_versions=("R2", "R1")),
        make_raw("VER10-2", points=1, fix_versions=("R1",)),
        make_raw("VER10-3", points=1),
    )
    buckets = {b.key: b.points for b in aggregate_by_fix_version(records)}
    assert buckets == {"R1, R2": 3.0, "R1": 1.0, "No Version": 1.0}


def test_equal_points_break_ties_by_key(make_raw, make_records):
    records = make_records(
        make_raw("VER10-1", status="In QA", points=3, team="Web"),
        make_raw("VER10-2", status="Closed", points=3, team="Core"),
        make_raw("VER10-3", status="Blocked", points=3, team="Apps"),
        make_raw("VER10-4", status="In Dev", points=5, team="Web"),
    )
    assert [b.key for b in aggregate(records, "status")] == ["In Dev", "Blocked", "Closed", "In QA"]

    rows = completion_breakdown(records, "team", lambda r: False)
    assert [r.key for r in rows] == ["Web", "Apps", "Core"]
