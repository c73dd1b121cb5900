from datetime import date, datetime, timedelta

import pytest
from openpyxl import Workbook, load_workbook

from jira_reports.core.config import DEFAULT_CONFIG
from jira_reports.core.errors import WorkbookLayoutError
from jira_reports.core.workbook import (
    Formula,
    Literal,
    RowLabelIndex,
    excel_serial_to_date,
    load_plan_workbook,
    read_plan_epics,
    read_project_plan,
    read_sprint_sheet,
    release_for,
    resolve,
    to_date,
)
from jira_reports.reports.sprint_plan import build_sprint_report, build_sprint_sheets, classify_epic
from jira_reports.visual.excel import sheet_table_frames, write_sheets

SPRINT_START = date(2025, 3, 3)


def _plan_workbook(path, *, progress=True, cells=None):
    wb = Workbook()
    plan = wb.active
    plan.title = "Plan"
    rows = [
        ["Epic", "Sprint 30", "Sprint 31", "Sprint 32"],
        ["Dates", datetime(2025, 2, 17), datetime(2025, 3, 3), datetime(2025, 3, 17)],
        ["Checkout", 10, 20, 5],
        ["Bugs", 0, 5, 5],
        ["TOTAL COMMITTED PER SPRINT", 10, 25, 10],
        ["STORY POINTS DELIVERED", 10, 12, 0],
        ["TOTAL PROJECT POINTS REMAINING", 23],
        ["DELIVERED TODAY", 3],
        ["IGNORE BELOW"],
        ["Legacy", 99, 99, 99],
    ]
    for row in rows:
        plan.append(row)
    plan["E5"] = "=SUM(B5:D5)"
    for ref, value in (cells or {}).items():
        plan[ref] = value

    sprint = wb.create_sheet("Sprint 31")
    days = [SPRINT_START + timedelta(days=i) for i in range(14)]
    working = [d.weekday() < 5 for d in days]
    sprint.append(["Epic", *(datetime.combine(d, datetime.min.time()) for d in days)])
    sprint.append(["Checkout", *(2 if w else None for w in working)])
    sprint.append(["Bugs", *(0.5 if w else None for w in working)])
    sprint.append(["Story Points Committed", *(2.5 if w else None for w in working)])
    sprint.append(["Story Points Delivered", *(3 if w and i < 4 else None for i, w in enumerate(working))])

    if progress:
        sheet = wb.create_sheet("Progress")
        sheet.append(["Day", *(datetime.combine(SPRINT_START + timedelta(days=i), datetime.min.time()) for i in range(5))])
        for label in ("Target", "Actual", "Cumulative Target", "Cumulative Actual", "Variance", "Burndown"):
            sheet.append([label])
    wb.save(path)
    return path


def test_cell_values_and_dates():
    assert resolve(Formula("=SUM(A1:A2)", 7)) == 7
    assert resolve(Literal("x")) == "x"
    assert resolve(None) is None
    assert excel_serial_to_date(45719) == SPRINT_START
    assert to_date(45719.5) == SPRINT_START
    assert to_date("03/03/2025") == SPRINT_START
    assert to_date("3-Mar", year=2025) == SPRINT_START
    assert to_date("not a date") is None


def test_grid_loading_tags_formulas(tmp_path):
    book = load_plan_workbook(_plan_workbook(tmp_path / "plan.xlsx"))
    assert book.sheet_names == ["Plan", "Sprint 31", "Progress"]
    assert book.main.name == "Plan"
    assert isinstance(book.main.cell(5, 5), Formula)
    assert book.main.cell(5, 5).expression == "=SUM(B5:D5)"
    assert isinstance(book.main.cell(3, 2), Literal)
    with pytest.raises(WorkbookLayoutError) as err:
        book.sheet("Sprint 99")
    assert "Available sheets" in str(err.value)


def test_missing_workbook(tmp_path):
    with pytest.raises(WorkbookLayoutError):
        load_plan_workbook(tmp_path / "absent.xlsx")


def test_row_label_index(tmp_path):
    book = load_plan_workbook(_plan_workbook(tmp_path / "plan.xlsx"))
    index = RowLabelIndex.from_grid(book.main)
    assert index.row("story points delivered") == 6
    assert index.row_containing("total project", "remain") == 7
    assert index.find_containing("nothing") is None
    with pytest.raises(WorkbookLayoutError) as err:
        index.row("Velocity")
    assert '"Plan"' in str(err.value)


def test_sprint_sheet(tmp_path):
    book = load_plan_workbook(_plan_workbook(tmp_path / "plan.xlsx"))
    sheet = read_sprint_sheet(book, 31)
    assert sheet.start_date == SPRINT_START
    assert sheet.end_date == date(2025, 3, 16)
    assert [(e.name, e.committed) for e in sheet.epics] == [("Checkout", 20), ("Bugs", 5)]
    assert sheet.total_committed == 25
    assert sheet.total_delivered == 12
    assert sheet.delivery_percentage == 48
    assert sheet.remaining_by_day[0] == -0.5


def test_project_plan(tmp_path):
    book = load_plan_workbook(_plan_workbook(tmp_path / "plan.xlsx"))
    plan = read_project_plan(book)
    assert [s.number for s in plan.sprints] == [30, 31, 32]
    assert plan.sprint(31).committed == 25
    assert plan.total_delivered == 22
    assert plan.total_project_points == 45
    assert plan.delivered_percentage == 49
    assert plan.delivered_today == 3
    assert plan.last_sprint_end == date(2025, 3, 30)
    assert [e.name for e in read_plan_epics(book, plan.sprints)] == ["Checkout", "Bugs"]

    release = release_for(31)
    assert release.name == "Release 1D"
    assert plan.release_totals(release) == (45, 22)
    assert release_for(99).name == "Bug Fixing Phase"


def test_classify_epic():
    assert classify_epic("Bugs") == "bugs"
    assert classify_epic("Stabilisation work") == "stabilisation"
    assert classify_epic("Checkout") == "feature"


def test_sprint_report(tmp_path):
    path = _plan_workbook(tmp_path / "plan.xlsx")
    report = build_sprint_report(path, 31, today=date(2025, 3, 6), update_progress=False)
    assert report["summary"]["deliveryPercentage"] == 48
    assert report["summary"]["status"] == "Off Track"
    assert report["velocity"]["targetVelocity"] == 2.5
    assert report["velocity"]["currentVelocity"] == 3.0
    assert report["velocity"]["predictedTotal"] == 30
    assert report["breakdown"]["committed"] == {"featureWork": 20, "bugs": 5, "stabilisation": 0}
    assert report["breakdown"]["delivered"]["bugs"] == 2
    assert report["release"]["percentageComplete"] == 49
    assert report["project"]["workingDaysRemaining"] == 17
    assert report["project"]["requiredDailyVelocity"] == 1.4
    assert report["project"]["projection"]["overrunDays"] == -9
    assert report["progressSheet"] is None
    assert len(report["days"]) == 14


def test_sprint_report_updates_progress_sheet(tmp_path):
    path = _plan_workbook(tmp_path / "plan.xlsx")
    report = build_sprint_report(path, 31, today=date(2025, 3, 6))
    assert report["progressSheet"] == {"targetsWritten": 5, "todayColumn": 5, "todayTarget": 3.0}

    ws = load_workbook(path)["Progress"]
    assert [ws.cell(2, col).value for col in range(2, 7)] == [1.3, 1.8, 2.5, 3.0, 3.3]
    assert ws["E3"].value == 3
    assert ws["E4"].value == 8.6
    assert ws["E6"].value == -5.6
    assert ws["F6"].value is None
    assert ws["E7"].value == 42.0


def test_sprint_report_without_progress_sheet_warns(tmp_path):
    path = _plan_workbook(tmp_path / "plan.xlsx", progress=False)
    report = build_sprint_report(path, 31, today=date(2025, 3, 6))
    assert report["progressSheet"] is None
    assert report["warnings"]


def test_sprint_sheets(tmp_path):
    path = _plan_workbook(tmp_path / "plan.xlsx")
    report = build_sprint_sheets(path, today=date(2025, 3, 6))
    tables = {t["name"]: t for t in report["sheets"]}
    assert list(tables) == ["Sprint 30", "Sprint 31", "Sprint 32"]

    sheet = tables["Sprint 31"]
    assert sheet["workingDays"] == 10
    assert sheet["columns"][1] == "03/03/2025"
    labels = [row[0] for row in sheet["rows"]]
    assert labels == ["Checkout", "Bugs", "Story Points Committed", "Story Points Delivered", None, "Story Points Remaining"]
    checkout = sheet["rows"][0][1:]
    assert round(sum(v or 0 for v in checkout), 2) == 20
    assert checkout[5] is None  # Saturday
    assert sheet["rows"][2][1] == 1.25
    assert sheet["rows"][3][1:5] == [3.0, 3.0, 3.0, 3.0]
    assert sheet["rows"][3][5] is None
    assert sheet["rows"][5][1] == "=SUM($B$4:B$4)-SUM($B$5:B$5)"
    assert [row[0] for row in tables["Sprint 30"]["rows"][:1]] == ["Checkout"]


def test_sprint_sheets_flat_and_written(tmp_path):
    path = _plan_workbook(tmp_path / "plan.xlsx")
    report = build_sprint_sheets(path, today=date(2025, 3, 6), distribution="flat")
    checkout = report["sheets"][1]["rows"][0][1:]
    assert [v for v in checkout if v is not None] == [2.0] * 10
    with pytest.raises(ValueError):
        build_sprint_sheets(path, distribution="linear")

    write_sheets(path, sheet_table_frames(report))
    wb = load_workbook(path)
    assert "Plan" in wb.sheetnames
    assert wb["Sprint 31"]["A1"].value == "Epic"
    assert wb["Sprint 31"]["A2"].value == "Checkout"
    assert wb["Sprint 32"]["A2"].value == "Checkout"


def test_required_total_without_calculated_value_is_an_error(tmp_path):
    # openpyxl saves formulas without cached results
    path = _plan_workbook(tmp_path / "plan.xlsx", cells={"B7": "=45-22"})
    with pytest.raises(WorkbookLayoutError) as err:
        build_sprint_report(path, 31, today=date(2025, 3, 6), update_progress=False)
    assert '"Plan"' in str(err.value)
    assert "B7" in str(err.value)

    report = build_sprint_sheets(path, today=date(2025, 3, 6))
    assert len(report["sheets"]) == 3


def test_uncached_formula_reads_are_reported(tmp_path):
    path = _plan_workbook(tmp_path / "plan.xlsx", cells={"C5": "=20+5"})
    report = build_sprint_report(path, 31, today=date(2025, 3, 6), update_progress=False)
    assert report["release"]["totalCommitted"] == 20
    assert len(report["warnings"]) == 1
    assert "C5" in report["warnings"][0]

    sheets = build_sprint_sheets(path, today=date(2025, 3, 6))
    assert "C5" in sheets["warnings"][0]


def test_sprint_report_uses_configured_releases_and_progress_sheet(tmp_path):
    path = _plan_workbook(tmp_path / "plan.xlsx")
    config = DEFAULT_CONFIG.with_overrides(releases=(("Release X", 31, 40, "feature"),), progress_sheet="Daily")
    report = build_sprint_report(path, 31, today=date(2025, 3, 6), config=config)
    assert report["release"]["name"] == "Release X"
    assert report["release"]["totalCommitted"] == 35
    assert report["progressSheet"] is None
    assert report["warnings"] == ["Daily sheet not found; daily targets were not written"]
    assert load_workbook(path)["Progress"]["B2"].value is None
