"""Reports driven by the story point planning workbook rather than Jira."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from pathlib import Path

from jira_reports.analytics.metrics.points import format_points
from jira_reports.analytics.metrics.velocity import (
    compute_velocity,
    delivery_status,
    distribute_flat,
    distribute_s_curve,
    is_working_day,
    project_overrun,
    required_daily_velocity,
    round_half_up,
    round_whole,
    working_day_counts,
    working_days_between,
)
from jira_reports.core.config import DEFAULT_CONFIG, ReportConfig
from jira_reports.core.status import status_key
from jira_reports.core.workbook import (
    PlanWorkbook,
    SprintSheet,
    load_plan_workbook,
    read_plan_epics,
    read_project_plan,
    read_sprint_sheet,
    release_for,
    update_progress_sheet,
)

logger = logging.getLogger(__name__)

DISTRIBUTIONS = ("s-curve", "flat")


def classify_epic(name: str) -> str:
    """Bucket an epic row: ``bugs``, ``stabilisation`` or ``feature``."""
    key = status_key(name).upper()
    if key in {"BUG", "BUGS"}:
        return "bugs"
    if "STABIL" in key or "STABL" in key:
        return "stabilisation"
    return "feature"


def epic_breakdown(sheet: SprintSheet) -> dict:
    """Committed points per epic bucket; delivered points split in the same proportions."""
    committed = {"bugs": 0.0, "stabilisation": 0.0}
    for epic in sheet.epics:
        kind = classify_epic(epic.name)
        if kind in committed:
            committed[kind] += epic.committed
    total_committed = sheet.total_committed
    total_delivered = sheet.total_delivered
    ratio = {k: (v / total_committed if total_committed > 0 else 0.0) for k, v in committed.items()}
    bugs_delivered = round_whole(total_delivered * ratio["bugs"])
    stab_delivered = round_whole(total_delivered * ratio["stabilisation"])
    return {
        "committed": {
            "featureWork": round_whole(total_committed - committed["bugs"] - committed["stabilisation"]),
            "bugs": round_whole(committed["bugs"]),
            "stabilisation": round_whole(committed["stabilisation"]),
        },
        "delivered": {
            "featureWork": round_whole(total_delivered - bugs_delivered - stab_delivered),
            "bugs": bugs_delivered,
            "stabilisation": stab_delivered,
        },
    }


def build_sprint_report(
    workbook_path: str | Path,
    sprint_number: int,
    *,
    today: date | None = None,
    update_progress: bool = True,
    config: ReportConfig = DEFAULT_CONFIG,
) -> dict:
    """Velocity, release and project position for one sprint of the planning workbook.

    When ``update_progress`` is set the workbook's Progress sheet receives the
    S-curve targets and today's delivered points, and is saved in place.
    """
    today = today or date.today()
    book = load_plan_workbook(workbook_path)
    sheet = read_sprint_sheet(book, sprint_number)
    total_wd, elapsed_wd = working_day_counts(sheet.dates, today)
    snapshot = compute_velocity(
        sheet.total_committed,
        total_wd,
        elapsed_wd,
        sheet.total_delivered,
        sprint_name=sheet.name,
        start_date=sheet.start_date,
    )

    plan = read_project_plan(book)
    release = release_for(sprint_number, config.releases)
    release_committed, release_delivered = plan.release_totals(release)
    end = plan.last_sprint_end
    wd_remaining = working_days_between(today, end) if end else 0
    projection = project_overrun(plan.total_remaining, snapshot.current_velocity, wd_remaining)
    warnings = book.uncached_warnings()

    progress = None
    if update_progress:
        if book.has_sheet(config.progress_sheet):
            progress = update_progress_sheet(
                book.path,
                plan,
                today,
                plan.delivered_today,
                release_committed,
                sheet_name=config.progress_sheet,
            ).to_dict()
        else:
            warnings.append(f"{config.progress_sheet} sheet not found; daily targets were not written")

    return {
        "report": "sprint-report",
        "date": today.isoformat(),
        "sprintNumber": sprint_number,
        "sprintName": sheet.name,
        "startDate": sheet.start_date.isoformat() if sheet.start_date else None,
        "endDate": sheet.end_date.isoformat() if sheet.end_date else None,
        "summary": {
            "totalCommitted": sheet.total_committed,
            "totalDelivered": sheet.total_delivered,
            "deliveryPercentage": sheet.delivery_percentage,
            "status": delivery_status(sheet.delivery_percentage),
            "deliveredToday": format_points(plan.delivered_today),
        },
        "velocity": snapshot.to_dict(),
        "days": [
            {
                "date": day.isoformat(),
                "committed": format_points(c),
                "delivered": format_points(d),
                "remaining": format_points(r),
            }
            for day, c, d, r in zip(sheet.dates, sheet.committed_by_day, sheet.delivered_by_day, sheet.remaining_by_day)
        ],
        "epics": [{"name": e.name, "committed": format_points(e.committed)} for e in sheet.epics],
        "breakdown": epic_breakdown(sheet),
        "release": {
            **release.to_dict(),
            "totalCommitted": format_points(release_committed),
            "totalDelivered": format_points(release_delivered),
            "percentageComplete": round_whole(release_delivered / release_committed * 100) if release_committed > 0 else 0,
        },
        "project": {
            "totalProjectPoints": format_points(plan.total_project_points),
            "totalDelivered": format_points(plan.total_delivered),
            "totalRemaining": format_points(plan.total_remaining),
            "deliveredPercentage": plan.delivered_percentage,
            "lastSprintEndDate": end.isoformat() if end else None,
            "workingDaysRemaining": wd_remaining,
            "requiredDailyVelocity": round_half_up(required_daily_velocity(plan.total_remaining, wd_remaining), 1),
            "projection": projection.to_dict(),
        },
        "progressSheet": progress,
        "warnings": warnings,
    }


def _daily_split(total: float, flags: list[bool], distribution: str) -> list[float | None]:
    """Spread ``total`` over the working days in ``flags``; weekends and zero days stay blank."""
    working = sum(flags)
    if distribution == "flat":
        per_day = distribute_flat(total, working)
        shares = [per_day] * working
    else:
        shares = distribute_s_curve(total, working)
    out: list[float | None] = []
    it = iter(shares)
    for is_work in flags:
        value = next(it) if is_work else 0.0
        out.append(value if value > 0 else None)
    return out


def _sheet_table(
    name: str,
    start: date,
    epics: list[tuple[str, float]],
    delivered_total: float,
    today: date,
    distribution: str,
    length_days: int,
) -> dict:
    days = [start + timedelta(days=i) for i in range(length_days)]
    flags = [is_working_day(d) for d in days]
    columns = ["Epic", *(d.strftime("%d/%m/%Y") for d in days)]
    rows: list[list] = []
    for epic_name, total in epics:
        rows.append([epic_name, *_daily_split(total, flags, distribution)])

    committed = []
    for i in range(len(days)):
        day_total = sum(row[i + 1] or 0.0 for row in rows)
        committed.append(round_half_up(day_total, 2) if day_total > 0 else None)

    elapsed = [i for i, d in enumerate(days) if d <= today]
    elapsed_working = sum(1 for i in elapsed if flags[i])
    delivered: list[float | None] = [None] * len(days)
    if delivered_total > 0 and elapsed_working > 0:
        per_day = round_half_up(delivered_total / elapsed_working, 2)
        for i in elapsed:
            delivered[i] = per_day if flags[i] else None

    committed_row = len(rows) + 2
    delivered_row = committed_row + 1
    remaining = []
    for i in range(len(days)):
        col = chr(ord("B") + i)
        remaining.append(
            f"=SUM($B${committed_row}:{col}${committed_row})-SUM($B${delivered_row}:{col}${delivered_row})"
        )
    rows.append(["Story Points Committed", *committed])
    rows.append(["Story Points Delivered", *delivered])
    rows.append([None] * len(columns))
    rows.append(["Story Points Remaining", *remaining])
    return {"name": name, "columns": columns, "rows": rows, "workingDays": sum(flags)}


def build_sprint_sheets(
    workbook_path: str | Path,
    *,
    today: date | None = None,
    distribution: str = "s-curve",
    book: PlanWorkbook | None = None,
    config: ReportConfig = DEFAULT_CONFIG,
) -> dict:
    """One ``Sprint N`` sheet table per dated sprint column of the main sheet.

    Each epic's sprint points are spread over the sprint's working days
    (S-curve or flat). The delivered row spreads the sprint's delivered total
    evenly over the working days elapsed by ``today``.
    """
    if distribution not in DISTRIBUTIONS:
        raise ValueError(f"distribution must be one of {', '.join(DISTRIBUTIONS)}")
    today = today or date.today()
    book = book or load_plan_workbook(workbook_path)
    plan = read_project_plan(book, require_totals=False)
    sprints = [s for s in plan.sprints if s.start_date is not None]
    epics = read_plan_epics(book, sprints)
    sheets = []
    for sprint in sprints:
        members = [(e.name, e.points.get(sprint.number, 0.0)) for e in epics]
        members = [(name, pts) for name, pts in members if pts > 0]
        sheets.append(
            _sheet_table(
                sprint.name,
                sprint.start_date,
                members,
                sprint.delivered,
                today,
                distribution,
                config.sprint_length_days,
            )
        )
        logger.info("%s: %s epics, %s committed", sprint.name, len(members), format_points(sum(p for _, p in members)))
    warnings = book.uncached_warnings()
    if not sprints:
        warnings.append("No dated Sprint columns found in the main sheet")
    return {
        "report": "sprint-sheets",
        "date": today.isoformat(),
        "workbook": str(book.path),
        "distribution": distribution,
        "sheets": sheets,
        "warnings": warnings,
    }
