"""Command line entry point: one sub-command per report."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from datetime import date, datetime
from pathlib import Path

from dotenv import load_dotenv

from jira_reports import reports
from jira_reports.core.config import ReportConfig, Settings
from jira_reports.core.errors import (
    ConfigurationError,
    JiraReportError,
    TransportError,
    UnauthorizedError,
    WorkbookLayoutError,
)
from jira_reports.core.jira_client import JiraAPI
from jira_reports.core.report_config import load_report_config
from jira_reports.core.service import IssueService
from jira_reports.visual.excel import report_frames, sheet_table_frames, write_sheets
from jira_reports.visual.json_report import write_json_report
from jira_reports.visual.pdf import render_pdf

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RUNTIME = 1
EXIT_CONFIG = 2

WORKBOOK_COMMANDS = {"sprint-report", "sprint-sheets"}


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r} (expected YYYY-MM-DD)") from None


# ------------------ Handlers ------------------
def _points_by_status(service: IssueService, args) -> dict:
    return reports.build_points_by_status(service, sprint=args.sprint)


def _completed_points(service: IssueService, args) -> dict:
    return reports.build_completed_points(service, args.start, args.end)


def _work_done_today(service: IssueService, args) -> dict:
    return reports.build_work_done_today(service)


def _sprint_progress(service: IssueService, args) -> dict:
    return reports.build_sprint_progress(service, sprint=args.sprint, start_date=args.start_date)


def _burndown_summary(service: IssueService, args) -> dict:
    return reports.build_burndown_summary(service, sprint=args.sprint, start_date=args.start_date)


def _assignee_allocation(service: IssueService, args) -> dict:
    return reports.build_assignee_allocation(service, sprints=args.sprints or None)


def _team_allocation(service: IssueService, args) -> dict:
    return reports.build_team_allocation(service, sprint=args.sprint)


def _dev_review(service: IssueService, args) -> dict:
    return reports.build_dev_review(service, sprint=args.sprint)


def _time_in_status(service: IssueService, args) -> dict:
    return reports.build_time_in_status(service, sprint=args.sprint)


def _issues_in_qa(service: IssueService, args) -> dict:
    return reports.build_issues_in_qa(service, sprint=args.sprint)


def _moved_to_qa(service: IssueService, args) -> dict:
    return reports.build_moved_to_qa(service)


def _completed_epics(service: IssueService, args) -> dict:
    return reports.build_completed_epics(service, args.fix_version)


JIRA_COMMANDS: dict[str, Callable[[IssueService, argparse.Namespace], dict]] = {
    "points-by-status": _points_by_status,
    "completed-points": _completed_points,
    "work-done-today": _work_done_today,
    "sprint-progress": _sprint_progress,
    "burndown-summary": _burndown_summary,
    "assignee-allocation": _assignee_allocation,
    "team-allocation": _team_allocation,
    "dev-review": _dev_review,
    "time-in-status": _time_in_status,
    "issues-in-qa": _issues_in_qa,
    "moved-to-qa": _moved_to_qa,
    "completed-epics": _completed_epics,
}


# ------------------ Parser ------------------
def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--sprint", help="Sprint name (default: JIRA_SPRINT or the configured sprint)")
    common.add_argument("-o", "--output-dir", type=Path, help="Directory for report files (default: REPORTS_DIR)")
    common.add_argument("-c", "--config", type=Path, help="YAML file overriding report settings")
    common.add_argument("--pdf", action="store_true", help="Also render the report as PDF")
    common.add_argument("--excel", type=Path, metavar="WORKBOOK", help="Also write the report into WORKBOOK")
    common.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser = argparse.ArgumentParser(
        prog="jira-reports",
        description="Sprint reporting over Jira issues and the story point planning workbook",
    )
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    sub.add_parser("points-by-status", parents=[common], help="Story points per status category")
    p = sub.add_parser("completed-points", parents=[common], help="Points completed between two dates")
    p.add_argument("start", type=parse_date, help="First day (YYYY-MM-DD)")
    p.add_argument("end", type=parse_date, help="Last day (YYYY-MM-DD), inclusive")
    sub.add_parser("work-done-today", parents=[common], help="Issues moved to done, QA or dev today")
    for name, text in (
        ("sprint-progress", "Daily completion since sprint start with velocity"),
        ("burndown-summary", "Initial versus added scope since sprint start"),
    ):
        p = sub.add_parser(name, parents=[common], help=text)
        p.add_argument("--start-date", type=parse_date, help="Sprint start (default: from the sprint field)")
    p = sub.add_parser("assignee-allocation", parents=[common], help="Points per assignee across sprints")
    p.add_argument("sprints", nargs="*", help="Sprint names (default: --sprint)")
    sub.add_parser("team-allocation", parents=[common], help="Points per team")
    sub.add_parser("dev-review", parents=[common], help="In dev and in review work per assignee")
    sub.add_parser("time-in-status", parents=[common], help="Active issues stuck in one status")
    sub.add_parser("issues-in-qa", parents=[common], help="Issues currently in QA")
    sub.add_parser("moved-to-qa", parents=[common], help="Issues moved into QA today")
    p = sub.add_parser("completed-epics", parents=[common], help="Completed epics of a fix version")
    p.add_argument("fix_version", metavar="FIX_VERSION")

    p = sub.add_parser("sprint-report", parents=[common], help="Sprint report from the planning workbook")
    p.add_argument("sprint_number", type=int, metavar="SPRINT_NUMBER")
    p.add_argument("--workbook", type=Path, required=True, help="Story point planning workbook (.xlsx)")
    p.add_argument("--no-progress", action="store_true", help="Do not update the Progress sheet")
    p = sub.add_parser("sprint-sheets", parents=[common], help="Generate Sprint N sheets in the planning workbook")
    p.add_argument("--workbook", type=Path, required=True, help="Story point planning workbook (.xlsx)")
    p.add_argument("--distribution", choices=["s-curve", "flat"], default="s-curve")
    return parser


# ------------------ Run ------------------
def summary_line(data: dict) -> str:
    parts = [
        f"{key}={value}"
        for key, value in (data.get("summary") or {}).items()
        if isinstance(value, (int, float, str)) and not isinstance(value, bool)
    ]
    warnings = data.get("warnings") or []
    if warnings:
        parts.append(f"warnings={len(warnings)}")
    return f"{data.get('report', 'report')}: " + ", ".join(parts[:8])


def _report_config(args, settings: Settings) -> ReportConfig:
    config = load_report_config(args.config or settings.config_path)
    overrides = {}
    if settings.project_key:
        overrides["project_key"] = settings.project_key
    if settings.sprint_name:
        overrides["sprint_name"] = settings.sprint_name
    return config.with_overrides(**overrides) if overrides else config


def _stamp(args, data: dict) -> str:
    if args.command == "completed-points":
        return f"{args.start.isoformat()}_{args.end.isoformat()}"
    if args.command == "sprint-report":
        return f"sprint-{args.sprint_number}"
    if args.command == "completed-epics":
        return f"{args.fix_version}-{data['date']}"
    return data["date"]


def run(args: argparse.Namespace) -> dict:
    settings = Settings.from_env(require_credentials=args.command not in WORKBOOK_COMMANDS)
    config = _report_config(args, settings)
    if args.command == "sprint-report":
        data = reports.build_sprint_report(
            args.workbook,
            args.sprint_number,
            update_progress=not args.no_progress,
            config=config,
        )
    elif args.command == "sprint-sheets":
        data = reports.build_sprint_sheets(args.workbook, distribution=args.distribution, config=config)
        write_sheets(args.workbook, sheet_table_frames(data))
    else:
        api = JiraAPI(settings.server, settings.email, settings.token, timeout=settings.timeout)
        data = JIRA_COMMANDS[args.command](IssueService(api, config), args)

    output_dir = args.output_dir or settings.reports_dir
    path = write_json_report(data, output_dir, args.command, _stamp(args, data))
    if args.pdf:
        render_pdf(data, path.with_suffix(".pdf"))
    if args.excel:
        write_sheets(args.excel, report_frames(data))
    return data


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "completed-points" and args.start > args.end:
        parser.error("start must not be after end")
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        data = run(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except UnauthorizedError as exc:
        print(f"Jira rejected the credentials: {exc}\n{exc.hint}", file=sys.stderr)
        return EXIT_RUNTIME
    except TransportError as exc:
        print(f"Could not reach Jira: {exc}", file=sys.stderr)
        return EXIT_RUNTIME
    except WorkbookLayoutError as exc:
        print(f"Workbook error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME
    except JiraReportError as exc:
        logger.debug("Run failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME
    for warning in data.get("warnings") or []:
        logger.warning("%s", warning)
    print(summary_line(data))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
