"""Planning workbook access.

Cells are loaded once into ``Literal`` / ``Formula`` values: the workbook is
opened twice with openpyxl, once for the stored content (formula text) and
once with ``data_only=True`` for the results Excel cached on last save.
Everything downstream calls ``resolve()`` and never inspects raw cells.

Rows are located through a ``RowLabelIndex`` built from column A of a sheet.
A missing label raises ``WorkbookLayoutError`` at lookup time, naming the
sheet and the label.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.formula import ArrayFormula

from jira_reports.analytics.metrics.velocity import (
    distribute_s_curve,
    is_working_day,
    round_half_up,
    round_whole,
    working_days_between,
)

from .config import PROGRESS_SHEET, RELEASES, SPRINT_LENGTH_DAYS, SPRINT_SHEET_DAY_COLUMNS
from .errors import WorkbookLayoutError
from .status import status_key

logger = logging.getLogger(__name__)

EXCEL_EPOCH = date(1970, 1, 1)
EXCEL_EPOCH_SERIAL = 25569
SPRINT_HEADER = re.compile(r"Sprint\s+(\d+)", re.IGNORECASE)
MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")


# ------------------ Cell values ------------------
@dataclass(frozen=True, slots=True)
class Literal:
    value: Any


@dataclass(frozen=True, slots=True)
class Formula:
    expression: str
    result: Any = None


CellValue = Literal | Formula


def resolve(cell: CellValue | None) -> Any:
    if cell is None:
        return None
    if isinstance(cell, Formula):
        return cell.result
    return cell.value


def to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def excel_serial_to_date(serial: float) -> date:
    return EXCEL_EPOCH + timedelta(days=int(serial // 1) - EXCEL_EPOCH_SERIAL)


def to_date(value: Any, *, year: int | None = None) -> date | None:
    """Interpret a cell value as a calendar date.

    Accepts datetimes, Excel serial numbers, ``DD/MM/YYYY`` strings and
    ``DD-Mon`` strings (``year`` defaults to the current year).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return excel_serial_to_date(value)
    text = str(value).strip()
    parts = text.split("/")
    if len(parts) == 3:
        try:
            return date(int(parts[2]), int(parts[1]), int(parts[0]))
        except ValueError:
            return None
    parts = text.lower().split("-")
    if len(parts) == 2 and parts[1][:3] in MONTHS and parts[0].isdigit():
        try:
            return date(year or date.today().year, MONTHS.index(parts[1][:3]) + 1, int(parts[0]))
        except ValueError:
            return None
    return None


# ------------------ Sheets ------------------
@dataclass(slots=True)
class SheetGrid:
    name: str
    cells: dict[tuple[int, int], CellValue] = field(default_factory=dict)
    max_row: int = 0
    max_column: int = 0
    uncached: list[str] = field(default_factory=list)

    def cell(self, row: int, column: int) -> CellValue | None:
        return self.cells.get((row, column))

    def value(self, row: int, column: int) -> Any:
        return resolve(self.cell(row, column))

    def number(self, row: int, column: int, default: float = 0.0, *, required: bool = False) -> float:
        """Numeric value of a cell, or ``default`` when it is empty or not a number.

        A formula without a cached result (the file was last saved by a tool
        that does not recalculate) is recorded in ``uncached``; ``required``
        cells raise ``WorkbookLayoutError`` instead.
        """
        cell = self.cell(row, column)
        if isinstance(cell, Formula) and cell.result is None:
            address = f"{get_column_letter(column)}{row}"
            if required:
                raise WorkbookLayoutError(
                    f'Sheet "{self.name}" cell {address} ({cell.expression}) has no calculated value; '
                    "open and save the workbook in Excel to recalculate it"
                )
            if address not in self.uncached:
                self.uncached.append(address)
        num = to_number(resolve(cell))
        return default if num is None else num

    def date(self, row: int, column: int) -> date | None:
        return to_date(self.value(row, column))

    def label(self, row: int) -> str:
        value = self.value(row, 1)
        return "" if value is None else str(value).strip()


@dataclass(frozen=True, slots=True)
class RowLabelIndex:
    """Column-A label -> row number for one sheet (first occurrence wins)."""

    sheet: str
    rows: Mapping[str, int]

    @classmethod
    def from_grid(cls, grid: SheetGrid) -> RowLabelIndex:
        rows: dict[str, int] = {}
        for row in range(1, grid.max_row + 1):
            key = status_key(grid.label(row))
            if key and key not in rows:
                rows[key] = row
        return cls(sheet=grid.name, rows=rows)

    def get(self, label: str) -> int | None:
        return self.rows.get(status_key(label))

    def row(self, label: str) -> int:
        found = self.get(label)
        if found is None:
            raise WorkbookLayoutError(f'Sheet "{self.sheet}" has no row labelled "{label}"')
        return found

    def find_containing(self, *parts: str) -> int | None:
        wanted = [status_key(p) for p in parts]
        for key, row in sorted(self.rows.items(), key=lambda kv: kv[1]):
            if all(w in key for w in wanted):
                return row
        return None

    def row_containing(self, *parts: str) -> int:
        found = self.find_containing(*parts)
        if found is None:
            raise WorkbookLayoutError(
                f'Sheet "{self.sheet}" has no row whose label contains {" + ".join(repr(p) for p in parts)}'
            )
        return found


@dataclass(slots=True)
class PlanWorkbook:
    path: Path
    sheets: dict[str, SheetGrid]

    @property
    def sheet_names(self) -> list[str]:
        return list(self.sheets)

    @property
    def main(self) -> SheetGrid:
        if not self.sheets:
            raise WorkbookLayoutError(f"{self.path} contains no sheets")
        return next(iter(self.sheets.values()))

    def uncached_warnings(self) -> list[str]:
        return [
            f'Sheet "{grid.name}" has formulas without calculated values (read as 0): {", ".join(grid.uncached)}'
            for grid in self.sheets.values()
            if grid.uncached
        ]

    def has_sheet(self, name: str) -> bool:
        return name in self.sheets

    def sheet(self, name: str) -> SheetGrid:
        try:
            return self.sheets[name]
        except KeyError:
            raise WorkbookLayoutError(
                f'Sheet "{name}" not found. Available sheets: {", ".join(self.sheet_names)}'
            ) from None


def _read_grid(ws, cached_ws) -> SheetGrid:
    grid = SheetGrid(ws.title, max_row=ws.max_row, max_column=ws.max_column)
    for row in ws.iter_rows():
        for cell in row:
            raw = cell.value
            if raw is None:
                continue
            if isinstance(raw, ArrayFormula):
                value: CellValue = Formula(raw.text, cached_ws.cell(cell.row, cell.column).value)
            elif isinstance(raw, str) and raw.startswith("="):
                value = Formula(raw, cached_ws.cell(cell.row, cell.column).value)
            else:
                value = Literal(raw)
            grid.cells[(cell.row, cell.column)] = value
    return grid


def load_plan_workbook(path: str | Path) -> PlanWorkbook:
    path = Path(path)
    if not path.exists():
        raise WorkbookLayoutError(f"Workbook not found: {path}")
    logger.info("Reading workbook %s", path)
    stored = load_workbook(path, data_only=False)
    cached = load_workbook(path, data_only=True)
    try:
        sheets = {ws.title: _read_grid(ws, cached[ws.title]) for ws in stored.worksheets}
    finally:
        stored.close()
        cached.close()
    logger.debug("Loaded sheets: %s", ", ".join(sheets))
    return PlanWorkbook(path=path, sheets=sheets)


# ------------------ Sprint sheets ------------------
@dataclass(slots=True)
class EpicRow:
    name: str
    committed: float


@dataclass(slots=True)
class SprintSheet:
    sprint_number: int
    name: str
    dates: list[date]
    epics: list[EpicRow]
    committed_by_day: list[float]
    delivered_by_day: list[float]

    @property
    def start_date(self) -> date | None:
        return self.dates[0] if self.dates else None

    @property
    def end_date(self) -> date | None:
        return self.dates[-1] if self.dates else None

    @property
    def total_committed(self) -> int:
        return round_whole(sum(self.committed_by_day))

    @property
    def total_delivered(self) -> int:
        return round_whole(sum(self.delivered_by_day))

    @property
    def remaining_by_day(self) -> list[float]:
        out, committed, delivered = [], 0.0, 0.0
        for c, d in zip(self.committed_by_day, self.delivered_by_day):
            committed += c
            delivered += d
            out.append(round_half_up(committed - delivered, 2))
        return out

    @property
    def delivery_percentage(self) -> int:
        if self.total_committed <= 0:
            return 0
        return round_whole(self.total_delivered / self.total_committed * 100)


def read_sprint_sheet(book: PlanWorkbook, sprint_number: int) -> SprintSheet:
    """Daily committed/delivered rows and epic totals from the ``Sprint N`` sheet."""
    grid = book.sheet(f"Sprint {sprint_number}")
    index = RowLabelIndex.from_grid(grid)
    committed_row = index.row("Story Points Committed")
    delivered_row = index.row("Story Points Delivered")
    columns = range(2, 2 + SPRINT_SHEET_DAY_COLUMNS)

    dates = [d for d in (grid.date(1, col) for col in columns) if d is not None]
    epics = []
    for row in range(2, committed_row):
        name = grid.label(row)
        if name:
            epics.append(EpicRow(name, sum(grid.number(row, col) for col in columns)))
    return SprintSheet(
        sprint_number=sprint_number,
        name=grid.name,
        dates=dates,
        epics=epics,
        committed_by_day=[grid.number(committed_row, col) for col in columns],
        delivered_by_day=[grid.number(delivered_row, col) for col in columns],
    )


# ------------------ Main plan sheet ------------------
@dataclass(frozen=True, slots=True)
class Release:
    name: str
    first_sprint: int
    end_sprint: int
    kind: str

    def includes(self, sprint_number: int) -> bool:
        return self.first_sprint <= sprint_number <= self.end_sprint

    def to_dict(self) -> dict:
        return {"name": self.name, "endSprint": self.end_sprint, "type": self.kind}


def release_for(sprint_number: int, releases: Sequence[tuple[str, int, int, str]] = RELEASES) -> Release:
    for entry in releases:
        if sprint_number <= entry[2]:
            return Release(*entry)
    return Release(*releases[-1])


@dataclass(frozen=True, slots=True)
class SprintColumn:
    number: int
    column: int
    start_date: date | None
    committed: float = 0.0
    delivered: float = 0.0

    @property
    def name(self) -> str:
        return f"Sprint {self.number}"


@dataclass(slots=True)
class ProjectPlan:
    sprints: list[SprintColumn]
    total_remaining: float
    delivered_today: float = 0.0

    @property
    def total_delivered(self) -> float:
        return sum(s.delivered for s in self.sprints)

    @property
    def total_project_points(self) -> float:
        return self.total_remaining + self.total_delivered

    @property
    def delivered_percentage(self) -> int:
        if self.total_project_points <= 0:
            return 0
        return round_whole(self.total_delivered / self.total_project_points * 100)

    @property
    def last_sprint_end(self) -> date | None:
        dated = [s for s in self.sprints if s.start_date is not None]
        if not dated:
            return None
        return dated[-1].start_date + timedelta(days=SPRINT_LENGTH_DAYS - 1)

    def sprint(self, number: int) -> SprintColumn | None:
        return next((s for s in self.sprints if s.number == number), None)

    def release_totals(self, release: Release) -> tuple[float, float]:
        members = [s for s in self.sprints if release.includes(s.number)]
        return sum(s.committed for s in members), sum(s.delivered for s in members)


def sprint_columns(grid: SheetGrid, committed_row: int | None, delivered_row: int | None) -> list[SprintColumn]:
    """Every ``Sprint N`` header in row 1 with its start date (row 2) and point totals."""
    out = []
    for col in range(2, grid.max_column + 1):
        match = SPRINT_HEADER.search(str(grid.value(1, col) or ""))
        if not match:
            continue
        out.append(
            SprintColumn(
                number=int(match.group(1)),
                column=col,
                start_date=grid.date(2, col),
                committed=grid.number(committed_row, col) if committed_row else 0.0,
                delivered=grid.number(delivered_row, col) if delivered_row else 0.0,
            )
        )
    return out


def read_project_plan(book: PlanWorkbook, *, require_totals: bool = True) -> ProjectPlan:
    grid = book.main
    index = RowLabelIndex.from_grid(grid)
    remaining_row = index.row_containing("TOTAL PROJECT", "REMAIN")
    delivered_row = index.row("STORY POINTS DELIVERED")
    committed_row = index.find_containing("TOTAL COMMITTED", "SPRINT")
    if committed_row is None:
        logger.warning('Sheet "%s" has no committed-per-sprint row; committed totals read as 0', grid.name)
    today_row = index.get("DELIVERED TODAY")
    return ProjectPlan(
        sprints=sprint_columns(grid, committed_row, delivered_row),
        total_remaining=grid.number(remaining_row, 2, required=require_totals),
        delivered_today=grid.number(today_row, 2) if today_row else 0.0,
    )


@dataclass(slots=True)
class PlanEpic:
    name: str
    points: dict[int, float]


def read_plan_epics(book: PlanWorkbook, sprints: Iterable[SprintColumn]) -> list[PlanEpic]:
    """Epic rows of the main sheet with points per sprint number.

    Reading stops at an ``IGNORE`` marker row; totals and delivered rows are skipped.
    """
    grid = book.main
    sprints = list(sprints)
    skip = {status_key(s) for s in ("Dates", "Story Points Delivered", "Delivered Today")}
    epics = []
    for row in range(3, grid.max_row + 1):
        name = grid.label(row)
        key = status_key(name)
        if not key:
            continue
        if "ignore" in key:
            break
        if key in skip or "total" in key:
            continue
        epics.append(PlanEpic(name, {s.number: grid.number(row, s.column) for s in sprints}))
    return epics


# ------------------ Progress sheet ------------------
def progress_targets(
    sprints: Sequence[SprintColumn],
    days: Iterable[date],
    *,
    working_days: int = 10,
) -> dict[date, float]:
    """S-curve daily target (1 dp) for each working day, taken from the sprint it falls in."""
    scheduled = sorted((s for s in sprints if s.start_date is not None), key=lambda s: s.start_date)
    curves = {s.number: distribute_s_curve(s.committed, working_days) for s in scheduled}
    targets: dict[date, float] = {}
    for day in days:
        if not is_working_day(day):
            continue
        owner = None
        for sprint in scheduled:
            if sprint.start_date <= day:
                owner = sprint
        if owner is None:
            continue
        position = working_days_between(owner.start_date, day - timedelta(days=1))
        curve = curves[owner.number]
        if position < len(curve) and curve[position] > 0:
            targets[day] = round_half_up(curve[position], 1)
    return targets


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    targets_written: int
    today_column: int | None
    today_target: float | None

    def to_dict(self) -> dict:
        return {
            "targetsWritten": self.targets_written,
            "todayColumn": self.today_column,
            "todayTarget": self.today_target,
        }


def update_progress_sheet(
    path: str | Path,
    plan: ProjectPlan,
    today: date,
    actual_today: float,
    burndown_total: float,
    *,
    sheet_name: str = PROGRESS_SHEET,
) -> ProgressUpdate:
    """Write daily targets and today's actual into the Progress sheet and save.

    Rows: 2 target, 3 actual, 4 cumulative target, 5 cumulative actual,
    6 variance (up to today only), 7 burndown against ``burndown_total``.
    """
    path = Path(path)
    wb = load_workbook(path)
    if sheet_name not in wb.sheetnames:
        raise WorkbookLayoutError(f'Sheet "{sheet_name}" not found in {path}')
    ws = wb[sheet_name]
    cached_wb = load_workbook(path, data_only=True)
    cached = cached_wb[sheet_name]

    columns: list[tuple[int, date]] = []
    for col in range(2, ws.max_column + 1):
        raw = ws.cell(1, col).value
        if isinstance(raw, str) and raw.startswith("="):
            raw = cached.cell(1, col).value
        day = to_date(raw)
        if day is not None:
            columns.append((col, day))
    cached_wb.close()

    targets = progress_targets(plan.sprints, [day for _, day in columns])
    written = 0
    today_column = None
    cumulative_target = cumulative_actual = 0.0
    for col, day in columns:
        if day in targets:
            ws.cell(2, col).value = targets[day]
            written += 1
        if day == today:
            ws.cell(3, col).value = actual_today
            today_column = col
        cumulative_target += to_number(ws.cell(2, col).value) or 0.0
        cumulative_actual += to_number(ws.cell(3, col).value) or 0.0
        if cumulative_target > 0:
            ws.cell(4, col).value = round_half_up(cumulative_target, 1)
        if cumulative_actual > 0:
            ws.cell(5, col).value = round_half_up(cumulative_actual, 1)
        if cumulative_target > 0 and day <= today:
            ws.cell(6, col).value = round_half_up(cumulative_actual - cumulative_target, 1)
        else:
            ws.cell(6, col).value = None
        if burndown_total > 0:
            ws.cell(7, col).value = round_half_up(burndown_total - cumulative_actual, 1)

    if today_column is None:
        logger.warning("Today's date (%s) is not a column of the %s sheet", today.isoformat(), sheet_name)
    wb.save(path)
    logger.info("Updated %s target cells in %s", written, sheet_name)
    return ProgressUpdate(written, today_column, targets.get(today))
