"""Spreadsheet output: named sheets added to (or replaced in) a workbook via pandas + openpyxl."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)

MAX_SHEET_NAME = 31


def write_sheets(path: str | Path, frames: Mapping[str, pd.DataFrame]) -> Path:
    """Write each frame to its own sheet, replacing same-named sheets.

    Other sheets of an existing workbook are left untouched; a missing
    workbook is created.
    """
    path = Path(path)
    if path.exists():
        writer = pd.ExcelWriter(path, engine="openpyxl", mode="a", if_sheet_exists="replace")
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
        writer = pd.ExcelWriter(path, engine="openpyxl", mode="w")
    with writer:
        for name, frame in frames.items():
            frame.to_excel(writer, sheet_name=name[:MAX_SHEET_NAME], index=False)
    logger.info("Wrote %s sheet(s) to %s", len(frames), path)
    return path


def _cell_safe(frame: pd.DataFrame) -> pd.DataFrame:
    return frame.map(lambda v: ", ".join(map(str, v)) if isinstance(v, (list, tuple)) else v)


def report_frames(data: dict) -> dict[str, pd.DataFrame]:
    """Summary sheet plus one sheet per list-of-records section of a report."""
    name = str(data.get("report", "report"))
    summary = {k: v for k, v in (data.get("summary") or {}).items() if not isinstance(v, (dict, list))}
    frames = {f"{name} summary": pd.DataFrame({"metric": list(summary), "value": list(summary.values())})}
    for key, value in data.items():
        if key in {"summary", "warnings"}:
            continue
        if isinstance(value, list) and value and all(isinstance(v, dict) for v in value):
            frames[f"{name} {key}"] = _cell_safe(pd.json_normalize(value, sep="."))
    if data.get("warnings"):
        frames[f"{name} warnings"] = pd.DataFrame({"warning": data["warnings"]})
    return frames


def sheet_table_frames(report: dict) -> dict[str, pd.DataFrame]:
    """Frames for pre-laid-out sheet tables (``{"name", "columns", "rows"}`` entries)."""
    return {t["name"]: pd.DataFrame(t["rows"], columns=t["columns"]) for t in report.get("sheets", [])}
