"""Multi-page PDF rendering of report data (matplotlib, non-interactive backend)."""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.backends.backend_pdf import PdfPages  # noqa: E402

logger = logging.getLogger(__name__)

PAGE_SIZE = (11.69, 8.27)  # A4 landscape, inches
BAR_COLOR = "#4472C4"
DONE_COLOR = "#70AD47"
REMAINING_COLOR = "#C00000"


def summary_rows(data: dict) -> list[tuple[str, str]]:
    """Scalar entries of ``data["summary"]`` (plus a few header fields) as label/value pairs."""
    rows = []
    for key in ("project", "sprint", "sprintName", "date", "startDate", "endDate", "fixVersion"):
        if data.get(key) not in (None, ""):
            rows.append((key, str(data[key])))
    for key, value in (data.get("summary") or {}).items():
        if isinstance(value, (dict, list)):
            continue
        rows.append((key, str(value)))
    return rows


def bar_series(data: dict) -> tuple[str, list[str], list[float], list[float] | None] | None:
    """Pick the bucket list to chart: status categories, teams or assignees."""
    if data.get("categories"):
        items = data["categories"]
        return "Story points by status", [i.get("label", i["key"]) for i in items], [i["points"] for i in items], None
    for section, title in (("teams", "Story points by team"), ("assignees", "Story points by assignee")):
        items = data.get(section)
        if items and "totalPoints" in items[0]:
            labels = [str(i.get("name") or i.get("key") or "") for i in items]
            totals = [i["totalPoints"] for i in items]
            done = [i["completedPoints"] for i in items] if "completedPoints" in items[0] else None
            return title, labels, totals, done
    return None


def _summary_page(pdf: PdfPages, title: str, rows: list[tuple[str, str]], warnings: list[str]) -> None:
    fig = plt.figure(figsize=PAGE_SIZE)
    fig.suptitle(title, fontsize=18, fontweight="bold")
    ax = fig.add_axes([0.1, 0.25, 0.8, 0.6])
    ax.axis("off")
    if rows:
        table = ax.table(cellText=[[k, v] for k, v in rows], colLabels=["Metric", "Value"], loc="upper center")
        table.auto_set_font_size(False)
        table.set_fontsize(10)
        table.scale(1, 1.4)
    if warnings:
        shown = "\n".join(warnings[:8])
        more = f"\n(+{len(warnings) - 8} more)" if len(warnings) > 8 else ""
        fig.text(0.1, 0.05, f"Warnings:\n{shown}{more}", fontsize=8, color=REMAINING_COLOR, va="bottom")
    pdf.savefig(fig)
    plt.close(fig)


def _bar_page(pdf: PdfPages, title: str, labels: list[str], totals: list[float], done: list[float] | None) -> None:
    fig, ax = plt.subplots(figsize=PAGE_SIZE)
    positions = range(len(labels))
    ax.bar(positions, totals, color=BAR_COLOR, label="Total")
    if done is not None:
        ax.bar(positions, done, color=DONE_COLOR, label="Completed", width=0.5)
        ax.legend(frameon=False)
    ax.set_xticks(list(positions))
    ax.set_xticklabels(labels, rotation=30, ha="right")
    ax.set_ylabel("Story points")
    ax.set_title(title)
    ax.grid(True, axis="y", linestyle="--", linewidth=0.6, alpha=0.35)
    fig.tight_layout()
    pdf.savefig(fig)
    plt.close(fig)


def _burndown_page(pdf: PdfPages, days: list[dict]) -> None:
    fig, ax = plt.subplots(figsize=PAGE_SIZE)
    labels = [d["date"] for d in days]
    positions = range(len(days))
    ax.plot(positions, [d["remaining"] for d in days], marker="o", color=REMAINING_COLOR, label="Remaining")
    if "cumulativeCompleted" in days[0]:
        ax.plot(positions, [d["cumulativeCompleted"] for d in days], marker="o", color=DONE_COLOR, label="Completed")
    elif "delivered" in days[0]:
        ax.bar(positions, [d["committed"] for d in days], color=BAR_COLOR, alpha=0.5, label="Committed")
        ax.bar(positions, [d["delivered"] for d in days], color=DONE_COLOR, width=0.5, label="Delivered")
    ax.set_xticks(list(positions))
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_ylabel("Story points")
    ax.set_title("Burndown")
    ax.grid(True, linestyle="--", linewidth=0.6, alpha=0.35)
    ax.legend(frameon=False)
    fig.tight_layout()
    pdf.savefig(fig)
    plt.close(fig)


def render_pdf(data: dict, path: str | Path, *, title: str | None = None) -> Path:
    """Render a summary page, a bucket chart and a burndown chart when the data has them."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    heading = title or str(data.get("report", "Report")).replace("-", " ").title()
    with PdfPages(path) as pdf:
        _summary_page(pdf, heading, summary_rows(data), list(data.get("warnings") or []))
        series = bar_series(data)
        if series and series[1]:
            _bar_page(pdf, *series)
        if data.get("days"):
            _burndown_page(pdf, data["days"])
    logger.info("PDF saved to %s", path)
    return path
