"""JSON report writer."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def report_filename(name: str, stamp: str, suffix: str = ".json") -> str:
    safe = str(stamp).replace("/", "-").replace(" ", "-")
    return f"{name}-{safe}{suffix}"


def write_json_report(data: dict, output_dir: str | Path, name: str, stamp: str) -> Path:
    """Write ``data`` as indented JSON to ``output_dir/<name>-<stamp>.json``."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / report_filename(name, stamp)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    logger.info("Report saved to %s", path)
    return path
