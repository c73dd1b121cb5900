"""Load ReportConfig overrides from YAML (with fallbacks to the built-in defaults)."""

from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from .config import DEFAULT_CONFIG, ReportConfig
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_SET_FIELDS = {"estimable_types", "countable_types"}
_TUPLE_FIELDS = {
    "completed_statuses",
    "terminal_statuses",
    "qa_statuses",
    "dev_statuses",
    "review_statuses",
}


def _coerce(name: str, value: Any) -> Any:
    if name in _SET_FIELDS:
        return frozenset(str(v) for v in value or [])
    if name in _TUPLE_FIELDS:
        return tuple(str(v) for v in value or [])
    if name == "releases":
        return _releases(value)
    if name == "status_categories":
        if not isinstance(value, dict):
            raise ConfigurationError("status_categories must map a category label to a list of statuses")
        return {str(label): tuple(str(s) for s in synonyms or []) for label, synonyms in value.items()}
    return value


def _releases(value: Any) -> tuple[tuple[str, int, int, str], ...]:
    """Entries are ``[name, first sprint, last sprint, kind]`` lists, in sprint order."""
    if not isinstance(value, list) or not value:
        raise ConfigurationError("releases must be a non-empty list of [name, first sprint, last sprint, kind]")
    out = []
    for entry in value:
        if not isinstance(entry, (list, tuple)) or len(entry) != 4:
            raise ConfigurationError(f"Invalid release entry {entry!r}; expected [name, first sprint, last sprint, kind]")
        name, first, last, kind = entry
        try:
            out.append((str(name), int(first), int(last), str(kind)))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid sprint numbers in release entry {entry!r}", original_error=exc) from exc
    return tuple(out)


def load_report_config(
    path: str | Path | None = None,
    *,
    base: ReportConfig = DEFAULT_CONFIG,
) -> ReportConfig:
    """Return ``base`` with any keys found in the YAML file at ``path`` applied.

    A missing path or file yields ``base`` unchanged. Unknown keys are logged and
    ignored; a file that is not a mapping raises ``ConfigurationError``.
    """
    if path is None:
        return base
    yaml_path = Path(path)
    if not yaml_path.exists():
        logger.info("Report config %s not found; using defaults", yaml_path)
        return base
    try:
        data = yaml.safe_load(yaml_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {yaml_path}: {exc}", original_error=exc) from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{yaml_path} must contain a mapping of settings")

    known = {f.name for f in fields(ReportConfig)}
    overrides: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown report config key %r in %s", key, yaml_path)
            continue
        overrides[key] = _coerce(key, value)
    return base.with_overrides(**overrides)
