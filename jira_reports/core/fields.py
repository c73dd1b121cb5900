"""Custom field lookup table, resolved once per run from the Jira field catalogue."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .config import FIELD_NAMES, ReportConfig
from .errors import FieldLookupError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: Sequence[str] = ("story_points", "sprint")
OPTIONAL_FIELDS: Sequence[str] = ("team",)


@dataclass(frozen=True, slots=True)
class FieldLookup:
    story_points: str
    sprint: str
    team: str | None = None

    def detail_fields(self, *extra: str) -> list[str]:
        """Field selection list for an issue detail request."""
        base = [
            "summary",
            "status",
            "issuetype",
            "assignee",
            "priority",
            "created",
            "updated",
            "resolutiondate",
            "fixVersions",
            self.story_points,
            self.sprint,
        ]
        if self.team:
            base.append(self.team)
        for name in extra:
            if name not in base:
                base.append(name)
        return base


def _match(catalogue: Iterable[Mapping[str, Any]], names: Sequence[str], preferred_id: str | None) -> str | None:
    candidates = [
        f
        for f in catalogue
        if isinstance(f.get("name"), str) and f["name"].strip().lower() in names and f.get("id")
    ]
    if not candidates:
        return None
    for f in candidates:
        if preferred_id and f.get("id") == preferred_id:
            return preferred_id
    return str(candidates[0]["id"])


def build_field_lookup(
    catalogue: Iterable[Mapping[str, Any]] | None,
    config: ReportConfig,
) -> FieldLookup:
    """Resolve custom field ids from the catalogue, falling back to configured ids.

    Required fields with neither a catalogue match nor a fallback raise
    ``FieldLookupError``; the optional team field resolves to ``None``.
    """
    entries = list(catalogue or [])
    resolved: dict[str, str | None] = {}
    for name in (*REQUIRED_FIELDS, *OPTIONAL_FIELDS):
        fallback = config.field_fallbacks.get(name)
        found = _match(entries, FIELD_NAMES.get(name, ()), fallback)
        if found:
            logger.debug("Resolved %s field: %s", name, found)
            resolved[name] = found
            continue
        if name in REQUIRED_FIELDS and not fallback:
            raise FieldLookupError(f"Could not find the {name.replace('_', ' ')} field and no fallback is configured")
        if fallback and entries:
            logger.warning("Could not find %s field; using default %s", name.replace("_", " "), fallback)
        resolved[name] = fallback
    return FieldLookup(
        story_points=str(resolved["story_points"]),
        sprint=str(resolved["sprint"]),
        team=resolved.get("team"),
    )
