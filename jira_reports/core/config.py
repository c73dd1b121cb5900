"""Central configuration: connection defaults, workflow statuses, field ids and tuning knobs."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from .errors import ConfigurationError

# =============================================================================
# Jira Connection Settings
# =============================================================================
JIRA_DEFAULT_SERVER = "https://benchmarkestimating.atlassian.net"
TIMEZONE = "Europe/London"
DEFAULT_PROJECT_KEY = "VER10"
DEFAULT_SPRINT_NAME = "NH Sprint 31"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_REPORTS_DIR = "reports"

# =============================================================================
# Workflow Status Configuration
# =============================================================================
# Category label -> raw status synonyms (matched case-insensitively).
# Order is the display order of the category buckets.
STATUS_CATEGORIES: Mapping[str, Sequence[str]] = {
    "In Dev": ("In Dev",),
    "In Review": ("In Review", "Ready for Review"),
    "In QA": ("In QA",),
    "Completed": ("Ready for Release", "Closed"),
}
OTHER_CATEGORY = "Other"

# Statuses that count as delivered work
COMPLETED_STATUSES: Sequence[str] = ("Ready for Release", "Closed")

# Broader terminal set used where epics or legacy workflows close as "Done"
TERMINAL_STATUSES: Sequence[str] = ("Ready for Release", "Closed", "Done", "Completed")

QA_STATUSES: Sequence[str] = ("In QA",)
DEV_STATUSES: Sequence[str] = ("In Dev",)
REVIEW_STATUSES: Sequence[str] = ("In Review", "Ready for Review")

# =============================================================================
# Story Point Policy
# =============================================================================
# Types that get the default estimate when unpointed
ESTIMABLE_TYPES: frozenset[str] = frozenset({"Story", "Bug"})
# Types counted in sprint allocation views (Epics carry their own points)
COUNTABLE_TYPES: frozenset[str] = frozenset({"Epic", "Story", "Bug"})
DEFAULT_STORY_POINTS: float = 2.0

# =============================================================================
# Jira Custom Field IDs (fallbacks when discovery fails)
# =============================================================================
FIELD_IDS = {
    "story_points": "customfield_10003",
    "sprint": "customfield_11150",
    "team": "customfield_12700",
}

# Field catalogue names that identify each custom field (lowercase)
FIELD_NAMES: Mapping[str, Sequence[str]] = {
    "story_points": ("story points", "story point estimate"),
    "sprint": ("sprint",),
    "team": ("team",),
}

# =============================================================================
# Fetch tuning
# =============================================================================
# Detail fetches are I/O bound HTTP calls; keep the worker count moderate to
# avoid hitting Jira rate limits.
FETCH_MAX_WORKERS = 8
FETCH_MIN_PARALLEL = 4  # below this, stay sequential to reduce overhead
SEARCH_RESULT_CAP = 1000

# Hours in the same status before an active issue is reported as stale
STALE_THRESHOLD_HOURS = 24.0

# Sprint calendar
SPRINT_LENGTH_DAYS = 14

# =============================================================================
# Planning Workbook
# =============================================================================
# (name, first sprint, last sprint, kind); a sprint past the last release
# belongs to the final entry.
RELEASES: Sequence[tuple[str, int, int, str]] = (
    ("Release 1D", 30, 33, "feature"),
    ("Release 2A", 34, 36, "feature"),
    ("Bug Fixing Phase", 37, 38, "bugfix"),
)
PROGRESS_SHEET = "Progress"
SPRINT_SHEET_DAY_COLUMNS = 14


@dataclass(frozen=True, slots=True)
class ReportConfig:
    """Resolved workflow and policy settings passed into every pure function."""

    project_key: str = DEFAULT_PROJECT_KEY
    sprint_name: str = DEFAULT_SPRINT_NAME
    timezone: str = TIMEZONE
    status_categories: Mapping[str, Sequence[str]] = field(default_factory=lambda: dict(STATUS_CATEGORIES))
    completed_statuses: Sequence[str] = COMPLETED_STATUSES
    terminal_statuses: Sequence[str] = TERMINAL_STATUSES
    qa_statuses: Sequence[str] = QA_STATUSES
    dev_statuses: Sequence[str] = DEV_STATUSES
    review_statuses: Sequence[str] = REVIEW_STATUSES
    estimable_types: frozenset[str] = ESTIMABLE_TYPES
    countable_types: frozenset[str] = COUNTABLE_TYPES
    default_points: float = DEFAULT_STORY_POINTS
    field_fallbacks: Mapping[str, str | None] = field(default_factory=lambda: dict(FIELD_IDS))
    stale_threshold_hours: float = STALE_THRESHOLD_HOURS
    fetch_max_workers: int = FETCH_MAX_WORKERS
    fetch_min_parallel: int = FETCH_MIN_PARALLEL
    search_result_cap: int = SEARCH_RESULT_CAP
    sprint_length_days: int = SPRINT_LENGTH_DAYS
    releases: Sequence[tuple[str, int, int, str]] = RELEASES
    progress_sheet: str = PROGRESS_SHEET

    def with_overrides(self, **changes) -> ReportConfig:
        return replace(self, **changes)


DEFAULT_CONFIG = ReportConfig()


@dataclass(frozen=True, slots=True)
class Settings:
    """Credentials and run location, sourced from the process environment."""

    server: str
    email: str
    token: str
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    reports_dir: Path = Path(DEFAULT_REPORTS_DIR)
    config_path: Path | None = None
    project_key: str | None = None
    sprint_name: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, *, require_credentials: bool = True) -> Settings:
        """Build settings from environment variables.

        Raises
        ------
        ConfigurationError
            If ``JIRA_EMAIL`` or ``JIRA_API_TOKEN`` is absent (and ``require_credentials``
            is set) or the timeout is not a number.
        """
        env = os.environ if environ is None else environ
        email = (env.get("JIRA_EMAIL") or "").strip()
        token = (env.get("JIRA_API_TOKEN") or "").strip()
        missing = [name for name, value in (("JIRA_EMAIL", email), ("JIRA_API_TOKEN", token)) if not value]
        if missing and require_credentials:
            raise ConfigurationError(f"Missing required environment variable(s): {', '.join(missing)}")
        raw_timeout = env.get("JIRA_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS
        except ValueError as exc:
            raise ConfigurationError(f"JIRA_TIMEOUT must be a number of seconds, got {raw_timeout!r}") from exc
        config_path = env.get("JIRA_REPORTS_CONFIG")
        return cls(
            server=(env.get("JIRA_BASE_URL") or JIRA_DEFAULT_SERVER).rstrip("/"),
            email=email,
            token=token,
            timeout=timeout,
            reports_dir=Path(env.get("REPORTS_DIR") or DEFAULT_REPORTS_DIR),
            config_path=Path(config_path) if config_path else None,
            project_key=env.get("JIRA_PROJECT_KEY") or None,
            sprint_name=env.get("JIRA_SPRINT") or None,
        )
