"""IssueService: orchestrates search, per-issue detail fetch, mapping and normalization."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from jira_reports.analytics.metrics.points import normalize_points

from .config import DEFAULT_CONFIG, ReportConfig
from .errors import IssueFetchError, JiraReportError, UnauthorizedError
from .fields import FieldLookup, build_field_lookup
from .jira_client import JiraAPI
from .mappers import map_issue
from .models import IssueModel, NormalizedIssue
from .status import StatusCategoryMap

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]


@dataclass(slots=True)
class FetchResult:
    issues: list[IssueModel] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    searched: int = 0


class IssueService:
    def __init__(self, api: JiraAPI, config: ReportConfig = DEFAULT_CONFIG):
        self.api = api
        self.config = config
        self.status_map = StatusCategoryMap.from_config(config)
        self._lookup: FieldLookup | None = None

    # ------------------ Field discovery ------------------
    @property
    def lookup(self) -> FieldLookup:
        if self._lookup is None:
            self._lookup = self.resolve_fields()
        return self._lookup

    def resolve_fields(self) -> FieldLookup:
        """Build the field lookup table once.

        Any discovery failure other than rejected credentials falls back to the
        configured ids with a warning.
        """
        try:
            catalogue = self.api.fetch_fields()
        except UnauthorizedError:
            raise
        except JiraReportError as exc:
            logger.warning("Field discovery failed (%s); using configured field ids", exc)
            catalogue = []
        return build_field_lookup(catalogue, self.config)

    # ------------------ Fetch Methods ------------------
    def fetch_issues(
        self,
        jql: str,
        *,
        fields: list[str] | None = None,
        expand_changelog: bool = False,
        progress: ProgressCallback | None = None,
    ) -> FetchResult:
        """Search ``jql`` and fetch each match's detail record.

        The search call is fatal on failure. Each detail call that fails is
        skipped with a warning so the remaining issues still produce a report.
        """
        lookup = self.lookup
        logger.info("JQL: %s", jql)
        if progress:
            progress("Searching issues", None, None)
        keys = self.api.search_issue_keys(jql, max_results=self.config.search_result_cap)
        result = FetchResult(searched=len(keys))
        logger.info("Found %s issues", len(keys))
        if not keys:
            return result

        select = fields or lookup.detail_fields()
        raws = self._fetch_details(keys, select, expand_changelog, result, progress)
        for key in keys:
            raw = raws.get(key)
            if raw is not None:
                result.issues.append(map_issue(raw, lookup))
        logger.info("Fetched %s of %s issues", len(result.issues), len(keys))
        return result

    def normalize(self, issues: Iterable[IssueModel]) -> list[NormalizedIssue]:
        return [
            NormalizedIssue(
                issue=issue,
                value=normalize_points(issue, self.config),
                category=self.status_map.categorize(issue.status),
            )
            for issue in issues
        ]

    # ------------------ Internal Helpers ------------------
    def _fetch_details(
        self,
        keys: list[str],
        select: list[str],
        expand_changelog: bool,
        result: FetchResult,
        progress: ProgressCallback | None,
    ) -> dict[str, dict[str, Any]]:
        def _task(key: str) -> tuple[str, dict[str, Any] | None, str | None]:
            try:
                return key, self.api.fetch_issue_raw(key, select, expand_changelog=expand_changelog), None
            except IssueFetchError as exc:
                return key, None, str(exc)

        total = len(keys)
        if progress:
            progress("Fetching issue details", 0, total)
        # Sequential short-circuit
        if total < self.config.fetch_min_parallel or self.config.fetch_max_workers <= 1:
            outcomes = []
            for idx, key in enumerate(keys, start=1):
                outcomes.append(_task(key))
                if progress:
                    progress("Fetching issue details", idx, total)
        else:
            with ThreadPoolExecutor(max_workers=self.config.fetch_max_workers) as pool:
                outcomes = list(pool.map(_task, keys))
            if progress:
                progress("Fetching issue details", total, total)

        raws: dict[str, dict[str, Any]] = {}
        for key, raw, error in outcomes:
            if error is not None:
                logger.warning("Could not fetch %s: %s", key, error)
                result.warnings.append(f"Could not fetch {key}: {error}")
                result.skipped.append(key)
                continue
            raws[key] = raw
        return raws
