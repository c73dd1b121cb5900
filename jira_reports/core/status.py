"""Status normalization and categorization utilities.

Workflow status naming is inconsistent across projects ("READY FOR REVIEW",
"Ready for Review", ...), so every comparison here is case-insensitive and
whitespace-trimmed. Category synonyms come from ``ReportConfig.status_categories``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .config import OTHER_CATEGORY, ReportConfig


def status_key(value: str | None) -> str:
    """Comparison key for a status label (``""`` for empty values)."""
    if not value:
        return ""
    return " ".join(str(value).split()).lower()


def status_in(value: str | None, targets: Iterable[str]) -> bool:
    key = status_key(value)
    return bool(key) and any(key == status_key(t) for t in targets)


@dataclass(frozen=True, slots=True)
class StatusCategoryMap:
    """Fixed category buckets, each backed by one or more raw status synonyms."""

    categories: Mapping[str, Sequence[str]]
    other: str = OTHER_CATEGORY

    @classmethod
    def from_config(cls, config: ReportConfig) -> StatusCategoryMap:
        return cls(categories=dict(config.status_categories))

    def categorize(self, status: str | None) -> str:
        """Return the category label for ``status``.

        Examples
        --------
        >>> m = StatusCategoryMap({"In Review": ("In Review", "Ready for Review")})
        >>> m.categorize("READY FOR REVIEW")
        'In Review'
        >>> m.categorize("Blocked")
        'Other'
        """
        for label, synonyms in self.categories.items():
            if status_in(status, synonyms):
                return label
        return self.other

    @property
    def labels(self) -> list[str]:
        return [*self.categories.keys(), self.other]


def is_completed(status: str | None, config: ReportConfig) -> bool:
    return status_in(status, config.completed_statuses)


def is_terminal(status: str | None, config: ReportConfig) -> bool:
    return status_in(status, config.terminal_statuses)
