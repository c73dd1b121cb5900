"""Story point normalization (pure functions)."""

from __future__ import annotations

from jira_reports.core.config import ReportConfig
from jira_reports.core.models import IssueModel, PointValue


def normalize_points(issue: IssueModel, config: ReportConfig) -> PointValue:
    """Return the effective story points of ``issue``.

    A positive stored value is returned unchanged. A missing or zero value on
    an estimable type (Story, Bug by default) is replaced by
    ``config.default_points`` and flagged ``defaulted`` so reports can keep
    measured and assumed totals apart. Anything else counts as 0.

    Parameters
    ----------
    issue : IssueModel
        Mapped issue; ``story_points`` is ``None`` when the field was absent.
    config : ReportConfig
        Supplies ``estimable_types`` and ``default_points``.

    Returns
    -------
    PointValue
    """
    stored = issue.story_points
    if stored is not None and stored > 0:
        return PointValue(points=float(stored), defaulted=False)
    if (issue.issuetype or "") in config.estimable_types:
        return PointValue(points=float(config.default_points), defaulted=True)
    return PointValue(points=0.0, defaulted=False)


def format_points(points: float) -> int | float:
    """Render whole-number points as ints for JSON/console output."""
    return int(points) if float(points).is_integer() else round(float(points), 2)
