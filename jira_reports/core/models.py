"""Domain data models for Jira issues, change histories and normalized report records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class AssigneeModel:
    display_name: str
    account_id: str | None = None
    email: str | None = None


@dataclass(slots=True)
class ChangeItemModel:
    field: str | None
    field_id: str | None = None
    from_string: str | None = None
    to_string: str | None = None


@dataclass(slots=True)
class HistoryItemModel:
    author: str | None
    created: datetime | None
    items: list[ChangeItemModel] = field(default_factory=list)


@dataclass(slots=True)
class IssueModel:
    key: str
    summary: str | None
    issuetype: str | None
    status: str | None
    created: datetime | None
    updated: datetime | None
    story_points: float | None = None
    assignee: AssigneeModel | None = None
    priority: str | None = None
    resolution_date: datetime | None = None
    team: str | None = None
    fix_versions: list[str] = field(default_factory=list)
    sprints: list[dict] = field(default_factory=list)
    histories: list[HistoryItemModel] = field(default_factory=list)

    @property
    def assignee_name(self) -> str:
        return self.assignee.display_name if self.assignee else "Unassigned"

    @property
    def assignee_id(self) -> str:
        if self.assignee and self.assignee.account_id:
            return self.assignee.account_id
        return "unassigned"


@dataclass(slots=True)
class PointValue:
    points: float
    defaulted: bool = False


@dataclass(slots=True)
class NormalizedIssue:
    """An issue paired with its effective points and status category."""

    issue: IssueModel
    value: PointValue
    category: str

    @property
    def key(self) -> str:
        return self.issue.key

    @property
    def points(self) -> float:
        return self.value.points

    @property
    def defaulted(self) -> bool:
        return self.value.defaulted

    @property
    def issuetype(self) -> str:
        return self.issue.issuetype or "Unknown"

    @property
    def status(self) -> str:
        return self.issue.status or "Unknown"

    @property
    def assignee(self) -> str:
        return self.issue.assignee_name

    @property
    def assignee_id(self) -> str:
        return self.issue.assignee_id

    @property
    def team(self) -> str:
        return self.issue.team or "Unassigned"

    @property
    def fix_version(self) -> str:
        return ", ".join(sorted(self.issue.fix_versions)) if self.issue.fix_versions else "No Version"
