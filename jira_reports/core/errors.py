"""Exception hierarchy for Jira report runs.

Configuration and transport failures are fatal to a run; ``IssueFetchError``
is raised for a single issue detail call and callers treat it as a skip.
"""

from __future__ import annotations

from typing import Any


class JiraReportError(Exception):
    """Base exception for report runs.

    Attributes
    ----------
    message : str
        Human-readable error message.
    status_code : int | None
        HTTP status code when the error came from the Jira API.
    original_error : Exception | None
        The underlying exception that was caught.
    """

    def __init__(
        self,
        message: str = "Jira report error",
        *,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "status_code": self.status_code,
            "message": self.message,
        }


class ConfigurationError(JiraReportError):
    """Missing credentials or malformed run arguments."""


class TransportError(JiraReportError):
    """The Jira server could not be reached (connection refused, DNS, timeout)."""

    def __init__(self, message: str = "Could not reach the Jira server", **kwargs):
        super().__init__(message, **kwargs)


class UnauthorizedError(JiraReportError):
    """Jira rejected the credentials (HTTP 401)."""

    HINT = (
        "Check that JIRA_EMAIL is correct and that JIRA_API_TOKEN is valid and not expired "
        "(tokens are managed at https://id.atlassian.com/manage-profile/security/api-tokens)."
    )

    def __init__(self, message: str = "Authentication failed", **kwargs):
        kwargs.setdefault("status_code", 401)
        super().__init__(message, **kwargs)

    @property
    def hint(self) -> str:
        return self.HINT


class IssueFetchError(JiraReportError):
    """A single issue detail request failed."""

    def __init__(self, issue_key: str, message: str | None = None, **kwargs):
        self.issue_key = issue_key
        super().__init__(message or f"Failed to fetch issue {issue_key}", **kwargs)


class FieldLookupError(JiraReportError):
    """A required custom field is neither discoverable nor configured."""


class WorkbookLayoutError(JiraReportError):
    """The planning workbook does not have the expected sheets or row labels."""
