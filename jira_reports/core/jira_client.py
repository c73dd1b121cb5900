"""Jira API client wrapper (REST v3 enhanced search + per-issue detail)."""

from __future__ import annotations

import logging
from typing import Any

import requests
from jira import JIRA, JIRAError

from .errors import IssueFetchError, JiraReportError, TransportError, UnauthorizedError

logger = logging.getLogger(__name__)

# RequestException covers connection, timeout, redirect and mid-body failures;
# ValueError covers a body that is not JSON.
_CALL_ERRORS = (JIRAError, requests.exceptions.RequestException, ValueError)


def translate_error(exc: Exception, *, context: str) -> JiraReportError:
    """Map a library/transport exception onto the report error taxonomy."""
    if isinstance(exc, JiraReportError):
        return exc
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    if status == 401:
        return UnauthorizedError(f"{context}: authentication rejected", original_error=exc)
    if isinstance(exc, ValueError):
        return JiraReportError(f"{context}: unreadable response ({exc})", status_code=status, original_error=exc)
    if status is None and isinstance(exc, requests.exceptions.RequestException):
        return TransportError(f"{context}: could not reach Jira ({exc})", original_error=exc)
    text = getattr(exc, "text", None) or str(exc)
    return JiraReportError(f"{context} failed: {text[:200]}", status_code=status, original_error=exc)


class JiraAPI:
    def __init__(self, server: str, email: str, token: str, timeout: float | None = None):
        self.server = server.rstrip("/")
        self.client = JIRA(
            basic_auth=(email, token),
            options={"server": self.server, "rest_api_version": "3"},
            timeout=timeout,
            get_server_info=False,
        )

    def search_issue_keys(self, jql: str, max_results: int = 1000) -> list[str]:
        """Return the keys of issues matching ``jql`` (up to ``max_results``).

        Raises ``TransportError`` or ``UnauthorizedError`` for fatal failures; an
        empty list means the search succeeded with zero matches.
        """
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RuntimeError("JIRA session unavailable")
        url = f"{self.server}/rest/api/3/search/jql"
        params: dict[str, Any] = {"jql": jql, "maxResults": max_results, "fields": "key"}
        keys: list[str] = []
        token = None
        while True:
            qp = dict(params)
            if token:
                qp["nextPageToken"] = token
            try:
                resp = session.get(url, params=qp)
            except _CALL_ERRORS as exc:
                raise translate_error(exc, context="Issue search") from exc
            if resp.status_code == 401:
                raise UnauthorizedError("Issue search: authentication rejected")
            if resp.status_code >= 400:
                raise JiraReportError(
                    f"Issue search failed: {resp.text[:200]}",
                    status_code=resp.status_code,
                )
            try:
                data = resp.json()
            except _CALL_ERRORS as exc:
                raise translate_error(exc, context="Issue search") from exc
            for ref in data.get("issues", []) or []:
                key = ref.get("key") or ref.get("id")
                if key:
                    keys.append(str(key))
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True or len(keys) >= max_results:
                break
        return keys[:max_results]

    def fetch_issue_raw(
        self,
        issue_key: str,
        fields: list[str] | None = None,
        *,
        expand_changelog: bool = False,
    ) -> dict[str, Any]:
        try:
            issue = self.client.issue(
                issue_key,
                fields=",".join(fields) if fields else None,
                expand="changelog" if expand_changelog else None,
            )
        except _CALL_ERRORS as exc:
            err = translate_error(exc, context=f"Fetch {issue_key}")
            raise IssueFetchError(issue_key, str(err), status_code=err.status_code, original_error=exc) from exc
        if hasattr(issue, "raw"):
            return issue.raw
        if isinstance(issue, dict):
            return issue
        raise IssueFetchError(issue_key, f"Unexpected issue payload type for {issue_key}: {type(issue)!r}")

    def fetch_fields(self) -> list[dict[str, Any]]:
        """Return the Jira field catalogue (id, key, name, ...)."""
        try:
            return list(self.client.fields())
        except _CALL_ERRORS as exc:
            raise translate_error(exc, context="Field discovery") from exc
