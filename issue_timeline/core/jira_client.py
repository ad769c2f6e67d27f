"""Jira API client wrapper (REST v3 issue fetch + enhanced search pagination)."""

from __future__ import annotations

from typing import Any

from jira import JIRA, JIRAError

from .config import JIRA_FETCH_BASE_FIELDS
from .errors import IssueNotFound, TransientLookupError


class JiraAPI:
    def __init__(self, server: str, email: str, token: str):
        self.server = server.rstrip("/")
        self.client = JIRA(
            basic_auth=(email, token), options={"server": self.server, "rest_api_version": "3"}
        )

    def search_keys(self, jql: str, page_size: int = 1000) -> list[str]:
        """Issue keys matching ``jql``, following ``nextPageToken`` pagination."""
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RuntimeError("JIRA session unavailable")
        url = f"{self.server}/rest/api/3/search/jql"
        params = {"jql": jql, "maxResults": page_size, "fields": "key"}
        out: list[str] = []
        token = None
        while True:
            qp = dict(params)
            if token:
                qp["nextPageToken"] = token
            resp = session.get(url, params=qp)
            if resp.status_code >= 400:
                raise TransientLookupError(f"Enhanced search failed {resp.status_code}: {resp.text[:200]}")
            data = resp.json()
            out.extend(issue["key"] for issue in data.get("issues", []) if issue.get("key"))
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True:
                break
        return out

    def fetch_issue_raw(self, issue_key: str) -> dict[str, Any]:
        """Raw issue JSON including the full changelog.

        Raises
        ------
        IssueNotFound
            Jira answered 404 for ``issue_key``.
        TransientLookupError
            Any other Jira failure (auth hiccup, rate limit, server error).
        """
        try:
            issue = self.client.issue(
                issue_key,
                fields=",".join(JIRA_FETCH_BASE_FIELDS),
                expand="changelog",
            )
        except JIRAError as exc:
            if exc.status_code == 404:
                raise IssueNotFound(f"issue {issue_key} does not exist") from exc
            raise TransientLookupError(f"Failed to fetch issue {issue_key}: {exc}") from exc
        if hasattr(issue, "raw"):
            return issue.raw
        if isinstance(issue, dict):
            return issue
        raise RuntimeError(f"Unexpected issue payload type for {issue_key}: {type(issue)!r}")
