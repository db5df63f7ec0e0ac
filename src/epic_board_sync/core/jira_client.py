"""Jira Cloud REST client for paginated project searches."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import requests
from jira import JIRA, JIRAError

from epic_board_sync.core.data_models import Credentials, JiraIssue
from epic_board_sync.core.errors import (
    AuthOrNetworkError,
    FetchError,
    JiraSyncError,
    UpstreamHttpError,
)

logger = logging.getLogger(__name__)

SEARCH_ENDPOINT = "/rest/api/3/search"
PAGE_SIZE = 1000
BATCH_SIZE = 50  # max keys Jira accepts in a single ``key in (...)`` clause
ISSUE_FIELDS = (
    "summary",
    "status",
    "issuetype",
    "parent",
    "customfield_10014",  # iteration label
    "assignee",
    "customfield_10001",
    "issuelinks",
    "subtasks",
)


@dataclass
class ConnectionResult:
    """Outcome of a connectivity check."""

    success: bool
    message: str


@dataclass
class FetchResult:
    """All issues for one project plus parents that could not be backfilled."""

    issues: list[JiraIssue] = field(default_factory=list)
    unresolved_parents: list[str] = field(default_factory=list)


class JiraClient:
    """Thin ``requests`` wrapper around the Jira search API.

    Pages and backfill batches run sequentially on one session.  Nothing is
    retried: a failed primary page aborts the fetch, a failed backfill batch
    is skipped.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        session: requests.Session | None = None,
        timeout: float = 30,
    ) -> None:
        self._credentials = credentials
        self._base_url = credentials.normalized_url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": credentials.basic_auth_header,
            "Accept": "application/json",
        })

    # -- connection -----------------------------------------------------------

    def test_connection(self) -> ConnectionResult:
        """Validate the credentials with a ``myself()`` call.

        Never raises; failures are reported in the returned message.
        """
        creds = self._credentials
        logger.debug("Testing connection to %s", self._base_url)
        try:
            jira = JIRA(
                server=self._base_url,
                basic_auth=(creds.email, creds.api_token),
                options={"rest_api_version": "3"},
                get_server_info=False,
                max_retries=0,
                timeout=self._timeout,
            )
            me = jira.myself()
        except JIRAError as exc:
            logger.error("Connection test failed: %s", exc.status_code)
            return ConnectionResult(
                False, f"Connection failed: {exc.status_code} - {exc.text}"
            )
        except Exception as exc:
            logger.error("Connection test failed: %s", exc)
            return ConnectionResult(False, f"Connection failed: {exc}")
        logger.info("Connected to Jira as %s", (me or {}).get("displayName", "?"))
        return ConnectionResult(True, "Connection successful!")

    # -- search ---------------------------------------------------------------

    def search(
        self,
        jql: str,
        *,
        start_at: int = 0,
        max_results: int = PAGE_SIZE,
        fields: tuple[str, ...] | list[str] = ISSUE_FIELDS,
    ) -> dict[str, Any]:
        """Run a single search request and return the decoded JSON page."""
        url = f"{self._base_url}{SEARCH_ENDPOINT}"
        params = {
            "jql": jql,
            "startAt": start_at,
            "maxResults": max_results,
            "fields": ",".join(fields),
        }
        try:
            resp = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise AuthOrNetworkError(str(exc)) from exc

        if not resp.ok:
            raise UpstreamHttpError(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamHttpError(resp.status_code, f"Invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamHttpError(resp.status_code, "Unexpected search payload")
        return data

    def fetch_raw(self, project_key: str) -> dict[str, Any]:
        """Return the first raw search page for *project_key*."""
        logger.info("Fetching raw search page for %s", project_key)
        return self.search(project_jql(project_key))

    def fetch_project_issues(self, project_key: str) -> FetchResult:
        """Fetch every issue in *project_key*, then backfill missing parents.

        Raises:
            FetchError: If any page of the primary search fails.
        """
        issues, parent_keys = self._fetch_primary(project_key)
        seen = {issue.key for issue in issues}
        missing = [k for k in parent_keys if k not in seen]

        unresolved: list[str] = []
        if missing:
            logger.info(
                "%s: backfilling %d missing parent(s)", project_key, len(missing)
            )
            for batch in _batched(missing, BATCH_SIZE):
                found = self._fetch_parent_batch(project_key, batch)
                for issue in found:
                    if issue.key not in seen:
                        seen.add(issue.key)
                        issues.append(issue)
                unresolved.extend(k for k in batch if k not in seen)

        if unresolved:
            logger.warning(
                "%s: %d parent(s) could not be resolved: %s",
                project_key, len(unresolved), ", ".join(unresolved),
            )
        logger.info("%s: fetched %d issues", project_key, len(issues))
        return FetchResult(issues=issues, unresolved_parents=unresolved)

    # -- internals ------------------------------------------------------------

    def _fetch_primary(self, project_key: str) -> tuple[list[JiraIssue], list[str]]:
        jql = project_jql(project_key)
        issues: list[JiraIssue] = []
        seen: set[str] = set()
        parent_keys: dict[str, None] = {}  # ordered set
        retrieved = 0
        start = 0

        while True:
            logger.debug("%s: requesting page startAt=%d", project_key, start)
            try:
                page = self.search(jql, start_at=start, max_results=PAGE_SIZE)
            except UpstreamHttpError as exc:
                logger.error("%s: search failed with %d", project_key, exc.status_code)
                raise FetchError(
                    project_key,
                    f"Failed to fetch issues from Jira for {project_key}: "
                    f"{exc.status_code} {exc.body}",
                    status_code=exc.status_code,
                    body=exc.body,
                ) from exc
            except JiraSyncError as exc:
                logger.error("%s: search failed: %s", project_key, exc)
                raise FetchError(
                    project_key,
                    f"Failed to fetch issues from Jira for {project_key}: {exc}",
                ) from exc

            batch = _raw_issues(page)
            retrieved += len(batch)
            for raw in batch:
                issue = JiraIssue.from_raw(raw)
                if issue.parent_key:
                    parent_keys[issue.parent_key] = None
                if issue.key in seen:
                    continue
                seen.add(issue.key)
                issues.append(issue)

            total = _as_int(page.get("total"))
            logger.debug(
                "%s: retrieved %d of %d", project_key, retrieved, total
            )
            if retrieved >= total:
                break
            if not batch:
                logger.error(
                    "%s: empty page at startAt=%d after %d of %d issues",
                    project_key, start, retrieved, total,
                )
                raise FetchError(
                    project_key,
                    f"Incomplete results for {project_key}: "
                    f"retrieved {retrieved} of {total} issues",
                )
            # Jira may cap maxResults below PAGE_SIZE
            start = retrieved

        return issues, list(parent_keys)

    def _fetch_parent_batch(self, project_key: str, keys: list[str]) -> list[JiraIssue]:
        jql = "key in ({})".format(",".join(f"'{k}'" for k in keys))
        try:
            page = self.search(jql, max_results=len(keys))
        except JiraSyncError as exc:
            logger.warning(
                "%s: failed to fetch parent batch (%d keys): %s",
                project_key, len(keys), exc,
            )
            return []
        return [JiraIssue.from_raw(raw) for raw in _raw_issues(page)]


def project_jql(project_key: str) -> str:
    """Return the JQL selecting every issue of *project_key*, newest first."""
    return f"project = {project_key} ORDER BY created DESC"


def _raw_issues(page: dict[str, Any]) -> list[dict[str, Any]]:
    issues = page.get("issues")
    if not isinstance(issues, list):
        return []
    return [raw for raw in issues if isinstance(raw, dict)]


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _batched(items: list[str], size: int) -> list[list[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]
