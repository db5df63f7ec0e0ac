"""Exceptions raised by the fetch/group/refresh pipeline."""

from __future__ import annotations


class JiraSyncError(Exception):
    """Base class for all pipeline errors."""


class AuthOrNetworkError(JiraSyncError):
    """The request never produced an HTTP response (DNS, refused, timeout)."""


class UpstreamHttpError(JiraSyncError):
    """Jira answered with a non-2xx status or an unreadable body."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Jira request failed: {status_code} - {body}")


class FetchError(JiraSyncError):
    """The primary paginated fetch for a project failed."""

    def __init__(
        self,
        project_key: str,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.project_key = project_key
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class NoDataRefreshedError(JiraSyncError):
    """Every tracked project failed or returned no issues."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("Failed to refresh any data. All projects failed.")


class ProjectRefreshError(JiraSyncError):
    """A single tracked project produced no complete board file."""
