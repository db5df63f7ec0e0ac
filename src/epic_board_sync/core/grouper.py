"""Group fetched issues into iteration columns for the board."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from epic_board_sync.core.data_models import UNASSIGNED, EpicRecord, JiraIssue

logger = logging.getLogger(__name__)

DEFAULT_BROWSE_HOST = "https://jira.atlassian.com"
UNCOMMITTED = "uncommitted"
FIXED_COLUMNS = ("4.1", "4.2", "4.3", "4.4", "4.5IP", UNCOMMITTED)


def organize_issues_into_columns(
    issues: Iterable[JiraIssue | dict[str, Any]],
    browse_host: str = DEFAULT_BROWSE_HOST,
) -> dict[str, list[EpicRecord]]:
    """Bucket *issues* by iteration label, preserving input order.

    The fixed columns always exist; any other label gets its own column the
    first time it is seen.  Issues without a label go to ``uncommitted``.
    Raw search documents are accepted alongside :class:`JiraIssue`.
    """
    columns: dict[str, list[EpicRecord]] = {key: [] for key in FIXED_COLUMNS}
    for item in issues:
        if not isinstance(item, JiraIssue):
            item = JiraIssue.from_raw(item if isinstance(item, dict) else {})
        column = column_key(item)
        if column not in columns:
            logger.debug("Creating ad hoc column %r", column)
            columns[column] = []
        columns[column].append(build_epic(item, browse_host))
    return columns


def column_key(issue: JiraIssue) -> str:
    """Return the column an issue belongs to."""
    label = (issue.iteration or "").strip()
    return label or UNCOMMITTED


def build_epic(issue: JiraIssue, browse_host: str = DEFAULT_BROWSE_HOST) -> EpicRecord:
    """Reshape an issue into the simplified board entry."""
    return EpicRecord(
        key=issue.key,
        summary=issue.summary,
        status=issue.status,
        status_category=issue.status_category,
        team=issue.assignee or UNASSIGNED,
        url=f"{browse_host.rstrip('/')}/browse/{issue.key}",
        relationships=issue.relationships,
    )


def columns_to_document(columns: dict[str, list[EpicRecord]]) -> dict[str, Any]:
    """Return the JSON-ready ``{"columns": ...}`` board document."""
    return {
        "columns": {
            key: [epic.to_dict() for epic in epics]
            for key, epics in columns.items()
        }
    }