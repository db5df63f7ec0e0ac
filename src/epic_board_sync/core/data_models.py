"""Data models for Epic Board Sync."""

from __future__ import annotations

import base64
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

UNASSIGNED = "Unassigned"


@dataclass(frozen=True)
class Credentials:
    """Jira Cloud API-token credentials for a single call."""

    base_url: str
    email: str
    api_token: str

    @property
    def normalized_url(self) -> str:
        """Return the base URL without trailing slashes."""
        return self.base_url.rstrip("/")

    @property
    def basic_auth_header(self) -> str:
        """Return the ``Authorization`` header value for basic auth."""
        raw = f"{self.email}:{self.api_token}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def __repr__(self) -> str:
        return f"Credentials(base_url={self.base_url!r}, email={self.email!r}, api_token=***)"


@dataclass
class Relationships:
    """Keys of issues linked to an issue, bucketed by link direction."""

    blocked_by: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    related: list[str] = field(default_factory=list)
    subtasks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "blockedBy": list(self.blocked_by),
            "blocks": list(self.blocks),
            "related": list(self.related),
            "subtasks": list(self.subtasks),
        }


@dataclass
class JiraIssue:
    """A single Jira issue reduced to the fields the board needs.

    Optional values stay ``None`` when Jira omits them; text fields fall
    back to an empty string.
    """

    key: str
    summary: str = ""
    status: str = ""
    status_category: str = ""
    issue_type: str = ""
    parent_key: str | None = None
    assignee: str | None = None
    iteration: str | None = None
    relationships: Relationships = field(default_factory=Relationships)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> JiraIssue:
        """Build an issue from a search-result document.

        Unknown fields are ignored and malformed ones replaced by defaults,
        so this never raises for dict-shaped input.
        """
        fields = raw.get("fields")
        if not isinstance(fields, dict):
            fields = {}
        status = _as_dict(fields.get("status"))
        return cls(
            key=_text(raw.get("key")),
            summary=_text(fields.get("summary")),
            status=_text(status.get("name")),
            status_category=_text(_as_dict(status.get("statusCategory")).get("name")),
            issue_type=_text(_as_dict(fields.get("issuetype")).get("name")),
            parent_key=_optional_text(_as_dict(fields.get("parent")).get("key")),
            assignee=_optional_text(_as_dict(fields.get("assignee")).get("displayName")),
            iteration=_iteration_label(fields.get("customfield_10014")),
            relationships=_relationships(fields),
        )


@dataclass
class EpicRecord:
    """Simplified issue entry written to a board column."""

    key: str
    summary: str
    status: str
    status_category: str
    team: str
    url: str
    relationships: Relationships = field(default_factory=Relationships)
    stories: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "summary": self.summary,
            "status": self.status,
            "statusCategory": self.status_category,
            "team": self.team,
            "url": self.url,
            "relationships": self.relationships.to_dict(),
            "stories": list(self.stories),
        }


@dataclass(frozen=True)
class TrackedProject:
    """A Jira project and the board file it is written to."""

    key: str
    filename: str


@dataclass
class ProjectSummary:
    """Counts reported for a successfully refreshed project."""

    issues: int = 0
    columns: int = 0


@dataclass
class RefreshReport:
    """Aggregate outcome of a refresh run across all tracked projects."""

    success: bool = False
    message: str = ""
    timestamp: str = field(
        default_factory=lambda: datetime.now(tz=timezone.utc).isoformat()
    )
    total_projects: int = 0
    files_updated: list[str] = field(default_factory=list)
    results: dict[str, ProjectSummary] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    unresolved_parents: dict[str, list[str]] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        """True when the run succeeded but some projects failed."""
        return self.success and bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp,
            "total_projects": self.total_projects,
            "files_updated": list(self.files_updated),
            "results": {k: asdict(v) for k, v in self.results.items()},
        }
        if self.errors:
            out["errors"] = dict(self.errors)
        if self.unresolved_parents:
            out["unresolved_parents"] = {
                k: list(v) for k, v in self.unresolved_parents.items()
            }
        return out


# -- raw-field helpers --------------------------------------------------------


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _optional_text(value: Any) -> str | None:
    text = _text(value).strip()
    return text or None


def _iteration_label(value: Any) -> str | None:
    # Jira may hand back a number, a string or an object with a name.
    if isinstance(value, dict):
        value = value.get("name") or value.get("value")
    if isinstance(value, (list, tuple)):
        return None
    return _optional_text(value)


def _relationships(fields: dict[str, Any]) -> Relationships:
    rel = Relationships()
    links = fields.get("issuelinks")
    for link in links if isinstance(links, list) else []:
        if not isinstance(link, dict):
            continue
        link_type = _as_dict(link.get("type"))
        inward = _as_dict(link.get("inwardIssue")).get("key")
        outward = _as_dict(link.get("outwardIssue")).get("key")
        if inward:
            if link_type.get("inward") == "is blocked by":
                rel.blocked_by.append(_text(inward))
            else:
                rel.related.append(_text(inward))
        if outward:
            if link_type.get("outward") == "blocks":
                rel.blocks.append(_text(outward))
            else:
                rel.related.append(_text(outward))
    subtasks = fields.get("subtasks")
    for sub in subtasks if isinstance(subtasks, list) else []:
        key = _as_dict(sub).get("key")
        if key:
            rel.subtasks.append(_text(key))
    return rel
