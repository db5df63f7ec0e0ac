"""Refresh every tracked project and write its board file."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from epic_board_sync.core.data_models import (
    Credentials,
    ProjectSummary,
    RefreshReport,
    TrackedProject,
)
from epic_board_sync.core.errors import (
    JiraSyncError,
    NoDataRefreshedError,
    ProjectRefreshError,
)
from epic_board_sync.core.grouper import (
    DEFAULT_BROWSE_HOST,
    columns_to_document,
    organize_issues_into_columns,
)
from epic_board_sync.core.jira_client import JiraClient

logger = logging.getLogger(__name__)

DEFAULT_PROJECTS: tuple[TrackedProject, ...] = (
    TrackedProject("ADVICE", "board-saveAdvice.json"),
    TrackedProject("PDD", "board-savePDD.json"),
)
DEFAULT_OUTPUT_DIRS: tuple[str, ...] = ("public", "dist")

NO_ISSUES = "No issues found"
NO_OUTPUT_DIR = "No output directory available"


def refresh_all(
    credentials: Credentials,
    projects: Sequence[TrackedProject] = DEFAULT_PROJECTS,
    output_dirs: Iterable[str | Path] = DEFAULT_OUTPUT_DIRS,
    *,
    client: JiraClient | None = None,
    browse_host: str = DEFAULT_BROWSE_HOST,
) -> RefreshReport:
    """Fetch, group and write every project in *projects*.

    Projects are handled one after another; a failing project is recorded
    in the report and does not stop the others.

    Raises:
        NoDataRefreshedError: If no project produced a board file.
    """
    client = client or JiraClient(credentials)
    dirs = [Path(d) for d in output_dirs]
    report = RefreshReport(total_projects=len(projects))

    logger.info("Starting refresh of %d project(s)", len(projects))
    for project in projects:
        try:
            written, summary, unresolved = refresh_project(
                client, project, dirs, browse_host=browse_host
            )
        except JiraSyncError as exc:
            report.errors[project.key] = str(exc)
            logger.error("Failed to refresh project %s: %s", project.key, exc)
            continue

        report.results[project.key] = summary
        if project.filename not in report.files_updated:
            report.files_updated.append(project.filename)
        if unresolved:
            report.unresolved_parents[project.key] = unresolved
        logger.info(
            "Updated %s with %d issues (%d file(s))",
            project.filename, summary.issues, len(written),
        )

    if not report.files_updated:
        raise NoDataRefreshedError(report.errors)

    report.success = True
    report.message = (
        f"Data refreshed successfully. Updated {len(report.files_updated)} "
        f"of {len(projects)} projects."
    )
    if report.partial:
        logger.warning("Refresh finished with errors for: %s", ", ".join(report.errors))
    logger.info(report.message)
    return report


def refresh_project(
    client: JiraClient,
    project: TrackedProject,
    output_dirs: Sequence[Path],
    *,
    browse_host: str = DEFAULT_BROWSE_HOST,
) -> tuple[list[Path], ProjectSummary, list[str]]:
    """Run fetch, group and write for one project.

    Returns the paths written, the project summary and any parent keys
    that could not be backfilled.

    Raises:
        JiraSyncError: If the fetch fails, returns nothing, or no file
            could be written.
    """
    logger.info("Fetching data for project: %s", project.key)
    result = client.fetch_project_issues(project.key)
    if not result.issues:
        raise ProjectRefreshError(NO_ISSUES)

    columns = organize_issues_into_columns(result.issues, browse_host)
    payload = json.dumps(columns_to_document(columns), indent=2)
    written = write_board(payload, project.filename, output_dirs)
    if not written:
        raise ProjectRefreshError(NO_OUTPUT_DIR)

    summary = ProjectSummary(issues=len(result.issues), columns=len(columns))
    return written, summary, list(result.unresolved_parents)


def write_board(payload: str, filename: str, output_dirs: Sequence[Path]) -> list[Path]:
    """Write *payload* to *filename* in every existing directory.

    Missing directories are skipped, not created.  Each write replaces the
    file in place.  A failed write does not stop the remaining directories.

    Raises:
        ProjectRefreshError: If writing to any existing directory fails.
            The message names the failed paths and the ones already replaced.
    """
    written: list[Path] = []
    failed: list[str] = []
    for directory in output_dirs:
        if not directory.is_dir():
            logger.debug("Skipping missing output directory %s", directory)
            continue
        target = directory / filename
        try:
            target.write_text(payload, encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to write %s: %s", target, exc)
            failed.append(f"{target} ({exc})")
            continue
        logger.debug("Wrote %s", target)
        written.append(target)

    if failed:
        replaced = ", ".join(str(p) for p in written) or "none"
        raise ProjectRefreshError(
            f"Failed to write {'; '.join(failed)}. Already replaced: {replaced}"
        )
    return written
