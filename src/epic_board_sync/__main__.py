"""Entry point for ``python -m epic_board_sync``."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Any

from epic_board_sync.core.data_models import Credentials, TrackedProject
from epic_board_sync.core.errors import JiraSyncError, NoDataRefreshedError
from epic_board_sync.core.grouper import DEFAULT_BROWSE_HOST
from epic_board_sync.core.jira_client import JiraClient
from epic_board_sync.core.refresh import refresh_all
from epic_board_sync.services.config_manager import ConfigManager
from epic_board_sync.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NO_CREDENTIALS = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epic-board-sync",
        description="Sync Jira project issues into iteration board files.",
    )
    parser.add_argument("--url", default=os.environ.get("JIRA_URL"), help="Jira base URL.")
    parser.add_argument("--email", default=os.environ.get("JIRA_EMAIL"), help="Jira account email.")
    parser.add_argument(
        "--token", default=os.environ.get("JIRA_API_TOKEN"), help="Jira API token.",
    )
    parser.add_argument(
        "--config-dir", type=Path, default=None,
        help="Read configuration from this directory instead of the user config dir.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("test-connection", help="Check that the credentials work.")

    raw = sub.add_parser("fetch-raw", help="Print the first raw search page of a project.")
    raw.add_argument("project", help="Jira project key.")
    raw.add_argument("--output", type=Path, help="Write the JSON to this file instead.")

    cfg = sub.add_parser("config", help="Show or change stored settings.")
    cfg_sub = cfg.add_subparsers(dest="config_command", required=True)
    cfg_sub.add_parser("show", help="Print the current settings.")
    cfg_set = cfg_sub.add_parser("set", help="Change one or more settings.")
    cfg_set.add_argument(
        "assignments", nargs="+", metavar="KEY=VALUE",
        help="Setting to change; VALUE is parsed as JSON when possible.",
    )
    cfg_sub.add_parser("reset", help="Restore the default settings.")

    refresh = sub.add_parser("refresh", help="Refresh every tracked project's board file.")
    refresh.add_argument(
        "--output-dir", action="append", type=Path, dest="output_dirs",
        help="Candidate output directory (repeatable). Defaults to config.",
    )
    refresh.add_argument(
        "--project", action="append", dest="projects", metavar="KEY=FILE",
        help="Tracked project and board file (repeatable). Defaults to config.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command-line interface and return the exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = ConfigManager(args.config_dir)
    if args.command == "config":
        return run_config(args, config)

    credentials = resolve_credentials(args, config)
    if credentials is None:
        logger.error("Missing Jira credentials: set --url/--email/--token or JIRA_* variables")
        return EXIT_NO_CREDENTIALS

    if args.command == "test-connection":
        result = JiraClient(credentials).test_connection()
        _emit({"success": result.success, "message": result.message})
        return EXIT_OK if result.success else EXIT_FAILED

    if args.command == "fetch-raw":
        try:
            data = JiraClient(credentials).fetch_raw(args.project)
        except JiraSyncError as exc:
            logger.error("Failed to fetch data: %s", exc)
            return EXIT_FAILED
        try:
            _emit(data, args.output)
        except OSError as exc:
            logger.error("Failed to write %s: %s", args.output, exc)
            return EXIT_FAILED
        return EXIT_OK

    try:
        projects = (
            [parse_project(p) for p in args.projects]
            if args.projects else config.tracked_projects()
        )
    except ValueError as exc:
        logger.error("%s", exc)
        return EXIT_FAILED
    output_dirs = args.output_dirs or config.output_dirs()
    try:
        report = refresh_all(
            credentials,
            projects,
            output_dirs,
            browse_host=config.get("browse_host") or DEFAULT_BROWSE_HOST,
        )
    except NoDataRefreshedError as exc:
        _emit({
            "success": False,
            "error": "Failed to refresh data",
            "details": str(exc),
            "errors": exc.errors,
        })
        return EXIT_FAILED
    _emit(report.to_dict())
    return EXIT_OK


def run_config(args: argparse.Namespace, config: ConfigManager) -> int:
    """Handle the ``config`` subcommands."""
    if args.config_command == "set":
        try:
            config.update(dict(parse_assignment(a) for a in args.assignments))
        except (KeyError, ValueError) as exc:
            logger.error("%s", exc.args[0] if exc.args else exc)
            return EXIT_FAILED
    elif args.config_command == "reset":
        config.reset()
    _emit(config.data)
    return EXIT_OK


def resolve_credentials(args: argparse.Namespace, config: ConfigManager) -> Credentials | None:
    """Combine CLI/env values with stored configuration."""
    url = args.url or config.get("jira_url")
    email = args.email or config.get("jira_email")
    if url and email and args.token:
        return Credentials(url, email, args.token)
    return CredentialStore().load()


def parse_project(value: str) -> TrackedProject:
    """Parse a ``KEY=FILE`` project entry."""
    key, sep, filename = value.partition("=")
    if not sep or not key.strip() or not filename.strip():
        raise ValueError(f"Invalid project entry {value!r}, expected KEY=FILE")
    return TrackedProject(key.strip(), filename.strip())


def parse_assignment(value: str) -> tuple[str, Any]:
    """Parse a ``KEY=VALUE`` setting, decoding VALUE as JSON when it can."""
    key, sep, raw = value.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"Invalid setting {value!r}, expected KEY=VALUE")
    try:
        return key.strip(), json.loads(raw)
    except json.JSONDecodeError:
        return key.strip(), raw


def _emit(data: Any, path: Path | None = None) -> None:
    text = json.dumps(data, indent=2)
    if path is None:
        print(text)
    else:
        path.write_text(text, encoding="utf-8")
        logger.info("Wrote %s", path)


if __name__ == "__main__":
    raise SystemExit(main())
