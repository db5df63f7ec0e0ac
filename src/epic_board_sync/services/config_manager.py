"""JSON-based configuration persistence via platformdirs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from epic_board_sync.core.data_models import TrackedProject
from epic_board_sync.core.grouper import DEFAULT_BROWSE_HOST
from epic_board_sync.core.refresh import DEFAULT_OUTPUT_DIRS, DEFAULT_PROJECTS

logger = logging.getLogger(__name__)

APP_NAME = "epic-board-sync"
CONFIG_FILENAME = "config.json"

_DEFAULTS: dict[str, Any] = {
    "jira_url": "",           # e.g. "https://company.atlassian.net"
    "jira_email": "",
    "browse_host": DEFAULT_BROWSE_HOST,
    "projects": [{"key": p.key, "filename": p.filename} for p in DEFAULT_PROJECTS],
    "output_dirs": list(DEFAULT_OUTPUT_DIRS),
}


class ConfigManager:
    """Read/write JSON configuration stored in the platform config directory.

    API tokens are never written here.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        self._dir = config_dir or Path(user_config_dir(APP_NAME, appauthor=False))
        self._path = self._dir / CONFIG_FILENAME
        self._data: dict[str, Any] = _defaults()
        self._load()
        logger.debug("Config loaded from %s", self._path)

    # -- public API -----------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Return a config value, falling back to *default*."""
        return self._data.get(key, default)

    def update(self, values: dict[str, Any]) -> None:
        """Update known config values and persist.

        Raises:
            KeyError: If a key is not a known setting; nothing is saved.
        """
        unknown = sorted(set(values) - set(_DEFAULTS))
        if unknown:
            raise KeyError(f"Unknown config key(s): {', '.join(unknown)}")
        self._data.update(values)
        logger.info("Updated config: %s", ", ".join(sorted(values)))
        self._save()

    def reset(self) -> None:
        """Reset all values to defaults and persist."""
        logger.info("Resetting config to defaults")
        self._data = _defaults()
        self._save()

    @property
    def data(self) -> dict[str, Any]:
        """Return a shallow copy of all configuration."""
        return dict(self._data)

    def tracked_projects(self) -> list[TrackedProject]:
        """Return the project-to-board-file table.

        Malformed rows are skipped with a warning.
        """
        projects: list[TrackedProject] = []
        for row in self._data.get("projects") or []:
            if isinstance(row, dict) and row.get("key") and row.get("filename"):
                projects.append(TrackedProject(str(row["key"]), str(row["filename"])))
            else:
                logger.warning("Ignoring malformed project entry: %r", row)
        return projects

    def output_dirs(self) -> list[Path]:
        """Return the candidate board output directories."""
        dirs = self._data.get("output_dirs") or []
        if isinstance(dirs, str):
            dirs = [dirs]
        return [Path(d).expanduser() for d in dirs]

    # -- internals ------------------------------------------------------------

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with open(self._path, encoding="utf-8") as fh:
                stored = json.load(fh)
            if isinstance(stored, dict):
                self._data.update(stored)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to load config from %s: %s", self._path, exc)

    def _save(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2, default=str)
        except OSError as exc:
            logger.warning("Failed to save config to %s: %s", self._path, exc)


def _defaults() -> dict[str, Any]:
    return json.loads(json.dumps(_DEFAULTS))
