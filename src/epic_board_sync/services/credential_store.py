"""Credential persistence placeholder.

Secure storage is not wired up yet: saved credentials are discarded and
nothing is ever loaded, so callers must supply credentials on every run.
"""

from __future__ import annotations

import logging

from epic_board_sync.core.data_models import Credentials

logger = logging.getLogger(__name__)


class CredentialStore:
    """Accept-and-discard credential store."""

    def save(self, credentials: Credentials) -> None:
        logger.info(
            "Credential storage unavailable; not saving credentials for %s",
            credentials.email,
        )

    def load(self) -> Credentials | None:
        logger.debug("Credential storage unavailable; nothing to load")
        return None
