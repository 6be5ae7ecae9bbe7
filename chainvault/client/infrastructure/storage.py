"""
Credential persistence.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path  # noqa: TC003

from chainvault.common.models import StoredCredentials

logger = logging.getLogger(__name__)


class FileCredentialStore:
    """Keeps credentials in a JSON file readable only by the current user."""

    def __init__(self, file_path: Path) -> None:
        self.file_path = file_path

    def load(self) -> StoredCredentials:
        """Load credentials from file; a missing or corrupt file means none."""
        try:
            with self.file_path.open() as f:
                return StoredCredentials.model_validate(json.load(f))
        except FileNotFoundError:
            return StoredCredentials()
        except (json.JSONDecodeError, ValueError):
            logger.warning("Ignoring unreadable credential file %s", self.file_path)
            return StoredCredentials()

    def save(self, credentials: StoredCredentials) -> None:
        """Write credentials atomically via a temporary file."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(credentials.model_dump(by_alias=True), f)
        os.replace(tmp_path, self.file_path)

    def clear(self) -> None:
        """Remove stored credentials."""
        self.file_path.unlink(missing_ok=True)


class MemoryCredentialStore:
    """Process-local store, used when nothing should touch the disk."""

    def __init__(self, initial: StoredCredentials | None = None) -> None:
        self._data: dict = initial.model_dump(by_alias=True) if initial else {}

    def load(self) -> StoredCredentials:
        return StoredCredentials.model_validate(self._data)

    def save(self, credentials: StoredCredentials) -> None:
        self._data = credentials.model_dump(by_alias=True)

    def clear(self) -> None:
        self._data = {}
