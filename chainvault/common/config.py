"""
Configuration settings for the SDK.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path


class Config:
    """Central configuration class for all SDK settings."""

    def __init__(self) -> None:
        # Service endpoints
        self.BASE_URL: str = os.getenv("CHAINVAULT_BASE_URL", "http://localhost:8080")
        self.WS_URL: str = os.getenv("CHAINVAULT_WS_URL", "ws://localhost:8080")
        self.API_PREFIX: str = "/api"
        self.REQUEST_TIMEOUT: float = float(
            os.getenv("CHAINVAULT_REQUEST_TIMEOUT", "10")
        )

        # Credential lifecycle
        self.RENEWAL_MARGIN: float = 5 * 60  # Renew this long before expiry

        # Event stream
        self.RECONNECT_BASE_DELAY: float = 1.0
        self.RECONNECT_MAX_DELAY: float = 30.0
        self.MAX_RECONNECT_ATTEMPTS: int = 10
        self.PING_INTERVAL: float = 30.0
        self.OPEN_TIMEOUT: float = 10.0

        # Submission limits enforced by the service
        self.MAX_LABEL_LENGTH: int = 100
        self.MAX_DATA_BYTES: int = 10_000_000

        # File paths
        self.STATE_FILE: Path = Path(
            os.getenv(
                "CHAINVAULT_STATE_FILE",
                str(Path.home() / ".chainvault" / "credentials.json"),
            )
        )

        # Logging
        self.LOG_LEVEL: int = getattr(
            logging,
            os.getenv("CHAINVAULT_LOG_LEVEL", "WARNING").upper(),
            logging.WARNING,
        )
