"""Infrastructure layer: Configuration resolution.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from chainvault.common import Configurable, setup_logger
from chainvault.common.config import Config
from chainvault.common.models import ClientConfig

SETTINGS = [
    "base_url",
    "ws_url",
    "request_timeout",
    "log_level",
    "state_file",
    "renewal_margin",
    "reconnect_base_delay",
    "reconnect_max_delay",
    "max_reconnect_attempts",
    "ping_interval",
    "open_timeout",
    "max_label_length",
    "max_data_bytes",
]


class ConfigLoader(Configurable):
    """Resolves per-client overrides against the global Config defaults."""

    base_url: str
    ws_url: str
    request_timeout: float
    log_level: int
    state_file: Path
    renewal_margin: float
    reconnect_base_delay: float
    reconnect_max_delay: float
    max_reconnect_attempts: int
    ping_interval: float
    open_timeout: float
    max_label_length: int
    max_data_bytes: int

    def __init__(self, client_config: ClientConfig | None = None):
        self.config: Config = Config()
        client_config = client_config or ClientConfig()

        self.apply_overrides(client_config.model_dump(), self.config, SETTINGS)
        self.base_url = self.base_url.rstrip("/")
        self.ws_url = self.ws_url.rstrip("/")
        self.state_file = Path(self.state_file).expanduser()
        self.api_prefix: str = self.config.API_PREFIX
        self.on_error_callback: Callable[[Exception], None] | None = (
            client_config.on_error_callback
        )

        # Setup logging for the whole package
        self.logger = logging.getLogger("chainvault")
        setup_logger(self.logger, self.log_level)
