"""Domain layer: Core business entities and rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CredentialKind(Enum):
    """Which credential an endpoint is authorized with."""

    SECRET = "secret"
    SESSION_TOKEN = "session_token"


class AuthStatus(Enum):
    ANONYMOUS = "anonymous"
    PROVISIONED = "provisioned"
    AUTHENTICATED = "authenticated"


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class EventType(str, Enum):
    """Event types published by the service."""

    BLOCKCHAIN_UPDATE = "blockchain_update"
    COLLECTION_UPDATE = "collection_update"
    PEER_UPDATE = "peer_update"
    AUDIT_LOG_UPDATE = "audit_log_update"
    METRICS_UPDATE = "metrics_update"


@dataclass
class CredentialState:
    """Domain entity holding the client's credentials.

    The same instance lives for the lifetime of its manager; renewal and
    logout mutate it in place.
    """

    secret: str | None = None
    session_token: str | None = None
    subject_id: str | None = None
    expires_at: float | None = None

    def has_valid_session(self, now: float) -> bool:
        return (
            self.session_token is not None
            and self.expires_at is not None
            and now < self.expires_at
        )

    def clear_session(self) -> None:
        self.session_token = None
        self.subject_id = None
        self.expires_at = None

    def clear(self) -> None:
        self.secret = None
        self.clear_session()
