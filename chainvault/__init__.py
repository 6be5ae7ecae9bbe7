# ChainVault client SDK

from chainvault.client.application.credential_manager import CredentialManager
from chainvault.client.application.event_stream import EventStreamClient
from chainvault.client.client import ChainVault
from chainvault.client.domain.entities import (
    AuthStatus,
    ConnectionState,
    CredentialKind,
    EventType,
)
from chainvault.common.crypto import (
    CryptoEngine,
    decrypt_data,
    encrypt_data,
    is_valid_secret_format,
)
from chainvault.common.exceptions import (
    AuthenticationError,
    EncryptionError,
    NetworkError,
    ReconnectExhaustedError,
    RenewalError,
    SDKError,
    StorageError,
    ValidationError,
)

__all__ = [
    "AuthStatus",
    "AuthenticationError",
    "ChainVault",
    "ConnectionState",
    "CredentialKind",
    "CredentialManager",
    "CryptoEngine",
    "EncryptionError",
    "EventStreamClient",
    "EventType",
    "NetworkError",
    "ReconnectExhaustedError",
    "RenewalError",
    "SDKError",
    "StorageError",
    "ValidationError",
    "decrypt_data",
    "encrypt_data",
    "is_valid_secret_format",
]
