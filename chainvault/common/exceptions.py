"""
Custom exceptions for the SDK.
"""

from __future__ import annotations


class SDKError(Exception):
    """Base exception for every error raised by the SDK."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(SDKError):
    """Login rejected, or an operation attempted without a valid credential."""

    def __init__(
        self, message: str = "Authentication failed", status_code: int | None = None
    ) -> None:
        super().__init__(message, status_code)


class RenewalError(AuthenticationError):
    """Scheduled session renewal failed; the user has to log in again."""

    def __init__(self, message: str = "Session renewal failed") -> None:
        super().__init__(message)


class EncryptionError(SDKError):
    """Local encryption or decryption failure.

    The message never says whether the key was wrong or the payload was
    tampered with.
    """

    def __init__(self, message: str = "Encryption/decryption failed") -> None:
        super().__init__(message)


class NetworkError(SDKError):
    """Transport-level failure, with the server's status code when known."""

    def __init__(
        self, message: str = "Network request failed", status_code: int | None = None
    ) -> None:
        super().__init__(message, status_code)


class ReconnectExhaustedError(NetworkError):
    """The event stream gave up after too many consecutive failures."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Event stream unreachable after {attempts} attempts")


class ValidationError(SDKError):
    """Malformed input caught before any network or crypto call."""

    def __init__(self, message: str = "Validation failed") -> None:
        super().__init__(message)


class StorageError(SDKError):
    """Credentials could not be written to the credential store."""

    def __init__(self, message: str = "Failed to persist credentials") -> None:
        super().__init__(message)
