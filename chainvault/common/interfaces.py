"""
Interfaces and protocols for dependency injection.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

from chainvault.common.models import StoredCredentials


class ICredentialStore(Protocol):
    """Protocol for durable client-side credential storage."""

    def load(self) -> StoredCredentials: ...

    def save(self, credentials: StoredCredentials) -> None: ...

    def clear(self) -> None: ...


class ITimerHandle(Protocol):
    """Handle returned by a scheduler; cancel() must be idempotent."""

    def cancel(self) -> None: ...


class IScheduler(Protocol):
    """Protocol for one-shot delayed callbacks."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ITimerHandle: ...


class IHttpClient(Protocol):
    """Protocol for JSON requests against the service API."""

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        authorization: str | None = None,
    ) -> Any: ...


class ITransportListener(Protocol):
    """Callbacks a transport delivers to its owner."""

    def on_open(self, transport: ITransport) -> None: ...

    def on_message(self, transport: ITransport, message: str) -> None: ...

    def on_error(self, transport: ITransport, error: Exception) -> None: ...

    def on_close(self, transport: ITransport, code: int, reason: str) -> None: ...


class ITransport(Protocol):
    """Protocol for a persistent bidirectional text connection.

    open() starts connecting without blocking the caller. The transport then
    reports on_open, any number of on_message, and exactly one on_close.
    """

    def open(self) -> None: ...

    def send(self, message: str) -> None: ...

    def close(self) -> None: ...


TransportFactory = Callable[[str, ITransportListener], ITransport]
