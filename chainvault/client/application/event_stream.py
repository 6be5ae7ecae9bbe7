"""
Application layer: real-time event stream over a persistent connection.

Features:
- Subscriptions made before the socket is open are queued and replayed
- Auto-reconnect with capped exponential backoff and a bounded retry budget
- Keepalive pings while connected
- A handler that raises never stops the other handlers for the same event
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from pydantic import ValidationError as ModelValidationError

from chainvault.client.domain.entities import ConnectionState
from chainvault.common.exceptions import ReconnectExhaustedError
from chainvault.common.models import InboundFrame, OutboundFrame

if TYPE_CHECKING:
    from chainvault.client.application.credential_manager import CredentialManager
    from chainvault.common.interfaces import (
        IScheduler,
        ITimerHandle,
        ITransport,
        TransportFactory,
    )

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]

STREAM_PATH = "ws"

_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING}),
    ConnectionState.CONNECTING: frozenset(
        {
            ConnectionState.CONNECTED,
            ConnectionState.RECONNECTING,
            ConnectionState.DISCONNECTED,
        }
    ),
    ConnectionState.CONNECTED: frozenset(
        {ConnectionState.RECONNECTING, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.RECONNECTING: frozenset(
        {ConnectionState.CONNECTING, ConnectionState.DISCONNECTED}
    ),
}


def _event_name(event: Any) -> str:
    return str(getattr(event, "value", event))


class EventStreamClient:
    """Subscription registry plus one reconnecting connection."""

    def __init__(
        self,
        ws_url: str,
        credentials: CredentialManager,
        transport_factory: TransportFactory,
        scheduler: IScheduler,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        max_reconnect_attempts: int = 10,
        ping_interval: float = 30.0,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self.ws_url = ws_url.rstrip("/")
        self.credentials = credentials
        self.transport_factory = transport_factory
        self.scheduler = scheduler
        self.reconnect_base_delay = reconnect_base_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.ping_interval = ping_interval
        self.on_error = on_error

        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._transport: ITransport | None = None
        self._subscriptions: dict[str, set[EventHandler]] = {}
        self._pending: set[str] = set()
        self._reconnect_attempts = 0
        self._reconnect_timer: ITimerHandle | None = None
        self._ping_timer: ITimerHandle | None = None
        self._manual_disconnect = False

    # -- state machine -----------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state is self._state:
            return
        if new_state not in _TRANSITIONS[self._state]:
            msg = f"Illegal transition {self._state.value} -> {new_state.value}"
            raise RuntimeError(msg)
        logger.debug("Event stream %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    # -- public API --------------------------------------------------------

    def connect(self) -> None:
        """Open the connection unless it is already open or opening."""
        with self._lock:
            if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                logger.debug("Event stream already %s", self._state.value)
                return

            credential = self.credentials.credential_for(STREAM_PATH)
            if not credential:
                logger.warning("Cannot connect event stream: no credential available")
                self._cancel_reconnect()
                self._transition(ConnectionState.DISCONNECTED)
                return

            self._manual_disconnect = False
            self._cancel_reconnect()
            self._transition(ConnectionState.CONNECTING)
            url = f"{self.ws_url}/{STREAM_PATH}?token={quote(credential, safe='')}"
            transport = self.transport_factory(url, self)
            self._transport = transport

        try:
            transport.open()
        except Exception as err:
            logger.warning("Event stream connection error: %s", err)
            self.on_close(transport, 1006, str(err))

    def disconnect(self) -> None:
        """Close the connection on purpose; no reconnect follows."""
        with self._lock:
            self._manual_disconnect = True
            self._reconnect_attempts = 0
            self._cancel_reconnect()
            self._cancel_ping()
            transport, self._transport = self._transport, None
            self._transition(ConnectionState.DISCONNECTED)

        if transport is not None:
            transport.close()
        logger.info("Event stream disconnected")

    def subscribe(self, event: Any, handler: EventHandler) -> None:
        """Register handler for event; tells the server when first needed."""
        name = _event_name(event)
        with self._lock:
            handlers = self._subscriptions.setdefault(name, set())
            is_new = not handlers
            handlers.add(handler)
            if self._state is ConnectionState.CONNECTED:
                if is_new:
                    self._send(OutboundFrame(type="subscribe", event=name))
            else:
                self._pending.add(name)

    def unsubscribe(self, event: Any, handler: EventHandler) -> None:
        """Remove handler; the last one for an event unsubscribes it."""
        name = _event_name(event)
        with self._lock:
            handlers = self._subscriptions.get(name)
            if handlers is None:
                return
            handlers.discard(handler)
            if handlers:
                return
            del self._subscriptions[name]
            self._pending.discard(name)
            if self._state is ConnectionState.CONNECTED:
                self._send(OutboundFrame(type="unsubscribe", event=name))

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def handlers_for(self, event: Any) -> set[EventHandler]:
        with self._lock:
            return set(self._subscriptions.get(_event_name(event), ()))

    # -- transport callbacks -----------------------------------------------

    def on_open(self, transport: ITransport) -> None:
        with self._lock:
            if transport is not self._transport:
                return
            self._transition(ConnectionState.CONNECTED)
            self._reconnect_attempts = 0
            logger.info("Event stream connected")

            # One subscribe frame per wanted event, pending or already known
            for name in sorted(self._pending | set(self._subscriptions)):
                self._send(OutboundFrame(type="subscribe", event=name))
            self._pending.clear()
            self._schedule_ping()

    def on_message(self, transport: ITransport, message: str) -> None:
        if transport is not self._transport:
            return
        try:
            frame = InboundFrame.model_validate(json.loads(message))
        except (ValueError, ModelValidationError) as err:
            logger.warning("Ignoring malformed event stream frame: %s", err)
            return

        if frame.type == "event":
            self._dispatch(frame)
        elif frame.type == "pong":
            logger.debug("Pong received")
        elif frame.type == "subscribed":
            logger.info("Subscribed to %s", frame.event)
        elif frame.type == "unsubscribed":
            logger.info("Unsubscribed from %s", frame.event)
        elif frame.type == "error":
            logger.error("Event stream error notice: %s", frame.message)

    def on_error(self, transport: ITransport, error: Exception) -> None:
        if transport is self._transport:
            logger.warning("Event stream transport error: %s", error)

    def on_close(self, transport: ITransport, code: int, reason: str) -> None:
        with self._lock:
            if transport is not self._transport:
                return
            self._transport = None
            self._cancel_ping()
            logger.info("Event stream closed: %s %s", code, reason)
            if self._manual_disconnect:
                self._transition(ConnectionState.DISCONNECTED)
                return
            error = self._schedule_reconnect()

        if error is not None and self.on_error:
            self.on_error(error)

    # -- internals ---------------------------------------------------------

    def _dispatch(self, frame: InboundFrame) -> None:
        if not frame.event:
            return
        with self._lock:
            handlers = list(self._subscriptions.get(frame.event, ()))
        data = frame.payload()
        for handler in handlers:
            try:
                handler(data)
            except Exception:
                logger.exception("Event handler for %s failed", frame.event)

    def next_reconnect_delay(self) -> float:
        return min(
            self.reconnect_base_delay * 2**self._reconnect_attempts,
            self.reconnect_max_delay,
        )

    def _schedule_reconnect(self) -> ReconnectExhaustedError | None:
        if self._reconnect_attempts >= self.max_reconnect_attempts:
            attempts = self._reconnect_attempts
            self._reconnect_attempts = 0
            self._transition(ConnectionState.DISCONNECTED)
            logger.error("Max reconnection attempts reached (%d)", attempts)
            return ReconnectExhaustedError(attempts)

        delay = self.next_reconnect_delay()
        self._reconnect_attempts += 1
        self._transition(ConnectionState.RECONNECTING)
        logger.info(
            "Reconnecting in %.1fs (attempt %d/%d)",
            delay,
            self._reconnect_attempts,
            self.max_reconnect_attempts,
        )
        self._reconnect_timer = self.scheduler.call_later(delay, self._reconnect)
        return None

    def _reconnect(self) -> None:
        with self._lock:
            self._reconnect_timer = None
            if self._state is not ConnectionState.RECONNECTING:
                return
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _schedule_ping(self) -> None:
        self._ping_timer = self.scheduler.call_later(self.ping_interval, self._ping)

    def _cancel_ping(self) -> None:
        if self._ping_timer is not None:
            self._ping_timer.cancel()
            self._ping_timer = None

    def _ping(self) -> None:
        with self._lock:
            self._ping_timer = None
            if self._state is not ConnectionState.CONNECTED:
                return
            self._send(OutboundFrame(type="ping"))
            self._schedule_ping()

    def _send(self, frame: OutboundFrame) -> None:
        if self._transport is None:
            return
        self._transport.send(frame.model_dump_json(exclude_none=True))
