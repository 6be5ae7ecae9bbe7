"""
Infrastructure layer: WebSocket transport for the event stream.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect

if TYPE_CHECKING:
    from websockets.sync.client import ClientConnection

    from chainvault.common.interfaces import ITransportListener, TransportFactory

logger = logging.getLogger(__name__)

CLOSE_ABNORMAL = 1006


class WebSocketTransport:
    """One WebSocket connection served by a background reader thread."""

    def __init__(
        self,
        url: str,
        listener: ITransportListener,
        open_timeout: float = 10.0,
    ) -> None:
        self.url = url
        self.listener = listener
        self.open_timeout = open_timeout
        self._ws: ClientConnection | None = None
        self._thread: threading.Thread | None = None
        self._closing = False
        self._lock = threading.Lock()

    def open(self) -> None:
        if self._thread and self._thread.is_alive():
            logger.warning("Transport is already open")
            return
        self._thread = threading.Thread(
            target=self._run, name="chainvault-ws", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        code, reason = CLOSE_ABNORMAL, ""
        try:
            with connect(self.url, open_timeout=self.open_timeout) as ws:
                with self._lock:
                    self._ws = ws
                    closing = self._closing
                if closing:
                    return
                self.listener.on_open(self)
                while True:
                    message = ws.recv()
                    if isinstance(message, bytes):
                        message = message.decode("utf-8", errors="replace")
                    self.listener.on_message(self, message)
        except ConnectionClosed as err:
            if err.rcvd is not None:
                code, reason = err.rcvd.code, err.rcvd.reason
        except (OSError, TimeoutError, WebSocketException) as err:
            logger.info("WebSocket connection failed: %s", err)
            self.listener.on_error(self, err)
        finally:
            with self._lock:
                self._ws = None
            self.listener.on_close(self, code, reason)

    def send(self, message: str) -> None:
        with self._lock:
            ws = self._ws
        if ws is None:
            logger.debug("Dropping frame, transport not open")
            return
        try:
            ws.send(message)
        except ConnectionClosed:
            logger.debug("Dropping frame, connection already closed")

    def close(self) -> None:
        with self._lock:
            self._closing = True
            ws = self._ws
        if ws is not None:
            ws.close()


def websocket_transport_factory(open_timeout: float = 10.0) -> TransportFactory:
    """Build a TransportFactory bound to an open timeout."""

    def factory(url: str, listener: ITransportListener) -> WebSocketTransport:
        return WebSocketTransport(url, listener, open_timeout=open_timeout)

    return factory
