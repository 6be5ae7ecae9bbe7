"""WebSocketTransport against a local websockets server."""

from __future__ import annotations

import json
import socket
import threading
from collections.abc import Iterator
from typing import Any

import pytest
from websockets.sync.server import ServerConnection, serve

from chainvault.client.infrastructure.transport import (
    WebSocketTransport,
    websocket_transport_factory,
)

WAIT = 5.0


class RecordingListener:
    def __init__(self) -> None:
        self.opened = threading.Event()
        self.closed = threading.Event()
        self.messages: list[str] = []
        self.got_message = threading.Event()
        self.errors: list[Exception] = []
        self.close_code: int | None = None

    def on_open(self, transport: Any) -> None:
        self.opened.set()

    def on_message(self, transport: Any, message: str) -> None:
        self.messages.append(message)
        self.got_message.set()

    def on_error(self, transport: Any, error: Exception) -> None:
        self.errors.append(error)

    def on_close(self, transport: Any, code: int, reason: str) -> None:
        self.close_code = code
        self.closed.set()


def handler(websocket: ServerConnection) -> None:
    """Answer pings with pongs; confirm subscriptions."""
    for raw in websocket:
        frame = json.loads(raw)
        if frame["type"] == "ping":
            websocket.send(json.dumps({"type": "pong"}))
        elif frame["type"] == "subscribe":
            websocket.send(json.dumps({"type": "subscribed", "event": frame["event"]}))


@pytest.fixture
def server_url() -> Iterator[str]:
    with serve(handler, "127.0.0.1", 0) as server:
        port = server.socket.getsockname()[1]
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        yield f"ws://127.0.0.1:{port}"
    thread.join(WAIT)


def test_round_trip(server_url: str) -> None:
    listener = RecordingListener()
    transport = WebSocketTransport(f"{server_url}/ws?token=abc", listener)

    transport.open()
    assert listener.opened.wait(WAIT)

    transport.send(json.dumps({"type": "ping"}))
    assert listener.got_message.wait(WAIT)
    assert json.loads(listener.messages[0]) == {"type": "pong"}

    transport.close()
    assert listener.closed.wait(WAIT)
    assert listener.close_code == 1000  # noqa: PLR2004
    assert listener.errors == []


def test_factory_builds_transport(server_url: str) -> None:
    listener = RecordingListener()
    transport = websocket_transport_factory(open_timeout=2.0)(server_url, listener)
    assert isinstance(transport, WebSocketTransport)
    assert transport.open_timeout == 2.0  # noqa: PLR2004

    transport.open()
    assert listener.opened.wait(WAIT)
    transport.send(json.dumps({"type": "subscribe", "event": "peer_update"}))
    assert listener.got_message.wait(WAIT)
    assert json.loads(listener.messages[0])["event"] == "peer_update"
    transport.close()
    assert listener.closed.wait(WAIT)


def test_unreachable_server() -> None:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    listener = RecordingListener()
    transport = WebSocketTransport(f"ws://127.0.0.1:{port}/ws", listener, open_timeout=2.0)
    transport.open()

    assert listener.closed.wait(WAIT)
    assert not listener.opened.is_set()
    assert listener.close_code == 1006  # noqa: PLR2004
    assert len(listener.errors) == 1


def test_send_before_open_is_dropped() -> None:
    transport = WebSocketTransport("ws://127.0.0.1:9/ws", RecordingListener())
    transport.send("{}")
    transport.close()
