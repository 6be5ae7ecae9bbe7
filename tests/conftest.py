"""Shared fixtures: simulated clock, scheduler, transport and service."""

from __future__ import annotations

import base64
import hashlib
import json
import os
import secrets
import uuid
from typing import Any, Callable

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from chainvault.client.client import ChainVault
from chainvault.client.infrastructure.storage import MemoryCredentialStore

START_TIME = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    def __init__(self, due: float, delay: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Timers that only fire when the test moves the clock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.clock.now + delay, delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return sorted(
            (t for t in self.timers if not t.cancelled and not t.fired),
            key=lambda t: t.due,
        )

    def run_next(self) -> FakeTimer:
        timer = self.pending[0]
        self.clock.now = max(self.clock.now, timer.due)
        timer.fired = True
        timer.callback()
        return timer

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while self.pending and self.pending[0].due <= target:
            self.run_next()
        self.clock.now = target


class FakeTransport:
    def __init__(self, url: str, listener: Any) -> None:
        self.url = url
        self.listener = listener
        self.sent: list[dict] = []
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    def close(self) -> None:
        self.closed = True

    # Test helpers driving the listener
    def accept(self) -> None:
        self.listener.on_open(self)

    def fail(self, code: int = 1006, reason: str = "") -> None:
        self.listener.on_close(self, code, reason)

    def push(self, frame: dict) -> None:
        self.listener.on_message(self, json.dumps(frame))


class FakeTransportFactory:
    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []

    def __call__(self, url: str, listener: Any) -> FakeTransport:
        transport = FakeTransport(url, listener)
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


class FakeLedgerService:
    """In-memory stand-in for the service's HTTP API."""

    def __init__(self, token_lifetime: int = 3600) -> None:
        self.token_lifetime = token_lifetime
        self.accounts: dict[str, str] = {}
        self.sessions: dict[str, str] = {}
        self.collections: dict[str, dict[str, Any]] = {}
        self.block_number = 0
        self.authorizations: dict[str, str | None] = {}
        self.app = FastAPI()
        self.setup_routes()

    @staticmethod
    def _unauthorized(message: str) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error": message})

    def _bearer(self, request: Request, name: str) -> str | None:
        header = request.headers.get("authorization")
        self.authorizations[name] = header
        if not header or not header.startswith("Bearer "):
            return None
        return header[len("Bearer ") :]

    def _session_account(self, request: Request, name: str) -> str | None:
        token = self._bearer(request, name)
        return self.sessions.get(token) if token else None

    def setup_routes(self) -> None:
        app = self.app

        @app.post("/api/account/create")
        async def create_account() -> dict[str, Any]:
            api_key = base64.b64encode(os.urandom(32)).decode()
            account_id = hashlib.sha256(api_key.encode()).hexdigest()
            self.accounts[api_key] = account_id
            return {
                "account_id": account_id,
                "api_key": api_key,
                "warning": "SAVE THIS API KEY SECURELY.",
            }

        @app.post("/api/account/login")
        async def login(request: Request) -> Any:
            body = await request.json()
            account_id = self.accounts.get(body.get("api_key"))
            if account_id is None:
                return self._unauthorized("Invalid API key")
            token = secrets.token_urlsafe(32)
            self.sessions[token] = account_id
            return {
                "session_token": token,
                "expires_in": self.token_lifetime,
                "account_id": account_id,
            }

        @app.post("/api/data/submit")
        async def submit(request: Request) -> Any:
            account_id = self.accounts.get(self._bearer(request, "data/submit") or "")
            if account_id is None:
                return self._unauthorized("Invalid API key")
            body = await request.json()
            self.block_number += 1
            collection_id = str(uuid.uuid4())
            self.collections[collection_id] = {
                "account_id": account_id,
                "label": body["label"],
                "data": body["data"],
                "created_at": 1_705_318_200 + self.block_number,
                "block_number": self.block_number,
            }
            return {
                "message": "Data submitted successfully",
                "collection_id": collection_id,
                "block_number": self.block_number,
            }

        @app.get("/api/data/list")
        async def list_collections(request: Request) -> Any:
            account_id = self._session_account(request, "data/list")
            if account_id is None:
                return self._unauthorized("Invalid session token")
            return {
                "collections": [
                    {
                        "collection_id": cid,
                        "label": c["label"],
                        "created_at": c["created_at"],
                        "block_number": c["block_number"],
                    }
                    for cid, c in self.collections.items()
                    if c["account_id"] == account_id
                ]
            }

        @app.post("/api/data/decrypt/{collection_id}")
        async def decrypt(collection_id: str, request: Request) -> Any:
            account_id = self._session_account(request, "data/decrypt")
            if account_id is None:
                return self._unauthorized("Invalid session token")
            collection = self.collections.get(collection_id)
            if collection is None or collection["account_id"] != account_id:
                return JSONResponse(
                    status_code=404, content={"error": "Collection not found"}
                )
            return {
                "collection_id": collection_id,
                "label": collection["label"],
                "data": collection["data"],
                "created_at": collection["created_at"],
            }

        @app.get("/api/health")
        async def health() -> dict[str, Any]:
            return {
                "status": "healthy",
                "node_id": "node1",
                "chain_length": self.block_number + 1,
            }

        @app.get("/api/chain")
        async def chain() -> dict[str, Any]:
            return {"length": self.block_number + 1, "node_id": "node1"}

        @app.get("/api/peers")
        async def peers() -> dict[str, Any]:
            return {"peers": ["node2", "node3"]}

        @app.get("/api/metrics")
        async def metrics(request: Request) -> dict[str, Any]:
            self._bearer(request, "metrics")
            return {"collections": len(self.collections)}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> FakeScheduler:
    return FakeScheduler(clock)


@pytest.fixture
def transports() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def service() -> FakeLedgerService:
    return FakeLedgerService()


@pytest.fixture
def service_client(service: FakeLedgerService) -> TestClient:
    return TestClient(service.app)


@pytest.fixture
def secret() -> str:
    return base64.b64encode(os.urandom(32)).decode()


@pytest.fixture
def errors() -> list[Exception]:
    return []


@pytest.fixture
def vault(
    service_client: TestClient,
    clock: FakeClock,
    scheduler: FakeScheduler,
    transports: FakeTransportFactory,
    errors: list[Exception],
) -> ChainVault:
    """ChainVault wired to the fake service and simulated time."""
    return ChainVault(
        base_url="http://testserver",
        ws_url="ws://testserver",
        session=service_client,
        store=MemoryCredentialStore(),
        scheduler=scheduler,
        transport_factory=transports,
        clock=clock,
        on_error_callback=errors.append,
    )
