"""
Pydantic models for request/response validation.

Python field names are canonical; the service's JSON names are aliases.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateAccountRequest(WireModel):
    metadata: dict[str, Any] | None = None


class CreateAccountResponse(WireModel):
    subject_id: str = Field(alias="account_id")
    secret: str = Field(alias="api_key")
    warning: str = ""


class LoginRequest(WireModel):
    secret: str = Field(alias="api_key")


class LoginResponse(WireModel):
    session_token: str
    expires_in: int = Field(gt=0)
    subject_id: str = Field(alias="account_id")


class SubmitDataRequest(WireModel):
    label: str
    data: str


class SubmitDataResponse(WireModel):
    message: str
    collection_id: str
    block_number: int


class CollectionSummary(WireModel):
    collection_id: str
    label: str
    created_at: int
    block_number: int | None = None


class CollectionListResponse(WireModel):
    collections: list[CollectionSummary] = Field(default_factory=list)


class EncryptedCollection(WireModel):
    collection_id: str
    label: str
    data: str
    created_at: int


class DecryptedCollection(WireModel):
    collection_id: str
    label: str
    data: str
    created_at: int


class StoredCredentials(BaseModel):
    """On-disk credential record; each field is stored under its own key."""

    secret: str | None = None
    session_token: str | None = None
    subject_id: str | None = None
    expires_at: float | None = Field(default=None, alias="token_expires_at")

    model_config = ConfigDict(populate_by_name=True)


class OutboundFrame(BaseModel):
    type: Literal["subscribe", "unsubscribe", "ping"]
    event: str | None = None


class InboundFrame(BaseModel):
    """Frame pushed by the server.

    Event payloads arrive either under "data" or flattened into the frame
    itself; extra keys are kept so both shapes work.
    """

    model_config = ConfigDict(extra="allow")

    type: Literal["event", "pong", "subscribed", "unsubscribed", "error"]
    event: str | None = None
    data: Any = None
    message: str | None = None

    def payload(self) -> Any:
        if self.data is not None:
            return self.data
        return dict(self.model_extra or {})


class ClientConfig(BaseModel):
    base_url: str | None = None
    ws_url: str | None = None
    request_timeout: float | None = None
    log_level: int | None = None
    state_file: Path | None = None
    renewal_margin: float | None = None
    reconnect_base_delay: float | None = None
    reconnect_max_delay: float | None = None
    max_reconnect_attempts: int | None = None
    ping_interval: float | None = None
    open_timeout: float | None = None
    max_label_length: int | None = None
    max_data_bytes: int | None = None
    on_error_callback: Callable[[Exception], None] | None = None
