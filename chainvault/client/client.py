"""
Main SDK client.

Usage:
    vault = ChainVault(base_url="http://localhost:8080", ws_url="ws://localhost:8080")

    account = vault.auth.create_account()
    vault.auth.login(account.secret)

    receipt = vault.data.submit("notes", "hello")
    vault.data.decrypt(receipt.collection_id).data  # "hello"

    vault.ws.subscribe(EventType.COLLECTION_UPDATE, print)
    vault.ws.connect()
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from chainvault.client.application.credential_manager import CredentialManager
from chainvault.client.application.event_stream import EventHandler, EventStreamClient
from chainvault.client.infrastructure.config_loader import ConfigLoader
from chainvault.client.infrastructure.http import ApiHttpClient
from chainvault.client.infrastructure.scheduler import ThreadingScheduler
from chainvault.client.infrastructure.storage import FileCredentialStore
from chainvault.client.infrastructure.transport import websocket_transport_factory
from chainvault.common.crypto import CryptoEngine
from chainvault.common.decorators import requires_secret, requires_session
from chainvault.common.exceptions import (
    AuthenticationError,
    EncryptionError,
    NetworkError,
    RenewalError,
    ValidationError,
)
from chainvault.common.models import (
    ClientConfig,
    CollectionListResponse,
    CollectionSummary,
    CreateAccountRequest,
    CreateAccountResponse,
    DecryptedCollection,
    EncryptedCollection,
    LoginResponse,
    SubmitDataRequest,
    SubmitDataResponse,
)

if TYPE_CHECKING:
    from chainvault.client.domain.entities import ConnectionState
    from chainvault.common.interfaces import (
        ICredentialStore,
        IScheduler,
        TransportFactory,
    )

logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403


def _authorized_call(
    http: ApiHttpClient, method: str, path: str, authorization: str, **kwargs: Any
) -> Any:
    """Issue a request; a 401/403 answer becomes an AuthenticationError."""
    try:
        return http.request(method, path, authorization=authorization, **kwargs)
    except NetworkError as err:
        if err.status_code in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            raise AuthenticationError(str(err), status_code=err.status_code) from err
        raise


class AuthAPI:
    """Account creation, login and logout."""

    def __init__(self, vault: ChainVault) -> None:
        self._vault = vault
        self.credentials = vault.credentials

    def create_account(
        self, metadata: dict[str, Any] | None = None
    ) -> CreateAccountResponse:
        """Create an account and keep its secret for later login/encryption."""
        body = self._vault.http.request(
            "POST",
            "account/create",
            json=CreateAccountRequest(metadata=metadata).model_dump(),
        )
        try:
            account = CreateAccountResponse.model_validate(body)
        except ValueError as err:
            msg = "Malformed account creation response"
            raise NetworkError(msg) from err

        self.credentials.set_secret(account.secret)
        logger.info("Account created: %s", account.subject_id)
        return account

    def login(self, secret: str | None = None) -> LoginResponse:
        """Log in with secret, or with the stored secret when omitted."""
        secret = secret or self.credentials.secret
        if not secret:
            msg = "No secret given and none stored"
            raise AuthenticationError(msg)
        if not CryptoEngine.is_valid_secret_format(secret):
            msg = "Secret must be a non-empty base64 string"
            raise ValidationError(msg)
        return self.credentials.login(secret)

    def logout(self) -> None:
        self._vault.ws.disconnect()
        self.credentials.logout()

    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated()

    @property
    def secret(self) -> str | None:
        return self.credentials.secret

    @property
    def subject_id(self) -> str | None:
        return self.credentials.subject_id


class DataAPI:
    """Encrypted data submission, listing and retrieval."""

    def __init__(self, vault: ChainVault) -> None:
        self._vault = vault
        self.credentials = vault.credentials

    def _validate(self, label: str, data: str) -> None:
        loader = self._vault.settings
        if not label or not label.strip():
            msg = "Label must not be empty"
            raise ValidationError(msg)
        if len(label) > loader.max_label_length:
            msg = f"Label exceeds {loader.max_label_length} characters"
            raise ValidationError(msg)
        if len(data.encode("utf-8")) > loader.max_data_bytes:
            msg = f"Data exceeds {loader.max_data_bytes} bytes"
            raise ValidationError(msg)

    @requires_secret()
    def submit(self, label: str, data: str) -> SubmitDataResponse:
        """Encrypt data locally and store it under label."""
        self._validate(label, data)
        secret = self.credentials.secret
        authorization = self.credentials.get_authorization_for("data/submit")
        if not secret or not authorization:
            msg = "Not authenticated. Please login first."
            raise AuthenticationError(msg)

        encrypted = CryptoEngine.encrypt(data, secret)
        body = _authorized_call(
            self._vault.http,
            "POST",
            "data/submit",
            authorization,
            json=SubmitDataRequest(label=label, data=encrypted).model_dump(),
        )
        try:
            return SubmitDataResponse.model_validate(body)
        except ValueError as err:
            msg = "Malformed submission response"
            raise NetworkError(msg) from err

    @requires_session()
    def list_collections(self) -> list[CollectionSummary]:
        authorization = self.credentials.get_authorization_for("data/list")
        if not authorization:
            msg = "Not authenticated. Please login first."
            raise AuthenticationError(msg)
        body = _authorized_call(self._vault.http, "GET", "data/list", authorization)
        try:
            if isinstance(body, list):
                return [CollectionSummary.model_validate(item) for item in body]
            return CollectionListResponse.model_validate(body).collections
        except ValueError as err:
            msg = "Malformed collection list response"
            raise NetworkError(msg) from err

    @requires_session()
    @requires_secret()
    def decrypt(self, collection_id: str) -> DecryptedCollection:
        """Fetch a collection and decrypt its data locally."""
        if not collection_id:
            msg = "Collection id must not be empty"
            raise ValidationError(msg)
        path = f"data/decrypt/{collection_id}"
        secret = self.credentials.secret
        authorization = self.credentials.get_authorization_for(path)
        if not secret or not authorization:
            msg = "Not authenticated. Please login first."
            raise AuthenticationError(msg)

        body = _authorized_call(self._vault.http, "POST", path, authorization)
        try:
            collection = EncryptedCollection.model_validate(body)
        except ValueError as err:
            msg = "Malformed collection response"
            raise NetworkError(msg) from err

        try:
            plaintext = CryptoEngine.decrypt(collection.data, secret)
        except EncryptionError as err:
            msg = f"Failed to decrypt collection {collection_id}"
            raise EncryptionError(msg) from err

        return DecryptedCollection(
            collection_id=collection.collection_id,
            label=collection.label,
            data=plaintext,
            created_at=collection.created_at,
        )


class EventsAPI:
    """Real-time event subscription."""

    def __init__(self, stream: EventStreamClient) -> None:
        self.stream = stream

    def connect(self) -> None:
        self.stream.connect()

    def disconnect(self) -> None:
        self.stream.disconnect()

    def subscribe(self, event: Any, handler: EventHandler) -> None:
        self.stream.subscribe(event, handler)

    def unsubscribe(self, event: Any, handler: EventHandler) -> None:
        self.stream.unsubscribe(event, handler)

    def is_connected(self) -> bool:
        return self.stream.is_connected()

    @property
    def state(self) -> ConnectionState:
        return self.stream.state


class ChainAPI:
    """Read-only service status endpoints."""

    def __init__(self, vault: ChainVault) -> None:
        self._vault = vault

    def health(self) -> dict[str, Any]:
        return self._vault.http.request("GET", "health")

    def stats(self) -> dict[str, Any]:
        return self._vault.http.request("GET", "chain")

    def peers(self) -> dict[str, Any]:
        return self._vault.http.request("GET", "peers")

    def metrics(self) -> dict[str, Any]:
        authorization = self._vault.credentials.get_authorization_for("metrics")
        return self._vault.http.request("GET", "metrics", authorization=authorization)


class ChainVault:
    """Facade over credentials, encryption and the event stream."""

    def __init__(
        self,
        base_url: str | None = None,
        ws_url: str | None = None,
        secret: str | None = None,
        *,
        config: ClientConfig | None = None,
        session: Any | None = None,
        store: ICredentialStore | None = None,
        scheduler: IScheduler | None = None,
        transport_factory: TransportFactory | None = None,
        clock: Callable[[], float] = time.time,
        on_error_callback: Callable[[Exception], None] | None = None,
    ) -> None:
        config = config or ClientConfig()
        overrides = {"base_url": base_url, "ws_url": ws_url}
        if on_error_callback is not None:
            overrides["on_error_callback"] = on_error_callback
        config = config.model_copy(
            update={k: v for k, v in overrides.items() if v is not None}
        )
        self.settings = ConfigLoader(config)
        self.on_error_callback = self.settings.on_error_callback

        scheduler = scheduler or ThreadingScheduler()
        self.http = ApiHttpClient(
            self.settings.base_url,
            api_prefix=self.settings.api_prefix,
            timeout=self.settings.request_timeout,
            session=session,
        )
        self.credentials = CredentialManager(
            self.http,
            store or FileCredentialStore(self.settings.state_file),
            scheduler,
            renewal_margin=self.settings.renewal_margin,
            clock=clock,
            on_renewal_error=self._handle_error,
        )
        self.stream = EventStreamClient(
            self.settings.ws_url,
            self.credentials,
            transport_factory or websocket_transport_factory(self.settings.open_timeout),
            scheduler,
            reconnect_base_delay=self.settings.reconnect_base_delay,
            reconnect_max_delay=self.settings.reconnect_max_delay,
            max_reconnect_attempts=self.settings.max_reconnect_attempts,
            ping_interval=self.settings.ping_interval,
            on_error=self._handle_error,
        )

        self.ws = EventsAPI(self.stream)
        self.auth = AuthAPI(self)
        self.data = DataAPI(self)
        self.chain = ChainAPI(self)

        if secret:
            self.credentials.set_secret(secret)

    def _handle_error(self, error: Exception) -> None:
        logger.error("%s: %s", type(error).__name__, error)
        if isinstance(error, RenewalError):
            # Credentials are gone; the stream must not keep using them
            self.stream.disconnect()
        if self.on_error_callback:
            self.on_error_callback(error)

    def close(self) -> None:
        """Stop background activity without clearing stored credentials."""
        self.stream.disconnect()
        self.credentials.stop()
        self.http.close()

    def __enter__(self) -> ChainVault:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
