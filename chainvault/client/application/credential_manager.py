"""
Application layer: Credential lifecycle with a dual-credential strategy.

- Secret: long-lived, issued at account creation, authorizes data/submit and
  the event stream handshake, and seeds the encryption keys
- Session token: short-lived, obtained via login, authorizes everything else

The manager renews the session token shortly before it expires and keeps the
state in a durable store across process restarts.
"""

from __future__ import annotations

import fnmatch
import logging
import threading
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Callable

from chainvault.client.domain.entities import (
    AuthStatus,
    CredentialKind,
    CredentialState,
)
from chainvault.common.crypto import is_valid_secret_format
from chainvault.common.exceptions import (
    AuthenticationError,
    NetworkError,
    RenewalError,
    StorageError,
    ValidationError,
)
from chainvault.common.models import LoginRequest, LoginResponse, StoredCredentials

if TYPE_CHECKING:
    from chainvault.common.interfaces import (
        ICredentialStore,
        IHttpClient,
        IScheduler,
        ITimerHandle,
    )

logger = logging.getLogger(__name__)

LOGIN_PATH = "account/login"

# First matching pattern wins; anything unmatched uses the session token.
CREDENTIAL_ROUTES: tuple[tuple[str, CredentialKind], ...] = (
    ("data/submit", CredentialKind.SECRET),
    ("ws", CredentialKind.SECRET),
)


def normalize_path(path: str) -> str:
    """Reduce "/api/data/list?x=1" style paths to "data/list"."""
    path = path.split("?", 1)[0].strip("/")
    if path.startswith("api/"):
        path = path[len("api/") :]
    return path


def credential_kind_for(path: str) -> CredentialKind:
    endpoint = normalize_path(path)
    for pattern, kind in CREDENTIAL_ROUTES:
        if fnmatch.fnmatchcase(endpoint, pattern):
            return kind
    return CredentialKind.SESSION_TOKEN


class CredentialManager:
    """Owns the secret, the session token and their renewal."""

    def __init__(
        self,
        http: IHttpClient,
        store: ICredentialStore,
        scheduler: IScheduler,
        renewal_margin: float = 5 * 60,
        clock: Callable[[], float] = time.time,
        on_renewal_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self.http = http
        self.store = store
        self.scheduler = scheduler
        self.renewal_margin = renewal_margin
        self.clock = clock
        self.on_renewal_error = on_renewal_error

        self._state = CredentialState()
        self._lock = threading.RLock()
        self._renewal_timer: ITimerHandle | None = None
        self._generation = 0

        self._load_from_store()

    def _load_from_store(self) -> None:
        stored = self.store.load()
        self._state.secret = stored.secret
        self._state.session_token = stored.session_token
        self._state.subject_id = stored.subject_id
        self._state.expires_at = stored.expires_at

        if self._state.session_token is None:
            return
        if self._state.has_valid_session(self.clock()):
            logger.info("Restored session for %s", self._state.subject_id)
            self._schedule_renewal()
        else:
            logger.info("Discarding expired session token from storage")
            self._state.clear_session()
            self._persist()

    def _persist(self, state: CredentialState | None = None) -> None:
        """Write state (default: the current one) to the store.

        Raises:
            StorageError: the store could not be written
        """
        if state is None:
            state = self._state
        try:
            self.store.save(
                StoredCredentials(
                    secret=state.secret,
                    session_token=state.session_token,
                    subject_id=state.subject_id,
                    expires_at=state.expires_at,
                )
            )
        except OSError as err:
            logger.error("Could not persist credentials: %s", err)
            msg = f"Failed to persist credentials: {err}"
            raise StorageError(msg) from err

    def _apply(self, state: CredentialState) -> None:
        """Persist state, then make it current; on failure nothing changes."""
        self._persist(state)
        self._state.secret = state.secret
        self._state.session_token = state.session_token
        self._state.subject_id = state.subject_id
        self._state.expires_at = state.expires_at

    @property
    def status(self) -> AuthStatus:
        with self._lock:
            if self._state.has_valid_session(self.clock()):
                return AuthStatus.AUTHENTICATED
            if self._state.secret:
                return AuthStatus.PROVISIONED
            return AuthStatus.ANONYMOUS

    @property
    def secret(self) -> str | None:
        return self._state.secret

    @property
    def subject_id(self) -> str | None:
        return self._state.subject_id

    @property
    def expires_at(self) -> float | None:
        return self._state.expires_at

    @property
    def session_token(self) -> str | None:
        """Current session token, or None when missing or expired."""
        with self._lock:
            if self._state.has_valid_session(self.clock()):
                return self._state.session_token
            return None

    def set_secret(self, secret: str) -> None:
        """Store the secret issued at account creation (before login)."""
        if not is_valid_secret_format(secret):
            msg = "Secret must be a non-empty base64 string"
            raise ValidationError(msg)
        with self._lock:
            self._apply(replace(self._state, secret=secret))

    def login(self, secret: str) -> LoginResponse:
        """Exchange the secret for a session token.

        Raises:
            AuthenticationError: the service rejected the secret
            NetworkError: the service could not be reached
            StorageError: the new session could not be saved; nothing changes
        """
        with self._lock:
            generation = self._generation

        try:
            body = self.http.request(
                "POST",
                LOGIN_PATH,
                json=LoginRequest(secret=secret).model_dump(by_alias=True),
            )
        except NetworkError as err:
            if err.status_code is None:
                raise
            raise AuthenticationError(str(err), status_code=err.status_code) from err

        try:
            login_data = LoginResponse.model_validate(body)
        except ValueError as err:
            msg = "Malformed login response"
            raise AuthenticationError(msg) from err

        with self._lock:
            if generation != self._generation:
                msg = "Credentials were cleared while logging in"
                raise AuthenticationError(msg)

            self._apply(
                CredentialState(
                    secret=secret,
                    session_token=login_data.session_token,
                    subject_id=login_data.subject_id,
                    expires_at=self.clock() + login_data.expires_in,
                )
            )
            self._schedule_renewal()

        logger.info("Logged in as %s", login_data.subject_id)
        return login_data

    def logout(self) -> None:
        """Clear all credentials. Safe to call repeatedly."""
        with self._lock:
            self._generation += 1
            self._cancel_renewal()
            self._state.clear()
            self.store.clear()
        logger.info("Logged out")

    def stop(self) -> None:
        """Cancel the pending renewal; stored credentials are kept."""
        with self._lock:
            self._cancel_renewal()

    def is_authenticated(self) -> bool:
        with self._lock:
            return self._state.has_valid_session(self.clock())

    def credential_for(self, path: str) -> str | None:
        """Raw credential the routing table selects for path."""
        if credential_kind_for(path) is CredentialKind.SECRET:
            return self._state.secret
        return self.session_token

    def get_authorization_for(self, path: str) -> str | None:
        """Authorization header value for path, or None when unavailable."""
        credential = self.credential_for(path)
        return f"Bearer {credential}" if credential else None

    def renewal_delay(self) -> float | None:
        """Seconds until the renewal should fire.

        The lead time is renewal_margin, clamped to half of the remaining
        lifetime so short-lived tokens are still renewed before they expire.
        """
        if self._state.expires_at is None:
            return None
        remaining = self._state.expires_at - self.clock()
        if remaining <= 0:
            return None
        return remaining - min(self.renewal_margin, remaining / 2)

    def _schedule_renewal(self) -> None:
        self._cancel_renewal()
        delay = self.renewal_delay()
        if delay is None:
            return
        logger.debug("Session renewal scheduled in %.0fs", delay)
        self._renewal_timer = self.scheduler.call_later(delay, self._renew)

    def _cancel_renewal(self) -> None:
        if self._renewal_timer is not None:
            self._renewal_timer.cancel()
            self._renewal_timer = None

    def _renew(self) -> None:
        with self._lock:
            self._renewal_timer = None
            secret = self._state.secret
            generation = self._generation

        try:
            if not secret:
                msg = "Cannot renew session: no secret available"
                raise AuthenticationError(msg)
            self.login(secret)
            logger.info("Session renewed")
        except Exception as err:
            logger.exception("Session renewal failed")
            with self._lock:
                if generation != self._generation:
                    return
                self._generation += 1
                self._cancel_renewal()
                self._state.clear()
                self.store.clear()
            error = RenewalError(f"Session renewal failed: {err}")
            error.__cause__ = err
            if self.on_renewal_error:
                self.on_renewal_error(error)
