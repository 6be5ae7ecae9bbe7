"""Credential guards and retry helpers for SDK calls.
"""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

from chainvault.common.exceptions import AuthenticationError, NetworkError

logger = logging.getLogger(__name__)

HTTP_SERVER_ERROR = 500


def _resolve_manager(source: Any, args: tuple[Any, ...]) -> Any:
    """Get the credential manager (direct, callable, or attribute name on self)."""
    if isinstance(source, str):
        if not args:
            msg = f"Cannot get credential attribute '{source}' without self"
            raise ValueError(msg)
        return getattr(args[0], source)
    if callable(source) and not hasattr(source, "is_authenticated"):
        return source()
    return source


def requires_session(
    credentials: Any | Callable[[], Any] | str = "credentials",
    error_message: str = "Not authenticated. Please login first.",
) -> Callable:
    """Decorator that runs the function only while a session token is valid.

    Args:
        credentials: CredentialManager, a callable returning one, or the
            name of the attribute holding it on self
        error_message: Message of the AuthenticationError raised otherwise
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            manager = _resolve_manager(credentials, args)
            if not manager.is_authenticated():
                raise AuthenticationError(error_message)
            return func(*args, **kwargs)

        return wrapper

    return decorator


def requires_secret(
    credentials: Any | Callable[[], Any] | str = "credentials",
    error_message: str = "No secret available. Create an account or login first.",
) -> Callable:
    """Decorator that runs the function only when a secret is stored."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            manager = _resolve_manager(credentials, args)
            if not manager.secret:
                raise AuthenticationError(error_message)
            return func(*args, **kwargs)

        return wrapper

    return decorator


def retry_on_network_error(
    max_retries: int = 3,
    retry_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Decorator that retries a call after transport or server-side failures.

    Client errors (4xx) are never retried. The delay doubles after every
    attempt.

    Args:
        max_retries: Maximum number of retry attempts
        retry_delay: Delay before the first retry in seconds
        sleep: Sleep function, replaceable in tests
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = retry_delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except NetworkError as err:
                    retryable = (
                        err.status_code is None
                        or err.status_code >= HTTP_SERVER_ERROR
                    )
                    if not retryable or attempt == max_retries:
                        raise
                    logger.warning(
                        "%s failed (%s), retrying in %.1fs (%d/%d)",
                        func.__name__,
                        err,
                        delay,
                        attempt + 1,
                        max_retries,
                    )
                    sleep(delay)
                    delay *= 2
            return None

        return wrapper

    return decorator
