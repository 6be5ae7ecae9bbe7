"""
Infrastructure layer: JSON over HTTP against the service API.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from chainvault.common.exceptions import NetworkError

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400


def _error_message(response: Any, fallback: str) -> str:
    """Pull the service's error text out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        detail = body.get("error") or body.get("detail") or body.get("message")
        if detail:
            return str(detail)
    return fallback


class ApiHttpClient:
    """Sends JSON requests under ``{base_url}{api_prefix}/``.

    The session only needs a requests-compatible ``request()`` method, so a
    test client can stand in for the network.
    """

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api",
        timeout: float = 10,
        session: Any | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._owns_session:
            self.session.close()

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{self.api_prefix}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        authorization: str | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            NetworkError: on transport failure, an error status, or a body
                that is not JSON. ``status_code`` is set when the server
                answered.
        """
        headers = {"Content-Type": "application/json"}
        if authorization:
            headers["Authorization"] = authorization

        url = self.url_for(path)
        logger.debug("%s %s", method, url)
        try:
            r = self.session.request(
                method, url, json=json, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as err:
            msg = f"{method} {path} failed: {err}"
            raise NetworkError(msg) from err

        if r.status_code >= HTTP_BAD_REQUEST:
            msg = _error_message(r, f"{method} {path} failed")
            logger.info("%s %s -> %s: %s", method, path, r.status_code, msg)
            raise NetworkError(msg, status_code=r.status_code)

        try:
            return r.json()
        except ValueError as err:
            msg = f"{method} {path} returned a non-JSON body"
            raise NetworkError(msg, status_code=r.status_code) from err
