"""Synchronous HTTP client for talking to the forum with (or without) a User API Key.

This module provides :class:`ForumClient`, which wraps :class:`httpx.Client`
and layers on:

- **Auth injection** -- the ``User-Api-Key`` headers from an
  :class:`~forumkey.auth.base.AuthResult` are merged into every request;
  with no credential the client takes the anonymous path.
- **Error mapping** -- 401/403 become :class:`~forumkey.exceptions.AuthenticationFailed`,
  other HTTP errors :class:`~forumkey.exceptions.ServerError`, and
  transport failures :class:`~forumkey.exceptions.ConnectionError_`.

Only :meth:`ForumClient.current_user` is built in; it is what
``forumkey auth test`` uses to check that a stored key still works.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from forumkey.auth.base import AuthResult, user_api_key_auth
from forumkey.exceptions import AuthenticationFailed, ConnectionError_, ServerError
from forumkey.models import RequestConfig

logger = logging.getLogger(__name__)


class ForumClient:
    """HTTP client bound to one forum server.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        server: Canonical forum URL, used as the base URL.
        credential: Stored User API Key, or ``None`` for anonymous requests.
        client_id: Client id the key was issued to.
        request_config: Timeout and SSL settings.
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).

    Example::

        with ForumClient(server, credential=key, client_id="demo") as client:
            user = client.current_user()
    """

    def __init__(
        self,
        server: str,
        credential: Optional[str] = None,
        client_id: Optional[str] = None,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._server = server
        self._auth: AuthResult = user_api_key_auth(credential, client_id)
        self._config = request_config or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def is_authenticated(self) -> bool:
        """Whether requests carry a User API Key."""
        return not self._auth.is_anonymous

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ForumClient:
        self._client = httpx.Client(
            base_url=self._server,
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        """Send a GET request with auth injected and errors mapped.

        Raises:
            AuthenticationFailed: On 401 / 403.
            ServerError: On any other 4xx / 5xx.
            ConnectionError_: On network / timeout errors.
        """
        assert self._client is not None, "ForumClient must be used as a context manager"
        headers = {"Accept": "application/json", **self._auth.headers}
        merged_params = {**self._auth.params, **(params or {})}
        logger.debug(
            "GET %s%s (%s)",
            self._server,
            path,
            "authenticated" if self.is_authenticated else "anonymous",
        )
        try:
            response = self._client.get(path, params=merged_params or None, headers=headers)
        except httpx.TimeoutException as exc:
            raise ConnectionError_(f"Request to {self._server} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Cannot reach {self._server}: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthenticationFailed(
                f"The forum rejected the credential (HTTP {response.status_code})"
            )
        if response.status_code >= 400:
            raise ServerError(
                f"HTTP {response.status_code} from {self._server}{path}: {response.text[:200]}"
            )
        return response

    def current_user(self) -> Optional[dict[str, Any]]:
        """Return the user the credential belongs to.

        Returns:
            The ``current_user`` object from ``/session/current.json``, or
            ``None`` when the forum reports no logged-in user.
        """
        try:
            response = self.get("/session/current.json")
        except ServerError:
            # Anonymous requests get a 404 here.
            if self.is_authenticated:
                raise
            return None
        try:
            data = response.json()
        except ValueError as exc:
            raise ServerError(f"Unexpected response from {self._server}: {exc}") from exc
        user = data.get("current_user") if isinstance(data, dict) else None
        return user if isinstance(user, dict) else None
