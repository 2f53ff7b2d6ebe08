"""Authentication artifacts for requests made with a User API Key.

This module defines :class:`AuthResult`, a plain container for the HTTP
headers, query parameters, and cookies to attach to outgoing requests,
and :func:`user_api_key_auth`, which builds one from a stored credential.

See Also:
    :class:`~forumkey.client.sync_client.ForumClient` -- merges an
    :class:`AuthResult` into every request.
"""

from __future__ import annotations

from typing import Optional

API_KEY_HEADER = "User-Api-Key"
CLIENT_ID_HEADER = "User-Api-Client-Id"


class AuthResult:
    """Container for authentication artifacts to inject into HTTP requests.

    Args:
        headers: HTTP headers to add (e.g. ``{"User-Api-Key": "..."}``).
        params: Query-string parameters to add.
        cookies: Cookies to add.

    Example::

        result = AuthResult(headers={"User-Api-Key": "abc123"})
        assert result.headers["User-Api-Key"] == "abc123"
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
    ):
        self.headers = headers or {}
        self.params = params or {}
        self.cookies = cookies or {}

    @property
    def is_anonymous(self) -> bool:
        """True when nothing would be added to a request."""
        return not (self.headers or self.params or self.cookies)


def user_api_key_auth(credential: Optional[str], client_id: Optional[str] = None) -> AuthResult:
    """Build the auth artifacts for a forum request.

    Args:
        credential: The stored User API Key, or ``None`` for an anonymous
            request.
        client_id: The client id the key was issued to. Sent alongside the
            key when known.

    Returns:
        An empty :class:`AuthResult` when *credential* is falsy, otherwise
        one carrying the ``User-Api-Key`` (and ``User-Api-Client-Id``)
        headers.
    """
    if not credential:
        return AuthResult()
    headers = {API_KEY_HEADER: credential}
    if client_id:
        headers[CLIENT_ID_HEADER] = client_id
    return AuthResult(headers=headers)
