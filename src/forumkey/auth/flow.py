"""The User API Key login flow.

:class:`AuthFlowController` drives one forum server through three states:

- :class:`LoggedOut` -- no credential for the server.
- :class:`AwaitingCallback` -- a keypair was generated, its private half
  stashed, and the user sent to ``/user-api-key/new``.
- :class:`LoggedIn` -- a credential is stored.

The forum round trip happens outside this process, so a controller is
expected to be rebuilt (in :class:`LoggedOut`) when the callback arrives;
the only thing that survives is the pending private key in the
:class:`~forumkey.auth.credential_store.CredentialStore` slot.

Failures never escape the public methods. Each one moves the controller
back to :class:`LoggedOut` and leaves a :class:`~forumkey.exceptions.FlowError`
in :attr:`AuthFlowController.error` for the caller to report.

Example::

    controller = AuthFlowController(
        server="https://forum.example.com",
        client_id="demo",
        app_url="https://blog.example.com/post/1",
        navigate=webbrowser.open,
    )
    controller.initiate()
    # ... later, in a fresh process ...
    controller.handle_return(payload)
    if isinstance(controller.state, LoggedIn):
        print(controller.state.credential)
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional, Union
from urllib.parse import parse_qsl, unquote, unquote_plus, urlencode, urlsplit, urlunsplit

from forumkey.auth.credential_store import CredentialStore
from forumkey.crypto.keypair import KeyPairProvider, RsaOaepSha1Provider
from forumkey.crypto.payload import PayloadDecryptor
from forumkey.exceptions import (
    AuthenticationFailed,
    CryptoError,
    FlowError,
    LoginInitiationFailed,
    MissingPrivateKey,
)

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/user-api-key/new"
PAYLOAD_PARAM = "payload"
SCOPES = "read,write"


# --- States ---


@dataclass(frozen=True)
class LoggedOut:
    """No credential is held for the server."""


@dataclass(frozen=True)
class AwaitingCallback:
    """The user was sent to the forum; its answer has not arrived yet."""

    nonce: str
    redirect_target: str


@dataclass(frozen=True)
class LoggedIn:
    """A credential is stored for the server."""

    credential: str


AuthFlowState = Union[LoggedOut, AwaitingCallback, LoggedIn]


# --- URL helpers ---


def strip_query_param(url: str, name: str = PAYLOAD_PARAM) -> str:
    """Return *url* without any occurrence of the query parameter *name*.

    Every other pair is kept exactly as written, so ``?flag`` stays a bare
    flag and ``%20`` is not rewritten as ``+``.
    """
    parts = urlsplit(url)
    kept = [
        pair
        for pair in parts.query.split("&")
        if pair and unquote_plus(pair.partition("=")[0]) != name
    ]
    return urlunsplit(parts._replace(query="&".join(kept)))


def payload_from_url(value: str) -> Optional[str]:
    """Extract the callback payload from *value*.

    *value* may be the full URL the forum redirected to, or the bare
    payload itself. A bare payload is percent-decoded with ``+`` left
    alone. Returns ``None`` when a URL carries no payload.
    """
    value = value.strip()
    parts = urlsplit(value)
    if parts.scheme in ("http", "https") and parts.netloc:
        for key, val in parse_qsl(parts.query, keep_blank_values=True):
            if key == PAYLOAD_PARAM:
                return val
        return None
    return unquote(value) or None


def build_authorization_url(
    server: str,
    client_id: str,
    nonce: str,
    public_key: str,
    auth_redirect: str,
    padding_name: str,
) -> str:
    """Build the ``/user-api-key/new`` URL the user is sent to.

    ``public_key`` is embedded verbatim, newlines included; percent-encoding
    takes care of them.
    """
    params = {
        "application_name": client_id,
        "client_id": client_id,
        "scopes": SCOPES,
        "nonce": nonce,
        "public_key": public_key,
        "auth_redirect": auth_redirect,
        "padding": padding_name,
    }
    return f"{server}{AUTHORIZE_PATH}?{urlencode(params)}"


def generate_nonce() -> str:
    """Return an unpredictable nonce for the authorization request."""
    return secrets.token_urlsafe(16)


# --- Controller ---


class AuthFlowController:
    """Orchestrates login, callback handling, manual keys and logout for one server.

    Args:
        server: Canonical forum URL; credentials are stored under it.
        client_id: Sent as both ``client_id`` and ``application_name``.
        app_url: The application's own URL. The forum redirects back here
            with ``?payload=...``; it is also updated once a payload has
            been consumed so the callback cannot be replayed.
        store: Credential and pending key storage.
        provider: Keypair generation and import.
        decryptor: Callback payload decryption.
        navigate: Receives the authorization URL once the flow is ready to
            leave the application (e.g. :func:`webbrowser.open`).
    """

    def __init__(
        self,
        server: str,
        client_id: str,
        app_url: Optional[str] = None,
        store: Optional[CredentialStore] = None,
        provider: Optional[KeyPairProvider] = None,
        decryptor: Optional[PayloadDecryptor] = None,
        navigate: Optional[Callable[[str], object]] = None,
    ) -> None:
        self.server = server
        self.client_id = client_id
        self.app_url = app_url or server
        self._store = store if store is not None else CredentialStore()
        self._provider = provider if provider is not None else RsaOaepSha1Provider()
        self._decryptor = decryptor if decryptor is not None else PayloadDecryptor()
        self._navigate = navigate
        self._state: AuthFlowState = LoggedOut()
        self.error: Optional[FlowError] = None

    @property
    def state(self) -> AuthFlowState:
        """The current state."""
        return self._state

    @property
    def credential(self) -> Optional[str]:
        """The credential when :class:`LoggedIn`, else ``None``."""
        if isinstance(self._state, LoggedIn):
            return self._state.credential
        return None

    def _transition(self, state: AuthFlowState) -> AuthFlowState:
        logger.debug(
            "%s: %s -> %s", self.server, type(self._state).__name__, type(state).__name__
        )
        self._state = state
        return state

    def _fail(self, error: FlowError) -> AuthFlowState:
        self.error = error
        return self._transition(LoggedOut())

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def restore(self) -> AuthFlowState:
        """Enter :class:`LoggedIn` if a credential is already stored for the server."""
        credential = self._store.load_credential(self.server)
        if credential:
            return self._transition(LoggedIn(credential))
        return self._state

    def initiate(self) -> AuthFlowState:
        """Start a login attempt and hand the authorization URL to ``navigate``.

        A second call before the callback replaces the first attempt's
        pending key; only the most recent attempt can complete.

        Returns:
            :class:`AwaitingCallback` on success. On failure the state is
            :class:`LoggedOut`, no pending key is left behind, and
            :attr:`error` holds a :class:`LoginInitiationFailed`.
        """
        self.error = None
        stashed = False
        try:
            keypair = self._provider.generate()
            self._store.stash_transient_private_key(keypair.private_key)
            stashed = True
            nonce = generate_nonce()
            url = build_authorization_url(
                server=self.server,
                client_id=self.client_id,
                nonce=nonce,
                public_key=keypair.public_key,
                auth_redirect=strip_query_param(self.app_url),
                padding_name=self._provider.padding_name,
            )
        except Exception as exc:
            logger.warning("Login initiation for %s failed: %s", self.server, exc)
            if stashed:
                self._store.drop_transient_private_key()
            error = LoginInitiationFailed(f"Failed to initiate login: {exc}")
            error.__cause__ = exc
            return self._fail(error)

        state = self._transition(AwaitingCallback(nonce=nonce, redirect_target=url))
        if self._navigate is not None:
            try:
                self._navigate(url)
            except Exception as exc:
                logger.warning("Authorization page for %s could not be opened: %s", self.server, exc)
                self._store.drop_transient_private_key()
                error = LoginInitiationFailed(f"Could not open the authorization page: {exc}")
                error.__cause__ = exc
                return self._fail(error)
        return state

    def handle_return(self, payload: Optional[str]) -> AuthFlowState:
        """Process the forum's callback payload, if there is one.

        The pending private key is consumed whatever the outcome; retrying
        requires a fresh :meth:`initiate`.

        Args:
            payload: The ``payload`` query value, or ``None`` when the
                application was loaded without one.

        Returns:
            :class:`LoggedIn` on success, otherwise the state is left (or
            put back) at :class:`LoggedOut` with :attr:`error` set.
        """
        if not payload:
            return self._state

        self.error = None
        try:
            encoded_key = self._store.take_transient_private_key()
        except OSError as exc:
            logger.warning("Pending private key could not be read: %s", exc)
            encoded_key = None
        if encoded_key is None:
            logger.warning("Callback for %s arrived with no pending private key", self.server)
            return self._fail(
                MissingPrivateKey(
                    "No pending login attempt. The login was already completed, "
                    "abandoned, or started on another machine; run 'forumkey auth login' again."
                )
            )

        try:
            key = self._provider.import_private_key(encoded_key)
            record = self._decryptor.open(payload, key)
        except CryptoError as exc:
            logger.warning(
                "Authentication with %s failed (%s): %s", self.server, type(exc).__name__, exc
            )
            error = AuthenticationFailed("Authentication failed. Please try again.", cause=exc)
            error.__cause__ = exc
            return self._fail(error)

        if record.nonce is not None and isinstance(self._state, AwaitingCallback):
            if record.nonce != self._state.nonce:
                logger.warning("Callback nonce for %s does not match the request", self.server)

        try:
            self._store.save_credential(self.server, record.key, client_id=self.client_id)
        except OSError as exc:
            logger.warning("Credential for %s could not be stored: %s", self.server, exc)
            error = AuthenticationFailed(f"Could not store the new credential: {exc}", cause=exc)
            error.__cause__ = exc
            return self._fail(error)
        self.app_url = strip_query_param(self.app_url)
        return self._transition(LoggedIn(record.key))

    def logout(self) -> AuthFlowState:
        """Forget the server's credential. Safe to call when already logged out.

        The state is :class:`LoggedOut` afterwards either way; if the stored
        credential could not be removed, :attr:`error` says so.
        """
        self.error = None
        try:
            self._store.clear_credential(self.server)
        except OSError as exc:
            logger.warning("Credential for %s could not be removed: %s", self.server, exc)
            error = FlowError(f"Could not remove the stored credential: {exc}")
            error.__cause__ = exc
            return self._fail(error)
        return self._transition(LoggedOut())

    def enter_manual_credential(self, raw_credential: str) -> AuthFlowState:
        """Store a key the user pasted, bypassing the key exchange.

        Surrounding whitespace is trimmed; an empty value is ignored. The
        key is not otherwise checked. If it cannot be stored the state is
        :class:`LoggedOut` and :attr:`error` is set.
        """
        credential = raw_credential.strip()
        if not credential:
            return self._state
        self.error = None
        try:
            self._store.save_credential(
                self.server, credential, client_id=self.client_id, source="manual"
            )
        except OSError as exc:
            logger.warning("Credential for %s could not be stored: %s", self.server, exc)
            error = FlowError(f"Could not store the credential: {exc}")
            error.__cause__ = exc
            return self._fail(error)
        return self._transition(LoggedIn(credential))
