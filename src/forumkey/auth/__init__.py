"""User API Key authentication for forumkey.

The main entry points are:

- :class:`AuthFlowController` -- runs the login flow for one forum server
  and reports its outcome as a state plus an optional error.
- :class:`CredentialStore` -- persistent, per-server credential storage and
  the pending private key slot.
- :class:`CallbackReceiver` -- loopback HTTP receiver for the forum's redirect.
- :func:`user_api_key_auth` -- turns a stored credential into request headers.

Typical usage::

    from forumkey.auth import AuthFlowController, LoggedIn

    controller = AuthFlowController(server, client_id="demo")
    controller.handle_return(payload)
    if isinstance(controller.state, LoggedIn):
        ...
"""

from forumkey.auth.base import AuthResult, user_api_key_auth
from forumkey.auth.callback_server import CallbackReceiver
from forumkey.auth.credential_store import CredentialEntry, CredentialStore
from forumkey.auth.flow import (
    AuthFlowController,
    AuthFlowState,
    AwaitingCallback,
    LoggedIn,
    LoggedOut,
)

__all__ = [
    "AuthFlowController",
    "AuthFlowState",
    "AuthResult",
    "AwaitingCallback",
    "CallbackReceiver",
    "CredentialEntry",
    "CredentialStore",
    "LoggedIn",
    "LoggedOut",
    "user_api_key_auth",
]
