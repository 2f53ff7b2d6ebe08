"""Auth commands -- obtain, inspect and forget User API Keys.

Provides the ``forumkey auth`` sub-command group.

Typical workflow::

    forumkey --server https://forum.example.com auth login
    # approve in the browser, copy the URL you land on
    forumkey auth callback 'https://forum.example.com/?payload=...'
    forumkey auth test

Or, when the forum allows loopback redirects::

    forumkey auth login --listen
"""

from __future__ import annotations

import getpass
import sys
import webbrowser
from typing import Optional

import typer

from forumkey.exceptions import AuthenticationFailed, FlowError, ForumkeyError
from forumkey.exit_codes import EXIT_AUTH_FAILURE, EXIT_INVALID_USAGE
from forumkey.models import GlobalConfig
from forumkey.output import (
    debug,
    error,
    get_output,
    info,
    mask_secret,
    print_data,
    success,
    suggest,
    warning,
)

auth_app = typer.Typer(no_args_is_help=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve(ctx: typer.Context, client_id: Optional[str] = None) -> tuple[GlobalConfig, str]:
    """Resolve the effective config and server, exiting cleanly on config errors."""
    from forumkey.config import require_server, resolve_config

    cli_server = ctx.obj.get("server") if ctx.obj else None
    try:
        config, server = resolve_config(cli_server=cli_server, cli_client_id=client_id)
        return config, require_server(server)
    except ForumkeyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _report_flow_error(err: FlowError) -> None:
    """Print a flow failure and exit with its code."""
    error(str(err))
    if isinstance(err, AuthenticationFailed) and err.cause is not None:
        debug(f"Cause: {type(err.cause).__name__}: {err.cause}")
    suggest("Start over: forumkey auth login")
    raise typer.Exit(code=err.exit_code)


def _read_secret(prompt: str) -> str:
    """Read a secret from a hidden prompt, or from stdin when it is piped."""
    if not sys.stdin.isatty():
        return sys.stdin.read()
    return getpass.getpass(prompt)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Client id / application name to request the key for."
    ),
    redirect: Optional[str] = typer.Option(
        None, "--redirect", help="URL the forum redirects back to after approval."
    ),
    listen: bool = typer.Option(
        False,
        "--listen/--no-listen",
        help="Receive the redirect on a local 127.0.0.1 port.",
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the authorization URL without opening it."
    ),
) -> None:
    """Start a User API Key login.

    Generates a fresh keypair, keeps the private half on disk until the
    forum answers, and sends you to the forum's authorization page. The
    authorization URL is printed to stdout.

    Without ``--listen``, finish the login with ``forumkey auth callback``.
    With ``--listen``, the forum must accept ``http://127.0.0.1:*`` as an
    ``auth_redirect``; the payload is then processed right away.

    Example::

        forumkey -s https://forum.example.com auth login
        forumkey -s https://forum.example.com auth login --listen
    """
    from forumkey.auth.callback_server import CallbackReceiver
    from forumkey.auth.flow import AuthFlowController, AwaitingCallback, LoggedIn

    config, server = _resolve(ctx, client_id)

    receiver: Optional[CallbackReceiver] = None
    app_url = redirect or config.auth_redirect or server
    if listen:
        receiver = CallbackReceiver()
        app_url = receiver.redirect_uri

    navigate = webbrowser.open if config.open_browser and not no_browser else None
    controller = AuthFlowController(
        server, config.client_id, app_url=app_url, navigate=navigate
    )

    state = controller.initiate()
    if controller.error is not None or not isinstance(state, AwaitingCallback):
        if receiver is not None:
            receiver.close()
        _report_flow_error(controller.error or FlowError("Login did not start"))
        return

    info(f"Authorize {config.client_id} at {server}:")
    print_data(state.redirect_target)

    if receiver is None:
        suggest("After approving, run: forumkey auth callback '<the URL you were sent to>'")
        return

    info(
        f"Waiting up to {config.callback_timeout}s for the forum to redirect "
        f"to {receiver.redirect_uri} ..."
    )
    payload = receiver.wait(timeout=config.callback_timeout)
    if payload is None:
        error("No payload received from the forum.")
        suggest("If the browser shows the payload, run: forumkey auth callback <payload>")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    state = controller.handle_return(payload)
    if controller.error is not None or not isinstance(state, LoggedIn):
        _report_flow_error(controller.error or FlowError("Login did not complete"))
        return
    success(f"Logged in to {server}.")


@auth_app.command("callback")
def auth_callback(
    ctx: typer.Context,
    value: str = typer.Argument(
        help="The URL the forum redirected to, or the raw payload. '-' reads stdin."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Client id the login was started with."
    ),
) -> None:
    """Finish a login with the forum's callback payload.

    Decrypts the payload with the private key kept by ``auth login`` and
    stores the User API Key. The pending key is consumed either way.

    Example::

        forumkey auth callback 'https://forum.example.com/?payload=abc...'
        pbpaste | forumkey auth callback -
    """
    from forumkey.auth.flow import AuthFlowController, LoggedIn, payload_from_url

    config, server = _resolve(ctx, client_id)

    raw = sys.stdin.read() if value == "-" else value
    payload = payload_from_url(raw)
    if not payload:
        error("No payload found in the given value.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    controller = AuthFlowController(
        server, config.client_id, app_url=config.auth_redirect or server
    )
    state = controller.handle_return(payload)
    if controller.error is not None or not isinstance(state, LoggedIn):
        _report_flow_error(controller.error or FlowError("Login did not complete"))
        return
    success(f"Logged in to {server}.")
    suggest("Check it: forumkey auth test")


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Forget the stored User API Key for the server.

    Nothing is sent to the forum; revoke the key from your forum
    preferences if it should stop working everywhere.
    """
    from forumkey.auth.credential_store import CredentialStore
    from forumkey.auth.flow import AuthFlowController

    config, server = _resolve(ctx)
    store = CredentialStore()
    had_credential = store.load_credential(server) is not None

    controller = AuthFlowController(server, config.client_id, store=store)
    controller.logout()
    if controller.error is not None:
        error(str(controller.error))
        raise typer.Exit(code=controller.error.exit_code)
    if had_credential:
        success(f"Logged out of {server}.")
    else:
        info(f"Not logged in to {server}.")


@auth_app.command("set-key")
def auth_set_key(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(
        None, help="The User API Key. Prompted for (hidden) when omitted."
    ),
) -> None:
    """Store a User API Key obtained some other way.

    Use this when the forum cannot complete the key exchange. The key is
    stored as given (surrounding whitespace removed) without any check.

    Example::

        forumkey auth set-key
        echo "$KEY" | forumkey auth set-key
    """
    from forumkey.auth.flow import AuthFlowController, LoggedIn

    config, server = _resolve(ctx)
    raw = key if key is not None else _read_secret("Paste User API Key: ")

    controller = AuthFlowController(server, config.client_id)
    state = controller.enter_manual_credential(raw)
    if controller.error is not None:
        error(str(controller.error))
        raise typer.Exit(code=controller.error.exit_code)
    if not isinstance(state, LoggedIn):
        warning("Empty key ignored.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    success(f"Key stored for {server}.")


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show the stored credential and any pending login for the server."""
    from forumkey.auth.credential_store import CredentialStore

    config, server = _resolve(ctx)
    store = CredentialStore()
    entry = store.load_entry(server)

    rows = [
        ["Server", server],
        ["Client ID", (entry.client_id if entry else None) or config.client_id],
        ["Logged In", "yes" if entry else "no"],
        ["Credential", mask_secret(entry.credential) if entry else "-"],
        ["Source", entry.source if entry else "-"],
        ["Stored At", entry.created_at.isoformat() if entry else "-"],
        ["Pending Login", "yes" if store.has_transient_private_key() else "no"],
    ]
    get_output().print_table(["Field", "Value"], rows, title="Authentication Status")


@auth_app.command("list")
def auth_list() -> None:
    """List every server with a stored credential."""
    from forumkey.auth.credential_store import CredentialStore

    store = CredentialStore()
    servers = store.list_servers()
    if not servers:
        info("No stored credentials.")
        suggest("Log in: forumkey -s https://forum.example.com auth login")
        return

    rows: list[list[str]] = []
    for server in servers:
        entry = store.load_entry(server)
        if entry is None:
            rows.append([server, "error", "-"])
            continue
        rows.append([server, entry.source, entry.created_at.isoformat()])
    get_output().print_table(["Server", "Source", "Stored At"], rows, title="Stored Credentials")


@auth_app.command("test")
def auth_test(ctx: typer.Context) -> None:
    """Check the stored key by asking the forum who it belongs to."""
    from forumkey.auth.credential_store import CredentialStore
    from forumkey.client import ForumClient

    config, server = _resolve(ctx)
    entry = CredentialStore().load_entry(server)
    if entry is None:
        error(f"No stored credential for {server}.")
        suggest("Log in: forumkey auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    info(f"Testing credential for {server} ...")
    try:
        with ForumClient(
            server,
            credential=entry.credential,
            client_id=entry.client_id or config.client_id,
            request_config=config.request,
        ) as client:
            user = client.current_user()
    except ForumkeyError as exc:
        error(f"Credential test failed: {exc}")
        raise typer.Exit(code=exc.exit_code) from None

    if user is None:
        error("The forum did not recognise the credential.")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    success(f"Authenticated as {user.get('username', '?')}.")
