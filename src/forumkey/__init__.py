"""forumkey -- obtain forum User API Keys through an asymmetric key exchange.

The forum never sends the key in the clear: forumkey generates an RSA
keypair, sends the public half with the user to the forum's
``/user-api-key/new`` page, and decrypts the key the forum hands back in
the redirect with the private half, which waits on disk in between.

Typical workflow::

    forumkey -s https://forum.example.com auth login
    forumkey -s https://forum.example.com auth callback '<redirect URL>'
    forumkey -s https://forum.example.com auth test

Modules:
    app: Typer application and CLI entry point.
    auth: Login flow controller, credential store, callback receiver.
    crypto: Key encoding, keypair provider, payload decryption.
    client: httpx client that sends the stored key.
    config: XDG-aware configuration and server identity.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting and logging setup.
"""

__version__ = "0.1.0"
