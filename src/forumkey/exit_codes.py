"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~forumkey.exceptions.ForumkeyError` subclass.
Shell wrappers can inspect the exit code to tell a lost login attempt
apart from a rejected payload without parsing stderr.

Example::

    $ forumkey auth callback "$PAYLOAD"
    $ echo $?
    4   # EXIT_MISSING_PRIVATE_KEY -- no login attempt is pending
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The callback payload could not be turned into a credential."""

EXIT_MISSING_PRIVATE_KEY = 4
"""A callback arrived but no login attempt was pending."""

EXIT_LOGIN_INITIATION_FAILED = 5
"""The keypair could not be generated or stashed before redirecting."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_SERVER_ERROR = 7
"""The forum server returned an HTTP error."""
