"""Exception hierarchy for forumkey.

All exceptions inherit from :class:`ForumkeyError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`forumkey.exit_codes`.
The top-level error handler in :func:`forumkey.app.main` catches
``ForumkeyError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    ForumkeyError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- ConfigError                (exit 1)
    +-- ConnectionError_           (exit 6)
    +-- ServerError                (exit 7)
    +-- CryptoError                (exit 3)
    |   +-- MalformedKeyEncoding
    |   +-- KeyImportError
    |   +-- MalformedPayload
    |   +-- DecryptionFailed
    |   +-- CredentialMissing
    +-- FlowError                  (exit 3)
        +-- LoginInitiationFailed  (exit 5)
        +-- MissingPrivateKey      (exit 4)
        +-- AuthenticationFailed   (exit 3)

:class:`CryptoError` subclasses are raised by the codec, the keypair
provider and the payload decryptor.  The flow controller never lets them
escape: it wraps them in a :class:`FlowError` and records it as the
outcome of the attempt.
"""

from __future__ import annotations

from typing import Optional

from forumkey.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LOGIN_INITIATION_FAILED,
    EXIT_MISSING_PRIVATE_KEY,
    EXIT_SERVER_ERROR,
)


class ForumkeyError(Exception):
    """Base exception for all forumkey errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`forumkey.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ForumkeyError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(ForumkeyError):
    """Raised for configuration problems (no server configured, invalid JSON, bad URLs)."""

    exit_code = EXIT_GENERIC_FAILURE


class ConnectionError_(ForumkeyError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ServerError(ForumkeyError):
    """Raised when the forum answers a credential check with an HTTP error."""

    exit_code = EXIT_SERVER_ERROR


# --- Cryptographic building blocks ---


class CryptoError(ForumkeyError):
    """Base class for failures inside the key exchange primitives."""

    exit_code = EXIT_AUTH_FAILURE


class MalformedKeyEncoding(CryptoError):
    """Raised when an encoded key body is not valid base64 or is framed with the wrong label."""


class KeyImportError(CryptoError):
    """Raised when key material cannot be loaded as an RSA key."""


class MalformedPayload(CryptoError):
    """Raised when a callback payload is not base64, or decrypts to something that is not a JSON object."""


class DecryptionFailed(CryptoError):
    """Raised when the ciphertext does not decrypt under the stashed private key.

    This is the failure expected in normal operation: a stale key left over
    from an abandoned attempt, or a tampered payload.
    """


class CredentialMissing(CryptoError):
    """Raised when the decrypted record carries no ``key`` field."""


# --- Flow outcomes ---


class FlowError(ForumkeyError):
    """A failed step of the login flow, as reported by the flow controller."""

    exit_code = EXIT_AUTH_FAILURE


class LoginInitiationFailed(FlowError):
    """Keypair generation, export, or stashing failed before the redirect."""

    exit_code = EXIT_LOGIN_INITIATION_FAILED


class MissingPrivateKey(FlowError):
    """A callback payload arrived but no private key was waiting for it.

    Typical cause: the pending attempt was already consumed, the slot was
    cleared, or the callback was opened on another machine.
    """

    exit_code = EXIT_MISSING_PRIVATE_KEY


class AuthenticationFailed(FlowError):
    """The callback payload could not be turned into a credential.

    Args:
        message: Human-readable summary.
        cause: The underlying :class:`CryptoError` (``MalformedPayload``,
            ``DecryptionFailed``, ``CredentialMissing``, ``KeyImportError``).
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
