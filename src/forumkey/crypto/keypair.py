"""Keypair generation and import for the User API Key exchange.

The forum encrypts the issued key with the public half of a keypair we
send it, using RSA-OAEP with SHA-1. That parameterisation is fixed by the
server's implementation (OpenSSL's default OAEP digest); it is not a
choice made here and must not be varied. Everything that knows about it
lives in :class:`RsaOaepSha1Provider`, so a future protocol revision only
needs another :class:`KeyPairProvider`.

Uses the ``cryptography`` library for all cryptographic operations.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from forumkey.crypto import codec
from forumkey.exceptions import DecryptionFailed, KeyImportError, MalformedKeyEncoding
from forumkey.models import Keypair

logger = logging.getLogger(__name__)

PUBLIC_KEY_LABEL = "PUBLIC KEY"
PRIVATE_KEY_LABEL = "PRIVATE KEY"


class DecryptionKey:
    """An imported private key bound to the padding it must be used with.

    Args:
        private_key: The loaded RSA private key.
        oaep: The OAEP padding instance matching the provider that
            imported the key.
    """

    def __init__(self, private_key: rsa.RSAPrivateKey, oaep: padding.OAEP) -> None:
        self._private_key = private_key
        self._oaep = oaep

    @property
    def key_size(self) -> int:
        """Modulus length in bits."""
        return self._private_key.key_size

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt *ciphertext*.

        Raises:
            DecryptionFailed: On a wrong key, corrupted ciphertext, or
                padding mismatch.
        """
        try:
            return self._private_key.decrypt(ciphertext, self._oaep)
        except ValueError as exc:
            raise DecryptionFailed(f"Payload could not be decrypted: {exc}") from exc


class KeyPairProvider(ABC):
    """Generates ephemeral keypairs and imports their halves back."""

    @property
    @abstractmethod
    def padding_name(self) -> str:
        """The value sent as the ``padding`` parameter of the authorization request."""
        ...

    @abstractmethod
    def generate(self) -> Keypair:
        """Generate a fresh keypair and export both halves as text."""
        ...

    @abstractmethod
    def import_private_key(self, encoded: str) -> DecryptionKey:
        """Load an exported private key for decryption.

        Raises:
            KeyImportError: On malformed or incompatible key material.
        """
        ...

    @abstractmethod
    def import_public_key(self, encoded: str) -> rsa.RSAPublicKey:
        """Load an exported public key.

        Raises:
            KeyImportError: On malformed or incompatible key material.
        """
        ...


class RsaOaepSha1Provider(KeyPairProvider):
    """2048-bit RSA keys used with OAEP/SHA-1, as the forum expects.

    Example::

        provider = RsaOaepSha1Provider()
        pair = provider.generate()
        key = provider.import_private_key(pair.private_key)
    """

    key_size = 2048
    public_exponent = 65537

    @property
    def padding_name(self) -> str:
        return "oaep"

    def oaep(self) -> padding.OAEP:
        """Return the OAEP padding the forum encrypts with."""
        return padding.OAEP(
            mgf=padding.MGF1(algorithm=hashes.SHA1()),
            algorithm=hashes.SHA1(),
            label=None,
        )

    def generate(self) -> Keypair:
        private_key = rsa.generate_private_key(
            public_exponent=self.public_exponent,
            key_size=self.key_size,
        )
        public_der = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        private_der = private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        logger.debug("Generated %d-bit RSA keypair", self.key_size)
        return Keypair(
            public_key=codec.encode(public_der, PUBLIC_KEY_LABEL),
            private_key=codec.encode(private_der, PRIVATE_KEY_LABEL),
        )

    def import_private_key(self, encoded: str) -> DecryptionKey:
        try:
            der = codec.decode(encoded, PRIVATE_KEY_LABEL)
            key = serialization.load_der_private_key(der, password=None)
        except MalformedKeyEncoding as exc:
            raise KeyImportError(f"Private key is not properly encoded: {exc}") from exc
        except (ValueError, TypeError) as exc:
            raise KeyImportError(f"Private key could not be loaded: {exc}") from exc
        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyImportError(
                f"Expected an RSA private key, got {type(key).__name__}"
            )
        return DecryptionKey(key, self.oaep())

    def import_public_key(self, encoded: str) -> rsa.RSAPublicKey:
        try:
            der = codec.decode(encoded, PUBLIC_KEY_LABEL)
            key = serialization.load_der_public_key(der)
        except MalformedKeyEncoding as exc:
            raise KeyImportError(f"Public key is not properly encoded: {exc}") from exc
        except (ValueError, TypeError) as exc:
            raise KeyImportError(f"Public key could not be loaded: {exc}") from exc
        if not isinstance(key, rsa.RSAPublicKey):
            raise KeyImportError(
                f"Expected an RSA public key, got {type(key).__name__}"
            )
        return key
