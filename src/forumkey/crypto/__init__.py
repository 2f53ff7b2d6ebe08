"""Cryptographic building blocks of the User API Key exchange.

- :mod:`~forumkey.crypto.codec` -- PEM-style text framing for key bytes.
- :class:`KeyPairProvider` / :class:`RsaOaepSha1Provider` -- keypair
  generation and import, with the forum's fixed RSA-OAEP/SHA-1 parameters.
- :class:`PayloadDecryptor` -- turns the callback ``payload`` into a
  credential.
"""

from forumkey.crypto.keypair import DecryptionKey, KeyPairProvider, RsaOaepSha1Provider
from forumkey.crypto.payload import PayloadDecryptor

__all__ = [
    "DecryptionKey",
    "KeyPairProvider",
    "PayloadDecryptor",
    "RsaOaepSha1Provider",
]
