"""Decryption of the callback payload returned by the forum.

The forum answers an approved authorization request by redirecting to
``auth_redirect?payload=<base64>``. The payload is the JSON record
``{"key": ..., "nonce": ..., "push": ..., "api": ...}`` encrypted with the
public key we sent. Decryption must come first: nothing meaningful can be
read out of the ciphertext, and parsing it as text would only report a
confusing parse error instead of the real failure.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re

from pydantic import ValidationError

from forumkey.crypto.keypair import DecryptionKey
from forumkey.exceptions import CredentialMissing, MalformedPayload
from forumkey.models import CallbackPayload

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s")


class PayloadDecryptor:
    """Turn a raw ``payload`` query value into the issued credential."""

    def open(self, raw_payload: str, key: DecryptionKey) -> CallbackPayload:
        """Decrypt and parse the whole callback record.

        Args:
            raw_payload: Base64 ciphertext, possibly with embedded line
                breaks or spaces.
            key: The stashed private key, imported for decryption.

        Returns:
            The parsed :class:`~forumkey.models.CallbackPayload`.

        Raises:
            MalformedPayload: If the payload is not base64, or the plaintext
                is not a UTF-8 JSON object.
            DecryptionFailed: If the ciphertext does not decrypt under *key*.
            CredentialMissing: If the record has no usable ``key`` field.
        """
        cleaned = _WHITESPACE_RE.sub("", raw_payload)
        if not cleaned:
            raise MalformedPayload("Payload is empty")
        try:
            ciphertext = base64.b64decode(cleaned, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedPayload(f"Payload is not valid base64: {exc}") from exc

        logger.debug("Decrypting %d-byte payload", len(ciphertext))
        plaintext = key.decrypt(ciphertext)

        try:
            data = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedPayload(f"Decrypted payload is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedPayload(
                f"Decrypted payload is a JSON {type(data).__name__}, expected an object"
            )

        credential = data.get("key")
        if not isinstance(credential, str) or not credential:
            fields = ", ".join(sorted(data)) or "(none)"
            raise CredentialMissing(
                f"Decrypted payload has no 'key' field. Fields present: {fields}"
            )

        try:
            return CallbackPayload.model_validate(data)
        except ValidationError as exc:
            raise MalformedPayload(f"Decrypted payload has unexpected fields: {exc}") from exc

    def decrypt(self, raw_payload: str, key: DecryptionKey) -> str:
        """Decrypt *raw_payload* and return just the credential.

        See :meth:`open` for the failure modes.
        """
        return self.open(raw_payload, key).key
