"""Text encoding for key material.

Keys travel as PEM-style text: a ``-----BEGIN <LABEL>-----`` line, the
base64 body wrapped at 64 characters, and a ``-----END <LABEL>-----`` line.
The public half of a keypair is embedded verbatim in a query string, so
by the time it (or the private half) is read back it may have picked up
line breaks or spaces anywhere. :func:`decode` therefore removes every
whitespace character, not only the ones at the edges.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Optional

from forumkey.exceptions import MalformedKeyEncoding

LINE_WIDTH = 64

_FRAME_RE = re.compile(r"-----(BEGIN|END) ([^-]+)-----")
_WHITESPACE_RE = re.compile(r"\s")


def encode(raw: bytes, label: str) -> str:
    """Frame *raw* key bytes as PEM-style text.

    Args:
        raw: DER-encoded key material.
        label: Frame label, e.g. ``"PUBLIC KEY"`` or ``"PRIVATE KEY"``.

    Returns:
        The framed text, lines joined by ``\\n`` and no trailing newline.

    Example::

        >>> encode(b"\\x00\\x01", "TEST")
        '-----BEGIN TEST-----\\nAAE=\\n-----END TEST-----'
    """
    body = base64.b64encode(raw).decode("ascii")
    lines = [body[i : i + LINE_WIDTH] for i in range(0, len(body), LINE_WIDTH)]
    return "\n".join([f"-----BEGIN {label}-----", *lines, f"-----END {label}-----"])


def decode(text: str, label: Optional[str] = None) -> bytes:
    """Recover the key bytes from PEM-style text.

    Args:
        text: Framed (or bare) base64 key text. Whitespace may appear
            anywhere.
        label: When given, every frame line present must carry this label.

    Returns:
        The decoded key bytes.

    Raises:
        MalformedKeyEncoding: If the body is not valid base64, or a frame
            names a different label.
    """
    if label is not None:
        for _, found in _FRAME_RE.findall(text):
            if found.strip() != label:
                raise MalformedKeyEncoding(
                    f"Expected a '{label}' block, found '{found.strip()}'"
                )
    body = _WHITESPACE_RE.sub("", _FRAME_RE.sub("", text))
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedKeyEncoding(f"Key body is not valid base64: {exc}") from exc
