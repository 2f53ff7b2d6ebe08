"""Persistent credential store keyed by forum server.

Stores one JSON file per server in ``~/.local/share/forumkey/credentials/``
(XDG) or the platform-equivalent directory. The file name is the
percent-encoded canonical server URL, so two servers can never share a
file. Files are written atomically via
:func:`~forumkey.config.atomic_write` with ``0o600`` permissions so that
secrets are never world-readable, even momentarily.

The store also owns the *pending key slot*: a single file holding the
private half of the keypair of the login attempt currently in flight.
The slot is global rather than per server because only one attempt can
be pending at a time, and it lives on disk because the forum's
authorization step happens outside this process (a browser round trip,
possibly followed by ``forumkey auth callback`` in a new process).

See Also:
    :class:`~forumkey.auth.flow.AuthFlowController` -- the only writer.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

from pydantic import BaseModel, Field

from forumkey.config import atomic_write, get_data_dir

logger = logging.getLogger(__name__)

PENDING_KEY_FILENAME = "pending_private_key.pem"


class CredentialEntry(BaseModel):
    """A single stored User API Key.

    Attributes:
        server: Canonical URL of the forum that issued the key.
        credential: The key itself.
        client_id: Client identifier the key was requested for. Sent back
            as ``User-Api-Client-Id`` on authenticated requests.
        source: ``"user_api_key"`` when obtained through the key exchange,
            ``"manual"`` when pasted by the user.
        created_at: UTC time the entry was written.
    """

    server: str = Field(description="Canonical forum URL")
    credential: str = Field(description="The User API Key")
    client_id: Optional[str] = Field(
        default=None, description="Client id the key was issued to"
    )
    source: str = Field(
        default="user_api_key", description="How the key was obtained: user_api_key, manual"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the key was stored",
    )


def _credentials_dir(base: Path) -> Path:
    """Return the credentials directory under *base*, creating it if needed."""
    path = base / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


class CredentialStore:
    """Read/write per-server credentials and the pending private key.

    Args:
        base_dir: Directory to keep files in. Defaults to
            :func:`~forumkey.config.get_data_dir`.

    Example::

        store = CredentialStore()
        store.save_credential("https://forum.example.com", "abc123")
        assert store.load_credential("https://forum.example.com") == "abc123"
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir if base_dir is not None else get_data_dir()

    # ------------------------------------------------------------------
    # Per-server credentials
    # ------------------------------------------------------------------

    def path_for(self, server: str) -> Path:
        """The filesystem path of *server*'s credential file."""
        return _credentials_dir(self._base_dir) / f"{quote(server, safe='')}.json"

    def save_credential(
        self,
        server: str,
        credential: str,
        *,
        client_id: Optional[str] = None,
        source: str = "user_api_key",
    ) -> CredentialEntry:
        """Persist *credential* for *server*, replacing any previous one.

        Returns:
            The entry that was written.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        entry = CredentialEntry(
            server=server, credential=credential, client_id=client_id, source=source
        )
        text = json.dumps(entry.model_dump(mode="json"), indent=2) + "\n"
        atomic_write(self.path_for(server), text, private=True)
        logger.debug("Stored %s credential for %s", source, server)
        return entry

    def load_entry(self, server: str) -> Optional[CredentialEntry]:
        """Load the full stored entry for *server*.

        Returns:
            The deserialised :class:`CredentialEntry`, or ``None`` if the
            file does not exist or cannot be parsed.
        """
        path = self.path_for(server)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CredentialEntry.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable credential file %s: %s", path, exc)
            return None

    def load_credential(self, server: str) -> Optional[str]:
        """Return the stored key for *server*, or ``None``."""
        entry = self.load_entry(server)
        return entry.credential if entry is not None else None

    def clear_credential(self, server: str) -> None:
        """Delete *server*'s credential. A no-op when none is stored."""
        path = self.path_for(server)
        if path.is_file():
            path.unlink()
            logger.debug("Cleared credential for %s", server)

    def list_servers(self) -> list[str]:
        """Return the servers that have a credential file, sorted."""
        directory = _credentials_dir(self._base_dir)
        return sorted(unquote(p.stem) for p in directory.glob("*.json") if p.is_file())

    # ------------------------------------------------------------------
    # Pending private key slot
    # ------------------------------------------------------------------

    @property
    def pending_key_path(self) -> Path:
        """The filesystem path of the pending private key slot."""
        return self._base_dir / PENDING_KEY_FILENAME

    def stash_transient_private_key(self, encoded_key: str) -> None:
        """Put *encoded_key* in the slot, overwriting any earlier attempt's key."""
        atomic_write(self.pending_key_path, encoded_key, private=True)
        logger.debug("Stashed pending private key at %s", self.pending_key_path)

    def take_transient_private_key(self) -> Optional[str]:
        """Read and remove the pending private key.

        Returns:
            The encoded key, or ``None`` if the slot is empty.
        """
        path = self.pending_key_path
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        finally:
            self.drop_transient_private_key()

    def drop_transient_private_key(self) -> None:
        """Empty the slot. A no-op when it is already empty."""
        try:
            self.pending_key_path.unlink()
        except FileNotFoundError:
            return
        logger.debug("Dropped pending private key")

    def has_transient_private_key(self) -> bool:
        """Whether a login attempt is waiting for its callback."""
        return self.pending_key_path.is_file()
