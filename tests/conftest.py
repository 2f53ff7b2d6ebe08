"""Shared test fixtures for forumkey.

Provides isolated config/data directories, a credential store in a temp
directory, a session-wide RSA keypair (2048-bit generation is slow enough
to do once), helpers that play the forum's part of the exchange, and a
Typer CLI runner.
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any

import pytest

from forumkey.auth.credential_store import CredentialStore
from forumkey.crypto.keypair import RsaOaepSha1Provider
from forumkey.models import Keypair
from forumkey.output import reset_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    The CLI also points the ``forumkey`` logger at that stderr; it is
    handed back to the root logger here so ``caplog`` sees its records.
    """
    yield
    reset_output()
    logger = logging.getLogger("forumkey")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and data to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG code path, clears all FORUMKEY_* environment variables
    and changes the working directory to tmp_path.
    """
    monkeypatch.setattr("forumkey.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["FORUMKEY_SERVER", "FORUMKEY_CLIENT_ID"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Storage and crypto fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> CredentialStore:
    """A CredentialStore writing under tmp_path."""
    return CredentialStore(tmp_path / "store")


@pytest.fixture(scope="session")
def provider() -> RsaOaepSha1Provider:
    return RsaOaepSha1Provider()


@pytest.fixture(scope="session")
def keypair(provider: RsaOaepSha1Provider) -> Keypair:
    """One RSA keypair shared by the whole test session."""
    return provider.generate()


@pytest.fixture(scope="session")
def other_keypair(provider: RsaOaepSha1Provider) -> Keypair:
    """A second, unrelated keypair for wrong-key scenarios."""
    return provider.generate()


def encrypt_for(public_key: str, plaintext: bytes) -> str:
    """Encrypt *plaintext* the way the forum does and return the base64 payload."""
    provider = RsaOaepSha1Provider()
    key = provider.import_public_key(public_key)
    ciphertext = key.encrypt(plaintext, provider.oaep())
    return base64.b64encode(ciphertext).decode("ascii")


def make_payload(public_key: str, record: Any) -> str:
    """Encrypt a JSON *record* for *public_key*."""
    return encrypt_for(public_key, json.dumps(record).encode("utf-8"))


@pytest.fixture
def encrypt():
    """The forum's side of the exchange: ``encrypt(public_key, plaintext_bytes)``."""
    return encrypt_for


@pytest.fixture
def seal():
    """The forum's side of the exchange: ``seal(public_key, json_record)``."""
    return make_payload


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
