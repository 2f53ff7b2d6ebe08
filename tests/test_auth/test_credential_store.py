"""Tests for the credential store and the pending key slot."""

from __future__ import annotations

import json
import os
import stat
from datetime import timezone

import pytest

from forumkey.auth.credential_store import (
    PENDING_KEY_FILENAME,
    CredentialEntry,
    CredentialStore,
)


SERVER = "https://forum.example.com"
OTHER = "https://other.example.org/forum"


class TestCredentialEntry:
    def test_minimal(self) -> None:
        entry = CredentialEntry(server=SERVER, credential="abc123")
        assert entry.client_id is None
        assert entry.source == "user_api_key"
        assert entry.created_at.tzinfo == timezone.utc

    def test_roundtrip_json(self) -> None:
        entry = CredentialEntry(server=SERVER, credential="k", client_id="demo", source="manual")
        restored = CredentialEntry.model_validate(json.loads(entry.model_dump_json()))
        assert restored == entry


class TestCredentials:
    def test_load_missing(self, store: CredentialStore) -> None:
        assert store.load_credential(SERVER) is None
        assert store.load_entry(SERVER) is None

    def test_save_and_load(self, store: CredentialStore) -> None:
        entry = store.save_credential(SERVER, "abc123", client_id="demo")
        assert entry.credential == "abc123"
        assert store.load_credential(SERVER) == "abc123"
        loaded = store.load_entry(SERVER)
        assert loaded is not None
        assert loaded.client_id == "demo"
        assert loaded.source == "user_api_key"

    def test_overwrite(self, store: CredentialStore) -> None:
        store.save_credential(SERVER, "old")
        store.save_credential(SERVER, "new", source="manual")
        assert store.load_credential(SERVER) == "new"
        assert store.load_entry(SERVER).source == "manual"

    def test_servers_are_independent(self, store: CredentialStore) -> None:
        store.save_credential(SERVER, "one")
        store.save_credential(OTHER, "two")
        store.clear_credential(SERVER)
        assert store.load_credential(SERVER) is None
        assert store.load_credential(OTHER) == "two"

    def test_path_is_percent_encoded(self, store: CredentialStore) -> None:
        path = store.path_for(OTHER)
        assert path.name == "https%3A%2F%2Fother.example.org%2Fforum.json"
        assert path.parent.name == "credentials"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_is_private(self, store: CredentialStore) -> None:
        store.save_credential(SERVER, "abc123")
        mode = stat.S_IMODE(store.path_for(SERVER).stat().st_mode)
        assert mode == 0o600

    def test_no_temp_files_left(self, store: CredentialStore) -> None:
        store.save_credential(SERVER, "abc123")
        leftovers = [p for p in store.path_for(SERVER).parent.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_corrupt_file_is_ignored(self, store: CredentialStore) -> None:
        store.path_for(SERVER).write_text("{not json", encoding="utf-8")
        assert store.load_entry(SERVER) is None
        assert store.load_credential(SERVER) is None

    def test_invalid_entry_is_ignored(self, store: CredentialStore) -> None:
        store.path_for(SERVER).write_text(json.dumps({"server": SERVER}), encoding="utf-8")
        assert store.load_entry(SERVER) is None

    def test_clear_missing_is_noop(self, store: CredentialStore) -> None:
        store.clear_credential(SERVER)
        assert store.load_credential(SERVER) is None

    def test_list_servers(self, store: CredentialStore) -> None:
        assert store.list_servers() == []
        store.save_credential(SERVER, "one")
        store.save_credential(OTHER, "two")
        assert store.list_servers() == sorted([SERVER, OTHER])

    def test_default_base_dir(self, isolated_config) -> None:
        store = CredentialStore()
        store.save_credential(SERVER, "abc123")
        expected = isolated_config / "data" / "forumkey" / "credentials"
        assert store.path_for(SERVER).parent == expected
        assert store.path_for(SERVER).is_file()


class TestPendingKeySlot:
    def test_empty(self, store: CredentialStore) -> None:
        assert store.has_transient_private_key() is False
        assert store.take_transient_private_key() is None

    def test_stash_and_take(self, store: CredentialStore) -> None:
        store.stash_transient_private_key("PRIVATE")
        assert store.has_transient_private_key() is True
        assert store.pending_key_path.name == PENDING_KEY_FILENAME
        assert store.take_transient_private_key() == "PRIVATE"

    def test_take_consumes(self, store: CredentialStore) -> None:
        store.stash_transient_private_key("PRIVATE")
        store.take_transient_private_key()
        assert store.has_transient_private_key() is False
        assert store.take_transient_private_key() is None

    def test_stash_replaces(self, store: CredentialStore) -> None:
        store.stash_transient_private_key("FIRST")
        store.stash_transient_private_key("SECOND")
        assert store.take_transient_private_key() == "SECOND"

    def test_drop(self, store: CredentialStore) -> None:
        store.stash_transient_private_key("PRIVATE")
        store.drop_transient_private_key()
        store.drop_transient_private_key()
        assert store.has_transient_private_key() is False

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_slot_is_private(self, store: CredentialStore) -> None:
        store.stash_transient_private_key("PRIVATE")
        assert stat.S_IMODE(store.pending_key_path.stat().st_mode) == 0o600

    def test_slot_survives_new_store_instance(self, tmp_path) -> None:
        CredentialStore(tmp_path).stash_transient_private_key("PRIVATE")
        assert CredentialStore(tmp_path).take_transient_private_key() == "PRIVATE"

    def test_slot_independent_of_credentials(self, store: CredentialStore) -> None:
        store.stash_transient_private_key("PRIVATE")
        store.save_credential(SERVER, "abc123")
        store.clear_credential(SERVER)
        assert store.has_transient_private_key() is True
