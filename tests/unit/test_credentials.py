# -*- coding: utf-8 -*-

"""
Unit tests for CredentialStore and the token storage backends.
Tests atomic pair updates, persistence, encryption and corrupt-file handling.
"""

import json

import pytest
from cryptography.fernet import Fernet

from mercato.config import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY
from mercato.credentials import CredentialPair, CredentialStore, mask_token
from mercato.storage import FileTokenStorage, MemoryTokenStorage


class TestCredentialStoreBasics:
    """Tests for get/set/clear."""

    def test_get_on_empty_storage_returns_none(self, memory_storage):
        """
        What it does: Verifies get() on empty storage.
        Purpose: Ensure "absent" is reported as None, never as an exception.
        """
        print("Setup: Creating store over empty storage...")
        store = CredentialStore(memory_storage)

        print("Verification: get() returns None...")
        assert store.get() is None
        assert store.access_token is None
        assert store.refresh_token is None

    def test_set_stores_both_tokens(self, memory_storage):
        """
        What it does: Verifies set() writes the full pair.
        Purpose: Ensure login stores access and refresh token together.
        """
        store = CredentialStore(memory_storage)

        print("Action: Setting pair...")
        store.set("access_1", "refresh_1")

        print("Verification: Pair visible in store and storage...")
        assert store.get() == CredentialPair("access_1", "refresh_1")
        assert memory_storage.read() == {ACCESS_TOKEN_KEY: "access_1", REFRESH_TOKEN_KEY: "refresh_1"}

    def test_set_without_refresh_token(self, memory_storage):
        """
        What it does: Verifies set() with only an access token.
        Purpose: Ensure the refresh key is not written when absent.
        """
        store = CredentialStore(memory_storage)
        store.set("access_only")

        assert store.get() == CredentialPair("access_only", None)
        assert REFRESH_TOKEN_KEY not in memory_storage.read()

    def test_clear_removes_both_tokens(self, memory_storage):
        """
        What it does: Verifies clear().
        Purpose: Ensure logout/failed renewal leaves nothing behind.
        """
        store = CredentialStore(memory_storage)
        store.set("access_1", "refresh_1")

        print("Action: Clearing...")
        store.clear()

        print("Verification: Store and storage are empty...")
        assert store.get() is None
        assert memory_storage.read() == {}

    def test_store_loads_existing_pair(self):
        """
        What it does: Verifies the snapshot is loaded from storage on construction.
        Purpose: Ensure a persisted session survives a restart.
        """
        storage = MemoryTokenStorage({ACCESS_TOKEN_KEY: "persisted", REFRESH_TOKEN_KEY: "persisted_refresh"})

        store = CredentialStore(storage)

        assert store.get() == CredentialPair("persisted", "persisted_refresh")

    def test_refresh_token_without_access_token_is_ignored(self):
        """
        What it does: Verifies storage with only a refresh token.
        Purpose: Ensure a half pair is never presented as a session.
        """
        storage = MemoryTokenStorage({REFRESH_TOKEN_KEY: "dangling"})

        store = CredentialStore(storage)

        assert store.get() is None


class TestCredentialStoreAtomicity:
    """Tests for replace_access_token and snapshot semantics."""

    def test_replace_access_token_keeps_refresh_token(self, logged_in_store):
        """
        What it does: Verifies renewal replaces only the access token.
        Purpose: Ensure the pair is never left with a cleared refresh token.
        """
        old_pair = logged_in_store.get()

        print("Action: Replacing access token...")
        logged_in_store.replace_access_token("renewed")

        new_pair = logged_in_store.get()
        print(f"Comparing pairs: old={old_pair}, new={new_pair}")
        assert new_pair.access_token == "renewed"
        assert new_pair.refresh_token == old_pair.refresh_token

    def test_snapshot_held_by_reader_is_unchanged(self, logged_in_store):
        """
        What it does: Verifies a previously obtained pair is immutable.
        Purpose: Ensure readers see either the old or the new pair, never a mix.
        """
        snapshot = logged_in_store.get()

        logged_in_store.replace_access_token("renewed")
        logged_in_store.clear()

        print("Verification: Old snapshot still intact...")
        assert snapshot.access_token != "renewed"
        assert snapshot.refresh_token is not None
        with pytest.raises(AttributeError):
            snapshot.access_token = "mutated"

    def test_replace_after_clear_writes_nothing(self, logged_in_store):
        """
        What it does: Verifies replace_access_token after the session was cleared.
        Purpose: Ensure a late renewal never revives a logged-out session
        or pairs a new access token with a cleared refresh token.
        """
        logged_in_store.clear()

        print("Action: Replacing access token on a cleared store...")
        stored = logged_in_store.replace_access_token("renewed")

        print(f"Verification: stored={stored}, pair={logged_in_store.get()}")
        assert stored is False
        assert logged_in_store.get() is None

    def test_replace_on_empty_storage_is_not_persisted(self, memory_storage):
        store = CredentialStore(memory_storage)

        assert store.replace_access_token("renewed") is False
        assert memory_storage.read() == {}

    def test_replace_reports_success(self, logged_in_store):
        assert logged_in_store.replace_access_token("renewed") is True


class TestFileTokenStorage:
    """Tests for the JSON file backend."""

    def test_write_and_read_roundtrip(self, tmp_path):
        """
        What it does: Verifies file persistence.
        Purpose: Ensure the CLI session survives between invocations.
        """
        path = tmp_path / "nested" / "credentials.json"
        storage = FileTokenStorage(str(path))

        print("Action: Writing tokens...")
        storage.write({ACCESS_TOKEN_KEY: "a", REFRESH_TOKEN_KEY: "r"})

        print("Verification: File exists and reads back...")
        assert path.exists()
        assert FileTokenStorage(str(path)).read() == {ACCESS_TOKEN_KEY: "a", REFRESH_TOKEN_KEY: "r"}

    def test_read_missing_file_returns_empty(self, tmp_path):
        storage = FileTokenStorage(str(tmp_path / "missing.json"))

        assert storage.read() == {}

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        """
        What it does: Verifies a corrupt credentials file is tolerated.
        Purpose: Ensure get() never raises because of bad storage.
        """
        path = tmp_path / "credentials.json"
        path.write_text("{not json", encoding="utf-8")

        store = CredentialStore(FileTokenStorage(str(path)))

        assert store.get() is None

    def test_clear_removes_file(self, tmp_path):
        path = tmp_path / "credentials.json"
        storage = FileTokenStorage(str(path))
        storage.write({ACCESS_TOKEN_KEY: "a"})

        storage.clear()
        storage.clear()  # Second clear must not fail

        assert not path.exists()

    def test_encrypted_values_are_not_plaintext(self, tmp_path):
        """
        What it does: Verifies Fernet encryption at rest.
        Purpose: Ensure tokens are unreadable without the key.
        """
        key = Fernet.generate_key().decode()
        path = tmp_path / "credentials.json"
        storage = FileTokenStorage(str(path), encryption_key=key)

        print("Action: Writing encrypted tokens...")
        storage.write({ACCESS_TOKEN_KEY: "secret_access"})

        raw = json.loads(path.read_text(encoding="utf-8"))
        print(f"Raw file content: {raw}")
        assert raw[ACCESS_TOKEN_KEY] != "secret_access"
        assert storage.read() == {ACCESS_TOKEN_KEY: "secret_access"}

    def test_wrong_key_reads_as_empty(self, tmp_path):
        """
        What it does: Verifies reading with a different key.
        Purpose: Ensure a rotated key logs the user out instead of crashing.
        """
        path = tmp_path / "credentials.json"
        FileTokenStorage(str(path), encryption_key=Fernet.generate_key().decode()).write({ACCESS_TOKEN_KEY: "x"})

        other = FileTokenStorage(str(path), encryption_key=Fernet.generate_key().decode())

        assert other.read() == {}


class TestMaskToken:
    def test_long_token_is_truncated(self):
        assert mask_token("abcdefghijklmnop") == "abcdefgh..."

    def test_short_and_missing_tokens(self):
        assert mask_token("short") == "***"
        assert mask_token(None) == "<none>"
