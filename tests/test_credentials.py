"""Tests for the ephemeral credentials file."""

from __future__ import annotations

import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from samlvpn.vpn.credentials import CredentialStore
from samlvpn.vpn.exceptions import CredentialIOError
from samlvpn.vpn.models import Credential


@pytest.fixture
def store(tmp_path: Path) -> CredentialStore:
    return CredentialStore(tmp_path / "cache" / "samlvpn-credentials")


class TestCredentialStore:
    def test_save_writes_auth_user_pass_format(self, store: CredentialStore) -> None:
        path = store.save(Credential("N/A", "c2VjcmV0"))
        assert path == store.path
        assert path.read_text() == "N/A\nc2VjcmV0\n"

    def test_save_sets_owner_read_only(self, store: CredentialStore) -> None:
        path = store.save(Credential("user", "secret"))
        assert stat.S_IMODE(path.stat().st_mode) == 0o400

    def test_custom_permissions(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path / "creds", permissions=0o600)
        path = store.save(Credential("user", "secret"))
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_save_overwrites_read_only_file(self, store: CredentialStore) -> None:
        store.save(Credential("user", "first"))
        store.save(Credential("user", "second"))
        assert store.path.read_text() == "user\nsecond\n"

    def test_save_leaves_no_temp_files(self, store: CredentialStore) -> None:
        store.save(Credential("user", "secret"))
        assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]

    def test_failed_write_leaves_nothing(self, store: CredentialStore) -> None:
        with patch("samlvpn.vpn.credentials.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(CredentialIOError, match="disk full"):
                store.save(Credential("user", "secret"))
        assert list(store.path.parent.iterdir()) == []

    def test_clear_removes_file(self, store: CredentialStore) -> None:
        store.save(Credential("user", "secret"))
        store.clear()
        assert not store.path.exists()

    def test_clear_is_idempotent(self, store: CredentialStore) -> None:
        store.clear()
        store.clear()
        assert not store.path.exists()

    def test_clear_failure_raises(self, store: CredentialStore) -> None:
        store.save(Credential("user", "secret"))
        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            with pytest.raises(CredentialIOError, match="denied"):
                store.clear()

    def test_session_removes_file_on_exit(self, store: CredentialStore) -> None:
        with store.session(Credential("user", "secret")) as path:
            assert path.exists()
        assert not path.exists()

    def test_session_removes_file_on_error(self, store: CredentialStore) -> None:
        with pytest.raises(RuntimeError):
            with store.session(Credential("user", "secret")):
                raise RuntimeError("client crashed")
        assert not store.path.exists()

    def test_session_removes_file_on_interrupt(self, store: CredentialStore) -> None:
        with pytest.raises(KeyboardInterrupt):
            with store.session(Credential("user", "secret")):
                raise KeyboardInterrupt
        assert not store.path.exists()

    def test_secret_not_in_repr(self) -> None:
        assert "hunter2" not in repr(Credential("user", "hunter2"))
