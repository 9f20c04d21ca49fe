import json
import os

import pytest

from wa_gateway.services.session_store import SessionStore, SessionStoreError


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "auth_info")


class TestLoadAndPersist:
    def test_empty_store_loads_nothing(self, store):
        assert store.load() == {}
        assert store.exists() is False

    def test_persisted_documents_round_trip(self, store):
        store.persist({"creds": {"me": {"id": "628111"}}, "pre-key-1": {"key": "abc"}})

        assert store.load() == {"creds": {"me": {"id": "628111"}}, "pre-key-1": {"key": "abc"}}
        assert store.exists() is True

    def test_none_deletes_document(self, store):
        store.persist({"session-628111": {"a": 1}})
        store.persist({"session-628111": None})

        assert store.load() == {}

    def test_corrupt_file_raises(self, store):
        store.path.mkdir(parents=True)
        (store.path / "creds.json").write_text("{broken", encoding="utf-8")

        with pytest.raises(SessionStoreError):
            store.load()

    def test_other_files_do_not_count_as_session(self, store):
        store.persist({"app-state-sync-version": {"v": 1}})

        assert store.exists() is False


class TestMaintenance:
    def test_reset_removes_everything(self, store):
        store.persist({"creds": {}, "session-1": {}})

        result = store.reset()

        assert result["removed"] == 2
        assert list(store.path.iterdir()) == []

    def test_info_describes_files(self, store):
        store.persist({"creds": {"x": 1}, "pre-key-5": {"y": 2}})

        info = store.info()

        assert info["exists"] is True
        assert info["total_files"] == 2
        assert {f["type"] for f in info["files"]} == {"credentials", "pre-key"}
        assert info["last_modified"] is not None

    def test_info_without_directory(self, store):
        info = store.info()

        assert info["exists"] is False
        assert info["last_modified"] is None

    def test_cleanup_old_removes_only_stale_files(self, store):
        store.persist({"creds": {}, "session-old": {}})
        old = store.path / "session-old.json"
        os.utime(old, (1_000, 1_000))

        result = store.cleanup_old(max_age_seconds=60, now=(store.path / "creds.json").stat().st_mtime + 1)

        assert result["cleaned"] == 1
        assert not old.exists()
        assert (store.path / "creds.json").exists()

    def test_backup_copies_json_files(self, store):
        store.persist({"creds": {"me": "x"}})

        result = store.backup(now=1_700_000_000)

        backup_dir = store.path.with_name("auth_info_backup_1700000000000")
        assert result["backup_path"] == str(backup_dir)
        assert json.loads((backup_dir / "creds.json").read_text(encoding="utf-8")) == {"me": "x"}

    def test_backup_without_directory_fails(self, store):
        with pytest.raises(SessionStoreError):
            store.backup()
