"""Unit tests for the change log storage backends."""

import pytest

from taskpulse.changelog.store import (
    DatabaseLogStore,
    FileLogStore,
    build_log_store,
    log_key_for_environment,
)
from taskpulse.config import StorageConfig


@pytest.fixture(params=["file", "database"])
def any_store(request, tmp_path):
    if request.param == "file":
        return FileLogStore(tmp_path / "logs", "task-changes-test")
    return DatabaseLogStore(f"sqlite:///{tmp_path / 'taskpulse.db'}", "task-changes-test")


class TestLogStoreContract:
    """Behaviour shared by every backend."""

    def test_never_written_reads_empty(self, any_store):
        assert any_store.read_all() == ""

    def test_appends_keep_call_order(self, any_store):
        for number in range(10):
            any_store.append(f"\n## UPDATE Task T{number} - 2024-06-01T10:00:00.000Z\n")

        content = any_store.read_all()
        positions = [content.index(f"Task T{number} ") for number in range(10)]

        assert positions == sorted(positions)
        assert content.count("## UPDATE") == 10

    def test_overwrite_replaces_content(self, any_store):
        any_store.append("old entry\n")
        any_store.overwrite("# fresh\n")
        any_store.append("next\n")

        assert any_store.read_all() == "# fresh\nnext\n"

    def test_metadata(self, any_store):
        missing = any_store.metadata()
        assert missing.exists is False
        assert missing.key == "task-changes-test"

        any_store.append("héllo")
        metadata = any_store.metadata()

        assert metadata.exists is True
        assert metadata.size_bytes == len("héllo".encode("utf-8"))
        assert metadata.updated_at is not None
        assert metadata.to_dict()["size"] == metadata.size_bytes

    def test_keys_are_isolated(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'shared.db'}"
        first = DatabaseLogStore(url, "one")
        second = DatabaseLogStore(url, "two")

        first.append("a")
        second.append("b")

        assert first.read_all() == "a"
        assert second.read_all() == "b"


class TestStoreSelection:
    """Test cases for key and backend selection."""

    @pytest.mark.parametrize(
        "environment, key",
        [
            ("production", "task-changes"),
            ("preview", "task-changes-preview"),
            ("development", "task-changes-dev"),
            ("", "task-changes-dev"),
            (None, "task-changes-dev"),
        ],
    )
    def test_log_key_for_environment(self, environment, key):
        assert log_key_for_environment(environment) == key

    def test_build_file_store(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TASKPULSE_ENV", "production")
        monkeypatch.setenv("TASKPULSE_STORAGE", "file")
        monkeypatch.setenv("TASKPULSE_LOG_STORE_DIR", str(tmp_path))

        store = build_log_store(StorageConfig())

        assert isinstance(store, FileLogStore)
        assert store.key == "task-changes"
        assert store.path == tmp_path / "task-changes.md"

    def test_build_database_store_with_explicit_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TASKPULSE_STORAGE", "database")
        monkeypatch.setenv("TASKPULSE_DATABASE_URL", f"sqlite:///{tmp_path / 'logs.db'}")

        store = build_log_store(StorageConfig(), key="llm-prompt")

        assert isinstance(store, DatabaseLogStore)
        assert store.key == "llm-prompt"
        assert store.metadata().source == "database"
