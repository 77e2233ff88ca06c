"""Unit tests for change log formatting and the writer."""

import pytest

from taskpulse.changelog.models import LogAction, LogEntry
from taskpulse.changelog.parser import parse_entries, reconstruct_in_progress_timestamps
from taskpulse.changelog.writer import (
    ChangeLogWriter,
    format_entry,
    format_value,
    normalize_update_fields,
)
from taskpulse.exceptions import LogStoreError

from conftest import FailingStore


class TestFormatting:
    """Test cases for the textual entry format."""

    def test_format_entry_layout(self):
        formatted = format_entry(
            LogEntry(
                action=LogAction.CREATE,
                task_id="86abc",
                timestamp="2024-06-03T14:00:00.123Z",
                fields={"name": "Fix login", "status": "IN PROGRESS", "time_estimate": 7200000},
            )
        )

        assert formatted == (
            "\n## CREATE Task 86abc - 2024-06-03T14:00:00.123Z\n"
            '  - name: "Fix login"\n'
            '  - status: "IN PROGRESS"\n'
            "  - time_estimate: 7200000\n"
        )

    def test_format_entry_with_comment(self):
        formatted = format_entry(
            LogEntry(
                action=LogAction.MANUAL_UPDATE,
                task_id="T1",
                timestamp="2024-06-03T14:00:00.123Z",
                fields={"inProgressSince": "2024-06-02T09:00:00.000Z"},
                comment="Manually corrected by admin",
            )
        )

        assert formatted == (
            "\n## MANUAL_UPDATE Task T1 - 2024-06-03T14:00:00.123Z\n"
            '  - inProgressSince: "2024-06-02T09:00:00.000Z"\n'
            "Comment: Manually corrected by admin\n"
        )

    def test_internal_fields_are_not_written(self):
        formatted = format_entry(
            LogEntry(
                action=LogAction.CREATE,
                task_id="T1",
                timestamp="2024-06-03T14:00:00.123Z",
                fields={"name": "x", "custom_fields": [{"id": "f"}], "parent": "P1", "comment": "hi"},
            )
        )

        assert "custom_fields" not in formatted
        assert "parent" not in formatted
        assert "comment" not in formatted

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("plain", '"plain"'),
            ("trailing\n\n", '"trailing"'),
            (3, "3"),
            (None, "null"),
            (True, "true"),
            ({"a": [1, 2]}, '{"a":[1,2]}'),
            (["é"], '["é"]'),
        ],
    )
    def test_format_value(self, value, expected):
        assert format_value(value) == expected

    def test_normalize_update_fields(self):
        fields = normalize_update_fields(
            {
                "status": "IN PROGRESS",
                "time_estimate": 5400000,
                "comment": "Blocked on API keys",
                "description": "original",
                "inProgressSince": "2024-06-01T00:00:00.000Z",
            }
        )

        assert fields == {
            "status": "IN PROGRESS",
            "time_estimate": "1.5 hours",
            "description": "Blocked on API keys",
        }

    def test_normalize_keeps_description_without_comment(self):
        fields = normalize_update_fields({"description": "kept", "comment": "  "})

        assert fields == {"description": "kept"}


class TestChangeLogWriter:
    """Test cases for ChangeLogWriter against a file store."""

    def test_record_appends_in_order(self, writer, store):
        for number in range(5):
            writer.record(f"T{number}", LogAction.UPDATE, {"status": "IN PROGRESS", "index": number})

        entries = parse_entries(store.read_all())

        assert [entry.task_id for entry in entries] == ["T0", "T1", "T2", "T3", "T4"]
        assert [entry.fields["index"] for entry in entries] == [0, 1, 2, 3, 4]
        assert all(entry.timestamp == "2024-06-03T14:00:00.123Z" for entry in entries)

    def test_written_entry_parses_back(self, writer, store):
        fields = {"name": "Ship it", "description": "line one\nline two", "priority": 1, "tags": ["x"]}

        written = writer.record("T1", LogAction.CREATE, fields, comment="from dashboard")
        parsed = parse_entries(store.read_all())[0]

        assert parsed.action is written.action
        assert parsed.task_id == written.task_id
        assert parsed.timestamp == written.timestamp
        assert parsed.fields == fields
        assert parsed.comment == "from dashboard"

    def test_bullet_comment_keeps_in_progress_evidence(self, writer, store):
        fields = normalize_update_fields({"status": "IN PROGRESS", "comment": "Blocked:\n- status: waiting on QA"})

        writer.record("T1", LogAction.UPDATE, fields)
        text = store.read_all()

        assert parse_entries(text)[0].fields == {
            "status": "IN PROGRESS",
            "description": "Blocked:\n- status: waiting on QA",
        }
        assert reconstruct_in_progress_timestamps(text) == {"T1": "2024-06-03T14:00:00.123Z"}

    def test_bullet_list_description_parses_back(self, writer, store):
        fields = {"description": "Steps:\n- step: one\n- step: two", "priority": 3}

        writer.record("T1", LogAction.CREATE, fields)

        assert parse_entries(store.read_all())[0].fields == fields

    def test_manual_update_drives_reconstruction(self, writer, store):
        writer.record("T1", LogAction.CREATE, {"status": "IN PROGRESS"})
        writer.record_manual_update("T1", "2024-06-01T08:00:00.000Z")

        text = store.read_all()

        assert "## MANUAL_UPDATE Task T1" in text
        assert "Comment: Manually corrected by admin" in text
        assert reconstruct_in_progress_timestamps(text) == {"T1": "2024-06-01T08:00:00.000Z"}

    def test_store_failure_propagates(self, clock):
        failing = ChangeLogWriter(FailingStore(), clock=clock)

        with pytest.raises(LogStoreError):
            failing.record("T1", LogAction.UPDATE, {"status": "done"})
