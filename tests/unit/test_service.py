"""Unit tests for TaskService: remote mutation first, then the change log."""

import pytest

from taskpulse.changelog.parser import parse_entries, reconstruct_in_progress_timestamps
from taskpulse.changelog.writer import ChangeLogWriter
from taskpulse.exceptions import AuthenticationError, ValidationError
from taskpulse.service import LOG_WARNING, TaskService

from conftest import FailingStore, FakeClickUpClient, developer_field, make_task


@pytest.fixture
def service(fake_client, store, writer):
    return TaskService(fake_client, store, writer=writer)


class TestCreateTask:
    """Test cases for create_task."""

    def test_requires_name_before_any_remote_call(self, service, fake_client):
        with pytest.raises(ValidationError) as excinfo:
            service.create_task({"name": "   "})

        assert excinfo.value.field == "name"
        assert fake_client.calls == []

    def test_creates_review_parent_and_logs(self, service, fake_client, store):
        result = service.create_task({"name": "Check invoices", "developer": "sam", "status": "TO DO"})

        creates = [call[1] for call in fake_client.calls if call[0] == "create_task"]
        parent_data, task_data = creates
        assert parent_data["name"] == "Review"
        assert parent_data["custom_fields"] == [{"id": "dev-field", "value": 2}]
        assert task_data["parent"] == result.review_task.id
        assert task_data["custom_fields"] == [{"id": "dev-field", "value": 1}]
        assert "developer" not in task_data

        entries = parse_entries(store.read_all())
        assert len(entries) == 1
        assert entries[0].task_id == result.task.id
        assert entries[0].fields == {"name": "Check invoices", "developer": "sam", "status": "TO DO"}
        assert result.warning is None

    def test_reuses_existing_review_parent(self, store, writer):
        review = make_task("R1", "review")
        client = FakeClickUpClient(tasks=[review])
        service = TaskService(client, store, writer=writer)

        result = service.create_task({"name": "Follow up"})

        assert result.review_task is review
        assert len([call for call in client.calls if call[0] == "create_task"]) == 1

    def test_log_failure_is_a_warning(self, fake_client, clock):
        failing = FailingStore()
        service = TaskService(fake_client, failing, writer=ChangeLogWriter(failing, clock=clock))

        result = service.create_task({"name": "Check invoices"})

        assert result.task.name == "Check invoices"
        assert result.warning == LOG_WARNING
        assert result.logged is False


class TestUpdateTask:
    """Test cases for update_task."""

    def test_partial_update_is_logged(self, store, writer):
        client = FakeClickUpClient(tasks=[make_task("T1", "Fix login")])
        service = TaskService(client, store, writer=writer)

        result = service.update_task("T1", {"status": "IN PROGRESS", "time_estimate": 7200000})

        assert ("update_task", "T1", {"status": "IN PROGRESS", "time_estimate": 7200000}) in client.calls
        entry = parse_entries(store.read_all())[0]
        assert entry.fields == {"status": "IN PROGRESS", "time_estimate": "2 hours"}
        assert reconstruct_in_progress_timestamps(store.read_all()) == {"T1": "2024-06-03T14:00:00.123Z"}
        assert result.warning is None

    def test_manual_in_progress_override(self, store, writer):
        client = FakeClickUpClient(tasks=[make_task("T1", "Fix login")])
        service = TaskService(client, store, writer=writer)

        service.update_task("T1", {"inProgressSince": "2024-05-30T09:00:00.000Z"})

        entries = parse_entries(store.read_all())
        assert [entry.action.value for entry in entries] == ["MANUAL_UPDATE"]
        assert ("get_task", "T1") in client.calls
        assert service.get_task("T1")["inProgressSince"] == "2024-05-30T09:00:00.000Z"

    def test_developer_uses_custom_field_endpoint(self, store, writer):
        client = FakeClickUpClient(tasks=[make_task("T1", "Fix login")])
        service = TaskService(client, store, writer=writer)

        service.update_task("T1", {"developer": "Young"})
        service.update_task("T1", {"developer": ""})

        assert ("set_custom_field", "T1", "dev-field", "opt-young") in client.calls
        assert ("set_custom_field", "T1", "dev-field", None) in client.calls

    def test_log_failure_keeps_update(self, clock):
        client = FakeClickUpClient(tasks=[make_task("T1", "Fix login")])
        failing = FailingStore()
        service = TaskService(client, failing, writer=ChangeLogWriter(failing, clock=clock))

        result = service.update_task("T1", {"status": "done"})

        assert result.task.status == "done"
        assert result.warning == LOG_WARNING

    @pytest.mark.parametrize(
        "payload, field",
        [
            ({}, "body"),
            ({"name": ""}, "name"),
            ({"inProgressSince": "yesterday"}, "inProgressSince"),
        ],
    )
    def test_invalid_updates(self, service, fake_client, payload, field):
        with pytest.raises(ValidationError) as excinfo:
            service.update_task("T1", payload)

        assert excinfo.value.field == field
        assert fake_client.calls == []


class TestReads:
    """Test cases for read-side operations."""

    def test_list_tasks_for_ui_nests_subtasks(self, store, writer):
        client = FakeClickUpClient(
            tasks=[
                make_task("P", "Parent", custom_fields=[developer_field(value=0)]),
                make_task("C", "Child", parent="P"),
                make_task("X", "Closed", status="closed", status_type="closed"),
            ]
        )
        service = TaskService(client, store, writer=writer)

        tasks = service.list_tasks_for_ui()

        assert [task["id"] for task in tasks] == ["P"]
        assert tasks[0]["developer"] == "Jordan Lee"
        assert [subtask["id"] for subtask in tasks[0]["subtasks"]] == ["C"]

    def test_list_developers(self, service):
        assert service.list_developers() == [
            {"id": 0, "name": "Jordan Lee", "color": None},
            {"id": 1, "name": "Sam", "color": None},
            {"id": 2, "name": "Young", "color": None},
        ]

    def test_list_hierarchy(self, service):
        hierarchy = service.list_hierarchy()

        assert hierarchy["totalSpaces"] == 1
        assert hierarchy["totalLists"] == 2
        assert hierarchy["lists"][0]["folderName"] == "Sprints"
        assert hierarchy["lists"][1]["folderName"] == "No Folder"

    def test_storage_operations_work_without_client(self, store, writer):
        service = TaskService(None, store, writer=writer, environment="preview")

        result = service.write_test_entry()

        assert result["taskId"].startswith("TEST-")
        assert result["storage"]["environment"] == "preview"
        assert result["logFile"]["exists"] is True
        with pytest.raises(AuthenticationError):
            service.list_developers()
