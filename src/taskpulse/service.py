"""Task mutations and lookups: ClickUp first, then the change log"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger

from taskpulse.changelog.models import IN_PROGRESS_FIELD, LogAction, parse_timestamp
from taskpulse.changelog.parser import reconstruct_in_progress_timestamps
from taskpulse.changelog.store import LogStore
from taskpulse.changelog.writer import ChangeLogWriter, normalize_update_fields
from taskpulse.clickup.client import ClickUpClient
from taskpulse.clickup.models import CustomField, Task
from taskpulse.config import ClickUpConfig, ReportConfig
from taskpulse.exceptions import AuthenticationError, LogStoreError, ValidationError
from taskpulse.reporting.developers import DeveloperMap, find_developer_field, task_developer

LOG_WARNING = "Failed to write to the activity log."

UPDATABLE_FIELDS = ("name", "description", "status", "priority", "due_date", "time_estimate", "parent")


@dataclass
class MutationResult:
    """Outcome of a create/update: the task, plus a warning when logging failed"""
    task: Task
    warning: Optional[str] = None
    review_task: Optional[Task] = None

    @property
    def logged(self) -> bool:
        return self.warning is None


def _developer_value(developer_field: CustomField, name: str, for_create: bool) -> Any:
    """Value to store in the developer field for ``name``, or None when no option matches."""
    if not developer_field.is_dropdown:
        return name
    option = developer_field.find_option(name)
    if option is None:
        return None
    if for_create:
        # Task creation accepts the order index; the field endpoint wants the option id
        return option.orderindex if option.orderindex not in (None, "") else option.id
    return option.id


class TaskService:
    """Composes ClickUp mutations with change-log writes.

    The remote mutation always happens first. A change-log failure never
    undoes it: the result comes back with ``warning`` set instead. Storage
    operations work without a ClickUp client.
    """

    def __init__(
        self,
        client: Optional[ClickUpClient],
        store: LogStore,
        writer: Optional[ChangeLogWriter] = None,
        clickup_config: Optional[ClickUpConfig] = None,
        report_config: Optional[ReportConfig] = None,
        environment: str = "development",
    ):
        self._client = client
        self.store = store
        self.environment = environment
        self.writer = writer or ChangeLogWriter(store)
        self.clickup_config = clickup_config or ClickUpConfig()
        self.report_config = report_config or ReportConfig()

    @property
    def client(self) -> ClickUpClient:
        if self._client is None:
            raise AuthenticationError("CLICKUP_API_TOKEN is required")
        return self._client

    # -- reads ----------------------------------------------------------

    def in_progress_since(self) -> Dict[str, str]:
        """Reconstructed in-progress timestamps; empty when the log is unreadable."""
        try:
            text = self.store.read_all()
        except LogStoreError as exc:
            logger.warning(f"Could not read change log for in-progress timestamps: {exc}")
            return {}
        return reconstruct_in_progress_timestamps(text, self.report_config.in_progress_status)

    def list_tasks_for_ui(self, include_comments: bool = False) -> List[Dict[str, Any]]:
        """Open tasks shaped for the dashboard, subtasks nested under their parents."""
        tasks = self.client.list_tasks(include_subtasks=True, include_closed=False)
        developers = DeveloperMap.from_custom_fields(self.client.list_custom_fields())
        since = self.in_progress_since()

        open_tasks = [
            task for task in tasks
            if task.status_type != "closed" and task.status.lower() != "closed" and not task.archived
        ]
        by_parent: Dict[str, List[Task]] = {}
        for task in open_tasks:
            if task.parent:
                by_parent.setdefault(task.parent, []).append(task)

        def shape(task: Task) -> Dict[str, Any]:
            payload = task.to_dict(since.get(task.id))
            payload["developer"] = task_developer(task, developers)
            if include_comments:
                payload["comments"] = self.client.get_task_comments(task.id)
            return payload

        result = []
        for task in open_tasks:
            if task.parent:
                continue
            payload = shape(task)
            payload["subtasks"] = [shape(subtask) for subtask in by_parent.get(task.id, [])]
            result.append(payload)
        return result

    def get_task(self, task_id: str) -> Dict[str, Any]:
        task = self.client.get_task(task_id)
        return task.to_dict(self.in_progress_since().get(task_id))

    def list_developers(self) -> List[Dict[str, Any]]:
        developer_field = find_developer_field(self.client.list_custom_fields())
        if developer_field is None or not developer_field.is_dropdown:
            return []
        return [
            {
                "id": option.orderindex if option.orderindex not in (None, "") else option.id,
                "name": option.name,
                "color": option.color,
            }
            for option in developer_field.options
        ]

    def list_hierarchy(self) -> Dict[str, Any]:
        """Spaces, folders and lists reachable with the configured team."""
        spaces = self.client.list_spaces()
        folders: List[Dict[str, Any]] = []
        lists: List[Dict[str, Any]] = []
        for space in spaces:
            space_ref = {"spaceName": space.get("name"), "spaceId": space.get("id")}
            for folder in self.client.list_folders(space["id"]):
                folders.append({**folder, **space_ref})
                for item in self.client.list_lists_in_folder(folder["id"]):
                    lists.append({**item, **space_ref, "folderName": folder.get("name"), "folderId": folder.get("id")})
            for item in self.client.list_lists_in_space(space["id"]):
                lists.append({**item, **space_ref, "folderName": "No Folder", "folderId": None})
        return {
            "spaces": spaces,
            "folders": folders,
            "lists": lists,
            "totalSpaces": len(spaces),
            "totalFolders": len(folders),
            "totalLists": len(lists),
        }

    # -- mutations ------------------------------------------------------

    def _record(self, task_id: str, action: LogAction, fields: Mapping[str, Any], comment: Optional[str] = None) -> Optional[str]:
        try:
            self.writer.record(task_id, action, fields, comment=comment)
        except LogStoreError as exc:
            logger.error(f"Task {task_id} was changed but logging failed: {exc}")
            return LOG_WARNING
        return None

    def _find_or_create_review_parent(self, developer_field: Optional[CustomField]) -> Task:
        parent_name = self.clickup_config.review_parent_name
        for task in self.client.list_tasks(include_subtasks=True, include_closed=False):
            if task.name.lower() == parent_name.lower() and not task.parent:
                logger.debug(f"Using existing {parent_name} parent task {task.id}")
                return task

        data: Dict[str, Any] = {
            "name": parent_name,
            "description": "Parent task for all review items",
            "status": self.report_config.in_progress_status,
        }
        if developer_field is not None:
            owner = self.clickup_config.review_parent_owner
            if developer_field.is_dropdown:
                option = next(
                    (item for item in developer_field.options if owner.lower() in item.name.lower()),
                    None,
                )
                if option is not None:
                    value = option.orderindex if option.orderindex not in (None, "") else option.id
                    data["custom_fields"] = [{"id": developer_field.id, "value": value}]
            else:
                data["custom_fields"] = [{"id": developer_field.id, "value": owner.title()}]

        parent = self.client.create_task(data)
        logger.info(f"Created {parent_name} parent task {parent.id}")
        return parent

    def create_task(self, payload: Mapping[str, Any]) -> MutationResult:
        """Create a subtask under the review parent and log it as CREATE."""
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name", "Task name is required")

        developer_field = find_developer_field(self.client.list_custom_fields())
        review_task = self._find_or_create_review_parent(developer_field)

        data = {key: value for key, value in payload.items() if key != "developer"}
        developer = payload.get("developer")
        if developer and developer_field is not None:
            value = _developer_value(developer_field, developer, for_create=True)
            if value is None:
                logger.warning(f"No matching developer option found for: {developer}")
            else:
                data["custom_fields"] = [{"id": developer_field.id, "value": value}]
        data["parent"] = review_task.id

        task = self.client.create_task(data)
        warning = self._record(task.id, LogAction.CREATE, payload)
        return MutationResult(task=task, warning=warning, review_task=review_task)

    def _validate_update(self, payload: Mapping[str, Any]) -> None:
        if not payload:
            raise ValidationError("body", "No changes provided")
        if "name" in payload and (not isinstance(payload["name"], str) or not payload["name"].strip()):
            raise ValidationError("name", "Task name cannot be empty")
        since = payload.get(IN_PROGRESS_FIELD)
        if since and parse_timestamp(since if isinstance(since, str) else None) is None:
            raise ValidationError(IN_PROGRESS_FIELD, "inProgressSince must be an ISO 8601 timestamp")

    def update_task(self, task_id: str, payload: Mapping[str, Any]) -> MutationResult:
        """Apply a partial update, then log MANUAL_UPDATE and/or UPDATE entries."""
        self._validate_update(payload)

        developer = payload.get("developer")
        if developer is not None:
            developer_field = find_developer_field(self.client.list_custom_fields())
            if developer_field is None:
                logger.warning("No developer custom field on this list; ignoring developer change")
            elif developer == "":
                self.client.set_custom_field(task_id, developer_field.id, None)
            else:
                value = _developer_value(developer_field, developer, for_create=False)
                if value is None:
                    logger.warning(f"No matching developer option found for: {developer}")
                else:
                    self.client.set_custom_field(task_id, developer_field.id, value)

        update_data = {key: payload[key] for key in UPDATABLE_FIELDS if key in payload}
        if update_data:
            task = self.client.update_task(task_id, update_data)
        else:
            task = self.client.get_task(task_id)

        warnings = []
        since = payload.get(IN_PROGRESS_FIELD)
        if since:
            try:
                self.writer.record_manual_update(task_id, since)
            except LogStoreError as exc:
                logger.error(f"Task {task_id} was changed but logging failed: {exc}")
                warnings.append(LOG_WARNING)

        fields = normalize_update_fields(payload)
        if fields:
            warning = self._record(task_id, LogAction.UPDATE, fields)
            if warning:
                warnings.append(warning)
        return MutationResult(task=task, warning=warnings[0] if warnings else None)

    def correct_in_progress_since(self, task_id: str, in_progress_since: str) -> None:
        """Record an administrator's correction without touching ClickUp."""
        if parse_timestamp(in_progress_since) is None:
            raise ValidationError(IN_PROGRESS_FIELD, "inProgressSince must be an ISO 8601 timestamp")
        self.writer.record_manual_update(task_id, in_progress_since)

    # -- storage --------------------------------------------------------

    def storage_status(self) -> Dict[str, Any]:
        metadata = self.store.metadata()
        return {
            "storage": {
                "source": metadata.source,
                "key": metadata.key,
                "environment": self.environment,
            },
            "logFile": metadata.to_dict(),
        }

    def write_test_entry(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Append a throwaway CREATE entry to prove the store is writable."""
        now = now or datetime.now(timezone.utc)
        task_id = f"TEST-{int(now.timestamp() * 1000)}"
        self.writer.record(
            task_id,
            LogAction.CREATE,
            {
                "name": "Test Task for Storage Verification",
                "description": "This is a test entry to verify log storage is working",
                "status": "TEST",
                "timestamp": now.isoformat(),
            },
            comment=f"Test log created at {now.isoformat()}",
        )
        return {"taskId": task_id, **self.storage_status()}
