"""ClickUp REST API client"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import requests
from loguru import logger

from taskpulse.clickup.models import CustomField, Task
from taskpulse.exceptions import (
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    RequestTimeoutError,
    ServiceUnavailableError,
    TaskServiceError,
)

DEFAULT_BASE_URL = "https://api.clickup.com/api/v2"


def _error_for_response(response: requests.Response, path: str) -> TaskServiceError:
    """Translate a non-2xx response into the matching typed error."""
    try:
        details = response.json()
    except ValueError:
        details = response.text[:500] if response.text else None

    status = response.status_code
    message = f"ClickUp {status} for {path}: {details}"
    if status == 401:
        return AuthenticationError(message, details=details)
    if status == 403:
        return ForbiddenError(message, details=details)
    if status == 404:
        return NotFoundError(message, details=details)
    if status == 429:
        return RateLimitedError(message, details=details)
    if status >= 500:
        return ServiceUnavailableError(message, details=details)
    if status == 400:
        return TaskServiceError(
            message,
            status_code=400,
            details=details,
            user_message="Invalid request to ClickUp API. Please check your List ID and task data.",
        )
    return TaskServiceError(message, status_code=status, details=details)


class ClickUpClient:
    """Thin typed wrapper over the ClickUp v2 API.

    Requests use a bounded timeout. HTTP 429 responses are retried with
    exponential backoff up to ``max_retries`` times; every other failure is
    raised immediately as a :class:`TaskServiceError` subclass.
    """

    def __init__(
        self,
        api_token: str,
        list_id: str,
        team_id: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not api_token:
            raise AuthenticationError("CLICKUP_API_TOKEN is required")
        self.list_id = list_id
        self.team_id = team_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": api_token,
            "Content-Type": "application/json",
        })

    @classmethod
    def from_config(cls, config) -> "ClickUpClient":
        """Build a client from a ``ClickUpConfig``."""
        return cls(
            api_token=config.api_token,
            list_id=config.list_id,
            team_id=config.team_id,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base_seconds,
        )

    def _backoff_delay(self, attempt: int, response: requests.Response) -> float:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                pass
        return self.backoff_base * (2 ** attempt)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(
                    method, url, params=params, json=json, timeout=self.timeout
                )
            except requests.Timeout as exc:
                logger.error(f"ClickUp {method} {path} timed out after {self.timeout}s")
                raise RequestTimeoutError(f"Timeout calling {path}") from exc
            except requests.ConnectionError as exc:
                logger.error(f"ClickUp {method} {path} connection failed: {exc}")
                raise ServiceUnavailableError(f"Connection error calling {path}") from exc

            if response.status_code == 429 and attempt < self.max_retries:
                delay = self._backoff_delay(attempt, response)
                logger.warning(
                    f"ClickUp rate limit on {method} {path}; retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                self._sleep(delay)
                continue

            if not response.ok:
                error = _error_for_response(response, path)
                logger.error(f"ClickUp {method} {path} failed: {error}")
                raise error

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise TaskServiceError(f"Invalid JSON from {path}", status_code=502) from exc

        raise RateLimitedError(f"Rate limited on {path} after {self.max_retries} retries")

    def list_tasks(self, include_subtasks: bool = True, include_closed: bool = False) -> List[Task]:
        """Fetch every task in the configured list, following pagination."""
        tasks: List[Task] = []
        page = 0
        while True:
            data = self._request(
                "GET",
                f"/list/{self.list_id}/task",
                params={
                    "archived": "false",
                    "subtasks": str(include_subtasks).lower(),
                    "include_closed": str(include_closed).lower(),
                    "page": page,
                },
            )
            batch = data.get("tasks") or []
            tasks.extend(Task.from_api(item) for item in batch)
            if data.get("last_page", True) or not batch:
                break
            page += 1
        logger.info(f"Fetched {len(tasks)} tasks from list {self.list_id}")
        return tasks

    def get_task(self, task_id: str) -> Task:
        return Task.from_api(self._request("GET", f"/task/{task_id}"))

    def list_custom_fields(self) -> List[CustomField]:
        data = self._request("GET", f"/list/{self.list_id}/field")
        return [CustomField.from_api(item) for item in data.get("fields") or []]

    def create_task(self, data: Dict[str, Any]) -> Task:
        created = self._request("POST", f"/list/{self.list_id}/task", json=data)
        logger.info(f"Created task {created.get('id')}: {data.get('name', '')[:50]}")
        return Task.from_api(created)

    def update_task(self, task_id: str, data: Dict[str, Any]) -> Task:
        updated = self._request("PUT", f"/task/{task_id}", json=data)
        logger.info(f"Updated task {task_id}: {sorted(data)}")
        return Task.from_api(updated)

    def set_custom_field(self, task_id: str, field_id: str, value: Any) -> None:
        self._request("POST", f"/task/{task_id}/field/{field_id}", json={"value": value})

    def get_task_comments(self, task_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/task/{task_id}/comment").get("comments") or []

    def list_spaces(self) -> List[Dict[str, Any]]:
        return self._request("GET", f"/team/{self.team_id}/space").get("spaces") or []

    def list_folders(self, space_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/space/{space_id}/folder").get("folders") or []

    def list_lists_in_space(self, space_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/space/{space_id}/list").get("lists") or []

    def list_lists_in_folder(self, folder_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/folder/{folder_id}/list").get("lists") or []

    def test_connection(self) -> bool:
        """Return True when the token is accepted by ClickUp."""
        try:
            self._request("GET", "/user")
            return True
        except TaskServiceError as exc:
            logger.warning(f"ClickUp connection test failed: {exc}")
            return False
