"""Custom exceptions for TaskPulse"""

from typing import Any, Optional


class TaskPulseError(Exception):
    """Base class for every error raised by TaskPulse"""

    status_code = 500
    user_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, details: Any = None):
        super().__init__(message or self.user_message)
        self.details = details


class TaskServiceError(TaskPulseError):
    """Raised when the remote task service rejects or fails a request"""

    retryable = False
    user_message = "The task service returned an unexpected error."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
        user_message: Optional[str] = None,
    ):
        """Initialize TaskServiceError

        Args:
            message: Server-side description (kept out of responses)
            status_code: HTTP status reported by the remote service, if any
            details: Raw response payload for diagnosis
            user_message: Overrides the class-level message shown to users
        """
        super().__init__(message, details)
        if status_code is not None:
            self.status_code = status_code
        if user_message is not None:
            self.user_message = user_message


class AuthenticationError(TaskServiceError):
    status_code = 401
    user_message = "Invalid ClickUp API token. Please check your credentials."


class ForbiddenError(TaskServiceError):
    status_code = 403
    user_message = "Access denied. Please check your ClickUp permissions for this list."


class NotFoundError(TaskServiceError):
    status_code = 404
    user_message = "Task not found. It may have been deleted."


class RateLimitedError(TaskServiceError):
    retryable = True
    status_code = 429
    user_message = "Too many requests. Please wait a moment and try again."


class RequestTimeoutError(TaskServiceError):
    retryable = True
    status_code = 408
    user_message = "Request timed out. ClickUp may be experiencing delays. Please try again."


class ServiceUnavailableError(TaskServiceError):
    retryable = True
    status_code = 503
    user_message = "ClickUp service is temporarily unavailable. Please try again later."


class ValidationError(TaskPulseError):
    """Raised for bad input before any remote call is made"""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.user_message = message


class LogStoreError(TaskPulseError):
    """Raised when the change log backend cannot be read or written"""

    user_message = "The change log could not be accessed."


class ReportGenerationError(TaskPulseError):
    """Raised when a daily report cannot be produced as a whole"""

    user_message = "Failed to generate report"
