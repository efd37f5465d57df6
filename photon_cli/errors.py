from __future__ import annotations

import enum
from typing import List, Optional

from .models import ApiError, Task


class ErrorKind(enum.Enum):
    TRANSPORT = "transport"
    TASK_FAILED = "task_failed"
    TIMEOUT = "timeout"
    API = "api"


class PhotonApiError(Exception):
    # Raised by the REST client when the controller answers with a non-2xx status.

    def __init__(self, api_error: ApiError, http_status: int = 0) -> None:
        self.api_error = api_error
        self.http_status = http_status or api_error.http_status_code
        super().__init__(f"photon: {api_error} (HTTP {self.http_status})")


class TaskPollError(Exception):
    """Terminal failure while waiting on a task.

    ``kind`` says which way the wait ended; ``api_errors`` holds the step
    errors collected from the last task seen, possibly empty.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        task_id: str = "",
        task: Optional[Task] = None,
        api_errors: Optional[List[ApiError]] = None,
    ) -> None:
        self.task_id = task_id
        self.task = task
        self.api_errors = list(api_errors or [])
        self.reason = message
        if self.api_errors:
            message = f"{message}\nAPI Errors: {self.api_errors}"
        super().__init__(message)


class TransportError(TaskPollError):
    kind = ErrorKind.TRANSPORT


class TaskFailedError(TaskPollError):
    kind = ErrorKind.TASK_FAILED


class TaskTimeoutError(TaskPollError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str = "Timed out while waiting for task to complete", **kwargs) -> None:
        super().__init__(message, **kwargs)


class TaskApiError(TaskPollError):
    kind = ErrorKind.API


def get_task_api_error_list(task: Optional[Task]) -> List[ApiError]:
    # Step order first, then the order within each step.
    api_errors: List[ApiError] = []
    if task is None:
        return api_errors
    for step in task.steps or []:
        api_errors.extend(step.errors or [])
    return api_errors
