from __future__ import annotations

import logging
import requests
from typing import Any, Dict, List, Optional
from urllib3.exceptions import InsecureRequestWarning
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    stop_any,
    wait_fixed,
)

from .config import DEFAULT_POLL_INTERVAL_S, DEFAULT_RETRY_COUNT, DEFAULT_TASK_TIMEOUT_S, Settings
from .errors import (
    PhotonApiError,
    TaskApiError,
    TaskFailedError,
    TaskTimeoutError,
    TransportError,
    get_task_api_error_list,
)
from .models import ApiError, Task, TaskState

logger = logging.getLogger(__name__)


class PhotonClient:
    # Minimal client for the Photon Controller REST API.
    # - Bearer token from the local settings is sent on every request.
    # - Non-2xx answers are raised as PhotonApiError carrying the server's ApiError body.
    # - List endpoints are paged through nextPageLink.

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        verify: bool = True,
        timeout: int = 30,
        proxies: Optional[Dict[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.verify = verify
        self.timeout = timeout
        self.proxies = proxies
        if not verify:
            requests.packages.urllib3.disable_warnings(category=InsecureRequestWarning)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PhotonClient":
        return cls(
            settings.require_target(),
            token=settings.token,
            verify=not settings.ignore_cert,
            timeout=settings.timeout,
            proxies=settings.proxies(),
        )

    @property
    def endpoint(self) -> str:
        return self.base_url

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _check(self, resp: requests.Response) -> Dict[str, Any]:
        if not resp.ok:
            try:
                body = resp.json() or {}
            except ValueError:
                body = {"code": "HttpError", "message": resp.text}
            api_error = ApiError.from_dict(body)
            api_error.http_status_code = resp.status_code
            raise PhotonApiError(api_error, resp.status_code)
        return resp.json()

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        resp = requests.get(
            url, headers=self._headers(), params=params, verify=self.verify,
            timeout=self.timeout, proxies=self.proxies
        )
        return self._check(resp)

    def post(self, path: str, json_body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        resp = requests.post(
            url, headers=self._headers(), json=json_body, verify=self.verify,
            timeout=self.timeout, proxies=self.proxies
        )
        return self._check(resp)

    def paginate(self, path: str, params: Optional[Dict[str, Any]] = None, key: str = "items") -> List[Dict[str, Any]]:
        # Follow nextPageLink until the controller stops handing one out.
        items: List[Dict[str, Any]] = []
        data = self.get(path, params=params)
        while True:
            items.extend(data.get(key) or [])
            next_link = data.get("nextPageLink")
            if not next_link:
                break
            data = self.get(next_link)
        return items

    def get_task(self, task_id: str) -> Task:
        # A task in ERROR state still comes back as a Task; the caller inspects its state.
        return Task.from_dict(self.get(f"/tasks/{task_id}"))

    def list_tasks(
        self,
        entity_id: Optional[str] = None,
        entity_kind: Optional[str] = None,
        state: Optional[str] = None,
    ) -> List[Task]:
        params = {}
        if entity_id:
            params["entityId"] = entity_id
        if entity_kind:
            params["entityKind"] = entity_kind
        if state:
            params["state"] = state
        return [Task.from_dict(t) for t in self.paginate("/tasks", params=params or None)]

    def wait_task(
        self,
        task_id: str,
        timeout_s: float = DEFAULT_TASK_TIMEOUT_S,
        poll_s: float = DEFAULT_POLL_INTERVAL_S,
        retry_count: int = DEFAULT_RETRY_COUNT,
    ) -> Task:
        # Block quietly until the task is COMPLETED or ERROR. No progress output.
        # Gives up after more than retry_count consecutive transport failures.
        failures = 0

        def too_many_failures(retry_state) -> bool:
            nonlocal failures
            failures = failures + 1 if retry_state.outcome.failed else 0
            return failures > retry_count

        retryer = Retrying(
            retry=retry_if_result(lambda t: not t.is_terminal) | retry_if_exception_type(requests.RequestException),
            wait=wait_fixed(poll_s),
            stop=stop_any(stop_after_delay(timeout_s), too_many_failures),
        )
        try:
            task = retryer(self.get_task, task_id)
        except PhotonApiError as ex:
            raise TaskApiError(str(ex), task_id=task_id) from ex
        except RetryError as ex:
            last = ex.last_attempt
            if last.failed:
                raise TransportError(str(last.exception()), task_id=task_id) from last.exception()
            raise TaskTimeoutError(task_id=task_id, task=last.result())

        if task.state == TaskState.ERROR:
            raise TaskFailedError(
                f"Task {task_id} failed during {task.operation}",
                task_id=task_id,
                task=task,
                api_errors=get_task_api_error_list(task),
            )
        logger.info("Task %s finished with state %s", task_id, task.state)
        return task
