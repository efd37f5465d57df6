import logging
import sys
import time
from typing import Optional, TextIO

import requests

from .config import (
    DEFAULT_DISPLAY_INTERVAL_S,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_RETRY_COUNT,
    TaskSettings,
)
from .errors import (
    PhotonApiError,
    TaskApiError,
    TaskFailedError,
    TaskTimeoutError,
    TransportError,
    get_task_api_error_list,
)
from .models import Task, TaskState
from .photon_client import PhotonClient
from .progress import ProgressAnimator, ProgressState

logger = logging.getLogger(__name__)

__all__ = [
    "get_task_api_error_list",
    "poll_task",
    "poll_task_with_timeout",
    "wait_for_task",
    "wait_on_task_operation",
]


def poll_task_with_timeout(
    client: PhotonClient,
    task_id: str,
    timeout_s: float,
    poll_s: float = DEFAULT_POLL_INTERVAL_S,
    retry_count: int = DEFAULT_RETRY_COUNT,
    display_s: float = DEFAULT_DISPLAY_INTERVAL_S,
    out: Optional[TextIO] = None,
) -> Task:
    # Poll the task until COMPLETED, ERROR, too many consecutive fetch failures, or timeout.
    # The progress line is animated on a separate thread and cleared before returning.
    start = time.monotonic()
    num_err = 0
    last_state = None

    progress = ProgressState()
    animator = ProgressAnimator(progress, start=start, interval=display_s, out=out)
    animator.start()
    try:
        while time.monotonic() - start < timeout_s:
            try:
                task = client.get_task(task_id)
            except PhotonApiError as ex:
                # The controller rejected the request itself; retrying will not help.
                raise TaskApiError(str(ex), task_id=task_id, task=progress.task) from ex
            except requests.RequestException as ex:
                num_err += 1
                logger.info("Fetching task %s failed (%d/%d): %s", task_id, num_err, retry_count, ex)
                if num_err > retry_count:
                    last_seen = progress.task
                    raise TransportError(
                        str(ex),
                        task_id=task_id,
                        task=last_seen,
                        api_errors=get_task_api_error_list(last_seen),
                    ) from ex
            else:
                num_err = 0
                progress.publish(task)
                if task.state != last_state:
                    logger.debug("Task %s is %s", task_id, task.state)
                    last_state = task.state
                if task.state == TaskState.COMPLETED:
                    logger.info("Task %s completed (%s)", task_id, task.operation)
                    return task
                if task.state == TaskState.ERROR:
                    logger.info("Task %s failed (%s)", task_id, task.operation)
                    raise TaskFailedError(
                        f"Task {task_id} failed during {task.operation}",
                        task_id=task_id,
                        task=task,
                        api_errors=get_task_api_error_list(task),
                    )

            time.sleep(poll_s)

        logger.info("Task %s did not finish within %ss", task_id, timeout_s)
        raise TaskTimeoutError(task_id=task_id)
    finally:
        animator.stop()


def poll_task(
    client: PhotonClient,
    task_id: str,
    task_settings: Optional[TaskSettings] = None,
    out: Optional[TextIO] = None,
) -> Task:
    ts = task_settings or TaskSettings()
    return poll_task_with_timeout(
        client,
        task_id,
        ts.timeout,
        poll_s=ts.poll_interval,
        retry_count=ts.retry_count,
        display_s=ts.display_interval,
        out=out,
    )


def wait_for_task(
    client: PhotonClient,
    task_id: str,
    scripting: bool,
    task_settings: Optional[TaskSettings] = None,
    out: Optional[TextIO] = None,
) -> Task:
    # Scripting mode waits quietly on the controller; interactive mode polls with animation.
    ts = task_settings or TaskSettings()
    if scripting:
        return client.wait_task(task_id, timeout_s=ts.timeout, poll_s=ts.poll_interval, retry_count=ts.retry_count)
    return poll_task(client, task_id, task_settings=ts, out=out)


def wait_on_task_operation(
    client: PhotonClient,
    task_id: str,
    scripting: bool,
    task_settings: Optional[TaskSettings] = None,
    out: Optional[TextIO] = None,
) -> str:
    """Wait for a submitted operation and print a one-line confirmation.

    Scripting mode blocks on the controller quietly and prints only the
    entity id. Interactive mode animates progress and prints a sentence.
    Returns the entity id; failures are raised as TaskPollError.
    """
    out = out or sys.stdout
    task = wait_for_task(client, task_id, scripting, task_settings=task_settings, out=out)
    if scripting:
        print(task.entity.id, file=out)
    else:
        print(f"{task.operation} completed for '{task.entity.kind}' entity {task.entity.id}", file=out)
    return task.entity.id
