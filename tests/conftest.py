"""Shared fixtures for photon_cli tests."""

from __future__ import annotations

from typing import List, Optional, Union

import pytest

from photon_cli.models import ApiError, Entity, Step, Task


def make_task(
    state: str = "QUEUED",
    steps: Optional[List[Step]] = None,
    task_id: str = "t1",
    operation: str = "CREATE_DISK",
) -> Task:
    return Task(
        id=task_id,
        operation=operation,
        state=state,
        entity=Entity(id="disk-1", kind="persistent-disk"),
        steps=steps if steps is not None else [],
    )


def make_step(sequence: int, state: str, operation: str = "RESERVE_RESOURCE", errors=None) -> Step:
    return Step(sequence=sequence, operation=operation, state=state, errors=errors or [])


class ScriptedTaskClient:
    """Stands in for PhotonClient; each get_task call consumes the next scripted result.

    A result is either a Task to return or an exception to raise. The last
    entry repeats once the script runs out.
    """

    def __init__(self, script: List[Union[Task, Exception]]) -> None:
        self.script = list(script)
        self.calls = 0
        self.wait_calls = 0

    def _next(self) -> Union[Task, Exception]:
        index = min(self.calls, len(self.script) - 1)
        self.calls += 1
        return self.script[index]

    def get_task(self, task_id: str) -> Task:
        result = self._next()
        if isinstance(result, Exception):
            raise result
        return result

    def wait_task(self, task_id: str, timeout_s: float = 0, poll_s: float = 0, retry_count: int = 0) -> Task:
        self.wait_calls += 1
        return self.get_task(task_id)


@pytest.fixture
def quota_error() -> ApiError:
    return ApiError(code="QuotaError", message="quota exceeded")
