"""Tests for task polling, error extraction and the operation waiter."""

import io
import logging
import threading
import time
from unittest.mock import patch

import pytest
import requests

from conftest import ScriptedTaskClient, make_step, make_task
from photon_cli.config import TaskSettings
from photon_cli.errors import (
    ErrorKind,
    PhotonApiError,
    TaskApiError,
    TaskFailedError,
    TaskPollError,
    TaskTimeoutError,
    TransportError,
)
from photon_cli.jobs import (
    get_task_api_error_list,
    poll_task,
    poll_task_with_timeout,
    wait_on_task_operation,
)
from photon_cli.models import ApiError, Task
from photon_cli.photon_client import PhotonClient
from photon_cli.progress import CLEAR_LINE

FAST = dict(poll_s=0.01, display_s=0.01)


def _poll(client, timeout_s=5.0, out=None, **kwargs):
    out = out if out is not None else io.StringIO()
    options = dict(FAST)
    options.update(kwargs)
    return poll_task_with_timeout(client, "t1", timeout_s, out=out, **options), out


def _assert_animation_finished(out):
    assert out.getvalue().endswith(CLEAR_LINE)
    assert not any(t.name == "task-progress" for t in threading.enumerate())


class TestGetTaskApiErrorList:

    def test_none_task(self):
        assert get_task_api_error_list(None) == []

    def test_task_without_steps(self):
        assert get_task_api_error_list(Task(id="t1", steps=None)) == []

    def test_step_then_within_step_order(self):
        e1, e2, e3 = ApiError("A", "first"), ApiError("B", "second"), ApiError("C", "third")
        task = make_task("ERROR", steps=[
            make_step(0, "ERROR", errors=[e1, e2]),
            make_step(1, "QUEUED"),
            make_step(2, "ERROR", errors=[e3]),
        ])
        assert get_task_api_error_list(task) == [e1, e2, e3]


class TestPollTask:

    def test_completes_on_second_fetch(self):
        client = ScriptedTaskClient([make_task("QUEUED"), make_task("COMPLETED")])
        task, out = _poll(client)
        assert task.state == "COMPLETED"
        assert client.calls == 2
        assert out.getvalue().endswith(CLEAR_LINE)

    def test_error_state_carries_api_errors(self, quota_error):
        failed = make_task("ERROR", steps=[make_step(0, "ERROR", errors=[quota_error])])
        client = ScriptedTaskClient([failed])
        out = io.StringIO()
        with pytest.raises(TaskFailedError) as excinfo:
            _poll(client, out=out)
        _assert_animation_finished(out)
        err = excinfo.value
        assert err.kind is ErrorKind.TASK_FAILED
        assert "quota exceeded" in str(err)
        assert err.api_errors == [quota_error]
        assert err.task is failed
        assert client.calls == 1

    def test_error_message_lists_every_step_error_in_order(self):
        errors = [ApiError("E1", "disk busy"), ApiError("E2", "host down"), ApiError("E3", "no space")]
        failed = make_task("ERROR", steps=[
            make_step(0, "ERROR", errors=errors[:2]),
            make_step(1, "ERROR", errors=errors[2:]),
        ])
        with pytest.raises(TaskFailedError) as excinfo:
            _poll(ScriptedTaskClient([failed]))
        message = str(excinfo.value)
        positions = [message.index(e.message) for e in errors]
        assert positions == sorted(positions)

    def test_transport_failures_exhaust_retry_budget(self):
        client = ScriptedTaskClient([requests.ConnectionError("connection refused")])
        out = io.StringIO()
        started = time.monotonic()
        with pytest.raises(TransportError) as excinfo:
            _poll(client, timeout_s=60, retry_count=3, out=out)
        _assert_animation_finished(out)
        assert excinfo.value.kind is ErrorKind.TRANSPORT
        assert "connection refused" in str(excinfo.value)
        assert client.calls == 4
        assert time.monotonic() - started < 5

    def test_transient_failures_stay_below_warning(self, caplog):
        boom = requests.ConnectionError("flaky")
        client = ScriptedTaskClient([boom, boom, make_task("COMPLETED")])
        with caplog.at_level(logging.DEBUG, logger="photon_cli.jobs"):
            _poll(client, retry_count=3)
        failures = [r for r in caplog.records if "failed" in r.getMessage()]
        assert len(failures) == 2
        assert all(r.levelno < logging.WARNING for r in failures)

    def test_successful_fetch_resets_failure_count(self):
        boom = requests.ConnectionError("flaky")
        client = ScriptedTaskClient([
            boom, boom, boom,
            make_task("STARTED"),
            boom, boom, boom,
            make_task("COMPLETED"),
        ])
        task, _ = _poll(client, retry_count=3)
        assert task.state == "COMPLETED"
        assert client.calls == 8

    def test_two_failures_then_success(self):
        boom = requests.Timeout("slow")
        client = ScriptedTaskClient([boom, boom, make_task("COMPLETED")])
        task, _ = _poll(client, retry_count=3)
        assert task.state == "COMPLETED"

    def test_transport_error_keeps_last_seen_task(self, quota_error):
        seen = make_task("STARTED", steps=[make_step(0, "STARTED", errors=[quota_error])])
        client = ScriptedTaskClient([seen, requests.ConnectionError("gone")])
        with pytest.raises(TransportError) as excinfo:
            _poll(client, retry_count=1)
        assert excinfo.value.task is seen
        assert excinfo.value.api_errors == [quota_error]

    def test_timeout(self):
        client = ScriptedTaskClient([make_task("STARTED")])
        out = io.StringIO()
        with pytest.raises(TaskTimeoutError) as excinfo:
            _poll(client, timeout_s=0.05, out=out)
        _assert_animation_finished(out)
        assert excinfo.value.kind is ErrorKind.TIMEOUT
        assert str(excinfo.value) == "Timed out while waiting for task to complete"

    def test_api_error_aborts_without_retry(self):
        rejected = PhotonApiError(ApiError("TaskNotFound", "Task t1 not found"), 404)
        client = ScriptedTaskClient([rejected])
        with pytest.raises(TaskApiError) as excinfo:
            _poll(client, retry_count=3)
        assert excinfo.value.kind is ErrorKind.API
        assert "TaskNotFound" in str(excinfo.value)
        assert client.calls == 1

    def test_every_failure_is_a_task_poll_error(self):
        for script in ([make_task("ERROR")], [requests.ConnectionError("x")]):
            with pytest.raises(TaskPollError):
                _poll(ScriptedTaskClient(script), retry_count=0)

    def test_poll_task_uses_task_settings(self):
        client = ScriptedTaskClient([make_task("QUEUED"), make_task("COMPLETED")])
        settings = TaskSettings({"poll_interval": 0.01, "display_interval": 0.01, "timeout": 5})
        task = poll_task(client, "t1", task_settings=settings, out=io.StringIO())
        assert task.state == "COMPLETED"


class TestWaitOnTaskOperation:

    settings = TaskSettings({"poll_interval": 0.01, "display_interval": 0.01, "timeout": 5})

    def test_interactive_prints_sentence_after_cleared_line(self):
        client = ScriptedTaskClient([make_task("STARTED"), make_task("COMPLETED")])
        out = io.StringIO()
        entity_id = wait_on_task_operation(client, "t1", False, task_settings=self.settings, out=out)
        assert entity_id == "disk-1"
        assert out.getvalue().endswith(CLEAR_LINE + "CREATE_DISK completed for 'persistent-disk' entity disk-1\n")
        assert client.wait_calls == 0

    def test_scripting_prints_entity_id_only(self):
        client = ScriptedTaskClient([make_task("COMPLETED")])
        out = io.StringIO()
        entity_id = wait_on_task_operation(client, "t1", True, task_settings=self.settings, out=out)
        assert entity_id == "disk-1"
        assert out.getvalue() == "disk-1\n"
        assert client.wait_calls == 1

    def test_interactive_failure_propagates(self, quota_error):
        failed = make_task("ERROR", steps=[make_step(0, "ERROR", errors=[quota_error])])
        out = io.StringIO()
        with pytest.raises(TaskFailedError):
            wait_on_task_operation(ScriptedTaskClient([failed]), "t1", False, task_settings=self.settings, out=out)
        assert "completed for" not in out.getvalue()
        _assert_animation_finished(out)

    @pytest.mark.parametrize("scripting", [False, True])
    def test_rejected_request_is_a_task_api_error_in_both_modes(self, scripting):
        rejected = PhotonApiError(ApiError("TaskNotFound", "Task t1 not found"), 404)
        client = PhotonClient("https://photon.example.com")
        out = io.StringIO()
        with patch.object(PhotonClient, "get_task", side_effect=rejected) as get_task:
            with pytest.raises(TaskApiError) as excinfo:
                wait_on_task_operation(client, "t1", scripting, task_settings=self.settings, out=out)
        assert isinstance(excinfo.value, TaskPollError)
        assert excinfo.value.kind is ErrorKind.API
        assert "TaskNotFound" in str(excinfo.value)
        assert get_task.call_count == 1

    @pytest.mark.parametrize("scripting", [False, True])
    def test_unreachable_controller_fails_fast_in_both_modes(self, scripting):
        client = PhotonClient("https://photon.example.com")
        settings = TaskSettings({"poll_interval": 0.01, "display_interval": 0.01, "retry_count": 2, "timeout": 60})
        with patch.object(PhotonClient, "get_task", side_effect=requests.ConnectionError("refused")) as get_task:
            with pytest.raises(TransportError):
                wait_on_task_operation(client, "t1", scripting, task_settings=settings, out=io.StringIO())
        assert get_task.call_count == 3
