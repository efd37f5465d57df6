"""
Single-line progress display for a task being polled.

The poll loop publishes each fetched task into a ProgressState; a
ProgressAnimator thread repaints the line from it on its own interval until
the poll loop finishes the state and joins the thread.

    0h 0m 0s [  ] CREATE_HOST : QUEUED
    0h 0m 0s [= ] CREATE_HOST : CREATE_HOST | Step 1/1
    0h 0m 1s [==] CREATE_HOST : COMPLETED
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Optional, TextIO

from .config import DEFAULT_DISPLAY_INTERVAL_S
from .models import Step, Task, TaskState

LINE_WIDTH = 100
CLEAR_LINE = "\r" + " " * LINE_WIDTH + "\r"


def find_started_step(task: Optional[Task]) -> Optional[Step]:
    if task is None:
        return None
    for step in task.steps or []:
        if step.state == TaskState.STARTED:
            return step
    return None


def progress_cursor(task: Optional[Task]) -> int:
    step = find_started_step(task)
    if step is None:
        return 0
    return max(0, min(step.sequence + 1, len(task.steps)))


def get_progress_bar(cursor: int, length: int) -> str:
    return "=" * cursor + " " * (length - cursor)


def format_elapsed(elapsed_s: float) -> str:
    elapsed = int(elapsed_s)
    return "%2dh%2dm%2ds" % (elapsed // 3600, (elapsed // 60) % 60, elapsed % 60)


def format_progress_line(task: Task, elapsed_s: float) -> str:
    steps = task.steps or []
    step = find_started_step(task)
    if step is None:
        status = task.state
    else:
        status = f"{step.operation} | Step {step.sequence + 1}/{len(steps)}"
    bar = get_progress_bar(progress_cursor(task), len(steps) + 1)
    return f"{format_elapsed(elapsed_s)} [{bar}] {task.operation} : {status}"


class ProgressState:
    # Shared between one poll loop (writer) and one animator (reader).
    # Built fresh for every poll call.

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._task: Optional[Task] = None
        self.finished = threading.Event()

    @property
    def task(self) -> Optional[Task]:
        with self._lock:
            return self._task

    def publish(self, task: Task) -> None:
        with self._lock:
            self._task = task

    def finish(self) -> None:
        self.finished.set()


class ProgressAnimator(threading.Thread):

    def __init__(
        self,
        state: ProgressState,
        start: Optional[float] = None,
        interval: float = DEFAULT_DISPLAY_INTERVAL_S,
        out: Optional[TextIO] = None,
    ) -> None:
        super().__init__(name="task-progress", daemon=True)
        self.state = state
        self.start_time = time.monotonic() if start is None else start
        self.interval = interval
        self.out = out or sys.stdout

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def run(self) -> None:
        while not self.state.finished.is_set():
            task = self.state.task
            if task is not None:
                elapsed = time.monotonic() - self.start_time
                self._write(CLEAR_LINE + format_progress_line(task, elapsed))
            self.state.finished.wait(self.interval)
        self._write(CLEAR_LINE)

    def stop(self) -> None:
        # Returns only after the final clear line has been written.
        self.state.finish()
        if self.is_alive():
            self.join()
