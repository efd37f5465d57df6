#!/usr/bin/env python3
"""
photon-cli task commands
------------------------
Inspect and follow asynchronous Photon Controller tasks.

  photon-cli task list [-e ENTITY_ID] [-k ENTITY_KIND] [-s STATE]
  photon-cli task show <task-id>
  photon-cli task monitor <task-id>

Use -n/--non-interactive for tab-separated, script friendly output.
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import List, Optional, Sequence

import requests

from .config import Settings
from .errors import PhotonApiError, TaskPollError
from .jobs import wait_for_task
from .log import setup_logging
from .models import ApiError, Task
from .photon_client import PhotonClient

logger = logging.getLogger(__name__)


# ------------------- Helper Functions -------------------
def die(msg: str, code: int = 1) -> int:
    print(f"[ERROR] {msg}", file=sys.stderr)
    return code


def timestamp_to_string(timestamp: int) -> str:
    # Task timestamps are ms since the epoch; zero or less means "not set".
    if timestamp <= 0:
        return "-"
    return datetime.fromtimestamp(timestamp // 1000).strftime("%Y-%m-%d %I:%M:%S.00")


def get_api_error_code(api_errors: List[ApiError], delim: str) -> str:
    return delim.join(e.code for e in api_errors)


def format_duration(duration_ms: int) -> str:
    seconds = duration_ms // 1000
    return "%02d:%02d:%02d" % (seconds // 3600, (seconds // 60) % 60, seconds % 60)


def print_table(rows: Sequence[Sequence[str]], indent: str = "") -> None:
    # Left-aligned columns, two spaces of padding.
    if not rows:
        return
    widths = [max(len(str(r[i])) for r in rows if i < len(r)) for i in range(max(len(r) for r in rows))]
    for r in rows:
        cells = [str(c).ljust(widths[i]) for i, c in enumerate(r)]
        print(indent + "  ".join(cells).rstrip())


# ------------------- Output -------------------
def print_task_list(tasks: List[Task], scripting: bool) -> None:
    if scripting:
        for t in tasks:
            print(f"{t.id}\t{t.state}\t{t.operation}\t{t.started_time}\t{t.end_time - t.started_time}")
        return

    print()
    for t in tasks:
        print_table([["Task", "Start Time", "Duration"],
                     [t.id, timestamp_to_string(t.started_time), format_duration(t.duration_ms)]])
        print(f"{t.operation}, {t.state}")
    if tasks:
        print("\nYou can run 'photon-cli task show <id>' for more information")
    print(f"Total: {len(tasks)}")


def print_task_steps(task: Task, scripting: bool) -> None:
    steps = sorted(task.steps or [], key=lambda s: s.sequence)
    if scripting:
        for s in steps:
            print(f"{s.sequence}\t{s.operation}\t{s.state}\t{s.started_time}\t{s.end_time}\t"
                  f"{get_api_error_code(s.errors, ',')}\t{get_api_error_code(s.warnings, ',')}")
        return

    print("Steps:")
    rows = [["Operation", "State", "StartedTime", "EndTime", "ErrorCode", "WarningCode"]]
    for s in steps:
        rows.append([s.operation, s.state, timestamp_to_string(s.started_time), timestamp_to_string(s.end_time),
                     get_api_error_code(s.errors, ", "), get_api_error_code(s.warnings, ", ")])
    print_table(rows, indent="  ")


def print_task(task: Task, scripting: bool) -> None:
    resource_properties = ""
    if task.resource_properties is not None:
        resource_properties = json.dumps(task.resource_properties)

    if scripting:
        print(f"{task.id}\t{task.state}\t{task.entity.id}\t{task.entity.kind}\t{task.operation}\t"
              f"{task.started_time}\t{task.end_time}\t{resource_properties}")
    else:
        rows = [
            ["Task:", task.id],
            ["Entity:", f"{task.entity.kind} {task.entity.id}"],
            ["State:", task.state],
            ["Operation:", task.operation],
            ["StartedTime:", timestamp_to_string(task.started_time)],
            ["EndTime:", timestamp_to_string(task.end_time)],
        ]
        if task.resource_properties is not None:
            rows.append(["ResourceProperties:", resource_properties])
        print_table(rows)
    print_task_steps(task, scripting)


# ------------------- Actions -------------------
def list_tasks(client: PhotonClient, args: argparse.Namespace, settings: Settings) -> None:
    tasks = client.list_tasks(entity_id=args.entity_id, entity_kind=args.entity_kind, state=args.state)
    print_task_list(tasks, args.non_interactive)


def show_task(client: PhotonClient, args: argparse.Namespace, settings: Settings) -> None:
    task = client.get_task(args.task_id)
    print_task(task, args.non_interactive)


def monitor_task(client: PhotonClient, args: argparse.Namespace, settings: Settings) -> None:
    task = wait_for_task(client, args.task_id, args.non_interactive, task_settings=settings.tasks)
    if args.non_interactive:
        print(f"{task.id}\t{task.state}\t{task.entity.id}\t{task.entity.kind}")
    else:
        print_table([
            ["Task:", task.id],
            ["Entity:", f"{task.entity.kind} {task.entity.id}"],
            ["State:", task.state],
        ])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="photon-cli", description="Command line interface for Photon Controller")
    parser.add_argument("-n", "--non-interactive", action="store_true",
                        help="trigger for non-interactive mode (scripting)")
    parser.add_argument("-l", "--log-file", help="write debug logs to this file")
    parser.add_argument("--settings", default="settings.yaml", help="path to the YAML settings file")

    commands = parser.add_subparsers(dest="command", required=True)
    task = commands.add_parser("task", help="options for task")
    task_commands = task.add_subparsers(dest="subcommand", required=True)

    p = task_commands.add_parser("list", help="list all tasks")
    p.add_argument("-e", "--entity-id", dest="entity_id", help="specify entity ID for filtering")
    p.add_argument("-k", "--entity-kind", dest="entity_kind",
                   help="specify entity kind for filtering (tenant, project, vm etc)")
    p.add_argument("-s", "--state", help="specify task state for filtering")
    p.set_defaults(action=list_tasks)

    p = task_commands.add_parser("show", help="show task info with specified ID")
    p.add_argument("task_id", metavar="task-id")
    p.set_defaults(action=show_task)

    p = task_commands.add_parser("monitor", help="monitor task progress with specified ID")
    p.add_argument("task_id", metavar="task-id")
    p.set_defaults(action=monitor_task)
    return parser


# ------------------- Main Program -------------------
def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_file=args.log_file)

    try:
        settings = Settings(args.settings)
        client = PhotonClient.from_settings(settings)
        if not args.non_interactive:
            print(f"Using target '{client.endpoint}'")
        args.action(client, args, settings)
    except (TaskPollError, PhotonApiError, requests.RequestException, ValueError) as ex:
        logger.debug("Command failed", exc_info=True)
        return die(str(ex))
    except KeyboardInterrupt:
        print("\nCancelled by user.")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
