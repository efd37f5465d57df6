from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class TaskState:
    QUEUED = "QUEUED"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    TERMINAL = (COMPLETED, ERROR)


@dataclass
class ApiError:
    code: str = ""
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    http_status_code: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ApiError":
        return cls(
            code=d.get("code") or "",
            message=d.get("message") or "",
            data=d.get("data") or {},
            http_status_code=d.get("httpStatusCode") or 0,
        )

    def __str__(self) -> str:
        if self.code:
            return f"{self.code}: {self.message}"
        return self.message

    __repr__ = __str__


@dataclass
class Entity:
    id: str = ""
    kind: str = ""

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "Entity":
        d = d or {}
        return cls(id=d.get("id") or "", kind=d.get("kind") or "")


@dataclass
class Step:
    sequence: int = 0
    operation: str = ""
    state: str = ""
    started_time: int = 0
    end_time: int = 0
    errors: List[ApiError] = field(default_factory=list)
    warnings: List[ApiError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Step":
        return cls(
            sequence=d.get("sequence") or 0,
            operation=d.get("operation") or "",
            state=d.get("state") or "",
            started_time=d.get("startedTime") or 0,
            end_time=d.get("endTime") or 0,
            errors=[ApiError.from_dict(e) for e in d.get("errors") or []],
            warnings=[ApiError.from_dict(w) for w in d.get("warnings") or []],
        )


@dataclass
class Task:
    # Server-side asynchronous operation. The client never mutates one; it re-fetches.
    id: str = ""
    operation: str = ""
    state: str = ""
    entity: Entity = field(default_factory=Entity)
    steps: List[Step] = field(default_factory=list)
    started_time: int = 0
    end_time: int = 0
    resource_properties: Any = None
    self_link: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Task":
        return cls(
            id=d.get("id") or "",
            operation=d.get("operation") or "",
            state=d.get("state") or "",
            entity=Entity.from_dict(d.get("entity")),
            steps=[Step.from_dict(s) for s in d.get("steps") or []],
            started_time=d.get("startedTime") or 0,
            end_time=d.get("endTime") or 0,
            resource_properties=d.get("resourceProperties"),
            self_link=d.get("selfLink") or "",
        )

    @property
    def duration_ms(self) -> int:
        duration = self.end_time - self.started_time
        return duration if duration > 0 else 0

    @property
    def is_terminal(self) -> bool:
        return self.state in TaskState.TERMINAL
