"""Task, Subtask and ProjectTasks data models plus the status vocabulary.

Documents on disk use task-master's camelCase keys; attributes here are
snake_case. Keys the model does not know about are kept in ``extra`` so a
read-modify-write never drops payload written by other tools.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    VERIFIED = "verified"
    REVIEW = "review"
    PAUSED = "paused"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Plain string values: str-mixin enum members do not hash like their values.
FINISHED_STATUSES = frozenset({TaskStatus.DONE.value, TaskStatus.VERIFIED.value})

TASKMASTER_STATUSES = frozenset({
    TaskStatus.PENDING.value,
    TaskStatus.IN_PROGRESS.value,
    TaskStatus.DONE.value,
    TaskStatus.DEFERRED.value,
    TaskStatus.CANCELLED.value,
    TaskStatus.BLOCKED.value,
    TaskStatus.REVIEW.value,
})

# Dashboard-only extensions layered on top of task-master's set.
CUSTOM_STATUSES = frozenset({TaskStatus.PAUSED.value, TaskStatus.VERIFIED.value})

ALL_STATUSES = TASKMASTER_STATUSES | CUSTOM_STATUSES

# Conventional workflow. Not enforced: any status may be written.
TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in-progress"}),
    "in-progress": frozenset({"done", "paused"}),
    "paused": frozenset({"in-progress", "done", "pending"}),
    "done": frozenset({"verified", "in-progress", "pending"}),
    "verified": frozenset({"pending"}),
}


def enum_value(value: str | Enum) -> str:
    """Normalize an enum member or string (status, priority) to its string value."""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def is_finished(status: str | Enum) -> bool:
    return enum_value(status) in FINISHED_STATUSES


def is_taskmaster_status(status: str) -> bool:
    return status in TASKMASTER_STATUSES


def is_custom_status(status: str) -> bool:
    return status in CUSTOM_STATUSES


def is_known_status(status: str) -> bool:
    return is_taskmaster_status(status) or is_custom_status(status)


def is_conventional_transition(old: str, new: str) -> bool:
    """Return ``True`` if *old* -> *new* follows the usual board workflow."""
    if old == new:
        return True
    return new in TRANSITIONS.get(old, frozenset())


def validate_title(title: str | None) -> str | None:
    """Return an error message for an unusable title, else ``None``."""
    if title is not None and not title.strip():
        return "title cannot be empty"
    return None


def as_task_id(value: Any) -> Any:
    """Coerce ``"3"`` to ``3``; leave anything else (e.g. ``"3.1"``) as is."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


# ── Subtask ──────────────────────────────────────────────────────────


@dataclass
class Subtask:
    id: int
    title: str = ""
    status: str = TaskStatus.PENDING.value
    subtasks: list[Subtask] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Subtask:
        known = {"id", "title", "status", "subtasks"}
        return cls(
            id=as_task_id(data.get("id", 0)),
            title=data.get("title", "") or "",
            status=data.get("status", TaskStatus.PENDING.value) or TaskStatus.PENDING.value,
            subtasks=[cls.from_dict(s) for s in data.get("subtasks") or []],
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "title": self.title, "status": self.status}
        out.update(self.extra)
        if self.subtasks:
            out["subtasks"] = [s.to_dict() for s in self.subtasks]
        return out


# ── Task ─────────────────────────────────────────────────────────────

# (attribute, JSON key) for optional payload fields.
_OPTIONAL_FIELDS: tuple[tuple[str, str], ...] = (
    ("details", "details"),
    ("test_strategy", "testStrategy"),
    ("context_files", "contextFiles"),
    ("acceptance_criteria", "acceptanceCriteria"),
    ("start_commit", "startCommit"),
    ("branch", "branch"),
    ("pr_url", "prUrl"),
    ("chat_history", "chatHistory"),
)

# Recomputed on every read; dropped if a stale copy was persisted.
DERIVED_KEYS = frozenset({"blockedBy", "dependents", "isIndependent", "depth"})

_CORE_KEYS = frozenset(
    {"id", "title", "description", "status", "priority", "dependencies", "subtasks"}
)


@dataclass
class Task:
    id: int
    title: str = ""
    description: str = ""
    status: str = TaskStatus.PENDING.value
    priority: str = TaskPriority.MEDIUM.value
    dependencies: list[int] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)

    details: str | None = None
    test_strategy: str | None = None
    context_files: list[str] | None = None
    acceptance_criteria: list[str] | None = None
    start_commit: str | None = None
    branch: str | None = None
    pr_url: str | None = None
    chat_history: list[dict[str, Any]] | None = None

    extra: dict[str, Any] = field(default_factory=dict)

    # Derived scheduling metadata, filled in by tmboard.graph.compute_metadata.
    blocked_by: list[int] = field(default_factory=list)
    dependents: list[int] = field(default_factory=list)
    is_independent: bool = True
    depth: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        kwargs: dict[str, Any] = {
            "id": as_task_id(data.get("id", 0)),
            "title": data.get("title", "") or "",
            "description": data.get("description", "") or "",
            "status": data.get("status", TaskStatus.PENDING.value) or TaskStatus.PENDING.value,
            "priority": data.get("priority", TaskPriority.MEDIUM.value) or TaskPriority.MEDIUM.value,
            "dependencies": [as_task_id(d) for d in data.get("dependencies") or []],
            "subtasks": [Subtask.from_dict(s) for s in data.get("subtasks") or []],
        }
        optional_keys = set()
        for attr, key in _OPTIONAL_FIELDS:
            optional_keys.add(key)
            if key in data:
                kwargs[attr] = data[key]
        skip = _CORE_KEYS | DERIVED_KEYS | optional_keys
        kwargs["extra"] = {k: v for k, v in data.items() if k not in skip}
        task = cls(**kwargs)
        task.is_independent = not task.dependencies
        return task

    def to_dict(self, derived: bool = False) -> dict[str, Any]:
        """Serialize to the on-disk shape.

        With ``derived=True`` the scheduling metadata is included, which is
        what consumers of enriched tasks receive. It is never persisted.
        """
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dependencies": list(self.dependencies),
        }
        for attr, key in _OPTIONAL_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        out.update(self.extra)
        out["subtasks"] = [s.to_dict() for s in self.subtasks]
        if derived:
            out["blockedBy"] = list(self.blocked_by)
            out["dependents"] = list(self.dependents)
            out["isIndependent"] = self.is_independent
            out["depth"] = self.depth
        return out


@dataclass
class ProjectTasks:
    tasks: list[Task] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProjectTasks:
        return cls(
            tasks=[Task.from_dict(t) for t in data.get("tasks") or []],
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self, derived: bool = False) -> dict[str, Any]:
        return {
            "tasks": [t.to_dict(derived=derived) for t in self.tasks],
            "metadata": self.metadata,
        }

    def max_id(self) -> int:
        ids = [t.id for t in self.tasks if isinstance(t.id, int)]
        return max(ids, default=0)
