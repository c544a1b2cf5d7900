"""Task lifecycle service: the only code path that mutates the task store.

Every operation is a full-snapshot read-modify-write of the owning
document. "Not found" (project, task, subtask) is an expected outcome of
stale references and returns ``False`` / ``None``. Store failures raise
:class:`tmboard.errors.StoreError` and leave nothing half-written.

There is no locking: two writers on the same document race and the last
write wins. Batch callers should drive mutations one at a time.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable

from tmboard import log
from tmboard.graph import (
    ValidationReport,
    add_edge,
    compute_metadata,
    enrich_all_projects,
    remove_edge,
    repair,
    validate,
)
from tmboard.store import ProjectRef, TaskRef, TaskStore
from tmboard.tasks import tree
from tmboard.tasks.model import (
    DERIVED_KEYS,
    ProjectTasks,
    Subtask,
    Task,
    TaskPriority,
    TaskStatus,
    as_task_id,
    enum_value,
    is_conventional_transition,
    is_known_status,
)

# Task attributes update_fields() may overwrite.
EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "context_files",
    "acceptance_criteria",
    "start_commit",
    "branch",
    "pr_url",
})


class TaskService:
    """Task and subtask CRUD, status transitions and dependency edits."""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    # ── reads ────────────────────────────────────────────────────

    def get_projects(self) -> dict[str, str]:
        return self._store.get_projects()

    def get_all_tasks(self) -> dict[str, ProjectTasks]:
        return self._store.get_all_tasks()

    def get_enriched_tasks(self) -> dict[str, ProjectTasks]:
        """All projects with scheduling metadata recomputed."""
        return enrich_all_projects(self._store.get_all_tasks())

    def get_project_tasks(self, project: str) -> list[Task] | None:
        """Enriched tasks of one project, ``None`` if the project is unknown."""
        data = self._store.get_all_tasks().get(project)
        if data is None:
            return None
        return compute_metadata(data.tasks)

    # ── helpers ──────────────────────────────────────────────────

    def _commit(self, ref: TaskRef, task: Task) -> None:
        """Write the keys *task* changed back into its raw mapping and persist.

        Keys the edit did not touch keep their on-disk spelling, and keys the
        file never had are not filled in with defaults. Stale derived
        metadata is dropped.
        """
        before = Task.from_dict(ref.task).to_dict()
        after = task.to_dict()
        for key, value in after.items():
            if before.get(key) != value:
                ref.task[key] = value
        for key in (before.keys() - after.keys()) | DERIVED_KEYS:
            ref.task.pop(key, None)
        self._store.save(ref.locator, ref.document)

    def _load(self, project: str, task_id: int) -> tuple[TaskRef, Task] | None:
        ref = self._store.find_task(project, task_id)
        if ref is None:
            log.debug(f"Task {log.task_ref(project, task_id)} not found")
            return None
        return ref, Task.from_dict(ref.task)

    # ── task status & fields ─────────────────────────────────────

    def update_status(self, project: str, task_id: int, status: str | Enum) -> bool:
        """Overwrite the task's status. Any value is accepted."""
        loaded = self._load(project, task_id)
        if loaded is None:
            return False
        ref, task = loaded
        new = enum_value(status)
        if not is_known_status(new):
            log.warn(f"Task {log.task_ref(project, task_id)}: unknown status '{new}' written as-is")
        elif not is_conventional_transition(task.status, new):
            log.debug(f"Task {log.task_ref(project, task_id)}: unconventional transition {task.status} -> {new}")
        task.status = new
        self._commit(ref, task)
        return True

    def update_fields(self, project: str, task_id: int, **fields: Any) -> bool:
        """Overwrite only the editable fields that were passed.

        Passing ``None`` for a field is the same as not passing it.
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise TypeError(f"Not editable: {', '.join(sorted(unknown))}")
        loaded = self._load(project, task_id)
        if loaded is None:
            return False
        ref, task = loaded
        for attr, value in fields.items():
            if value is not None:
                setattr(task, attr, value)
        self._commit(ref, task)
        return True

    # ── subtasks ─────────────────────────────────────────────────

    def add_subtask(
        self,
        project: str,
        task_id: int,
        title: str,
        parent_subtask_id: int | None = None,
    ) -> Subtask | None:
        """Append a pending subtask, at top level or under *parent_subtask_id*.

        The new id is one past the largest id in the subtree it joins, so
        ids repeat across sibling subtrees.
        """
        loaded = self._load(project, task_id)
        if loaded is None:
            return None
        ref, task = loaded

        if parent_subtask_id is not None:
            parent = tree.find(task.subtasks, parent_subtask_id)
            if parent is None:
                log.debug(f"Subtask {log.task_ref(project, task_id, parent_subtask_id)} not found")
                return None
            target = parent.subtasks
        else:
            target = task.subtasks

        subtask = Subtask(id=tree.max_id(target) + 1, title=title)
        target.append(subtask)
        self._commit(ref, task)
        return subtask

    def update_subtask_status(
        self, project: str, task_id: int, subtask_id: int, status: str | Enum
    ) -> bool:
        """Set a subtask's status at any depth.

        When that leaves every subtask finished and the task is in progress,
        the task itself becomes ``done`` in the same write. Tasks in any
        other status are left alone.
        """
        loaded = self._load(project, task_id)
        if loaded is None:
            return False
        ref, task = loaded
        node = tree.find(task.subtasks, subtask_id)
        if node is None:
            log.debug(f"Subtask {log.task_ref(project, task_id, subtask_id)} not found")
            return False
        node.status = enum_value(status)

        if (
            task.subtasks
            and tree.all_done(task.subtasks)
            and task.status == TaskStatus.IN_PROGRESS.value
        ):
            task.status = TaskStatus.DONE.value
            log.info(f"Task {log.task_ref(project, task_id)}: all subtasks finished, marked done")

        self._commit(ref, task)
        return True

    def delete_subtask(self, project: str, task_id: int, subtask_id: int) -> bool:
        """Remove a subtask and everything nested under it."""
        loaded = self._load(project, task_id)
        if loaded is None:
            return False
        ref, task = loaded
        slot = tree.find_parent_slot(task.subtasks, subtask_id)
        if slot is None:
            log.debug(f"Subtask {log.task_ref(project, task_id, subtask_id)} not found")
            return False
        container, idx = slot
        del container[idx]
        self._commit(ref, task)
        return True

    # ── tasks ────────────────────────────────────────────────────

    def add_task(
        self,
        project: str,
        title: str,
        description: str = "",
        priority: str | Enum = TaskPriority.MEDIUM,
        subtasks: Iterable[str] = (),
        context_files: Iterable[str] = (),
    ) -> Task | None:
        """Append a new pending task with no dependencies.

        Subtask titles become subtasks numbered from 1.
        """
        ref = self._store.load_project(project)
        if ref is None:
            log.debug(f"Project {project} not found")
            return None

        task = Task(
            id=ProjectTasks.from_dict(ref.container).max_id() + 1,
            title=title,
            description=description,
            status=TaskStatus.PENDING.value,
            priority=enum_value(priority),
            dependencies=[],
            subtasks=[Subtask(id=i, title=s) for i, s in enumerate(subtasks, start=1)],
            context_files=list(context_files),
        )
        ref.tasks.append(task.to_dict())
        self._store.save(ref.locator, ref.document)
        return task

    def delete_task(self, project: str, task_id: int) -> bool:
        """Remove a task. Edges pointing at it are left for validation to report."""
        ref = self._store.find_task(project, task_id)
        if ref is None:
            return False
        for idx, raw in enumerate(ref.siblings):
            if raw is ref.task:
                del ref.siblings[idx]
                break
        self._store.save(ref.locator, ref.document)
        return True

    # ── chat ─────────────────────────────────────────────────────

    def add_chat_message(self, project: str, task_id: int, message: dict[str, Any]) -> bool:
        loaded = self._load(project, task_id)
        if loaded is None:
            return False
        ref, task = loaded
        if task.chat_history is None:
            task.chat_history = []
        task.chat_history.append(dict(message))
        self._commit(ref, task)
        return True

    def get_chat_history(self, project: str, task_id: int) -> list[dict[str, Any]]:
        loaded = self._load(project, task_id)
        if loaded is None:
            return []
        return loaded[1].chat_history or []

    # ── dependencies ─────────────────────────────────────────────

    def _parse(self, ref: ProjectRef) -> list[Task]:
        return [Task.from_dict(raw) for raw in ref.tasks]

    def _sync_dependencies(self, ref: ProjectRef, tasks: list[Task]) -> None:
        for raw, task in zip(ref.tasks, tasks):
            if [as_task_id(d) for d in raw.get("dependencies") or []] != task.dependencies:
                raw["dependencies"] = list(task.dependencies)

    def add_dependency(self, project: str, task_id: int, depends_on: int) -> bool:
        """Make *task_id* depend on *depends_on* and persist.

        Rejects a task depending on itself; does not look for longer cycles.
        """
        if task_id == depends_on:
            log.warn(f"Task {log.task_ref(project, task_id)} cannot depend on itself")
            return False
        ref = self._store.load_project(project)
        if ref is None:
            return False
        tasks = self._parse(ref)
        err = add_edge(tasks, task_id, depends_on)
        if err:
            log.debug(f"{project}: {err}")
            return False
        self._sync_dependencies(ref, tasks)
        self._store.save(ref.locator, ref.document)
        return True

    def remove_dependency(self, project: str, task_id: int, depends_on: int) -> bool:
        ref = self._store.load_project(project)
        if ref is None:
            return False
        tasks = self._parse(ref)
        err = remove_edge(tasks, task_id, depends_on)
        if err:
            log.debug(f"{project}: {err}")
            return False
        self._sync_dependencies(ref, tasks)
        self._store.save(ref.locator, ref.document)
        return True

    def validate_dependencies(self, project: str) -> ValidationReport | None:
        ref = self._store.load_project(project)
        if ref is None:
            return None
        return validate(self._parse(ref))

    def fix_dependencies(self, project: str) -> int | None:
        """Strip dangling and self edges; returns how many were removed."""
        ref = self._store.load_project(project)
        if ref is None:
            return None
        tasks = self._parse(ref)
        fixed = repair(tasks)
        if fixed > 0:
            self._sync_dependencies(ref, tasks)
            self._store.save(ref.locator, ref.document)
            log.debug(f"{project}: removed {fixed} invalid dependency edge(s)")
        return fixed
