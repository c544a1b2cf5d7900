"""Dependency graph engine: scheduling metadata, validation and repair.

Everything here is pure over in-memory task lists. Bad graph data (dangling
ids, self-edges, cycles) never raises on the read path: it degrades to
"not blocking" / "depth 0 contribution" and is reported only by
:func:`validate`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Protocol

from tmboard.tasks.model import ProjectTasks, Task, is_finished


# End-of-iterator marker for the explicit-stack walks.
_DONE = object()


class DepTask(Protocol):
    id: int
    dependencies: list[int]


# ── Enrichment ───────────────────────────────────────────────────────


def _invert(tasks: Iterable[Task]) -> dict[int, list[int]]:
    dependents: dict[int, list[int]] = {}
    for t in tasks:
        for dep in t.dependencies:
            dependents.setdefault(dep, []).append(t.id)
    return dependents


def compute_metadata(tasks: list[Task]) -> list[Task]:
    """Return copies of *tasks* with ``blocked_by``, ``dependents``,
    ``is_independent`` and ``depth`` filled in.

    The depth cache is shared by every root in this call; the cycle guard
    is a fresh set per root, so a cycle only flattens the branch that
    re-enters it. The walk uses an explicit stack, so long chains do not
    hit the recursion limit.
    """
    by_id = {t.id: t for t in tasks}
    dependents = _invert(tasks)
    depth_cache: dict[int, int] = {}

    def depth_of(root: int) -> int:
        visited: set[int] = set()
        # Frames: [task id, remaining dependencies, deepest dependency so far]
        stack: list[list] = []

        def enter(task_id: int) -> int | None:
            """Resolved depth, or ``None`` after pushing a frame for it."""
            if task_id in depth_cache:
                return depth_cache[task_id]
            if task_id in visited:
                return 0
            visited.add(task_id)
            task = by_id.get(task_id)
            if task is None or not task.dependencies:
                depth_cache[task_id] = 0
                return 0
            stack.append([task_id, iter(task.dependencies), 0])
            return None

        value = enter(root)
        while stack:
            frame = stack[-1]
            if value is not None:
                frame[2] = max(frame[2], value)
            dep = next(frame[1], _DONE)
            if dep is _DONE:
                stack.pop()
                value = depth_cache[frame[0]] = 1 + frame[2]
                continue
            value = enter(dep)
        return value

    enriched: list[Task] = []
    for t in tasks:
        blocked_by = [
            dep for dep in t.dependencies
            if dep in by_id and not is_finished(by_id[dep].status)
        ]
        enriched.append(
            replace(
                t,
                dependencies=list(t.dependencies),
                blocked_by=blocked_by,
                dependents=list(dependents.get(t.id, [])),
                is_independent=not t.dependencies,
                depth=depth_of(t.id),
            )
        )
    return enriched


def enrich_all_projects(
    projects: Mapping[str, ProjectTasks],
) -> dict[str, ProjectTasks]:
    """Apply :func:`compute_metadata` to every project independently."""
    result: dict[str, ProjectTasks] = {}
    for name, project in projects.items():
        if getattr(project, "tasks", None) is None:
            result[name] = project
            continue
        result[name] = ProjectTasks(
            tasks=compute_metadata(project.tasks),
            metadata=project.metadata,
        )
    return result


# ── Edge mutation ────────────────────────────────────────────────────


def _find(tasks: Iterable[DepTask], task_id: int) -> DepTask | None:
    for t in tasks:
        if t.id == task_id:
            return t
    return None


def add_edge(tasks: list[DepTask], task_id: int, depends_on: int) -> str | None:
    """Make *task_id* depend on *depends_on*, in place.

    Returns an error message if either task is missing, else ``None``.
    Adding an existing edge is a no-op.

    This helper does NOT reject self-edges or edges that close a cycle.
    Callers that take edges from users must check that themselves or run
    :func:`validate` afterwards.
    """
    task = _find(tasks, task_id)
    if task is None:
        return f"Task #{task_id} not found"
    if _find(tasks, depends_on) is None:
        return f"Dependency #{depends_on} not found"
    if depends_on not in task.dependencies:
        task.dependencies.append(depends_on)
    return None


def remove_edge(tasks: list[DepTask], task_id: int, depends_on: int) -> str | None:
    """Drop the edge *task_id* -> *depends_on*, in place. Missing edge is a no-op."""
    task = _find(tasks, task_id)
    if task is None:
        return f"Task #{task_id} not found"
    task.dependencies[:] = [d for d in task.dependencies if d != depends_on]
    return None


# ── Validation / repair ──────────────────────────────────────────────


@dataclass(frozen=True)
class GraphIssue:
    kind: str  # "missing" | "self" | "cycle"
    task_id: int
    dependency_id: int | None = None
    cycle: tuple[int, ...] = ()

    @property
    def message(self) -> str:
        if self.kind == "missing":
            return f"Task #{self.task_id} depends on non-existent #{self.dependency_id}"
        if self.kind == "self":
            return f"Task #{self.task_id} depends on itself"
        return "Cycle detected: " + " -> ".join(str(i) for i in self.cycle)

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationReport:
    issues: list[GraphIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    @property
    def messages(self) -> list[str]:
        return [i.message for i in self.issues]

    def of_kind(self, kind: str) -> list[GraphIssue]:
        return [i for i in self.issues if i.kind == kind]


def validate(tasks: list[DepTask]) -> ValidationReport:
    """Report dangling edges, self-edges and cycles.

    Cycle search is a DFS with an explicit in-stack set, restarted from
    every unvisited task. Each cycle is the traversal path at the moment it
    closed, not necessarily the shortest one. Self-edges and dangling edges
    are reported once, as their own kind, and are not followed.
    """
    ids = {t.id for t in tasks}
    by_id = {t.id: t for t in tasks}
    report = ValidationReport()

    for t in tasks:
        for dep in t.dependencies:
            if dep not in ids:
                report.issues.append(GraphIssue("missing", t.id, dep))
            elif dep == t.id:
                report.issues.append(GraphIssue("self", t.id, dep))

    visited: set[int] = set()
    in_stack: set[int] = set()

    for t in tasks:
        if t.id in visited:
            continue
        # path[i] is the task whose remaining dependencies are pending[i].
        path = [t.id]
        pending = [iter(by_id[t.id].dependencies)]
        visited.add(t.id)
        in_stack.add(t.id)
        while path:
            task_id = path[-1]
            dep = next(pending[-1], _DONE)
            if dep is _DONE:
                path.pop()
                pending.pop()
                in_stack.discard(task_id)
                continue
            if dep == task_id or dep not in by_id:
                continue
            if dep in in_stack:
                cycle = tuple(path + [dep])
                report.issues.append(GraphIssue("cycle", dep, cycle=cycle))
                continue
            if dep in visited:
                continue
            visited.add(dep)
            in_stack.add(dep)
            path.append(dep)
            pending.append(iter(by_id[dep].dependencies))
    return report


def repair(tasks: list[DepTask]) -> int:
    """Strip dangling and self edges in place; return how many were removed.

    Cycles between existing tasks are left alone.
    """
    ids = {t.id for t in tasks}
    removed = 0
    for t in tasks:
        kept = [d for d in t.dependencies if d in ids and d != t.id]
        removed += len(t.dependencies) - len(kept)
        t.dependencies[:] = kept
    return removed


def validate_dependencies(tasks: list[DepTask]) -> ValidationReport:
    return validate(tasks)


def fix_dependencies(tasks: list[DepTask]) -> int:
    return repair(tasks)
