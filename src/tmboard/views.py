"""Read-side scheduling projections over enriched tasks.

These consume the output of :func:`tmboard.graph.compute_metadata` and are
never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass

from tmboard.tasks.model import Task, TaskStatus, is_finished

_DONE = object()


def longest_chain(tasks: list[Task]) -> list[int]:
    """Return the critical path: the longest dependency chain, root first.

    Ties go to the first chain found in task order. A cycle is cut where
    the walk re-enters a task already visited from the current root, so
    the chain can end on a repeated id.
    """
    by_id = {t.id: t for t in tasks}
    memo: dict[int, list[int]] = {}

    def chain_to(root: int) -> list[int]:
        visited: set[int] = set()
        # Frames: [task id, remaining dependencies, longest dependency chain so far]
        stack: list[list] = []

        def enter(task_id: int) -> list[int] | None:
            if task_id in memo:
                return memo[task_id]
            if task_id in visited:
                return [task_id]
            visited.add(task_id)
            task = by_id.get(task_id)
            if task is None or not task.dependencies:
                memo[task_id] = [task_id]
                return memo[task_id]
            stack.append([task_id, iter(task.dependencies), []])
            return None

        chain = enter(root)
        while stack:
            frame = stack[-1]
            if chain is not None and len(chain) > len(frame[2]):
                frame[2] = chain
            dep = next(frame[1], _DONE)
            if dep is _DONE:
                stack.pop()
                chain = memo[frame[0]] = frame[2] + [frame[0]]
                continue
            chain = enter(dep)
        return chain

    longest: list[int] = []
    for t in tasks:
        path = chain_to(t.id)
        if len(path) > len(longest):
            longest = path
    return longest


def critical_path(tasks: list[Task]) -> list[Task]:
    """Tasks on :func:`longest_chain`, in chain order, each listed once."""
    by_id = {t.id: t for t in tasks}
    seen: set[int] = set()
    path: list[Task] = []
    for task_id in longest_chain(tasks):
        if task_id in by_id and task_id not in seen:
            seen.add(task_id)
            path.append(by_id[task_id])
    return path


def group_by_depth(tasks: list[Task]) -> list[tuple[int, list[Task]]]:
    """Partition tasks into phases by ``depth``, ascending."""
    phases: dict[int, list[Task]] = {}
    for t in tasks:
        phases.setdefault(t.depth, []).append(t)
    return sorted(phases.items(), key=lambda item: item[0])


@dataclass
class Phase:
    depth: int
    tasks: list[Task]
    state: str


def phase_state(phase_tasks: list[Task]) -> str:
    """``done`` / ``active`` / ``waiting`` / ``idle`` summary of one phase."""
    if phase_tasks and all(is_finished(t.status) for t in phase_tasks):
        return "done"
    if any(t.status == TaskStatus.IN_PROGRESS.value for t in phase_tasks):
        return "active"
    if phase_tasks and all(t.blocked_by for t in phase_tasks):
        return "waiting"
    return "idle"


def phases(tasks: list[Task]) -> list[Phase]:
    return [Phase(depth, group, phase_state(group)) for depth, group in group_by_depth(tasks)]


def ready_tasks(tasks: list[Task]) -> list[Task]:
    """Pending tasks with nothing blocking them, in input order."""
    return [
        t for t in tasks
        if t.status == TaskStatus.PENDING.value and not t.blocked_by
    ]
