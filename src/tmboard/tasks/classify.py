"""Map a task's raw status and blocking state onto a board lane."""

from __future__ import annotations

from tmboard.tasks.model import Task, is_finished

LANES: tuple[str, ...] = ("pending", "in-progress", "waiting", "done", "verified", "deferred")

# Statuses that render in another status's lane. Unlisted statuses keep their own.
STATUS_LANES: dict[str, str] = {
    "paused": "in-progress",
    "blocked": "waiting",
    "review": "done",
    "deferred": "deferred",
    "cancelled": "deferred",
}


def classify(task: Task) -> str:
    """Return the lane for *task*.

    Unfinished dependencies put a task in ``waiting`` whatever its status,
    unless the task itself is already finished.
    """
    if task.blocked_by and not is_finished(task.status):
        return "waiting"
    return STATUS_LANES.get(task.status, task.status)


def group_by_lane(tasks: list[Task]) -> dict[str, list[Task]]:
    """Bucket tasks by lane; known lanes first in board order, then any others."""
    lanes: dict[str, list[Task]] = {lane: [] for lane in LANES}
    for task in tasks:
        lanes.setdefault(classify(task), []).append(task)
    return lanes
