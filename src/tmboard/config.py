"""Configuration defaults, env vars, and runtime options for tmboard."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


VERSION = "0.3.0"

# Layout of a task-master project directory.
PROJECT_TASKS_RELPATH = Path(".taskmaster") / "tasks" / "tasks.json"


def default_taskmaster_base() -> Path:
    """``$TASKMASTER_BASE`` or ``../.taskmaster`` relative to the cwd."""
    env = os.environ.get("TASKMASTER_BASE")
    if env:
        return Path(env)
    return Path.cwd().parent / ".taskmaster"


@dataclass
class Config:
    """Runtime configuration for the board and its task store."""

    # Store
    taskmaster_base: str = ""

    # Misc
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.taskmaster_base:
            self.taskmaster_base = str(default_taskmaster_base())

    @property
    def projects_file_path(self) -> Path:
        return Path(self.taskmaster_base) / "projects.json"

    @property
    def hub_tasks_path(self) -> Path:
        return Path(self.taskmaster_base) / "tasks" / "tasks.json"


def project_tasks_path(project_dir: str | Path) -> Path:
    """Return the per-project ``tasks.json`` path for *project_dir*."""
    return Path(project_dir) / PROJECT_TASKS_RELPATH
