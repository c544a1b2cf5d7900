"""Shared fixtures for tmboard tests.

File handling in tests:
- Use tmp_path for any task-master base directory so tests are isolated.
- Use tmboard.io_utils read_json/write_json for consistent UTF-8 I/O.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from tmboard.io_utils import write_json
from tmboard.service import TaskService
from tmboard.store import FileTaskStore
from tmboard.tasks.model import Subtask, Task


def _make_task(
    id: int,
    status: str = "pending",
    dependencies: list[int] | None = None,
    title: str = "",
    subtasks: list[Subtask] | None = None,
) -> Task:
    return Task(
        id=id,
        title=title or f"Task {id}",
        status=status,
        dependencies=dependencies or [],
        subtasks=subtasks or [],
    )


def _make_subtask(
    id: int,
    status: str = "pending",
    children: list[Subtask] | None = None,
    title: str = "",
) -> Subtask:
    return Subtask(id=id, title=title or f"Sub {id}", status=status, subtasks=children or [])


def _raw_task(id: int, status: str = "pending", dependencies: list[int] | None = None,
             subtasks: list[dict[str, Any]] | None = None, **extra: Any) -> dict[str, Any]:
    """A task as task-master writes it to disk."""
    data: dict[str, Any] = {
        "id": id,
        "title": f"Task {id}",
        "description": "desc",
        "status": status,
        "priority": "medium",
        "dependencies": dependencies or [],
        "subtasks": subtasks or [],
    }
    data.update(extra)
    return data


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task


@pytest.fixture
def make_subtask():
    """Factory fixture that creates Subtask instances."""
    return _make_subtask


@pytest.fixture
def make_raw_task():
    """Factory fixture for on-disk task mappings."""
    return _raw_task


class TaskmasterDir:
    """A throwaway task-master base directory with hub and project files."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.base = root / ".taskmaster"
        self.hub_path = self.base / "tasks" / "tasks.json"
        self.projects_file = self.base / "projects.json"
        self._projects: dict[str, str] = {}

    def write_hub(self, projects: dict[str, list[dict[str, Any]]]) -> Path:
        self.hub_path.parent.mkdir(parents=True, exist_ok=True)
        write_json(self.hub_path, {
            name: {"tasks": tasks, "metadata": {}} for name, tasks in projects.items()
        })
        return self.hub_path

    def add_project(self, name: str, document: Any) -> Path:
        """Register *name* and write *document* as its tasks.json."""
        project_dir = self.root / name
        path = project_dir / ".taskmaster" / "tasks" / "tasks.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        write_json(path, document)
        self._projects[name] = str(project_dir)
        write_json(self.projects_file, self._projects)
        return path

    def store(self) -> FileTaskStore:
        return FileTaskStore(self.hub_path, self.projects_file)

    def service(self) -> TaskService:
        return TaskService(self.store())


@pytest.fixture
def taskmaster(tmp_path: Path) -> TaskmasterDir:
    base = TaskmasterDir(tmp_path)
    base.base.mkdir(parents=True, exist_ok=True)
    return base
