"""Task store: where task documents live and how they are read and written.

Two kinds of file hold tasks:

* the hub file ``<base>/tasks/tasks.json``: ``{project: {tasks, metadata}}``;
* a per-project file ``<dir>/.taskmaster/tasks/tasks.json`` for every entry
  of ``<base>/projects.json``, in one of three shapes::

      {"default": {"tasks": [...], "metadata": {...}}}
      {"tasks": [...], "metadata": {...}}
      {"<tag>": {"tasks": [...], "metadata": {...}}}     # single tag key

A project listed in the hub is served from the hub. Callers only ever see
the normalized ``{tasks, metadata}`` container; the raw document is handed
back untouched so a write preserves its shape.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tmboard import log
from tmboard.config import Config, project_tasks_path
from tmboard.errors import StoreError
from tmboard.io_utils import read_json, write_json
from tmboard.tasks.model import ProjectTasks, as_task_id


@dataclass
class ProjectRef:
    """A project's live task container inside its raw document."""

    document: dict[str, Any]
    container: dict[str, Any]
    locator: Path

    @property
    def tasks(self) -> list[dict[str, Any]]:
        return self.container.setdefault("tasks", [])

    @property
    def metadata(self) -> dict[str, Any]:
        return self.container.get("metadata") or {}


@dataclass
class TaskRef:
    """One raw task mapping together with the document that owns it."""

    document: dict[str, Any]
    task: dict[str, Any]
    locator: Path
    siblings: list[dict[str, Any]] = field(default_factory=list)


def extract_container(document: Any) -> dict[str, Any] | None:
    """Return the ``{tasks, metadata}`` mapping inside *document*, if any."""
    if not isinstance(document, dict):
        return None
    default = document.get("default")
    if isinstance(default, dict) and isinstance(default.get("tasks"), list):
        return default
    if isinstance(document.get("tasks"), list):
        return document
    if len(document) == 1:
        (only,) = document.values()
        if isinstance(only, dict) and isinstance(only.get("tasks"), list):
            return only
    return None


class TaskStore(ABC):
    """Key-value view over task documents. Subclasses implement the I/O."""

    @abstractmethod
    def get_projects(self) -> dict[str, str]:
        """Return ``{project name: project directory}``."""
        ...

    @abstractmethod
    def get_all_tasks(self) -> dict[str, ProjectTasks]:
        """Return every readable project's tasks. Never raises on bad files."""
        ...

    @abstractmethod
    def load_project(self, project: str) -> ProjectRef | None:
        """Return the live container for *project*, or ``None`` if unknown.

        Raises :class:`StoreError` if the document exists but cannot be read.
        """
        ...

    @abstractmethod
    def save(self, locator: Path, document: dict[str, Any]) -> None:
        """Persist *document* at *locator*. Raises :class:`StoreError`."""
        ...

    def find_task(self, project: str, task_id: int) -> TaskRef | None:
        ref = self.load_project(project)
        if ref is None:
            return None
        for raw in ref.tasks:
            if as_task_id(raw.get("id")) == task_id:
                return TaskRef(ref.document, raw, ref.locator, ref.tasks)
        return None


class FileTaskStore(TaskStore):
    """JSON files under a task-master base directory."""

    def __init__(self, hub_path: Path | str, projects_file: Path | str) -> None:
        self.hub_path = Path(hub_path)
        self.projects_file = Path(projects_file)

    @classmethod
    def from_config(cls, cfg: Config) -> FileTaskStore:
        return cls(cfg.hub_tasks_path, cfg.projects_file_path)

    # ── raw I/O ──────────────────────────────────────────────────

    def _read(self, path: Path) -> Any:
        """Parsed JSON at *path*, ``None`` if the file does not exist."""
        if not path.is_file():
            return None
        try:
            return read_json(path)
        except (OSError, ValueError) as exc:
            raise StoreError(str(exc), path) from exc

    def _read_quiet(self, path: Path) -> Any:
        try:
            return self._read(path)
        except StoreError as exc:
            log.warn(f"Skipping unreadable task file {path}: {exc}")
            return None

    def save(self, locator: Path, document: dict[str, Any]) -> None:
        try:
            locator.parent.mkdir(parents=True, exist_ok=True)
            write_json(locator, document)
        except OSError as exc:
            raise StoreError(str(exc), locator) from exc
        log.debug(f"Saved {locator}")

    # ── queries ──────────────────────────────────────────────────

    def get_projects(self) -> dict[str, str]:
        data = self._read_quiet(self.projects_file)
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _hub_projects(self, hub: Any) -> dict[str, dict[str, Any]]:
        if not isinstance(hub, dict):
            return {}
        return {
            name: value for name, value in hub.items()
            if isinstance(value, dict) and isinstance(value.get("tasks"), list)
        }

    def get_all_tasks(self) -> dict[str, ProjectTasks]:
        result: dict[str, ProjectTasks] = {}
        for name, container in self._hub_projects(self._read_quiet(self.hub_path)).items():
            result[name] = ProjectTasks.from_dict(container)

        for name, directory in self.get_projects().items():
            if name in result:
                continue
            container = extract_container(self._read_quiet(project_tasks_path(directory)))
            if container is not None:
                result[name] = ProjectTasks.from_dict(container)
        return result

    def load_project(self, project: str) -> ProjectRef | None:
        hub = self._read(self.hub_path)
        container = self._hub_projects(hub).get(project)
        if container is not None:
            return ProjectRef(hub, container, self.hub_path)

        directory = self.get_projects().get(project)
        if not directory:
            return None
        path = project_tasks_path(directory)
        document = self._read(path)
        container = extract_container(document)
        if container is None:
            return None
        return ProjectRef(document, container, path)
