"""tmboard CLI: operator surface over the task lifecycle service.

Installed as ``tmboard`` console_script via pip.
"""

from __future__ import annotations

import json
import sys

import click
from rich.markup import escape

from tmboard import __version__
from tmboard import log as glog
from tmboard.config import Config
from tmboard.errors import StoreError, describe_store_error
from tmboard.service import TaskService
from tmboard.store import FileTaskStore
from tmboard.tasks import tree
from tmboard.tasks.classify import group_by_lane
from tmboard.tasks.model import ALL_STATUSES, Task, TaskPriority, validate_title
from tmboard.views import critical_path, phases, ready_tasks


# ── Custom Click group that reports store failures ───────────────────

class TmboardGroup(click.Group):
    """Turn :class:`StoreError` from any subcommand into a one-line error."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except StoreError as exc:
            glog.error(describe_store_error(exc))
            sys.exit(1)


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

LANE_STYLES: dict[str, str] = {
    "pending": "white",
    "in-progress": "green",
    "waiting": "red",
    "done": "cyan",
    "verified": "magenta",
    "deferred": "dim",
}

PHASE_STYLES: dict[str, str] = {
    "done": "cyan",
    "active": "green",
    "waiting": "red",
    "idle": "white",
}


def _service(ctx: click.Context) -> TaskService:
    return ctx.find_root().obj


def _nothing_changed(what: str) -> None:
    glog.nothing_changed(what)
    sys.exit(1)


def _project_tasks(ctx: click.Context, project: str) -> list[Task]:
    tasks = _service(ctx).get_project_tasks(project)
    if tasks is None:
        glog.error(f"Unknown project: {project}")
        sys.exit(1)
    return tasks


def _task_line(task: Task) -> str:
    line = f"  #{task.id} {escape(task.title)} [dim]({task.status})[/dim]"
    if task.subtasks:
        done, total = tree.progress(task.subtasks)
        line += f" [dim]{done}/{total}[/dim]"
    if task.blocked_by:
        line += f" [red]waits on {', '.join(f'#{d}' for d in task.blocked_by)}[/red]"
    return line


@click.group(cls=TmboardGroup, context_settings=CONTEXT_SETTINGS)
@click.option("--base", "taskmaster_base", default="", envvar="TASKMASTER_BASE",
              help="task-master base directory (default: ../.taskmaster)")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="tmboard")
@click.pass_context
def main(ctx: click.Context, taskmaster_base: str, verbose: bool) -> None:
    """tmboard: task board for AI coding-agent projects.

    Reads task-master task files for every registered project, computes
    dependency metadata, and edits tasks in place.

    \b
    EXAMPLES:
      tmboard board                         # every project, by lane
      tmboard phases api                    # dependency phases of "api"
      tmboard status api 4 in-progress      # move task 4
      tmboard subtask add api 4 "Write tests"
      tmboard deps validate api             # report broken edges and cycles
    """
    glog.set_verbose(verbose)
    cfg = Config(taskmaster_base=taskmaster_base, verbose=verbose)
    glog.debug(f"Task store: {cfg.taskmaster_base}")
    ctx.obj = TaskService(FileTaskStore.from_config(cfg))


# ── Read commands ────────────────────────────────────────────────────


@main.command()
@click.pass_context
def projects(ctx: click.Context) -> None:
    """List registered projects and their task counts."""
    svc = _service(ctx)
    dirs = svc.get_projects()
    all_tasks = svc.get_all_tasks()
    names = sorted(set(dirs) | set(all_tasks))
    if not names:
        glog.warn("No projects found.")
        return
    for name in names:
        count = len(all_tasks[name].tasks) if name in all_tasks else 0
        where = dirs.get(name, "hub")
        glog.console.print(f"[bold]{name}[/bold] [dim]{where}[/dim] {count} task(s)")


@main.command()
@click.argument("project", required=False)
@click.option("--json", "as_json", is_flag=True, help="Print enriched tasks as JSON instead")
@click.pass_context
def board(ctx: click.Context, project: str | None, as_json: bool) -> None:
    """Show tasks grouped into board lanes."""
    enriched = _service(ctx).get_enriched_tasks()
    if project is not None:
        if project not in enriched:
            glog.error(f"Unknown project: {project}")
            sys.exit(1)
        enriched = {project: enriched[project]}

    if as_json:
        click.echo(json.dumps(
            {name: data.to_dict(derived=True) for name, data in enriched.items()},
            indent=2,
            ensure_ascii=False,
        ))
        return

    for name, data in enriched.items():
        glog.console.print(f"[bold]============ {name} ============[/bold]")
        lanes = group_by_lane(data.tasks)
        for lane, tasks in lanes.items():
            if not tasks:
                continue
            style = LANE_STYLES.get(lane, "white")
            glog.console.print(f"[{style}]{lane.upper()}[/{style}] ({len(tasks)})")
            for task in tasks:
                glog.console.print(_task_line(task))


@main.command("phases")
@click.argument("project")
@click.pass_context
def phases_cmd(ctx: click.Context, project: str) -> None:
    """Show tasks grouped by dependency depth."""
    for phase in phases(_project_tasks(ctx, project)):
        style = PHASE_STYLES.get(phase.state, "white")
        header = f"[{style}]PHASE {phase.depth}[/{style}] ({len(phase.tasks)}) {phase.state}"
        if phase.depth > 0:
            header += f" [dim]requires phase {phase.depth - 1}[/dim]"
        glog.console.print(header)
        for task in phase.tasks:
            glog.console.print(_task_line(task))


@main.command("critical-path")
@click.argument("project")
@click.pass_context
def critical_path_cmd(ctx: click.Context, project: str) -> None:
    """Show the longest dependency chain."""
    path = critical_path(_project_tasks(ctx, project))
    if not path:
        glog.info("No tasks.")
        return
    glog.console.print(" -> ".join(f"#{t.id}" for t in path))
    for task in path:
        glog.console.print(_task_line(task))


@main.command()
@click.argument("project")
@click.pass_context
def ready(ctx: click.Context, project: str) -> None:
    """List pending tasks whose dependencies are all finished."""
    tasks = ready_tasks(_project_tasks(ctx, project))
    if not tasks:
        glog.info("Nothing is ready.")
        return
    for task in tasks:
        glog.console.print(_task_line(task))


# ── Task mutations ───────────────────────────────────────────────────


@main.command()
@click.argument("project")
@click.argument("task_id", type=int)
@click.argument("status")
@click.pass_context
def status(ctx: click.Context, project: str, task_id: int, status: str) -> None:
    """Set a task's STATUS.

    Usual values: pending, in-progress, paused, done, verified, review,
    blocked, deferred, cancelled.
    """
    if not _service(ctx).update_status(project, task_id, status):
        _nothing_changed(f"Task {glog.task_ref(project, task_id)}")
    glog.success(f"Task {glog.task_ref(project, task_id)} -> {status}")


@main.command("set")
@click.argument("project")
@click.argument("task_id", type=int)
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--branch", default=None)
@click.option("--pr-url", default=None)
@click.option("--start-commit", default=None)
@click.option("--context-file", "context_files", multiple=True, help="Repeatable")
@click.option("--criterion", "criteria", multiple=True, help="Acceptance criterion (repeatable)")
@click.pass_context
def set_fields(
    ctx: click.Context,
    project: str,
    task_id: int,
    title: str | None,
    description: str | None,
    branch: str | None,
    pr_url: str | None,
    start_commit: str | None,
    context_files: tuple[str, ...],
    criteria: tuple[str, ...],
) -> None:
    """Edit task fields. Only the options given are changed."""
    err = validate_title(title)
    if err:
        raise click.BadParameter(err, param_hint="--title")
    ok = _service(ctx).update_fields(
        project,
        task_id,
        title=title,
        description=description,
        branch=branch,
        pr_url=pr_url,
        start_commit=start_commit,
        context_files=list(context_files) or None,
        acceptance_criteria=list(criteria) or None,
    )
    if not ok:
        _nothing_changed(f"Task {glog.task_ref(project, task_id)}")
    glog.success(f"Task {glog.task_ref(project, task_id)} updated")


@main.command()
@click.argument("project")
@click.argument("title")
@click.option("-d", "--description", default="", help="Task description")
@click.option("-p", "--priority", default=TaskPriority.MEDIUM.value,
              type=click.Choice([p.value for p in TaskPriority]), show_default=True)
@click.option("-s", "--subtask", "subtasks", multiple=True, help="Subtask title (repeatable)")
@click.option("-c", "--context-file", "context_files", multiple=True, help="Repeatable")
@click.pass_context
def add(
    ctx: click.Context,
    project: str,
    title: str,
    description: str,
    priority: str,
    subtasks: tuple[str, ...],
    context_files: tuple[str, ...],
) -> None:
    """Add a pending task to PROJECT."""
    err = validate_title(title)
    if err:
        raise click.BadParameter(err, param_hint="TITLE")
    task = _service(ctx).add_task(
        project,
        title,
        description=description,
        priority=priority,
        subtasks=subtasks,
        context_files=context_files,
    )
    if task is None:
        _nothing_changed(f"Project {project}")
    glog.success(f"Added {glog.task_ref(project, task.id)}: {task.title}")


@main.command()
@click.argument("project")
@click.argument("task_id", type=int)
@click.pass_context
def delete(ctx: click.Context, project: str, task_id: int) -> None:
    """Delete a task. Dependencies on it are not rewritten."""
    if not _service(ctx).delete_task(project, task_id):
        _nothing_changed(f"Task {glog.task_ref(project, task_id)}")
    glog.success(f"Deleted {glog.task_ref(project, task_id)}")


# ── Subtasks ─────────────────────────────────────────────────────────


@main.group()
def subtask() -> None:
    """Add, update and delete nested subtasks."""


@subtask.command("add")
@click.argument("project")
@click.argument("task_id", type=int)
@click.argument("title")
@click.option("--parent", "parent_id", type=int, default=None, help="Nest under this subtask id")
@click.pass_context
def subtask_add(
    ctx: click.Context, project: str, task_id: int, title: str, parent_id: int | None
) -> None:
    """Add a subtask to TASK_ID."""
    err = validate_title(title)
    if err:
        raise click.BadParameter(err, param_hint="TITLE")
    sub = _service(ctx).add_subtask(project, task_id, title, parent_id)
    if sub is None:
        _nothing_changed(f"Task {glog.task_ref(project, task_id, parent_id)}")
    glog.success(f"Added subtask {sub.id}: {sub.title}")


@subtask.command("status")
@click.argument("project")
@click.argument("task_id", type=int)
@click.argument("subtask_id", type=int)
@click.argument("status")
@click.pass_context
def subtask_status(
    ctx: click.Context, project: str, task_id: int, subtask_id: int, status: str
) -> None:
    """Set a subtask's STATUS (any depth)."""
    if status not in ALL_STATUSES:
        glog.warn(f"'{status}' is not a known status; writing it anyway")
    if not _service(ctx).update_subtask_status(project, task_id, subtask_id, status):
        _nothing_changed(f"Subtask {glog.task_ref(project, task_id, subtask_id)}")
    glog.success(f"Subtask {glog.task_ref(project, task_id, subtask_id)} -> {status}")


@subtask.command("delete")
@click.argument("project")
@click.argument("task_id", type=int)
@click.argument("subtask_id", type=int)
@click.pass_context
def subtask_delete(ctx: click.Context, project: str, task_id: int, subtask_id: int) -> None:
    """Delete a subtask and its children."""
    if not _service(ctx).delete_subtask(project, task_id, subtask_id):
        _nothing_changed(f"Subtask {glog.task_ref(project, task_id, subtask_id)}")
    glog.success(f"Deleted subtask {glog.task_ref(project, task_id, subtask_id)}")


# ── Dependencies ─────────────────────────────────────────────────────


@main.group()
def deps() -> None:
    """Edit, validate and repair task dependencies."""


@deps.command("add")
@click.argument("project")
@click.argument("task_id", type=int)
@click.argument("depends_on", type=int)
@click.pass_context
def deps_add(ctx: click.Context, project: str, task_id: int, depends_on: int) -> None:
    """Make TASK_ID depend on DEPENDS_ON."""
    if not _service(ctx).add_dependency(project, task_id, depends_on):
        _nothing_changed(f"Edge {glog.task_ref(project, task_id)} -> #{depends_on}")
    glog.success(f"{glog.task_ref(project, task_id)} now depends on #{depends_on}")


@deps.command("remove")
@click.argument("project")
@click.argument("task_id", type=int)
@click.argument("depends_on", type=int)
@click.pass_context
def deps_remove(ctx: click.Context, project: str, task_id: int, depends_on: int) -> None:
    """Drop the dependency TASK_ID -> DEPENDS_ON."""
    if not _service(ctx).remove_dependency(project, task_id, depends_on):
        _nothing_changed(f"Task {glog.task_ref(project, task_id)}")
    glog.success(f"{glog.task_ref(project, task_id)} no longer depends on #{depends_on}")


@deps.command("validate")
@click.argument("project")
@click.option("--strict", is_flag=True, help="Exit 1 when issues are found")
@click.pass_context
def deps_validate(ctx: click.Context, project: str, strict: bool) -> None:
    """Report dangling edges, self-dependencies and cycles."""
    report = _service(ctx).validate_dependencies(project)
    if report is None:
        glog.error(f"Unknown project: {project}")
        sys.exit(1)
    if report.valid:
        glog.success(f"{project}: dependency graph is valid")
        return
    glog.warn(f"{project}: {len(report.issues)} dependency issue(s)")
    for issue in report.issues:
        glog.issue(issue.message)
    if strict:
        sys.exit(1)


@deps.command("fix")
@click.argument("project")
@click.pass_context
def deps_fix(ctx: click.Context, project: str) -> None:
    """Remove dangling and self dependencies. Cycles are left in place."""
    fixed = _service(ctx).fix_dependencies(project)
    if fixed is None:
        glog.error(f"Unknown project: {project}")
        sys.exit(1)
    if fixed:
        glog.success(f"{project}: removed {fixed} invalid dependency edge(s)")
    else:
        glog.info(f"{project}: nothing to fix")
