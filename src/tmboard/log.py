"""Logging utilities with colored output via Rich."""

from __future__ import annotations

from rich.console import Console

console = Console(highlight=False)
_err_console = Console(highlight=False, stderr=True)

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def info(msg: str) -> None:
    console.print(f"[blue]\\[INFO][/blue] {msg}")


def success(msg: str) -> None:
    console.print(f"[green]\\[OK][/green] {msg}")


def warn(msg: str) -> None:
    console.print(f"[yellow]\\[WARN][/yellow] {msg}")


def error(msg: str) -> None:
    _err_console.print(f"[red]\\[ERROR][/red] {msg}")


def debug(msg: str) -> None:
    if _verbose:
        console.print(f"[dim]\\[DEBUG] {msg}[/dim]")


def issue(msg: str) -> None:
    """Print one graph-integrity diagnostic line."""
    console.print(f"  [red]-[/red] {msg}")


def nothing_changed(what: str) -> None:
    """Report a not-found mutation: a no-op, not a failure of the store."""
    warn(f"{what} not found; nothing changed")


def task_ref(project: str, task_id: int, subtask_id: int | None = None) -> str:
    """``web#3`` for a task, ``web#3.1`` for one of its subtasks."""
    ref = f"{project}#{task_id}"
    if subtask_id is not None:
        ref += f".{subtask_id}"
    return ref
