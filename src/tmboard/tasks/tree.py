"""Recursive operations over a task's nested subtask tree."""

from __future__ import annotations

from tmboard.tasks.model import Subtask, is_finished


def find(tree: list[Subtask], subtask_id: int) -> Subtask | None:
    """Pre-order search for the first node with *subtask_id*."""
    for node in tree:
        if node.id == subtask_id:
            return node
        if node.subtasks:
            found = find(node.subtasks, subtask_id)
            if found is not None:
                return found
    return None


def find_parent_slot(
    tree: list[Subtask], subtask_id: int
) -> tuple[list[Subtask], int] | None:
    """Return ``(container, index)`` of the node with *subtask_id*.

    The container is the live list that holds the node, so callers can
    splice or replace it in place.
    """
    for idx, node in enumerate(tree):
        if node.id == subtask_id:
            return tree, idx
        if node.subtasks:
            found = find_parent_slot(node.subtasks, subtask_id)
            if found is not None:
                return found
    return None


def max_id(tree: list[Subtask]) -> int:
    """Largest id at any depth, 0 for an empty tree."""
    best = 0
    for node in tree:
        if isinstance(node.id, int) and node.id > best:
            best = node.id
        if node.subtasks:
            best = max(best, max_id(node.subtasks))
    return best


def all_done(tree: list[Subtask]) -> bool:
    """``True`` if every node at every depth is finished. Empty tree is done."""
    for node in tree:
        if not is_finished(node.status):
            return False
        if node.subtasks and not all_done(node.subtasks):
            return False
    return True


def progress(tree: list[Subtask]) -> tuple[int, int]:
    """Return ``(finished, total)`` over every node in the tree."""
    done = 0
    total = 0
    for node in tree:
        total += 1
        if is_finished(node.status):
            done += 1
        child_done, child_total = progress(node.subtasks)
        done += child_done
        total += child_total
    return done, total
