# Rev 0.2.0
"""Subtree closure over parent_task_id links (used by cascade deletion)."""
from __future__ import annotations
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from flowtask.models.entities import Task


def collect_subtree_ids(root_id: str, children_of: Callable[[str], Iterable[str]]) -> List[str]:
    """
    Return root_id plus every id reachable through children_of, root first.
    Work-list traversal with a visited set, so cycles in bad data terminate.
    Template links are not part of children_of and are never followed.
    """
    visited = {root_id}
    ordered: List[str] = []
    stack = [root_id]
    while stack:
        current = stack.pop()
        ordered.append(current)
        for child_id in children_of(current):
            if child_id not in visited:
                visited.add(child_id)
                stack.append(child_id)
    return ordered


def children_index(tasks: Sequence[Task]) -> Mapping[str, List[str]]:
    index: dict[str, List[str]] = {}
    for task in tasks:
        if task.parent_task_id:
            index.setdefault(task.parent_task_id, []).append(task.id)
    return index


def subtree_ids_in_snapshot(tasks: Sequence[Task], root_id: str) -> Optional[List[str]]:
    """In-memory variant for a loaded task list; None when root_id is unknown."""
    if not any(t.id == root_id for t in tasks):
        return None
    index = children_index(tasks)
    return collect_subtree_ids(root_id, lambda tid: index.get(tid, []))
