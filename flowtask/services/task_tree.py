# Rev 0.2.0

"""Task tree builder (Rev 0.2.0)
Turn a flat task list plus stage templates into per-stage forests.

Nodes live in an arena keyed by "<kind>:<id>" with explicit child key lists,
so the structure has no back-references and cannot loop. Template task nodes
list their declared subtasks first, then any real tasks attached to them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from flowtask.models.entities import Stage, StageSubtaskTemplate, StageTaskTemplate, Task
from flowtask.models.types import NodeKind

OTHERS_STAGE_ID = "others"
OTHERS_STAGE_NAME = "其他阶段"
TEMPLATE_MARKER = "（阶段模板）"

NodeItem = Union[Task, StageTaskTemplate, StageSubtaskTemplate]


def node_key(kind: NodeKind, item_id: str) -> str:
    return f"{kind}:{item_id}"


@dataclass
class TreeNode:
    key: str
    kind: NodeKind
    item: NodeItem
    children: List[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def name(self) -> str:
        return self.item.name

    @property
    def is_template(self) -> bool:
        return self.kind != "task"


@dataclass
class TaskForest:
    nodes: Dict[str, TreeNode]
    stage_roots: Dict[str, List[str]]       # stage id -> real root keys
    template_roots: Dict[str, List[str]]    # stage id -> template task keys

    def node(self, key: str) -> TreeNode:
        return self.nodes[key]

    def roots_for_stage(self, stage_id: str) -> List[str]:
        """Real roots first, template forest after."""
        roots = list(self.stage_roots.get(stage_id, []))
        roots.extend(self.template_roots.get(stage_id, []))
        return roots


@dataclass(frozen=True)
class FlatRow:
    node: TreeNode
    depth: int
    is_template: bool
    node_kind: NodeKind


@dataclass(frozen=True)
class StageGroup:
    stage_id: str
    stage_name: str
    roots: List[str]
    rows: List[FlatRow]
    forest: TaskForest = field(repr=False, compare=False)

    @property
    def is_others(self) -> bool:
        return self.stage_id == OTHERS_STAGE_ID


def _on_cycle(task_id: str, parent_of: Mapping[str, Optional[str]]) -> bool:
    """True when following parent links from task_id leads back to task_id."""
    seen = set()
    current = parent_of.get(task_id)
    while current is not None and current not in seen:
        if current == task_id:
            return True
        seen.add(current)
        current = parent_of.get(current)
    return False


def build_task_forest(tasks: Sequence[Task], stages: Sequence[Stage]) -> TaskForest:
    nodes: Dict[str, TreeNode] = {}
    by_id: Dict[str, Task] = {}
    for task in tasks:
        by_id[task.id] = task
        nodes[node_key("task", task.id)] = TreeNode(node_key("task", task.id), "task", task)

    # parent links that resolve within the list; anything else is a root
    parent_of: Dict[str, Optional[str]] = {
        t.id: (t.parent_task_id if t.parent_task_id in by_id and t.parent_task_id != t.id else None)
        for t in by_id.values()
    }
    for task_id in list(parent_of):
        # first member of a parent loop (in list order) becomes a root
        if _on_cycle(task_id, parent_of):
            parent_of[task_id] = None

    template_ids = {tpl.id for stage in stages for tpl in stage.template_tasks}
    stage_roots: Dict[str, List[str]] = {}
    template_children: Dict[str, List[str]] = {}
    for task in by_id.values():
        key = node_key("task", task.id)
        parent_id = parent_of[task.id]
        if parent_id is not None:
            nodes[node_key("task", parent_id)].children.append(key)
        elif task.parent_stage_task_id and task.parent_stage_task_id in template_ids:
            template_children.setdefault(task.parent_stage_task_id, []).append(key)
        else:
            stage_roots.setdefault(task.stage_id, []).append(key)

    template_roots: Dict[str, List[str]] = {}
    for stage in stages:
        keys: List[str] = []
        for tpl in sorted(stage.template_tasks, key=lambda t: t.sort_order):
            tpl_key = node_key("template-task", tpl.id)
            children: List[str] = []
            for sub in sorted(tpl.subtasks, key=lambda s: s.sort_order):
                sub_key = node_key("template-subtask", sub.id)
                nodes[sub_key] = TreeNode(sub_key, "template-subtask", sub)
                children.append(sub_key)
            children.extend(template_children.get(tpl.id, []))
            nodes[tpl_key] = TreeNode(tpl_key, "template-task", tpl, children)
            keys.append(tpl_key)
        template_roots[stage.id] = keys

    return TaskForest(nodes=nodes, stage_roots=stage_roots, template_roots=template_roots)


def flatten(forest: TaskForest, roots: Iterable[str], include_templates: bool = True) -> List[FlatRow]:
    """
    Pre-order walk. With include_templates=False template nodes are skipped
    but their real descendants are still visited at the template's depth.
    """
    rows: List[FlatRow] = []
    stack = [(key, 0) for key in reversed(list(roots))]
    while stack:
        key, depth = stack.pop()
        node = forest.nodes[key]
        if include_templates or not node.is_template:
            rows.append(FlatRow(node, depth, node.is_template, node.kind))
            child_depth = depth + 1
        else:
            child_depth = depth
        for child in reversed(node.children):
            stack.append((child, child_depth))
    return rows


def build_stage_groups(
    tasks: Sequence[Task],
    stages: Sequence[Stage],
    stage_order: Sequence[str],
) -> List[StageGroup]:
    forest = build_task_forest(tasks, stages)
    stage_map = {s.id: s for s in stages}
    groups: List[StageGroup] = []
    ordered: List[str] = []
    for stage_id in stage_order:
        # stale workflow entries (stage deleted) are treated as removed
        if stage_id not in stage_map or stage_id in ordered:
            continue
        ordered.append(stage_id)
        roots = forest.roots_for_stage(stage_id)
        groups.append(StageGroup(stage_id, stage_map[stage_id].name, roots, flatten(forest, roots), forest))

    in_order = set(ordered)
    other_roots: List[str] = []
    for stage in stages:
        if stage.id not in in_order:
            other_roots.extend(forest.template_roots.get(stage.id, []))
    for stage_id, roots in forest.stage_roots.items():
        if stage_id not in in_order:
            other_roots.extend(roots)
    other_rows = flatten(forest, other_roots, include_templates=False)
    if other_rows:
        groups.append(StageGroup(OTHERS_STAGE_ID, OTHERS_STAGE_NAME, other_roots, other_rows, forest))
    return groups


def stage_options(stage_order: Sequence[str], stages: Sequence[Stage]) -> List[Stage]:
    """Workflow stages first in process order, then every other known stage."""
    stage_map = {s.id: s for s in stages}
    out: List[Stage] = []
    seen = set()
    for stage_id in stage_order:
        if stage_id in stage_map and stage_id not in seen:
            seen.add(stage_id)
            out.append(stage_map[stage_id])
    out.extend(s for s in stages if s.id not in seen)
    return out


def parent_options(tasks: Sequence[Task], stages: Sequence[Stage], stage_id: str) -> List[FlatRow]:
    """Candidate parents for a task in stage_id: template forest, then real tasks."""
    if not stage_id:
        return []
    forest = build_task_forest(tasks, stages)
    roots = list(forest.template_roots.get(stage_id, []))
    roots.extend(forest.stage_roots.get(stage_id, []))
    return flatten(forest, roots)


def parent_option_label(row: FlatRow) -> str:
    indent = f"{'　' * row.depth}└ " if row.depth > 0 else ""
    return f"{indent}{row.node.name}{TEMPLATE_MARKER if row.is_template else ''}"


def parent_option_selectable(row: FlatRow) -> bool:
    # template subtasks are leaves; tasks cannot hang under them
    return row.node_kind != "template-subtask"


def parse_parent_option(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Map a parent selector value to (parent_task_id, parent_stage_task_id)."""
    if not value:
        return None, None
    kind, _, item_id = value.partition(":")
    if kind == "task" and item_id:
        return item_id, None
    if kind == "template-task" and item_id:
        return None, item_id
    return None, None


def stage_template_summary(stage: Stage) -> str:
    parts: List[str] = []
    for tpl in sorted(stage.template_tasks, key=lambda t: t.sort_order):
        name = tpl.name.strip()
        if not name:
            continue
        subs = [s.name.strip() for s in sorted(tpl.subtasks, key=lambda s: s.sort_order) if s.name.strip()]
        parts.append(f"{name}（{'、'.join(subs)}）" if subs else name)
    return f"阶段任务：{'；'.join(parts)}" if parts else ""
