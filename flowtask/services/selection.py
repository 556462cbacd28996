# Rev 0.2.0

"""Project/module selection as a pure reducer over snapshots (Rev 0.2.0)"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from flowtask.models.entities import FlowSnapshot, Module, Task, Workflow

PROJECT_TASKS_KEY = "__project__"
PROJECT_TASKS_LABEL = "项目任务（未分配模块）"


@dataclass(frozen=True)
class SelectionState:
    project_id: Optional[str] = None
    module_id: str = PROJECT_TASKS_KEY
    module_distinction: bool = False

    @property
    def is_project_bucket(self) -> bool:
        return self.module_id == PROJECT_TASKS_KEY


def next_selection(
    previous: SelectionState,
    snapshot: FlowSnapshot,
    project_id: Optional[str] = None,
    module_id: Optional[str] = None,
) -> SelectionState:
    """
    (previous state, fresh snapshot) -> next valid state. Explicit
    project_id/module_id override the previous choice; anything that no
    longer exists falls back to the first project / first module / the
    project-tasks bucket.
    """
    wanted_project = project_id if project_id is not None else previous.project_id
    if snapshot.project(wanted_project) is None:
        wanted_project = snapshot.projects[0].id if snapshot.projects else None

    modules = snapshot.modules_for_project(wanted_project)
    module_ids = {m.id for m in modules}
    wanted_module = module_id if module_id is not None else previous.module_id
    if not wanted_module:
        wanted_module = modules[0].id if modules else PROJECT_TASKS_KEY
    elif wanted_module != PROJECT_TASKS_KEY and wanted_module not in module_ids:
        wanted_module = modules[0].id if modules else PROJECT_TASKS_KEY

    distinction = previous.module_distinction and len(modules) > 1
    return SelectionState(wanted_project, wanted_module, distinction)


def select_project(previous: SelectionState, snapshot: FlowSnapshot, project_id: str) -> SelectionState:
    """Switching project keeps the bucket choice or a module the new project also owns."""
    modules = snapshot.modules_for_project(project_id)
    if previous.is_project_bucket or any(m.id == previous.module_id for m in modules):
        module_id = previous.module_id
    else:
        module_id = modules[0].id if modules else PROJECT_TASKS_KEY
    return next_selection(previous, snapshot, project_id=project_id, module_id=module_id)


def set_module_distinction(previous: SelectionState, snapshot: FlowSnapshot, enabled: bool) -> SelectionState:
    allowed = len(snapshot.modules_for_project(previous.project_id)) > 1
    return replace(previous, module_distinction=enabled and allowed)


def tasks_for_project(snapshot: FlowSnapshot, project_id: Optional[str]) -> List[Task]:
    if not project_id:
        return list(snapshot.tasks)
    return [t for t in snapshot.tasks if t.project_id == project_id]


def tasks_for_selection(snapshot: FlowSnapshot, state: SelectionState) -> List[Task]:
    project_tasks = tasks_for_project(snapshot, state.project_id)
    if state.is_project_bucket:
        return [t for t in project_tasks if not t.module_id]
    if not state.module_id:
        return []
    return [t for t in project_tasks if t.module_id == state.module_id]


def selected_module(snapshot: FlowSnapshot, state: SelectionState) -> Optional[Module]:
    """The selected module; the project bucket is a workflow-less pseudo module."""
    project = snapshot.project(state.project_id)
    if state.is_project_bucket:
        if project is None:
            return None
        return Module(id=PROJECT_TASKS_KEY, project_id=project.id, name=PROJECT_TASKS_LABEL, workflow_id=None)
    return snapshot.module(state.module_id)


def resolve_workflow(snapshot: FlowSnapshot, state: SelectionState) -> Optional[Workflow]:
    """Module workflow when set, else the project's."""
    project = snapshot.project(state.project_id)
    module = selected_module(snapshot, state)
    if project is None or module is None:
        return None
    return snapshot.workflow(module.workflow_id or project.workflow_id)


def resync_module_selection(
    previous_ids: Sequence[str],
    option_ids: Sequence[str],
    previous_options: Optional[Sequence[str]] = None,
) -> List[str]:
    """
    Keep still-valid choices in option order and select options that were
    not offered before (every unselected option when previous_options is
    unknown). An empty result falls back to selecting everything.
    """
    kept = set(previous_ids)
    known = set(previous_options) if previous_options is not None else kept
    result = [oid for oid in option_ids if oid in kept or oid not in known]
    return result or list(option_ids)
