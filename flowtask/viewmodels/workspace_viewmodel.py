# Rev 0.2.0 - write then reload; selection derived from each snapshot
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from PySide6.QtCore import QObject, Signal

from flowtask.models.entities import FlowSnapshot, Module, Project, Stage, Task, TaskType, Workflow
from flowtask.models.errors import FlowTaskError
from flowtask.services.cascade import subtree_ids_in_snapshot
from flowtask.services.flow_data_service import FlowDataService
from flowtask.services.selection import (
    PROJECT_TASKS_KEY,
    SelectionState,
    next_selection,
    resolve_workflow,
    select_project,
    selected_module,
    set_module_distinction,
    tasks_for_project,
    tasks_for_selection,
)
from flowtask.utils.logging_setup import get_logger

T = TypeVar("T")


class WorkspaceViewModel(QObject):
    """
    Owns the store and the current snapshot.
    Emits:
      - snapshotReloaded(snapshot: FlowSnapshot)
      - selectionChanged(state: SelectionState)
      - errorRaised(message: str)
    """

    snapshotReloaded = Signal(object)
    selectionChanged = Signal(object)
    errorRaised = Signal(str)

    def __init__(self, store: FlowDataService):
        super().__init__()
        self._store = store
        self._snapshot = FlowSnapshot()
        self._selection = SelectionState()
        self._log = get_logger("WorkspaceViewModel")

    # ---- state
    @property
    def store(self) -> FlowDataService:
        return self._store

    @property
    def snapshot(self) -> FlowSnapshot:
        return self._snapshot

    @property
    def selection(self) -> SelectionState:
        return self._selection

    def current_tasks(self) -> List[Task]:
        return tasks_for_selection(self._snapshot, self._selection)

    def project_tasks(self) -> List[Task]:
        return tasks_for_project(self._snapshot, self._selection.project_id)

    def current_project(self) -> Optional[Project]:
        return self._snapshot.project(self._selection.project_id)

    def current_module(self) -> Optional[Module]:
        return selected_module(self._snapshot, self._selection)

    def current_workflow(self) -> Optional[Workflow]:
        return resolve_workflow(self._snapshot, self._selection)

    def project_modules(self) -> List[Module]:
        return self._snapshot.modules_for_project(self._selection.project_id)

    # ---- queries
    def reload(self, *, project_id: Optional[str] = None, module_id: Optional[str] = None) -> None:
        self._snapshot = self._store.get_snapshot()
        self.snapshotReloaded.emit(self._snapshot)
        self._apply(next_selection(self._selection, self._snapshot, project_id=project_id, module_id=module_id))

    def select_project(self, project_id: str) -> None:
        self._apply(select_project(self._selection, self._snapshot, project_id))

    def select_module(self, module_id: str) -> None:
        self._apply(next_selection(self._selection, self._snapshot, module_id=module_id))

    def set_module_distinction(self, enabled: bool) -> None:
        self._apply(set_module_distinction(self._selection, self._snapshot, enabled))

    def _apply(self, state: SelectionState) -> None:
        if state == self._selection:
            return
        self._selection = state
        self.selectionChanged.emit(state)

    # ---- commands
    def _run(self, action: Callable[[], T], *, reselect: Optional[Callable[[T], Dict[str, Any]]] = None) -> Optional[T]:
        try:
            result = action()
        except FlowTaskError as exc:
            self._log.warning("Command rejected: %s", exc)
            self.errorRaised.emit(str(exc))
            self.reload()
            return None
        self.reload(**(reselect(result) if reselect else {}))
        return result

    def create_stage(self, name: str, template_tasks: Sequence[Any] = ()) -> Optional[Stage]:
        return self._run(lambda: self._store.create_stage(name, template_tasks))

    def replace_stage(self, stage_id: str, name: str, template_tasks: Sequence[Any] = ()) -> Optional[Stage]:
        return self._run(lambda: self._store.replace_stage(stage_id, name, template_tasks))

    def create_task_type(self, name: str) -> Optional[TaskType]:
        return self._run(lambda: self._store.create_task_type(name))

    def rename_task_type(self, task_type_id: str, name: str) -> Optional[TaskType]:
        return self._run(lambda: self._store.rename_task_type(task_type_id, name))

    def create_workflow(self, name: str, stage_ids: Sequence[str]) -> Optional[Workflow]:
        return self._run(lambda: self._store.create_workflow(name, stage_ids))

    def update_workflow(self, workflow_id: str, name: str, stage_ids: Sequence[str]) -> Optional[Workflow]:
        return self._run(lambda: self._store.update_workflow(workflow_id, name, stage_ids))

    def create_project(self, name: str, workflow_id: str) -> Optional[Project]:
        return self._run(
            lambda: self._store.create_project(name, workflow_id),
            reselect=lambda p: {"project_id": p.id},
        )

    def update_project(self, project_id: str, name: str, workflow_id: str) -> Optional[Project]:
        return self._run(
            lambda: self._store.update_project(project_id, name, workflow_id),
            reselect=lambda p: {"project_id": p.id},
        )

    def create_module(self, name: str, project_id: str, workflow_id: Optional[str] = None) -> Optional[Module]:
        return self._run(
            lambda: self._store.create_module(name, project_id, workflow_id),
            reselect=lambda m: {"project_id": m.project_id, "module_id": m.id},
        )

    def update_module(self, module_id: str, name: str, project_id: str,
                      workflow_id: Optional[str] = None) -> Optional[Module]:
        return self._run(
            lambda: self._store.update_module(module_id, name, project_id, workflow_id),
            reselect=lambda m: {"project_id": m.project_id, "module_id": m.id},
        )

    def create_task(self, payload: Dict[str, Any]) -> Optional[Task]:
        data = dict(payload)
        data.setdefault("project_id", self._selection.project_id)
        if "module_id" not in data and not self._selection.is_project_bucket:
            data["module_id"] = self._selection.module_id
        return self._run(
            lambda: self._store.create_task(data),
            reselect=lambda t: {"project_id": t.project_id, "module_id": t.module_id or PROJECT_TASKS_KEY},
        )

    def update_task(self, task_id: str, payload: Dict[str, Any]) -> Optional[Task]:
        return self._run(
            lambda: self._store.update_task(task_id, payload),
            reselect=lambda t: {"project_id": t.project_id, "module_id": t.module_id or PROJECT_TASKS_KEY},
        )

    def deletion_preview(self, task_id: str) -> List[str]:
        """Ids a delete_task(task_id) would remove, from the loaded snapshot (confirm dialogs)."""
        return subtree_ids_in_snapshot(self._snapshot.tasks, task_id) or []

    def delete_task(self, task_id: str) -> List[str]:
        expected = len(self.deletion_preview(task_id))
        removed = self._run(lambda: self._store.delete_task(task_id))
        if removed is not None and len(removed) != expected:
            self._log.info("Deleted %d tasks under %s (snapshot showed %d)", len(removed), task_id, expected)
        return removed or []
