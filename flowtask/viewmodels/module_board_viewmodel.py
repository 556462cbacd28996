# Rev 0.2.0
from __future__ import annotations

from typing import List, Optional

from PySide6.QtCore import QObject, Signal

from flowtask.models.entities import Stage
from flowtask.services.task_tree import (
    FlatRow,
    build_stage_groups,
    parent_options,
    stage_options,
    stage_template_summary,
)
from flowtask.services.time_filter import BoardGroup, TimeFilter, filter_stage_groups
from flowtask.viewmodels.workspace_viewmodel import WorkspaceViewModel


class ModuleBoardViewModel(QObject):
    """
    Stage board for the selected module (or the project-tasks bucket).
    Emits:
      - stageGroupsReady(groups: list[BoardGroup])
    """

    stageGroupsReady = Signal(list)

    def __init__(self, workspace: WorkspaceViewModel):
        super().__init__()
        self._ws = workspace
        self._filter = TimeFilter()
        self._groups: List[BoardGroup] = []
        workspace.snapshotReloaded.connect(lambda _snapshot: self.reload())
        workspace.selectionChanged.connect(lambda _state: self.reload())

    # ---- filters
    @property
    def time_filter(self) -> TimeFilter:
        return self._filter

    def set_time_filter(self, kind: str = "start", start: Optional[str] = None, end: Optional[str] = None) -> None:
        self._filter = TimeFilter(kind=kind, start=start, end=end)
        self.reload()

    def clear_time_filter(self) -> None:
        self.set_time_filter(self._filter.kind)

    # ---- queries
    def stage_order(self) -> List[str]:
        workflow = self._ws.current_workflow()
        return list(workflow.stage_ids) if workflow else []

    def reload(self) -> None:
        snapshot = self._ws.snapshot
        groups = build_stage_groups(self._ws.current_tasks(), snapshot.stages, self.stage_order())
        self._groups = filter_stage_groups(groups, self._filter)
        self.stageGroupsReady.emit(self._groups)

    def groups(self) -> List[BoardGroup]:
        return self._groups

    def stage_choices(self) -> List[Stage]:
        return stage_options(self.stage_order(), self._ws.snapshot.stages)

    def parent_choices(self, stage_id: str) -> List[FlatRow]:
        return parent_options(self._ws.current_tasks(), self._ws.snapshot.stages, stage_id)

    def stage_remark(self, stage_id: str) -> str:
        stage = next((s for s in self._ws.snapshot.stages if s.id == stage_id), None)
        return stage_template_summary(stage) if stage else ""
