# Rev 0.2.0
"""Lightweight entities aligned with schema 0001 (string ids, template parents)"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional


@dataclass(frozen=True)
class StageSubtaskTemplate:
    id: str
    stage_task_id: str
    name: str
    sort_order: int = 0


@dataclass(frozen=True)
class StageTaskTemplate:
    id: str
    stage_id: str
    name: str
    sort_order: int = 0
    subtasks: List[StageSubtaskTemplate] = field(default_factory=list)


@dataclass(frozen=True)
class Stage:
    id: str
    name: str
    template_tasks: List[StageTaskTemplate] = field(default_factory=list)


@dataclass(frozen=True)
class TaskType:
    id: str
    name: str


@dataclass(frozen=True)
class Workflow:
    id: str
    name: str
    stage_ids: List[str] = field(default_factory=list)   # order = process order


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    workflow_id: str


@dataclass(frozen=True)
class Module:
    id: str
    project_id: str
    name: str
    workflow_id: Optional[str] = None   # None => inherits the project's workflow


@dataclass(frozen=True)
class TaskWorkLog:
    id: str
    task_id: str
    work_time: Optional[datetime]
    content: str = ""


@dataclass(frozen=True)
class Task:
    id: str
    project_id: str
    stage_id: str
    name: str
    module_id: Optional[str] = None
    task_type_id: Optional[str] = None
    description: str = ""
    priority: str = ""
    status: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    parent_task_id: Optional[str] = None
    parent_stage_task_id: Optional[str] = None
    work_logs: List[TaskWorkLog] = field(default_factory=list)


@dataclass(frozen=True)
class FlowSnapshot:
    """Everything the client renders from; immutable between reloads."""
    stages: List[Stage] = field(default_factory=list)
    task_types: List[TaskType] = field(default_factory=list)
    workflows: List[Workflow] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    modules: List[Module] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)

    def project(self, project_id: Optional[str]) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def module(self, module_id: Optional[str]) -> Optional[Module]:
        return next((m for m in self.modules if m.id == module_id), None)

    def workflow(self, workflow_id: Optional[str]) -> Optional[Workflow]:
        return next((w for w in self.workflows if w.id == workflow_id), None)

    def modules_for_project(self, project_id: Optional[str]) -> List[Module]:
        return [m for m in self.modules if m.project_id == project_id]


# ---------- write-side drafts (already validated by the service layer) ----------

@dataclass(frozen=True)
class TemplateTaskDraft:
    name: str
    subtasks: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class WorkLogDraft:
    work_time: datetime
    content: str


@dataclass(frozen=True)
class TaskFields:
    stage_id: str
    name: str
    priority: str
    status: str
    module_id: Optional[str] = None
    task_type_id: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    parent_task_id: Optional[str] = None
    parent_stage_task_id: Optional[str] = None
    work_logs: List[WorkLogDraft] = field(default_factory=list)
