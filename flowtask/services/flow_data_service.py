# Rev 0.2.0

"""Flow data service (Rev 0.2.0)
Store facade over the SQLite repositories. Every write is validated here
first (ValidationError) and then executed by a repository as one
transaction; missing targets surface as NotFoundError.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, TypeVar

from flowtask.models.entities import (
    FlowSnapshot,
    Module,
    Project,
    Stage,
    Task,
    TaskFields,
    TaskType,
    Workflow,
)
from flowtask.models.errors import NotFoundError, ValidationError
from flowtask.repositories.sqlite_module_repository import SQLiteModuleRepository
from flowtask.repositories.sqlite_project_repository import SQLiteProjectRepository
from flowtask.repositories.sqlite_stage_repository import SQLiteStageRepository
from flowtask.repositories.sqlite_task_repository import SQLiteTaskRepository
from flowtask.repositories.sqlite_task_type_repository import SQLiteTaskTypeRepository
from flowtask.repositories.sqlite_workflow_repository import SQLiteWorkflowRepository
from flowtask.services.validation import (
    clean_text,
    normalize_template_tasks,
    normalize_work_logs,
    optional_id,
    parse_date,
    require_text,
)
from flowtask.utils.logging_setup import get_logger

T = TypeVar("T")


class FlowDataService:
    def __init__(
        self,
        stages: SQLiteStageRepository,
        task_types: SQLiteTaskTypeRepository,
        workflows: SQLiteWorkflowRepository,
        projects: SQLiteProjectRepository,
        modules: SQLiteModuleRepository,
        tasks: SQLiteTaskRepository,
    ):
        self._stages = stages
        self._task_types = task_types
        self._workflows = workflows
        self._projects = projects
        self._modules = modules
        self._tasks = tasks
        self._log = get_logger("FlowDataService")

    @classmethod
    def from_db(cls, db) -> "FlowDataService":
        return cls(
            SQLiteStageRepository(db),
            SQLiteTaskTypeRepository(db),
            SQLiteWorkflowRepository(db),
            SQLiteProjectRepository(db),
            SQLiteModuleRepository(db),
            SQLiteTaskRepository(db),
        )

    @staticmethod
    def _found(entity: str, entity_id: str, item: Optional[T]) -> T:
        if item is None:
            raise NotFoundError(entity, entity_id)
        return item

    # ---- snapshot
    def get_snapshot(self) -> FlowSnapshot:
        return FlowSnapshot(
            stages=self._stages.list_stages(),
            task_types=self._task_types.list_task_types(),
            workflows=self._workflows.list_workflows(),
            projects=self._projects.list_projects(),
            modules=self._modules.list_modules(),
            tasks=self._tasks.list_tasks(),
        )

    # ---- stages
    def list_stages(self) -> List[Stage]:
        return self._stages.list_stages()

    def get_stage(self, stage_id: str) -> Stage:
        return self._found("Stage", stage_id, self._stages.get_stage(stage_id))

    def create_stage(self, name: Any, template_tasks: Optional[Iterable[Any]] = None) -> Stage:
        name = require_text(name, "Stage name is required")
        return self._stages.create_stage(name, normalize_template_tasks(template_tasks))

    def replace_stage(self, stage_id: str, name: Any, template_tasks: Optional[Iterable[Any]] = None) -> Stage:
        name = require_text(name, "Stage name is required")
        return self._stages.replace_stage(stage_id, name, normalize_template_tasks(template_tasks))

    # ---- task types
    def list_task_types(self) -> List[TaskType]:
        return self._task_types.list_task_types()

    def get_task_type(self, task_type_id: str) -> TaskType:
        return self._found("TaskType", task_type_id, self._task_types.get_task_type(task_type_id))

    def create_task_type(self, name: Any) -> TaskType:
        return self._task_types.create_task_type(require_text(name, "Task type name is required"))

    def rename_task_type(self, task_type_id: str, name: Any) -> TaskType:
        return self._task_types.rename_task_type(task_type_id, require_text(name, "Task type name is required"))

    # ---- workflows
    def list_workflows(self) -> List[Workflow]:
        return self._workflows.list_workflows()

    def get_workflow(self, workflow_id: str) -> Workflow:
        return self._found("Workflow", workflow_id, self._workflows.get_workflow(workflow_id))

    def create_workflow(self, name: Any, stage_ids: Sequence[str]) -> Workflow:
        name, stage_ids = self._validate_workflow(name, stage_ids)
        return self._workflows.create_workflow(name, stage_ids)

    def update_workflow(self, workflow_id: str, name: Any, stage_ids: Sequence[str]) -> Workflow:
        name, stage_ids = self._validate_workflow(name, stage_ids)
        return self._workflows.update_workflow(workflow_id, name, stage_ids)

    def _validate_workflow(self, name: Any, stage_ids: Optional[Sequence[str]]) -> tuple[str, List[str]]:
        name = clean_text(name)
        cleaned = [sid for sid in (optional_id(s) for s in stage_ids or []) if sid]
        if not name or not cleaned:
            raise ValidationError("Workflow name and stages are required")
        for stage_id in cleaned:
            if not self._stages.stage_exists(stage_id):
                raise ValidationError(f"Stage not found: {stage_id}")
        return name, cleaned

    # ---- projects
    def list_projects(self) -> List[Project]:
        return self._projects.list_projects()

    def get_project(self, project_id: str) -> Project:
        return self._found("Project", project_id, self._projects.get_project(project_id))

    def create_project(self, name: Any, workflow_id: Any) -> Project:
        name, workflow_id = self._validate_project(name, workflow_id)
        return self._projects.create_project(name, workflow_id)

    def update_project(self, project_id: str, name: Any, workflow_id: Any) -> Project:
        name, workflow_id = self._validate_project(name, workflow_id)
        return self._projects.update_project(project_id, name, workflow_id)

    def _validate_project(self, name: Any, workflow_id: Any) -> tuple[str, str]:
        name = clean_text(name)
        workflow_id = optional_id(workflow_id)
        if not name or not workflow_id:
            raise ValidationError("Project name and workflow are required")
        if not self._workflows.workflow_exists(workflow_id):
            raise ValidationError(f"Workflow not found: {workflow_id}")
        return name, workflow_id

    # ---- modules
    def list_modules(self) -> List[Module]:
        return self._modules.list_modules()

    def create_module(self, name: Any, project_id: Any, workflow_id: Any = None) -> Module:
        name, project_id, workflow_id = self._validate_module(name, project_id, workflow_id)
        return self._modules.create_module(name, project_id, workflow_id)

    def update_module(self, module_id: str, name: Any, project_id: Any, workflow_id: Any = None) -> Module:
        name, project_id, workflow_id = self._validate_module(name, project_id, workflow_id)
        current = self._modules.get_module(module_id)
        if current is None:
            raise NotFoundError("Module", module_id)
        if current.project_id != project_id and self._tasks.count_tasks_for_module(module_id) > 0:
            raise ValidationError("Module with tasks cannot move to another project")
        return self._modules.update_module(module_id, name, project_id, workflow_id)

    def _validate_module(self, name: Any, project_id: Any, workflow_id: Any) -> tuple[str, str, Optional[str]]:
        name = clean_text(name)
        project_id = optional_id(project_id)
        workflow_id = optional_id(workflow_id)
        if not name or not project_id:
            raise ValidationError("Module name and project are required")
        if not self._projects.project_exists(project_id):
            raise ValidationError(f"Project not found: {project_id}")
        if workflow_id is not None and not self._workflows.workflow_exists(workflow_id):
            raise ValidationError(f"Workflow not found: {workflow_id}")
        return name, project_id, workflow_id

    # ---- tasks
    def list_tasks(self) -> List[Task]:
        return self._tasks.list_tasks()

    def get_task(self, task_id: str) -> Task:
        return self._found("Task", task_id, self._tasks.get_task(task_id))

    def create_task(self, payload: Mapping[str, Any]) -> Task:
        project_id = optional_id(payload.get("project_id"))
        if not project_id or not self._projects.project_exists(project_id):
            self._log.warning("Rejected task create: project %r not found", project_id)
            raise ValidationError("Project not found")
        fields = self._task_fields(payload, project_id)
        return self._tasks.create_task(project_id=project_id, fields=fields)

    def update_task(self, task_id: str, payload: Mapping[str, Any]) -> Task:
        project_id = self._tasks.project_of(task_id)
        if project_id is None:
            raise NotFoundError("Task", task_id)
        fields = self._task_fields(payload, project_id, task_id=task_id)
        return self._tasks.update_task(task_id, fields)

    def delete_task(self, task_id: str) -> List[str]:
        return self._tasks.delete_task_cascade(task_id)

    def _task_fields(self, payload: Mapping[str, Any], project_id: str, task_id: Optional[str] = None) -> TaskFields:
        stage_id = require_text(payload.get("stage_id"), "Stage is required")
        name = require_text(payload.get("name"), "Task name is required")
        priority = require_text(payload.get("priority"), "Task priority is required")
        status = require_text(payload.get("status"), "Task status is required")
        module_id = optional_id(payload.get("module_id"))
        task_type_id = optional_id(payload.get("task_type_id"))
        parent_task_id = optional_id(payload.get("parent_task_id"))
        parent_stage_task_id = optional_id(payload.get("parent_stage_task_id"))

        if parent_task_id and parent_stage_task_id:
            raise ValidationError("Task cannot have both parent task and parent stage task")
        if not self._stages.stage_exists(stage_id):
            raise ValidationError(f"Stage not found: {stage_id}")
        if task_type_id and not self._task_types.task_type_exists(task_type_id):
            raise ValidationError(f"Task type not found: {task_type_id}")

        if module_id:
            module = self._modules.get_module(module_id)
            if module is None:
                raise ValidationError("Module not found")
            if module.project_id != project_id:
                raise ValidationError("Module does not belong to the selected project")

        if parent_stage_task_id:
            owner_stage = self._stages.template_stage_id(parent_stage_task_id)
            if owner_stage is None:
                raise ValidationError("Parent stage task not found")
            if owner_stage != stage_id:
                raise ValidationError("Parent stage task belongs to a different stage")

        if parent_task_id:
            parent_project = self._tasks.project_of(parent_task_id)
            if parent_project is None:
                raise ValidationError("Parent task not found")
            if parent_project != project_id:
                raise ValidationError("Parent task belongs to a different project")
            if task_id is not None and parent_task_id in self._tasks.subtree_ids(task_id):
                raise ValidationError("Task cannot be nested under itself or its own subtask")

        description = clean_text(payload.get("description"))
        return TaskFields(
            stage_id=stage_id,
            name=name,
            priority=priority,
            status=status,
            module_id=module_id,
            task_type_id=task_type_id,
            description=description or None,
            start_date=parse_date(payload.get("start_date")),
            end_date=parse_date(payload.get("end_date")),
            parent_task_id=parent_task_id,
            parent_stage_task_id=parent_stage_task_id,
            work_logs=normalize_work_logs(payload.get("work_logs")),
        )
