# Rev 0.2.0

"""Pytest fixtures for flowtask (Rev 0.2.0)"""
from __future__ import annotations
import os
import pytest
from pathlib import Path
from typing import Any, Dict, List

from flowtask.models.entities import Stage, StageSubtaskTemplate, StageTaskTemplate, Task
from flowtask.repositories.db import Database
from flowtask.services.flow_data_service import FlowDataService

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture()
def db(tmp_path: Path):
    database = Database(path=str(tmp_path / "test.db"))
    try:
        database.run_migrations()
        yield database
    finally:
        database.close()


@pytest.fixture()
def db_conn(db):
    return db.conn


@pytest.fixture()
def store(db) -> FlowDataService:
    return FlowDataService.from_db(db)


@pytest.fixture()
def workspace(store) -> Dict[str, Any]:
    """A stage with a template, a workflow, a project with two modules."""
    plan = store.create_stage("Plan", [{"name": "Kickoff", "subtasks": ["Agenda"]}])
    build = store.create_stage("Build", [])
    workflow = store.create_workflow("Standard", [plan.id, build.id])
    project = store.create_project("Apollo", workflow.id)
    api = store.create_module("API", project.id)
    web = store.create_module("Web", project.id)
    return {"plan": plan, "build": build, "workflow": workflow, "project": project, "api": api, "web": web}


# ---------- in-memory builders (no database) ----------

def make_task(task_id: str, stage_id: str = "S", **kw) -> Task:
    kw.setdefault("project_id", "P")
    kw.setdefault("name", task_id)
    kw.setdefault("priority", "中")
    kw.setdefault("status", "未开始")
    return Task(id=task_id, stage_id=stage_id, **kw)


def make_stage(stage_id: str, name: str = "", templates: Dict[str, List[str]] | None = None) -> Stage:
    """templates: template name -> subtask names; ids are '<stage>-<name>' / '<stage>-<name>-<sub>'."""
    tpl_list = []
    for order, (tpl_name, subs) in enumerate((templates or {}).items()):
        tpl_id = f"{stage_id}-{tpl_name}"
        tpl_list.append(StageTaskTemplate(
            id=tpl_id, stage_id=stage_id, name=tpl_name, sort_order=order,
            subtasks=[StageSubtaskTemplate(id=f"{tpl_id}-{s}", stage_task_id=tpl_id, name=s, sort_order=i)
                      for i, s in enumerate(subs)],
        ))
    return Stage(id=stage_id, name=name or stage_id, template_tasks=tpl_list)
