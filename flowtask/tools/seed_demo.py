# Rev 0.2.0
"""
Developer seed: one workflow, a project with two modules and a handful of
tasks, including a task attached to a stage template.

Usage:
    python -m flowtask.tools.seed_demo [--db PATH]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from flowtask.repositories.db import Database
from flowtask.services.flow_data_service import FlowDataService
from flowtask.utils.logging_setup import get_logger, setup_logging
from flowtask.utils.paths import DB_PATH

_log = get_logger("seed_demo")


def seed_demo(db: Database) -> bool:
    """Populate an empty database. Returns False when projects already exist."""
    store = FlowDataService.from_db(db)
    if store.list_projects():
        return False

    plan = store.create_stage("Plan", [{"name": "Kickoff", "subtasks": ["Agenda"]}])
    build = store.create_stage("Build", [{"name": "Code review", "subtasks": ["Checklist", "Sign-off"]}])
    ship = store.create_stage("Ship", [])
    feature = store.create_task_type("Feature")
    store.create_task_type("Bug")

    workflow = store.create_workflow("Standard", [plan.id, build.id, ship.id])
    project = store.create_project("Demo project", workflow.id)
    api = store.create_module("API", project.id)
    web = store.create_module("Web", project.id)

    kickoff = plan.template_tasks[0]
    store.create_task({
        "project_id": project.id, "module_id": api.id, "stage_id": plan.id,
        "name": "Draft PRD", "priority": "高", "status": "进行中",
        "parent_stage_task_id": kickoff.id, "start_date": "2024-01-02",
        "work_logs": [{"work_time": "2024-01-02 09:30", "content": "Outline"}],
    })
    endpoints = store.create_task({
        "project_id": project.id, "module_id": api.id, "stage_id": build.id,
        "name": "Endpoints", "priority": "中", "status": "进行中", "task_type_id": feature.id,
        "start_date": "2024-01-08", "end_date": "2024-01-19",
    })
    store.create_task({
        "project_id": project.id, "module_id": api.id, "stage_id": build.id,
        "name": "Auth endpoint", "priority": "中", "status": "未开始",
        "parent_task_id": endpoints.id, "task_type_id": feature.id,
    })
    store.create_task({
        "project_id": project.id, "module_id": web.id, "stage_id": build.id,
        "name": "Landing page", "priority": "低", "status": "已完成",
        "start_date": "2024-01-03", "end_date": "2024-01-05",
    })
    store.create_task({
        "project_id": project.id, "stage_id": ship.id,
        "name": "Release notes", "priority": "低", "status": "未开始",
    })
    _log.info("Seeded demo project %s", project.id)
    return True


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="flowtask-seed", description="Load the flowtask demo workspace")
    p.add_argument("--db", type=Path, default=DB_PATH, help=f"Path to SQLite DB (default: {DB_PATH})")
    ns = p.parse_args(argv if argv is not None else sys.argv[1:])
    db = Database(ns.db)
    try:
        db.run_migrations()
        if seed_demo(db):
            print(f"✓ Seeded demo workspace into {ns.db}")
        else:
            print("ℹ️  Database already has projects; nothing seeded.")
        return 0
    finally:
        db.close()


def run() -> None:
    """Console entry point: log to file/stdout, then exit with main's status."""
    setup_logging()
    raise SystemExit(main())


if __name__ == "__main__":
    run()
