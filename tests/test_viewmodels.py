# tests/test_viewmodels.py
# Viewmodels over a real store: selection reducer, board groups, dashboard entries
from __future__ import annotations

import pytest
from PySide6.QtCore import QCoreApplication

from flowtask.services.selection import PROJECT_TASKS_KEY
from flowtask.viewmodels.dashboard_viewmodel import DashboardViewModel
from flowtask.viewmodels.module_board_viewmodel import ModuleBoardViewModel
from flowtask.viewmodels.workspace_viewmodel import WorkspaceViewModel


@pytest.fixture(scope="module")
def qapp():
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture()
def vm(qapp, store, workspace):
    ws = WorkspaceViewModel(store)
    board = ModuleBoardViewModel(ws)
    dashboard = DashboardViewModel(ws)
    ws.reload()
    return ws, board, dashboard


def _payload(ws, **kw):
    data = {"stage_id": ws["plan"].id, "name": "Task", "priority": "中", "status": "未开始"}
    data.update(kw)
    return data


def test_reload_selects_first_project_bucket(vm, workspace):
    ws, board, _ = vm
    assert ws.selection.project_id == workspace["project"].id
    assert ws.selection.module_id == PROJECT_TASKS_KEY
    assert ws.current_workflow().id == workspace["workflow"].id
    assert [g.stage_name for g in board.groups()] == ["Plan", "Build"]


def test_create_task_in_selected_module_reselects_it(vm, workspace):
    ws, board, _ = vm
    ws.select_module(workspace["api"].id)
    seen = []
    board.stageGroupsReady.connect(seen.append)
    task = ws.create_task(_payload(workspace, name="Draft PRD"))
    assert task.module_id == workspace["api"].id
    assert ws.selection.module_id == workspace["api"].id
    assert seen, "board should re-render after a write"
    names = [r.row.node.name for r in board.groups()[0].rows]
    assert names == ["Draft PRD", "Kickoff", "Agenda"]


def test_rejected_command_emits_error_and_keeps_state(vm, workspace):
    ws, _, _ = vm
    errors = []
    ws.errorRaised.connect(errors.append)
    assert ws.create_task(_payload(workspace, name="  ")) is None
    assert errors and "name" in errors[0].lower()
    assert ws.snapshot.tasks == []


def test_create_project_switches_selection(vm, workspace):
    ws, _, _ = vm
    changes = []
    ws.selectionChanged.connect(changes.append)
    project = ws.create_project("Gemini", workspace["workflow"].id)
    assert ws.selection.project_id == project.id
    assert changes[-1].project_id == project.id


def test_board_time_filter_hides_templates(vm, workspace):
    ws, board, _ = vm
    ws.create_task(_payload(workspace, name="Dated", start_date="2024-01-05"))
    ws.create_task(_payload(workspace, name="Undated"))
    board.set_time_filter("start", "2024-01-01", "2024-01-31")
    plan = board.groups()[0]
    assert [r.row.node.name for r in plan.rows] == ["Dated"]
    assert board.groups()[1].empty_message == "该阶段暂无符合筛选条件的任务"
    board.clear_time_filter()
    assert len(board.groups()[0].rows) == 4


def test_board_choices(vm, workspace):
    ws, board, _ = vm
    assert [s.name for s in board.stage_choices()] == ["Plan", "Build"]
    labels = [r.node.name for r in board.parent_choices(workspace["plan"].id)]
    assert labels == ["Kickoff", "Agenda"]
    assert board.stage_remark(workspace["plan"].id) == "阶段任务：Kickoff（Agenda）"
    assert board.stage_remark("missing") == ""


def test_dashboard_counts_project_tasks(vm, workspace):
    ws, _, dashboard = vm
    ws.create_task(_payload(workspace, status="进行中", module_id=workspace["api"].id))
    ws.create_task(_payload(workspace, status="进行中", module_id=workspace["web"].id))
    ws.create_task(_payload(workspace, status="已完成"))
    assert dashboard.total == 3
    assert {(e.label, e.count) for e in dashboard.entries()} == {("状态：进行中", 2), ("状态：已完成", 1)}
    assert sum(e.count for e in dashboard.entries()) == dashboard.total


def test_dashboard_module_distinction(vm, workspace):
    ws, _, dashboard = vm
    api, web = workspace["api"].id, workspace["web"].id
    ws.create_task(_payload(workspace, status="进行中", module_id=api))
    ws.create_task(_payload(workspace, status="进行中", module_id=web))
    assert dashboard.selected_modules == [api, web]

    dashboard.set_module_distinction(True)
    assert ws.selection.module_distinction
    assert {e.label for e in dashboard.entries()} == {"模块：API / 状态：进行中", "模块：Web / 状态：进行中"}

    # dropping to one module turns the split off
    dashboard.toggle_module(web, False)
    assert not ws.selection.module_distinction
    assert [(e.label, e.count) for e in dashboard.entries()] == [("状态：进行中", 1)]


def test_dashboard_dimension_toggles(vm, workspace):
    ws, _, dashboard = vm
    ws.create_task(_payload(workspace, status="进行中", priority="高"))
    ws.create_task(_payload(workspace, status="已完成", priority="低"))
    dashboard.toggle_dimension("priority", True)
    assert {e.label for e in dashboard.entries()} == {"优先级：高 / 状态：进行中", "优先级：低 / 状态：已完成"}
    dashboard.toggle_value("priority", "低", False)
    assert [e.count for e in dashboard.entries()] == [1]
    dashboard.select_all_values("status", False)
    assert dashboard.entries() == []
    assert dashboard.total == 0


def test_workspace_accessors(vm, workspace):
    ws, _, dashboard = vm
    assert ws.current_project().name == "Apollo"
    assert ws.current_module().name == "项目任务（未分配模块）"
    ws.select_module(workspace["web"].id)
    assert ws.current_module().name == "Web"
    assert [o.label for o in dashboard.module_choices] == ["API", "Web"]
    assert [o.key for o in dashboard.value_options["status"]][:1] == ["__no_status__"]


def test_dashboard_select_all_modules(vm, workspace):
    ws, _, dashboard = vm
    ws.create_task(_payload(workspace, status="进行中", module_id=workspace["api"].id))
    dashboard.select_all_modules(False)
    assert dashboard.selected_modules == []
    assert dashboard.entries() == []
    dashboard.select_all_modules(True)
    assert dashboard.selected_modules == [workspace["api"].id, workspace["web"].id]
    assert dashboard.total == 1


def test_deletion_preview_matches_cascade(vm, workspace):
    ws, _, _ = vm
    tpl = workspace["plan"].template_tasks[0]
    root = ws.create_task(_payload(workspace, name="Root"))
    child = ws.create_task(_payload(workspace, name="Child", parent_task_id=root.id))
    ws.create_task(_payload(workspace, name="Under template", parent_stage_task_id=tpl.id))
    preview = ws.deletion_preview(root.id)
    assert sorted(preview) == sorted([root.id, child.id])
    assert ws.deletion_preview("missing") == []
    assert sorted(ws.delete_task(root.id)) == sorted(preview)
    assert [t.name for t in ws.snapshot.tasks] == ["Under template"]
