# tests/test_cascade_delete.py
from __future__ import annotations

import pytest

from flowtask.models.errors import NotFoundError
from flowtask.services.cascade import collect_subtree_ids, subtree_ids_in_snapshot
from conftest import make_task


def _new(store, ws, name, **kw):
    payload = {
        "project_id": ws["project"].id,
        "stage_id": ws["plan"].id,
        "name": name,
        "priority": "中",
        "status": "未开始",
    }
    payload.update(kw)
    return store.create_task(payload)


def test_collect_subtree_is_a_closure_and_terminates_on_cycles():
    children = {"a": ["b"], "b": ["c", "a"], "c": []}
    ids = collect_subtree_ids("a", lambda tid: children.get(tid, []))
    assert ids[0] == "a"
    assert sorted(ids) == ["a", "b", "c"]


def test_subtree_in_snapshot_unknown_root():
    tasks = [make_task("a"), make_task("b", parent_task_id="a")]
    assert subtree_ids_in_snapshot(tasks, "zzz") is None
    assert sorted(subtree_ids_in_snapshot(tasks, "a")) == ["a", "b"]


def test_delete_root_removes_whole_chain(store, workspace):
    a = _new(store, workspace, "A")
    b = _new(store, workspace, "B", parent_task_id=a.id)
    c = _new(store, workspace, "C", parent_task_id=b.id)
    removed = store.delete_task(a.id)
    assert sorted(removed) == sorted([a.id, b.id, c.id])
    assert store.list_tasks() == []


def test_delete_middle_keeps_ancestor(store, workspace):
    a = _new(store, workspace, "A")
    b = _new(store, workspace, "B", parent_task_id=a.id)
    c = _new(store, workspace, "C", parent_task_id=b.id)
    removed = store.delete_task(b.id)
    assert sorted(removed) == sorted([b.id, c.id])
    assert [t.id for t in store.list_tasks()] == [a.id]


def test_template_attachments_are_not_followed(store, workspace):
    tpl = workspace["plan"].template_tasks[0]
    a = _new(store, workspace, "A")
    under_template = _new(store, workspace, "T", parent_stage_task_id=tpl.id)
    store.delete_task(a.id)
    assert [t.id for t in store.list_tasks()] == [under_template.id]


def test_work_logs_go_with_their_task(store, workspace, db):
    a = _new(store, workspace, "A", work_logs=[{"work_time": "2024-01-01 09:00", "content": "x"}])
    _new(store, workspace, "B", parent_task_id=a.id,
         work_logs=[{"work_time": "2024-01-01 10:00", "content": "y"}])
    store.delete_task(a.id)
    assert db.conn.execute("SELECT COUNT(*) FROM task_work_logs").fetchone()[0] == 0


def test_delete_missing_task_is_not_found_and_changes_nothing(store, workspace):
    a = _new(store, workspace, "A")
    with pytest.raises(NotFoundError) as exc:
        store.delete_task("missing")
    assert exc.value.entity == "Task"
    assert [t.id for t in store.list_tasks()] == [a.id]
