# Rev 0.2.0
from __future__ import annotations

import sqlite3
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from flowtask.models.entities import Task, TaskFields, TaskWorkLog, WorkLogDraft
from flowtask.models.errors import NotFoundError
from flowtask.repositories.base import SQLiteRepository, new_id
from flowtask.services.cascade import collect_subtree_ids
from flowtask.utils.logging_setup import get_logger


_TASK_COLUMNS = """
    id, project_id, module_id, stage_id, task_type_id, name, description, priority, status,
    start_date, end_date, parent_task_id, parent_stage_task_id
"""


class SQLiteTaskRepository(SQLiteRepository):
    """
    Task CRUD + work logs + cascade deletion.
    Work logs are replaced wholesale on every update; deleting a task removes
    its whole parent_task_id subtree in one transaction.
    """

    def __init__(self, db_or_conn):
        super().__init__(db_or_conn)
        self._log = get_logger("repo.tasks")

    # -------------------------
    # Row mapping
    # -------------------------
    @staticmethod
    def _blank_to_none(value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value)
        return text if text.strip() else None

    @classmethod
    def _row_to_task(cls, row: Dict[str, Any], work_logs: List[TaskWorkLog]) -> Task:
        return Task(
            id=row["id"],
            project_id=row["project_id"],
            module_id=cls._blank_to_none(row["module_id"]),
            stage_id=row["stage_id"] or "",
            task_type_id=cls._blank_to_none(row["task_type_id"]),
            name=row["name"] or "",
            description=row["description"] or "",
            priority=row["priority"] or "",
            status=row["status"] or "",
            start_date=date.fromisoformat(row["start_date"]) if row["start_date"] else None,
            end_date=date.fromisoformat(row["end_date"]) if row["end_date"] else None,
            parent_task_id=cls._blank_to_none(row["parent_task_id"]),
            parent_stage_task_id=cls._blank_to_none(row["parent_stage_task_id"]),
            work_logs=work_logs,
        )

    # -------------------------
    # Queries
    # -------------------------
    def list_tasks(self) -> List[Task]:
        rows = self._fetch_all(f"SELECT {_TASK_COLUMNS} FROM tasks ORDER BY created_at_utc, rowid")
        if not rows:
            return []
        logs = self._work_logs_by_task([r["id"] for r in rows])
        return [self._row_to_task(r, logs.get(r["id"], [])) for r in rows]

    def get_task(self, task_id: str) -> Optional[Task]:
        rows = self._fetch_all(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,))
        if not rows:
            return None
        logs = self._work_logs_by_task([task_id])
        return self._row_to_task(rows[0], logs.get(task_id, []))

    def project_of(self, task_id: str) -> Optional[str]:
        row = self._conn().execute("SELECT project_id FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return row[0] if row else None

    def child_ids(self, parent_task_id: str) -> List[str]:
        rows = self._conn().execute(
            "SELECT id FROM tasks WHERE parent_task_id = ? ORDER BY created_at_utc, rowid",
            (parent_task_id,),
        ).fetchall()
        return [r[0] for r in rows]

    def subtree_ids(self, task_id: str) -> List[str]:
        return collect_subtree_ids(task_id, self.child_ids)

    def count_tasks_for_module(self, module_id: str) -> int:
        row = self._conn().execute("SELECT COUNT(1) FROM tasks WHERE module_id = ?", (module_id,)).fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    # -------------------------
    # CRUD
    # -------------------------
    def create_task(self, *, project_id: str, fields: TaskFields) -> Task:
        task_id = new_id()
        with self._tx() as con:
            con.execute(
                """
                INSERT INTO tasks(id, project_id, module_id, stage_id, task_type_id, name, description,
                                  priority, status, start_date, end_date, parent_task_id, parent_stage_task_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (task_id, project_id, *self._field_params(fields)),
            )
            self._save_work_logs(con, task_id, fields.work_logs)
        self._log.info("Created task %s (%s) in project %s stage %s", task_id, fields.name, project_id, fields.stage_id)
        return self._require(task_id)

    def update_task(self, task_id: str, fields: TaskFields) -> Task:
        with self._tx() as con:
            cur = con.execute(
                """
                UPDATE tasks
                SET module_id = ?, stage_id = ?, task_type_id = ?, name = ?, description = ?,
                    priority = ?, status = ?, start_date = ?, end_date = ?,
                    parent_task_id = ?, parent_stage_task_id = ?
                WHERE id = ?
                """,
                (*self._field_params(fields), task_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Task", task_id)
            self._save_work_logs(con, task_id, fields.work_logs)
        self._log.info("Updated task %s (%s)", task_id, fields.name)
        return self._require(task_id)

    def delete_task_cascade(self, task_id: str) -> List[str]:
        """Delete task_id and its parent_task_id subtree; returns the removed ids."""
        with self._tx() as con:
            if con.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone() is None:
                raise NotFoundError("Task", task_id)
            ids = self.subtree_ids(task_id)
            # work logs follow via ON DELETE CASCADE
            con.execute(f"DELETE FROM tasks WHERE id IN ({self._placeholders(ids)})", ids)
        self._log.info("Deleted task %s with %d descendants", task_id, len(ids) - 1)
        return ids

    # -------------------------
    # Internals
    # -------------------------
    def _require(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    @staticmethod
    def _field_params(fields: TaskFields) -> tuple:
        return (
            fields.module_id,
            fields.stage_id,
            fields.task_type_id,
            fields.name,
            fields.description or None,
            fields.priority,
            fields.status,
            fields.start_date.isoformat() if fields.start_date else None,
            fields.end_date.isoformat() if fields.end_date else None,
            fields.parent_task_id,
            fields.parent_stage_task_id,
        )

    @staticmethod
    def _save_work_logs(con: sqlite3.Connection, task_id: str, logs: Sequence[WorkLogDraft]) -> None:
        con.execute("DELETE FROM task_work_logs WHERE task_id = ?", (task_id,))
        con.executemany(
            "INSERT INTO task_work_logs(id, task_id, work_time, content) VALUES (?, ?, ?, ?)",
            [(new_id(), task_id, log.work_time.isoformat(timespec="seconds"), log.content) for log in logs],
        )

    def _work_logs_by_task(self, task_ids: List[str]) -> Dict[str, List[TaskWorkLog]]:
        rows = self._fetch_all(
            f"""
            SELECT id, task_id, work_time, content
            FROM task_work_logs
            WHERE task_id IN ({self._placeholders(task_ids)})
            ORDER BY task_id, work_time, created_at_utc
            """,
            task_ids,
        )
        out: Dict[str, List[TaskWorkLog]] = defaultdict(list)
        for r in rows:
            out[r["task_id"]].append(
                TaskWorkLog(
                    id=r["id"],
                    task_id=r["task_id"],
                    work_time=datetime.fromisoformat(r["work_time"]) if r["work_time"] else None,
                    content=r["content"] or "",
                )
            )
        return out
