# Rev 0.2.0
from __future__ import annotations
from typing import List, Optional

from flowtask.models.entities import TaskType
from flowtask.models.errors import NotFoundError
from flowtask.repositories.base import SQLiteRepository, new_id
from flowtask.utils.logging_setup import get_logger


class SQLiteTaskTypeRepository(SQLiteRepository):
    """Thin wrapper around the 'task_types' table."""

    def __init__(self, db_or_conn):
        super().__init__(db_or_conn)
        self._log = get_logger("repo.task_types")

    def list_task_types(self) -> List[TaskType]:
        rows = self._fetch_all("SELECT id, name FROM task_types ORDER BY created_at_utc, rowid")
        return [TaskType(id=r["id"], name=r["name"]) for r in rows]

    def get_task_type(self, task_type_id: str) -> Optional[TaskType]:
        rows = self._fetch_all("SELECT id, name FROM task_types WHERE id = ?", (task_type_id,))
        return TaskType(id=rows[0]["id"], name=rows[0]["name"]) if rows else None

    def task_type_exists(self, task_type_id: Optional[str]) -> bool:
        return self._exists("task_types", task_type_id)

    def create_task_type(self, name: str) -> TaskType:
        task_type_id = new_id()
        with self._tx() as con:
            con.execute("INSERT INTO task_types(id, name) VALUES (?, ?)", (task_type_id, name))
        self._log.info("Created task type %s (%s)", task_type_id, name)
        return TaskType(id=task_type_id, name=name)

    def rename_task_type(self, task_type_id: str, name: str) -> TaskType:
        with self._tx() as con:
            cur = con.execute("UPDATE task_types SET name = ? WHERE id = ?", (name, task_type_id))
            if cur.rowcount == 0:
                raise NotFoundError("TaskType", task_type_id)
        self._log.info("Renamed task type %s to %s", task_type_id, name)
        return TaskType(id=task_type_id, name=name)
