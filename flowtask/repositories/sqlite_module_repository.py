# Rev 0.2.0
from __future__ import annotations
from typing import List, Optional

from flowtask.models.entities import Module
from flowtask.models.errors import NotFoundError
from flowtask.repositories.base import SQLiteRepository, new_id
from flowtask.utils.logging_setup import get_logger


class SQLiteModuleRepository(SQLiteRepository):
    """
    Module repository.
      modules(id, project_id, name, workflow_id NULL => inherit project's workflow)
    """

    def __init__(self, db_or_conn):
        super().__init__(db_or_conn)
        self._log = get_logger("repo.modules")

    def list_modules(self) -> List[Module]:
        rows = self._fetch_all(
            "SELECT id, project_id, name, workflow_id FROM modules ORDER BY created_at_utc, rowid"
        )
        return [self._to_module(r) for r in rows]

    def get_module(self, module_id: str) -> Optional[Module]:
        rows = self._fetch_all(
            "SELECT id, project_id, name, workflow_id FROM modules WHERE id = ?", (module_id,)
        )
        return self._to_module(rows[0]) if rows else None

    def create_module(self, name: str, project_id: str, workflow_id: Optional[str]) -> Module:
        module_id = new_id()
        with self._tx() as con:
            con.execute(
                "INSERT INTO modules(id, project_id, name, workflow_id) VALUES (?, ?, ?, ?)",
                (module_id, project_id, name, workflow_id),
            )
        self._log.info("Created module %s (%s) in project %s", module_id, name, project_id)
        return Module(id=module_id, project_id=project_id, name=name, workflow_id=workflow_id)

    def update_module(self, module_id: str, name: str, project_id: str, workflow_id: Optional[str]) -> Module:
        with self._tx() as con:
            cur = con.execute(
                "UPDATE modules SET project_id = ?, name = ?, workflow_id = ? WHERE id = ?",
                (project_id, name, workflow_id, module_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Module", module_id)
        self._log.info("Updated module %s (%s) in project %s", module_id, name, project_id)
        return Module(id=module_id, project_id=project_id, name=name, workflow_id=workflow_id)

    @staticmethod
    def _to_module(rec) -> Module:
        return Module(
            id=rec["id"],
            project_id=rec["project_id"],
            name=rec["name"] or "",
            workflow_id=rec["workflow_id"] or None,
        )
