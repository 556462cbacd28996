# Rev 0.2.0
# flowtask – SQLiteProjectRepository (Rev 0.2.0, aligned with schema 0001)
from __future__ import annotations
from typing import List, Optional

from flowtask.models.entities import Project
from flowtask.models.errors import NotFoundError
from flowtask.repositories.base import SQLiteRepository, new_id
from flowtask.utils.logging_setup import get_logger


class SQLiteProjectRepository(SQLiteRepository):
    """
    Project repository.
    Every project follows one workflow; modules may override it.
    """

    def __init__(self, db_or_conn):
        super().__init__(db_or_conn)
        self._log = get_logger("repo.projects")

    # ---------- public API ----------

    def list_projects(self) -> List[Project]:
        rows = self._fetch_all("SELECT id, name, workflow_id FROM projects ORDER BY created_at_utc, rowid")
        return [self._to_project(r) for r in rows]

    def get_project(self, project_id: str) -> Optional[Project]:
        rows = self._fetch_all("SELECT id, name, workflow_id FROM projects WHERE id = ?", (project_id,))
        return self._to_project(rows[0]) if rows else None

    def project_exists(self, project_id: Optional[str]) -> bool:
        return self._exists("projects", project_id)

    def create_project(self, name: str, workflow_id: str) -> Project:
        project_id = new_id()
        with self._tx() as con:
            con.execute(
                "INSERT INTO projects(id, name, workflow_id) VALUES (?, ?, ?)",
                (project_id, name, workflow_id),
            )
        self._log.info("Created project %s (%s) on workflow %s", project_id, name, workflow_id)
        return Project(id=project_id, name=name, workflow_id=workflow_id)

    def update_project(self, project_id: str, name: str, workflow_id: str) -> Project:
        with self._tx() as con:
            cur = con.execute(
                "UPDATE projects SET name = ?, workflow_id = ? WHERE id = ?",
                (name, workflow_id, project_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Project", project_id)
        self._log.info("Updated project %s (%s) on workflow %s", project_id, name, workflow_id)
        return Project(id=project_id, name=name, workflow_id=workflow_id)

    # ---------- internals ----------

    @staticmethod
    def _to_project(rec) -> Project:
        return Project(id=rec["id"], name=rec["name"] or "", workflow_id=rec["workflow_id"] or "")
