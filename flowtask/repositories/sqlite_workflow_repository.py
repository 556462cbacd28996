# Rev 0.2.0
from __future__ import annotations
import sqlite3
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from flowtask.models.entities import Workflow
from flowtask.models.errors import NotFoundError
from flowtask.repositories.base import SQLiteRepository, new_id
from flowtask.utils.logging_setup import get_logger


class SQLiteWorkflowRepository(SQLiteRepository):
    """
    Workflows and their ordered stage list.
      workflows(id, name, created_at_utc)
      workflow_stages(workflow_id, stage_id, sort_order)
    """

    def __init__(self, db_or_conn):
        super().__init__(db_or_conn)
        self._log = get_logger("repo.workflows")

    def list_workflows(self) -> List[Workflow]:
        rows = self._fetch_all("SELECT id, name FROM workflows ORDER BY created_at_utc, rowid")
        if not rows:
            return []
        stage_map = self._stage_ids_by_workflow([r["id"] for r in rows])
        return [Workflow(id=r["id"], name=r["name"], stage_ids=stage_map.get(r["id"], [])) for r in rows]

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        rows = self._fetch_all("SELECT id, name FROM workflows WHERE id = ?", (workflow_id,))
        if not rows:
            return None
        stage_map = self._stage_ids_by_workflow([workflow_id])
        return Workflow(id=rows[0]["id"], name=rows[0]["name"], stage_ids=stage_map.get(workflow_id, []))

    def workflow_exists(self, workflow_id: Optional[str]) -> bool:
        return self._exists("workflows", workflow_id)

    def create_workflow(self, name: str, stage_ids: Sequence[str]) -> Workflow:
        workflow_id = new_id()
        with self._tx() as con:
            con.execute("INSERT INTO workflows(id, name) VALUES (?, ?)", (workflow_id, name))
            self._save_stages(con, workflow_id, stage_ids)
        self._log.info("Created workflow %s (%s) with stages %s", workflow_id, name, list(stage_ids))
        return Workflow(id=workflow_id, name=name, stage_ids=list(stage_ids))

    def update_workflow(self, workflow_id: str, name: str, stage_ids: Sequence[str]) -> Workflow:
        with self._tx() as con:
            cur = con.execute("UPDATE workflows SET name = ? WHERE id = ?", (name, workflow_id))
            if cur.rowcount == 0:
                raise NotFoundError("Workflow", workflow_id)
            self._save_stages(con, workflow_id, stage_ids)
        self._log.info("Updated workflow %s (%s) with stages %s", workflow_id, name, list(stage_ids))
        return Workflow(id=workflow_id, name=name, stage_ids=list(stage_ids))

    # ---------- internals ----------

    @staticmethod
    def _save_stages(con: sqlite3.Connection, workflow_id: str, stage_ids: Sequence[str]) -> None:
        con.execute("DELETE FROM workflow_stages WHERE workflow_id = ?", (workflow_id,))
        con.executemany(
            "INSERT INTO workflow_stages(workflow_id, stage_id, sort_order) VALUES (?, ?, ?)",
            [(workflow_id, stage_id, index) for index, stage_id in enumerate(stage_ids)],
        )

    def _stage_ids_by_workflow(self, workflow_ids: List[str]) -> Dict[str, List[str]]:
        rows = self._fetch_all(
            f"""
            SELECT workflow_id, stage_id
            FROM workflow_stages
            WHERE workflow_id IN ({self._placeholders(workflow_ids)})
            ORDER BY workflow_id, sort_order
            """,
            workflow_ids,
        )
        out: Dict[str, List[str]] = defaultdict(list)
        for r in rows:
            out[r["workflow_id"]].append(r["stage_id"])
        return out
