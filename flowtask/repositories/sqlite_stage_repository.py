# Rev 0.2.0

# flowtask – SQLiteStageRepository (Rev 0.2.0)
# Stages plus their template tasks/subtasks. Templates have no lifecycle of
# their own: every edit deletes and re-inserts the whole template set.

from __future__ import annotations
import sqlite3
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from flowtask.models.entities import Stage, StageSubtaskTemplate, StageTaskTemplate, TemplateTaskDraft
from flowtask.models.errors import NotFoundError
from flowtask.repositories.base import SQLiteRepository, new_id
from flowtask.utils.logging_setup import get_logger


class SQLiteStageRepository(SQLiteRepository):
    """
    Expected schema (0001):
      stages(id, name, created_at_utc)
      stage_tasks(id, stage_id, name, sort_order, created_at_utc)
      stage_task_subtasks(id, stage_task_id, name, sort_order, created_at_utc)
    """

    def __init__(self, db_or_conn):
        super().__init__(db_or_conn)
        self._log = get_logger("repo.stages")

    # --- public API ---------------------------------------------------------

    def list_stages(self) -> List[Stage]:
        rows = self._fetch_all("SELECT id, name FROM stages ORDER BY created_at_utc, rowid")
        if not rows:
            return []
        templates = self._templates_by_stage([r["id"] for r in rows])
        return [Stage(id=r["id"], name=r["name"], template_tasks=templates.get(r["id"], [])) for r in rows]

    def get_stage(self, stage_id: str) -> Optional[Stage]:
        rows = self._fetch_all("SELECT id, name FROM stages WHERE id = ?", (stage_id,))
        if not rows:
            return None
        templates = self._templates_by_stage([stage_id])
        return Stage(id=rows[0]["id"], name=rows[0]["name"], template_tasks=templates.get(stage_id, []))

    def stage_exists(self, stage_id: Optional[str]) -> bool:
        return self._exists("stages", stage_id)

    def template_stage_id(self, stage_task_id: str) -> Optional[str]:
        """Owning stage of a template task, or None if the template does not exist."""
        row = self._conn().execute("SELECT stage_id FROM stage_tasks WHERE id = ?", (stage_task_id,)).fetchone()
        return row[0] if row else None

    def create_stage(self, name: str, template_tasks: Sequence[TemplateTaskDraft]) -> Stage:
        stage_id = new_id()
        with self._tx() as con:
            con.execute("INSERT INTO stages(id, name) VALUES (?, ?)", (stage_id, name))
            templates = self._save_templates(con, stage_id, template_tasks)
        self._log.info("Created stage %s (%s) with %d template tasks", stage_id, name, len(templates))
        return Stage(id=stage_id, name=name, template_tasks=templates)

    def replace_stage(self, stage_id: str, name: str, template_tasks: Sequence[TemplateTaskDraft]) -> Stage:
        with self._tx() as con:
            cur = con.execute("UPDATE stages SET name = ? WHERE id = ?", (name, stage_id))
            if cur.rowcount == 0:
                raise NotFoundError("Stage", stage_id)
            templates = self._save_templates(con, stage_id, template_tasks)
        self._log.info("Replaced stage %s (%s) with %d template tasks", stage_id, name, len(templates))
        return Stage(id=stage_id, name=name, template_tasks=templates)

    # --- internals ----------------------------------------------------------

    @staticmethod
    def _save_templates(
        con: sqlite3.Connection, stage_id: str, drafts: Sequence[TemplateTaskDraft]
    ) -> List[StageTaskTemplate]:
        # subtasks follow via ON DELETE CASCADE
        con.execute("DELETE FROM stage_tasks WHERE stage_id = ?", (stage_id,))
        out: List[StageTaskTemplate] = []
        for index, draft in enumerate(drafts):
            task_id = new_id()
            subtasks = [
                StageSubtaskTemplate(id=new_id(), stage_task_id=task_id, name=sub_name, sort_order=sub_index)
                for sub_index, sub_name in enumerate(draft.subtasks)
            ]
            out.append(StageTaskTemplate(id=task_id, stage_id=stage_id, name=draft.name,
                                         sort_order=index, subtasks=subtasks))
        con.executemany(
            "INSERT INTO stage_tasks(id, stage_id, name, sort_order) VALUES (?, ?, ?, ?)",
            [(t.id, t.stage_id, t.name, t.sort_order) for t in out],
        )
        con.executemany(
            "INSERT INTO stage_task_subtasks(id, stage_task_id, name, sort_order) VALUES (?, ?, ?, ?)",
            [(s.id, s.stage_task_id, s.name, s.sort_order) for t in out for s in t.subtasks],
        )
        return out

    def _templates_by_stage(self, stage_ids: List[str]) -> Dict[str, List[StageTaskTemplate]]:
        task_rows = self._fetch_all(
            f"""
            SELECT id, stage_id, name, sort_order
            FROM stage_tasks
            WHERE stage_id IN ({self._placeholders(stage_ids)})
            ORDER BY stage_id, sort_order, created_at_utc
            """,
            stage_ids,
        )
        if not task_rows:
            return {}
        task_ids = [r["id"] for r in task_rows]
        sub_rows = self._fetch_all(
            f"""
            SELECT id, stage_task_id, name, sort_order
            FROM stage_task_subtasks
            WHERE stage_task_id IN ({self._placeholders(task_ids)})
            ORDER BY stage_task_id, sort_order, created_at_utc
            """,
            task_ids,
        )
        subs: Dict[str, List[StageSubtaskTemplate]] = defaultdict(list)
        for r in sub_rows:
            subs[r["stage_task_id"]].append(
                StageSubtaskTemplate(id=r["id"], stage_task_id=r["stage_task_id"],
                                     name=r["name"], sort_order=int(r["sort_order"]))
            )
        out: Dict[str, List[StageTaskTemplate]] = defaultdict(list)
        for r in task_rows:
            out[r["stage_id"]].append(
                StageTaskTemplate(id=r["id"], stage_id=r["stage_id"], name=r["name"],
                                  sort_order=int(r["sort_order"]), subtasks=subs.get(r["id"], []))
            )
        return out
