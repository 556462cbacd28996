# Rev 0.2.0
from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Sequence, Union


def new_id() -> str:
    return str(uuid.uuid4())


class SQLiteRepository:
    """
    Shared connection handling for the flowtask repositories.
    Accepts either the Database wrapper (repositories/db.py) or a raw
    sqlite3.Connection opened with isolation_level=None.
    """

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any]):
        self._db_or_conn = db_or_conn

    # -------------------------
    # Connection handling
    # -------------------------
    def _conn(self) -> sqlite3.Connection:
        if isinstance(self._db_or_conn, sqlite3.Connection):
            return self._db_or_conn
        if hasattr(self._db_or_conn, "conn") and isinstance(self._db_or_conn.conn, sqlite3.Connection):
            return self._db_or_conn.conn
        raise RuntimeError(
            f"{type(self).__name__}: could not obtain sqlite3.Connection "
            "(expected .conn on wrapper, or a raw Connection)."
        )

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        if hasattr(self._db_or_conn, "transaction"):
            with self._db_or_conn.transaction() as con:
                yield con
            return
        con = self._conn()
        con.execute("BEGIN;")
        try:
            yield con
        except BaseException:
            con.execute("ROLLBACK;")
            raise
        else:
            con.execute("COMMIT;")

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        cur = self._conn().execute(sql, tuple(params))
        cols = [d[0] for d in cur.description]
        return [{cols[i]: row[i] for i in range(len(cols))} for row in cur.fetchall()]

    def _exists(self, table: str, entity_id: str | None) -> bool:
        if not entity_id:
            return False
        row = self._conn().execute(f"SELECT 1 FROM {table} WHERE id = ?", (entity_id,)).fetchone()
        return row is not None

    @staticmethod
    def _placeholders(values: Sequence[Any]) -> str:
        return ", ".join("?" * len(values))
