# Rev 0.2.0

"""SQLite connection & migration runner (Rev 0.2.0)
- WAL mode (file databases), foreign_keys=ON, sqlite3.Row rows
- Applies SQL files in flowtask/migrations in lexical order
- Tracks applied files in schema_migrations(filename, sha256, applied_at_utc)
- transaction(): one BEGIN/COMMIT per mutation, ROLLBACK on any exception
"""
from __future__ import annotations
import hashlib
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, Iterator, Tuple


from flowtask.utils.paths import DB_PATH, MIGRATIONS_DIR
from flowtask.utils.logging_setup import get_logger


MEMORY = ":memory:"

MIGRATIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename        TEXT PRIMARY KEY,
    sha256          TEXT NOT NULL,
    applied_at_utc  TEXT NOT NULL
)
"""


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Database:
    def __init__(self, path: Path | str = DB_PATH) -> None:
        self._log = get_logger("db")
        self.path = str(path)
        if self.path != MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        if self.path != MEMORY:
            self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute("PRAGMA foreign_keys=ON;")
        self.conn.execute(MIGRATIONS_TABLE_SQL)
        self._log.info("SQLite open %s", self.path)


    def close(self) -> None:
        self.conn.close()


    def applied(self) -> Dict[str, Tuple[str, str]]:
        """filename -> (sha256, applied_at_utc)"""
        rows = self.conn.execute(
            "SELECT filename, sha256, applied_at_utc FROM schema_migrations ORDER BY filename"
        ).fetchall()
        return {r[0]: (r[1], r[2]) for r in rows}


    def apply_migration(self, filename: str, sql: str) -> None:
        """Run one migration file and record it in the same transaction."""
        # executescript commits implicitly; statements run one by one instead
        with self.transaction() as con:
            for statement in _split_statements(sql):
                con.execute(statement)
            con.execute(
                "INSERT INTO schema_migrations(filename, sha256, applied_at_utc) VALUES(?, ?, ?)",
                (filename, sha256_text(sql), utc_now_iso()),
            )


    def run_migrations(self, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
        applied = self.applied()
        done: list[str] = []
        for p in sorted(Path(migrations_dir).glob("*.sql")):
            sql = p.read_text(encoding="utf-8")
            digest = sha256_text(sql)
            if p.name in applied:
                if applied[p.name][0] != digest:
                    self._log.warning("Migration %s changed after it was applied", p.name)
                continue
            self.apply_migration(p.name, sql)
            self._log.info("Applied migration %s", p.name)
            done.append(p.name)
        return done


    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """All statements inside run atomically; nothing is visible on failure."""
        self.conn.execute("BEGIN;")
        try:
            yield self.conn
        except BaseException:
            self.conn.execute("ROLLBACK;")
            raise
        else:
            self.conn.execute("COMMIT;")


    # Convenience cursor
    def cursor(self) -> sqlite3.Cursor:
        return self.conn.cursor()


def _split_statements(sql: str) -> Iterator[str]:
    """Yield complete statements; triggers (BEGIN ... END;) stay whole."""
    buffer = ""
    for line in sql.splitlines(keepends=True):
        if line.strip().startswith("--") and not buffer.strip():
            continue
        buffer += line
        if sqlite3.complete_statement(buffer):
            if buffer.strip():
                yield buffer.strip()
            buffer = ""
    if buffer.strip():
        yield buffer.strip()
