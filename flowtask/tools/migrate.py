# File: flowtask/tools/migrate.py
# Usage examples:
#   python -m flowtask.tools.migrate up
#   python -m flowtask.tools.migrate status
#   python -m flowtask.tools.migrate rebuild --seed
#   python -m flowtask.tools.migrate up --db /path/to/flowtask.db
#
# Notes:
# - DB path defaults to env FLOWTASK_DB or $XDG_DATA_HOME/flowtask/flowtask.db
# - Applies flowtask/migrations/*.sql in lexicographic order
# - Records applied migrations (name + sha256) in schema_migrations
# - --seed loads the demo workspace (flowtask.tools.seed_demo)

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from flowtask.repositories.db import Database, sha256_text
from flowtask.tools.seed_demo import seed_demo
from flowtask.utils.logging_setup import setup_logging
from flowtask.utils.paths import DB_PATH, MIGRATIONS_DIR

REQUIRED_TABLES = [
    "stages",
    "stage_tasks",
    "stage_task_subtasks",
    "task_types",
    "workflows",
    "workflow_stages",
    "projects",
    "modules",
    "tasks",
    "task_work_logs",
    "schema_migrations",
]
EXPECTED_TRIGGERS = ["trg_tasks_touch_updated_at"]


def _seed(db: Database) -> None:
    if seed_demo(db):
        print("→ Seeded demo workspace.")
    else:
        print("ℹ️  Seed skipped: database already has projects.")


def cmd_status(db_path: Path, migrations_dir: Path) -> int:
    db = Database(db_path)
    try:
        applied = db.applied()
        files = sorted(Path(migrations_dir).glob("*.sql"))

        print(f"DB: {db_path}")
        print(f"Migrations dir: {migrations_dir}")
        print(f"Applied count: {len(applied)}")
        for name, (digest, when) in applied.items():
            current = next((f for f in files if f.name == name), None)
            changed = current is not None and sha256_text(current.read_text(encoding="utf-8")) != digest
            print(f"  ✔ {name}  ({when}){'  ⚠️ changed since applied' if changed else ''}")

        pending = [p.name for p in files if p.name not in applied]
        print(f"Pending count: {len(pending)}")
        for name in pending:
            print(f"  ⧗ {name}")
        return 0
    finally:
        db.close()


def cmd_up(db_path: Path, migrations_dir: Path, seed: bool) -> int:
    db = Database(db_path)
    try:
        applied = db.run_migrations(migrations_dir)
        for name in applied:
            print(f"→ Applied migration: {name}")
        if applied:
            print("✓ Database is up to date.")
        else:
            print("✓ No changes. Database already up to date.")
        if seed:
            _seed(db)
        return 0
    finally:
        db.close()


def cmd_rebuild(db_path: Path, migrations_dir: Path, seed: bool) -> int:
    # Drop DB file (and WAL side files) and rebuild from migrations
    for suffix in ("", "-wal", "-shm"):
        target = Path(f"{db_path}{suffix}")
        if target.exists():
            print(f"⟲ Rebuilding: removing {target}")
            target.unlink()
    db = Database(db_path)
    try:
        db.run_migrations(migrations_dir)
        if seed:
            _seed(db)
        print("✓ Rebuild complete.")
        return 0
    finally:
        db.close()


def cmd_verify(db_path: Path) -> int:
    db = Database(db_path)
    try:
        names = {
            r[0] for r in db.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%';"
            )
        }
        missing = [t for t in REQUIRED_TABLES if t not in names]
        if missing:
            print("❌ Missing tables:", ", ".join(missing))
            return 2

        triggers = {r[0] for r in db.conn.execute("SELECT name FROM sqlite_master WHERE type='trigger';")}
        trig_missing = [t for t in EXPECTED_TRIGGERS if t not in triggers]
        if trig_missing:
            print("❌ Missing triggers:", ", ".join(trig_missing))
            return 3

        (mode,) = db.conn.execute("PRAGMA journal_mode;").fetchone()
        if str(mode).lower() != "wal":
            print(f"❌ journal_mode is not WAL (got {mode})")
            return 4

        print("✓ Verification passed.")
        return 0
    finally:
        db.close()


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="flowtask-migrate", description="SQLite migration runner for flowtask")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(sp: argparse.ArgumentParser):
        sp.add_argument("--db", type=Path, default=DB_PATH, help=f"Path to SQLite DB (default: {DB_PATH})")
        sp.add_argument("--migrations-dir", type=Path, default=MIGRATIONS_DIR, help=f"Migrations directory (default: {MIGRATIONS_DIR})")

    s_up = sub.add_parser("up", help="Run pending migrations")
    add_common(s_up)
    s_up.add_argument("--seed", action="store_true", help="Seed after applying")

    s_rebuild = sub.add_parser("rebuild", help="Drop and recreate DB from migrations")
    add_common(s_rebuild)
    s_rebuild.add_argument("--seed", action="store_true", help="Seed after rebuild")

    s_status = sub.add_parser("status", help="Show applied and pending migrations")
    add_common(s_status)

    s_verify = sub.add_parser("verify", help="Lightweight structural verification")
    s_verify.add_argument("--db", type=Path, default=DB_PATH, help=f"Path to SQLite DB (default: {DB_PATH})")

    return p.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    ns = parse_args(argv if argv is not None else sys.argv[1:])
    if ns.cmd == "status":
        return cmd_status(ns.db, ns.migrations_dir)
    if ns.cmd == "up":
        return cmd_up(ns.db, ns.migrations_dir, ns.seed)
    if ns.cmd == "rebuild":
        return cmd_rebuild(ns.db, ns.migrations_dir, ns.seed)
    if ns.cmd == "verify":
        return cmd_verify(ns.db)
    raise SystemExit(1)


def run() -> None:
    """Console entry point: log to file/stdout, then exit with main's status."""
    setup_logging()
    raise SystemExit(main())


if __name__ == "__main__":
    run()
