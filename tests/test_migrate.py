# tests/test_migrate.py
from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from flowtask.repositories.db import Database
from flowtask.services.flow_data_service import FlowDataService
from flowtask.tools import migrate
from flowtask.tools.seed_demo import seed_demo


def test_up_is_idempotent_and_records_hashes(tmp_path: Path, capsys):
    db_path = tmp_path / "flow.db"
    assert migrate.main(["up", "--db", str(db_path)]) == 0
    assert "Applied migration: 0001_init.sql" in capsys.readouterr().out
    assert migrate.main(["up", "--db", str(db_path)]) == 0
    assert "No changes" in capsys.readouterr().out

    db = Database(db_path)
    try:
        applied = db.applied()
        assert list(applied) == ["0001_init.sql"]
        assert len(applied["0001_init.sql"][0]) == 64
    finally:
        db.close()


def test_status_lists_pending_then_applied(tmp_path: Path, capsys):
    db_path = tmp_path / "flow.db"
    migrate.main(["status", "--db", str(db_path)])
    assert "Pending count: 1" in capsys.readouterr().out
    migrate.main(["up", "--db", str(db_path)])
    capsys.readouterr()
    migrate.main(["status", "--db", str(db_path)])
    out = capsys.readouterr().out
    assert "Applied count: 1" in out
    assert "Pending count: 0" in out


def test_verify_after_up(tmp_path: Path):
    db_path = tmp_path / "flow.db"
    assert migrate.main(["verify", "--db", str(db_path)]) == 2
    migrate.main(["up", "--db", str(db_path)])
    assert migrate.main(["verify", "--db", str(db_path)]) == 0


def test_rebuild_with_seed(tmp_path: Path):
    db_path = tmp_path / "flow.db"
    migrate.main(["up", "--db", str(db_path), "--seed"])
    assert migrate.main(["rebuild", "--db", str(db_path), "--seed"]) == 0
    db = Database(db_path)
    try:
        store = FlowDataService.from_db(db)
        assert [p.name for p in store.list_projects()] == ["Demo project"]
        assert seed_demo(db) is False
        draft = next(t for t in store.list_tasks() if t.name == "Draft PRD")
        assert draft.parent_stage_task_id is not None
    finally:
        db.close()


def test_failed_migration_leaves_nothing_behind(tmp_path: Path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "0001_bad.sql").write_text(
        "CREATE TABLE ok_table (id TEXT);\nCREATE TABLE broken (;\n", encoding="utf-8"
    )
    db = Database(tmp_path / "flow.db")
    try:
        with pytest.raises(sqlite3.OperationalError):
            db.run_migrations(migrations)
        names = {r[0] for r in db.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert "ok_table" not in names
        assert db.applied() == {}
    finally:
        db.close()


def test_migration_and_its_record_commit_together(tmp_path: Path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    # the file claims its own filename, so recording it hits the primary key
    (migrations / "0001_dup.sql").write_text(
        "CREATE TABLE new_table (id TEXT);\n"
        "INSERT INTO schema_migrations(filename, sha256, applied_at_utc) VALUES ('0001_dup.sql', 'x', 'now');\n",
        encoding="utf-8",
    )
    db = Database(tmp_path / "flow.db")
    try:
        with pytest.raises(sqlite3.IntegrityError):
            db.run_migrations(migrations)
        names = {r[0] for r in db.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert "new_table" not in names
        assert db.applied() == {}
    finally:
        db.close()
