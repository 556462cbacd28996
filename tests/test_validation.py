# tests/test_validation.py
from __future__ import annotations

from datetime import date, datetime

import pytest

from flowtask.models.entities import TemplateTaskDraft
from flowtask.models.errors import ValidationError
from flowtask.services.validation import (
    normalize_template_tasks,
    normalize_work_logs,
    optional_id,
    parse_date,
    parse_work_time,
    require_text,
)


@pytest.mark.parametrize("raw", [None, "", "   ", "null", "undefined", " NULL "])
def test_optional_id_blank_means_absent(raw):
    assert optional_id(raw) is None


def test_optional_id_trims():
    assert optional_id("  m-1 ") == "m-1"


def test_require_text_rejects_blank():
    with pytest.raises(ValidationError, match="Name is required"):
        require_text("  ", "Name is required")
    assert require_text(" Plan ", "x") == "Plan"


def test_parse_date_accepts_iso_and_blank():
    assert parse_date("2024-03-01") == date(2024, 3, 1)
    assert parse_date("") is None
    assert parse_date(None) is None
    assert parse_date(datetime(2024, 3, 1, 12, 0)) == date(2024, 3, 1)


@pytest.mark.parametrize("bad", ["2024/03/01", "01-03-2024", "2024-13-01", "tomorrow"])
def test_parse_date_rejects_malformed_and_names_value(bad):
    with pytest.raises(ValidationError) as exc:
        parse_date(bad)
    assert bad in str(exc.value)


def test_parse_work_time_formats():
    assert parse_work_time("2024-03-01T09:30") == datetime(2024, 3, 1, 9, 30)
    assert parse_work_time("2024-03-01 09:30:15") == datetime(2024, 3, 1, 9, 30, 15)
    with pytest.raises(ValidationError, match="2024-03-01 9h"):
        parse_work_time("2024-03-01 9h")


def test_normalize_template_tasks_drops_blanks_and_keeps_order():
    drafts = normalize_template_tasks([
        {"name": " Kickoff ", "subtasks": ["Agenda", "  ", {"name": "Invite"}]},
        {"name": "   ", "subtasks": ["lost"]},
        "Retro",
    ])
    assert drafts == [
        TemplateTaskDraft(name="Kickoff", subtasks=["Agenda", "Invite"]),
        TemplateTaskDraft(name="Retro", subtasks=[]),
    ]


def test_normalize_work_logs_drops_incomplete_entries():
    logs = normalize_work_logs([
        {"work_time": "2024-03-01 09:00", "content": "standup"},
        {"work_time": "", "content": "no time"},
        {"workTime": "2024-03-02T10:00", "content": "  "},
        {"workTime": "2024-03-02T11:00", "content": "review"},
    ])
    assert [(l.work_time, l.content) for l in logs] == [
        (datetime(2024, 3, 1, 9, 0), "standup"),
        (datetime(2024, 3, 2, 11, 0), "review"),
    ]


def test_normalize_work_logs_rejects_malformed_time():
    with pytest.raises(ValidationError, match="yesterday"):
        normalize_work_logs([{"work_time": "yesterday", "content": "x"}])
