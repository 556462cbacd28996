# Rev 0.2.0
"""Input normalisation for the store boundary. Everything here raises
ValidationError (never coerces silently) except where blank means "absent"."""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional

from flowtask.models.entities import TemplateTaskDraft, WorkLogDraft
from flowtask.models.errors import ValidationError

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_TIME = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?$")


def clean_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def require_text(value: Any, message: str) -> str:
    text = clean_text(value)
    if not text:
        raise ValidationError(message)
    return text


def optional_id(value: Any) -> Optional[str]:
    """Blank strings and the literals 'null'/'undefined' mean 'no reference'."""
    if value is None:
        return None
    if not isinstance(value, str):
        return str(value)
    text = value.strip()
    if not text or text.lower() in ("null", "undefined"):
        return None
    return text


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    text = clean_text(value)
    if not text:
        return None
    if not _DATE_ONLY.match(text):
        raise ValidationError(f"Invalid date format: {value}")
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid date format: {value}") from exc


def parse_work_time(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = clean_text(value)
    if not text:
        return None
    if not _DATE_TIME.match(text):
        raise ValidationError(f"Invalid work time format: {value}")
    try:
        return datetime.fromisoformat(text.replace(" ", "T"))
    except ValueError as exc:
        raise ValidationError(f"Invalid work time format: {value}") from exc


def normalize_template_tasks(raw: Optional[Iterable[Any]]) -> List[TemplateTaskDraft]:
    """Trim names; drop blank template tasks and blank subtasks."""
    out: List[TemplateTaskDraft] = []
    for item in raw or []:
        if isinstance(item, TemplateTaskDraft):
            name, subtasks = item.name, item.subtasks
        elif isinstance(item, Mapping):
            name, subtasks = item.get("name"), item.get("subtasks") or []
        else:
            name, subtasks = item, []
        name = clean_text(name)
        if not name:
            continue
        sub_names = []
        for sub in subtasks:
            sub_name = clean_text(sub.get("name") if isinstance(sub, Mapping) else sub)
            if sub_name:
                sub_names.append(sub_name)
        out.append(TemplateTaskDraft(name=name, subtasks=sub_names))
    return out


def normalize_work_logs(raw: Optional[Iterable[Any]]) -> List[WorkLogDraft]:
    """Entries missing either a time or content are dropped; bad times raise."""
    out: List[WorkLogDraft] = []
    for item in raw or []:
        if isinstance(item, WorkLogDraft):
            out.append(item)
            continue
        if not isinstance(item, Mapping):
            continue
        raw_time = item.get("work_time", item.get("workTime"))
        content = clean_text(item.get("content"))
        if not content:
            continue
        work_time = parse_work_time(raw_time)
        if work_time is None:
            continue
        out.append(WorkLogDraft(work_time=work_time, content=content))
    return out
