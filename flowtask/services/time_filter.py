# Rev 0.2.0

"""Board time filter (Rev 0.2.0)
Narrow stage groups to tasks whose start date, end date or work logs fall in
an inclusive range. Template placeholders are hidden while a filter is active.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import List, Optional, Sequence, Union

from flowtask.models.entities import Task, TaskWorkLog
from flowtask.models.types import TimeFilterKind
from flowtask.services.task_tree import FlatRow, StageGroup, flatten

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_TIME = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?$")

Boundary = Union[str, date, datetime, None]


def parse_boundary(value: Boundary, end_of_day: bool = False) -> Optional[datetime]:
    """Lenient parse; anything unreadable means 'no boundary'."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        if _DATE_ONLY.match(text):
            return datetime.combine(date.fromisoformat(text), time.max if end_of_day else time.min)
        if _DATE_TIME.match(text):
            return datetime.fromisoformat(text.replace(" ", "T"))
    except ValueError:
        return None
    return None


@dataclass(frozen=True)
class TimeFilter:
    kind: TimeFilterKind = "start"
    start: Boundary = None
    end: Boundary = None

    @property
    def lower(self) -> Optional[datetime]:
        return parse_boundary(self.start)

    @property
    def upper(self) -> Optional[datetime]:
        # a bare end date covers that whole day
        return parse_boundary(self.end, end_of_day=True)

    @property
    def is_active(self) -> bool:
        return self.lower is not None or self.upper is not None

    def contains(self, value: Union[date, datetime, None]) -> bool:
        if not self.is_active:
            return True
        if value is None:
            return False
        moment = value if isinstance(value, datetime) else datetime.combine(value, time.min)
        lower, upper = self.lower, self.upper
        if lower is not None and moment < lower:
            return False
        if upper is not None and moment > upper:
            return False
        return True


@dataclass(frozen=True)
class BoardRow:
    row: FlatRow
    display_work_logs: List[TaskWorkLog] = field(default_factory=list)

    @property
    def task(self) -> Optional[Task]:
        return None if self.row.is_template else self.row.node.item


@dataclass(frozen=True)
class BoardGroup:
    stage_id: str
    stage_name: str
    rows: List[BoardRow]
    filtered: bool = False

    @property
    def empty_message(self) -> str:
        return "该阶段暂无符合筛选条件的任务" if self.filtered else "该阶段暂未创建任务"


def sorted_work_logs(logs: Sequence[TaskWorkLog]) -> List[TaskWorkLog]:
    """Chronological; logs without a time sort last."""
    return sorted(logs, key=lambda log: (log.work_time is None, log.work_time or datetime.min))


def _board_row(row: FlatRow, time_filter: TimeFilter) -> Optional[BoardRow]:
    if row.is_template:
        return None if time_filter.is_active else BoardRow(row)
    task: Task = row.node.item
    logs = sorted_work_logs(task.work_logs)
    if not time_filter.is_active:
        return BoardRow(row, logs)
    if time_filter.kind == "work":
        logs = [log for log in logs if time_filter.contains(log.work_time)]
        matches = bool(logs)
    elif time_filter.kind == "end":
        matches = task.end_date is not None and time_filter.contains(task.end_date)
    else:
        matches = task.start_date is not None and time_filter.contains(task.start_date)
    return BoardRow(row, logs) if matches else None


def filter_stage_groups(groups: Sequence[StageGroup], time_filter: Optional[TimeFilter] = None) -> List[BoardGroup]:
    time_filter = time_filter or TimeFilter()
    active = time_filter.is_active
    out: List[BoardGroup] = []
    for group in groups:
        rows = flatten(group.forest, group.roots, include_templates=False) if active else group.rows
        board_rows = [r for r in (_board_row(row, time_filter) for row in rows) if r is not None]
        out.append(BoardGroup(group.stage_id, group.stage_name, board_rows, filtered=active))
    return out


def format_work_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H时") if value is not None else ""


def work_log_text(logs: Sequence[TaskWorkLog]) -> str:
    parts: List[str] = []
    for log in logs:
        time_text = format_work_time(log.work_time)
        content = (log.content or "").strip()
        if time_text and content:
            parts.append(f"{time_text}：{content}")
        elif time_text or content:
            parts.append(time_text or content)
    return "；".join(parts)
