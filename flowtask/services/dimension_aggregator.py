# Rev 0.2.0

"""Dimension aggregator (Rev 0.2.0)
Group tasks into chart slices by any combination of stage, task type,
priority and status (optionally split per module).

Configuration is a plain mapping dimension -> DimensionSelection so the
aggregation stays a pure function of (tasks, config). Every missing value
resolves to a sentinel key, never to None.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import cmp_to_key, lru_cache
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from PySide6.QtCore import QCollator, QLocale

from flowtask.models.entities import Module, Stage, Task, TaskType
from flowtask.models.types import Dimension

DIMENSIONS: Tuple[Dimension, ...] = ("stage", "task_type", "priority", "status")
DIMENSION_LABELS: Dict[str, str] = {
    "stage": "阶段",
    "task_type": "任务类型",
    "priority": "优先级",
    "status": "状态",
}

NO_STAGE = "__no_stage__"
NO_TASK_TYPE = "__no_task_type__"
NO_PRIORITY = "__no_priority__"
NO_STATUS = "__no_status__"
UNASSIGNED_MODULE = "__unassigned__"

SENTINEL_LABELS: Dict[str, str] = {
    NO_STAGE: "未指定阶段",
    NO_TASK_TYPE: "未指定类型",
    NO_PRIORITY: "未设置优先级",
    NO_STATUS: "未设置状态",
    UNASSIGNED_MODULE: "未分配模块",
}

STATUS_COLORS: Dict[str, str] = {
    "未开始": "#94a3b8",
    "进行中": "#60a5fa",
    "已完成": "#34d399",
}
FALLBACK_COLOR = "#94a3b8"
PALETTE: Tuple[str, ...] = (
    "#6366f1", "#ec4899", "#14b8a6", "#f97316",
    "#8b5cf6", "#22d3ee", "#f59e0b", "#10b981",
)
SHADE_STEPS: Tuple[float, ...] = (-0.18, 0.02, 0.18, 0.3)
DEFAULT_SORT_LOCALE = "zh_CN"


@dataclass(frozen=True)
class ValueOption:
    key: str
    label: str


@dataclass(frozen=True)
class DimensionSelection:
    enabled: bool
    selected: Tuple[str, ...] = ()
    available: Tuple[str, ...] = ()

    @property
    def all_selected(self) -> bool:
        return bool(self.available) and set(self.available) <= set(self.selected)

    def with_enabled(self, enabled: bool) -> "DimensionSelection":
        return replace(self, enabled=enabled)

    def with_value(self, key: str, checked: bool) -> "DimensionSelection":
        chosen = set(self.selected)
        if checked:
            chosen.add(key)
        else:
            chosen.discard(key)
        return replace(self, selected=tuple(k for k in self.available if k in chosen))

    def with_all(self, checked: bool) -> "DimensionSelection":
        return replace(self, selected=self.available if checked else ())


DimensionConfig = Mapping[str, DimensionSelection]


@dataclass(frozen=True)
class LabelContext:
    stage_names: Mapping[str, str] = field(default_factory=dict)
    task_type_names: Mapping[str, str] = field(default_factory=dict)
    module_names: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_entities(
        cls,
        stages: Sequence[Stage] = (),
        task_types: Sequence[TaskType] = (),
        modules: Sequence[Module] = (),
    ) -> "LabelContext":
        return cls(
            stage_names={s.id: s.name for s in stages},
            task_type_names={t.id: t.name for t in task_types},
            module_names={m.id: m.name for m in modules},
        )


@dataclass(frozen=True)
class ChartEntry:
    key: str
    label: str
    count: int
    module_key: Optional[str] = None
    values: Mapping[str, ValueOption] = field(default_factory=dict)
    color: str = FALLBACK_COLOR


# ---------- value resolution ----------

def module_key(task: Task) -> str:
    return task.module_id or UNASSIGNED_MODULE


def dimension_key(task: Task, dimension: str) -> str:
    if dimension == "stage":
        return task.stage_id or NO_STAGE
    if dimension == "task_type":
        return task.task_type_id or NO_TASK_TYPE
    if dimension == "priority":
        return task.priority.strip() or NO_PRIORITY
    if dimension == "status":
        return task.status.strip() or NO_STATUS
    raise KeyError(dimension)


def dimension_value(task: Task, dimension: str, labels: LabelContext) -> ValueOption:
    key = dimension_key(task, dimension)
    if key in SENTINEL_LABELS:
        return ValueOption(key, SENTINEL_LABELS[key])
    if dimension == "stage":
        return ValueOption(key, labels.stage_names.get(key) or f"未知阶段({key})")
    if dimension == "task_type":
        return ValueOption(key, labels.task_type_names.get(key) or f"未知类型({key})")
    return ValueOption(key, key)


# ---------- options ----------

def _id_options(known: Iterable[Tuple[str, str]], referenced: Iterable[Optional[str]],
                sentinel: str, unnamed: str, unknown: str) -> List[ValueOption]:
    options = [ValueOption(sentinel, SENTINEL_LABELS[sentinel])]
    seen = set()
    for item_id, name in known:
        if item_id and item_id not in seen:
            seen.add(item_id)
            options.append(ValueOption(item_id, name or unnamed))
    for item_id in referenced:
        if item_id and item_id not in seen:
            seen.add(item_id)
            options.append(ValueOption(item_id, f"{unknown}({item_id})"))
    return options


def _string_options(values: Iterable[Optional[str]], sentinel: str) -> List[ValueOption]:
    options = [ValueOption(sentinel, SENTINEL_LABELS[sentinel])]
    seen = {sentinel}
    for value in values:
        text = (value or "").strip()
        if text and text not in seen:
            seen.add(text)
            options.append(ValueOption(text, text))
    return options


def dimension_value_options(
    tasks: Sequence[Task],
    stages: Sequence[Stage],
    task_types: Sequence[TaskType],
    priorities: Sequence[str],
    statuses: Sequence[str],
) -> Dict[str, List[ValueOption]]:
    """Per dimension: sentinel first, configured/known values, then unknown ids seen on tasks."""
    return {
        "stage": _id_options(((s.id, s.name) for s in stages), (t.stage_id for t in tasks),
                             NO_STAGE, "未命名阶段", "未知阶段"),
        "task_type": _id_options(((tt.id, tt.name) for tt in task_types), (t.task_type_id for t in tasks),
                                 NO_TASK_TYPE, "未命名类型", "未知类型"),
        "priority": _string_options([*priorities, *(t.priority for t in tasks)], NO_PRIORITY),
        "status": _string_options([*statuses, *(t.status for t in tasks)], NO_STATUS),
    }


def module_options(modules: Sequence[Module], tasks: Sequence[Task]) -> List[ValueOption]:
    options = [ValueOption(m.id, m.name) for m in modules]
    if any(not t.module_id for t in tasks):
        options.append(ValueOption(UNASSIGNED_MODULE, SENTINEL_LABELS[UNASSIGNED_MODULE]))
    return options


# ---------- configuration reducers ----------

def default_dimension_config(
    options: Mapping[str, Sequence[ValueOption]],
    enabled: Iterable[str] = ("status",),
) -> Dict[str, DimensionSelection]:
    enabled = set(enabled)
    config: Dict[str, DimensionSelection] = {}
    for dim in DIMENSIONS:
        keys = tuple(o.key for o in options.get(dim, ()))
        config[dim] = DimensionSelection(dim in enabled, keys, keys)
    return config


def resync_dimension_config(
    previous: Optional[DimensionConfig],
    options: Mapping[str, Sequence[ValueOption]],
) -> Dict[str, DimensionSelection]:
    """
    Carry selections across an option change: keys that vanished are dropped,
    and a dimension that had everything selected keeps everything selected
    (new values included).
    """
    if not previous:
        return default_dimension_config(options)
    config: Dict[str, DimensionSelection] = {}
    for dim in DIMENSIONS:
        keys = tuple(o.key for o in options.get(dim, ()))
        prev = previous.get(dim)
        if prev is None:
            config[dim] = DimensionSelection(dim == "status", keys, keys)
            continue
        if prev.all_selected:
            selected = keys
        else:
            kept = set(prev.selected)
            selected = tuple(k for k in keys if k in kept)
        config[dim] = DimensionSelection(prev.enabled, selected, keys)
    return config


def active_dimensions(config: DimensionConfig) -> Tuple[str, ...]:
    active = tuple(dim for dim in DIMENSIONS if config.get(dim) and config[dim].enabled)
    return active or ("status",)


def dimension_filters(config: DimensionConfig) -> Dict[str, frozenset]:
    """
    Value gates over the enabled dimensions only; the status fallback used for
    grouping when nothing is enabled does not filter. An empty selection is an
    empty gate (excludes everything); a full selection is no gate at all.
    """
    filters: Dict[str, frozenset] = {}
    for dim in DIMENSIONS:
        entry = config.get(dim)
        if entry is None or not entry.enabled or not entry.available:
            continue
        if not entry.selected:
            filters[dim] = frozenset()
        elif not entry.all_selected:
            filters[dim] = frozenset(entry.selected)
    return filters


def allow_module_distinction(selected_module_ids: Sequence[str]) -> bool:
    return len([m for m in selected_module_ids if m]) > 1


def filter_tasks(
    tasks: Sequence[Task],
    config: DimensionConfig,
    selected_module_ids: Sequence[str],
) -> List[Task]:
    if not selected_module_ids:
        return []
    modules = set(selected_module_ids)
    filters = dimension_filters(config)
    out: List[Task] = []
    for task in tasks:
        if module_key(task) not in modules:
            continue
        if all(dimension_key(task, dim) in allowed for dim, allowed in filters.items()):
            out.append(task)
    return out


# ---------- aggregation ----------

@lru_cache(maxsize=None)
def _collator(locale_name: str) -> QCollator:
    return QCollator(QLocale(locale_name))


def sort_by_label(entries: Sequence[ChartEntry], locale_name: str = DEFAULT_SORT_LOCALE) -> List[ChartEntry]:
    """Order entries by label using the collation rules of locale_name (pinyin for zh_CN)."""
    collator = _collator(locale_name or DEFAULT_SORT_LOCALE)
    return sorted(entries, key=cmp_to_key(lambda a, b: collator.compare(a.label, b.label)))


def aggregate(
    tasks: Sequence[Task],
    config: DimensionConfig,
    labels: LabelContext,
    selected_module_ids: Sequence[str],
    module_distinction: bool = False,
    sort_locale: str = DEFAULT_SORT_LOCALE,
) -> List[ChartEntry]:
    by_module = module_distinction and allow_module_distinction(selected_module_ids)
    dims = active_dimensions(config)
    counts: Dict[str, int] = {}
    firsts: Dict[str, ChartEntry] = {}
    for task in filter_tasks(tasks, config, selected_module_ids):
        mkey = module_key(task)
        values = {dim: dimension_value(task, dim, labels) for dim in dims}
        key_parts = ([mkey] if by_module else []) + [values[d].key for d in dims]
        key = "|".join(key_parts)
        counts[key] = counts.get(key, 0) + 1
        if key not in firsts:
            label_parts = []
            if by_module:
                name = labels.module_names.get(mkey) or SENTINEL_LABELS[UNASSIGNED_MODULE]
                label_parts.append(f"模块：{name}")
            label_parts.extend(f"{DIMENSION_LABELS[d]}：{values[d].label}" for d in dims)
            firsts[key] = ChartEntry(
                key=key,
                label=" / ".join(label_parts),
                count=0,
                module_key=mkey if by_module else None,
                values=values,
            )
    entries = [replace(entry, count=counts[key]) for key, entry in firsts.items()]
    return sort_by_label(entries, sort_locale)


# ---------- presentation helpers ----------

def adjust_color(hex_color: str, amount: float) -> str:
    """Darken (amount < 0) or lighten (amount > 0) a #rrggbb colour."""
    text = (hex_color or "").lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    try:
        value = int(text, 16)
    except ValueError:
        return FALLBACK_COLOR
    channels = [(value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF]

    def shift(channel: int) -> int:
        if amount < 0:
            out = round(channel * (1 + amount))
        else:
            out = round(channel + (255 - channel) * amount)
        return min(max(out, 0), 255)

    r, g, b = (shift(c) for c in channels)
    return f"#{r:02x}{g:02x}{b:02x}"


def module_colors(module_ids: Sequence[str]) -> Dict[str, str]:
    colors = {mid: PALETTE[i % len(PALETTE)] for i, mid in enumerate(module_ids)}
    colors.setdefault(UNASSIGNED_MODULE, PALETTE[len(module_ids) % len(PALETTE)])
    return colors


def assign_colors(
    entries: Sequence[ChartEntry],
    module_distinction: bool,
    active: Sequence[str],
    module_ids: Sequence[str] = (),
) -> List[ChartEntry]:
    base = module_colors([m for m in module_ids if m != UNASSIGNED_MODULE])
    per_module: Dict[str, int] = {}
    out: List[ChartEntry] = []
    for index, entry in enumerate(entries):
        if module_distinction and entry.module_key is not None:
            seen = per_module.get(entry.module_key, 0)
            per_module[entry.module_key] = seen + 1
            color = adjust_color(base.get(entry.module_key, PALETTE[0]), SHADE_STEPS[seen % len(SHADE_STEPS)])
        elif tuple(active) == ("status",):
            status = entry.values.get("status")
            color = STATUS_COLORS.get(status.key if status else "", FALLBACK_COLOR)
        else:
            color = PALETTE[index % len(PALETTE)]
        out.append(replace(entry, color=color))
    return out


def percentage(count: int, total: int) -> str:
    if total <= 0:
        return "0%"
    text = f"{count / total * 100:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}%"
