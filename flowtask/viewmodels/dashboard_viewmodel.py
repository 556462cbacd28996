# Rev 0.2.0 - dimension toggles + module split, recomputed on every snapshot
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from PySide6.QtCore import QObject, Signal

from flowtask.services.dimension_aggregator import (
    DEFAULT_SORT_LOCALE,
    ChartEntry,
    DimensionSelection,
    LabelContext,
    ValueOption,
    active_dimensions,
    aggregate,
    allow_module_distinction,
    assign_colors,
    default_dimension_config,
    dimension_value_options,
    filter_tasks,
    module_options,
    percentage,
    resync_dimension_config,
)
from flowtask.services.selection import resync_module_selection
from flowtask.utils.config import default_settings, priorities, statuses
from flowtask.utils.logging_setup import get_logger
from flowtask.viewmodels.workspace_viewmodel import WorkspaceViewModel


@dataclass(frozen=True)
class LegendEntry:
    entry: ChartEntry
    percentage: str

    @property
    def label(self) -> str:
        return self.entry.label

    @property
    def count(self) -> int:
        return self.entry.count

    @property
    def color(self) -> str:
        return self.entry.color


class DashboardViewModel(QObject):
    """
    Project dashboard: tasks of the selected project grouped into chart slices.
    Emits:
      - entriesChanged(entries: list[LegendEntry])
    """

    entriesChanged = Signal(list)

    def __init__(self, workspace: WorkspaceViewModel, settings: Optional[Dict] = None):
        super().__init__()
        self._ws = workspace
        self._settings = settings if settings is not None else default_settings()
        self._log = get_logger("DashboardViewModel")
        self._module_options: List[ValueOption] = []
        self._selected_modules: List[str] = []
        self._value_options: Dict[str, List[ValueOption]] = {}
        self._config: Dict[str, DimensionSelection] = {}
        self._entries: List[LegendEntry] = []
        self._total = 0
        workspace.snapshotReloaded.connect(lambda _snapshot: self.reload())
        workspace.selectionChanged.connect(lambda _state: self.reload())

    # ---- state
    @property
    def config(self) -> Dict[str, DimensionSelection]:
        return dict(self._config)

    @property
    def value_options(self) -> Dict[str, List[ValueOption]]:
        return self._value_options

    @property
    def module_choices(self) -> List[ValueOption]:
        return list(self._module_options)

    @property
    def selected_modules(self) -> List[str]:
        return list(self._selected_modules)

    @property
    def total(self) -> int:
        return self._total

    def entries(self) -> List[LegendEntry]:
        return self._entries

    def module_distinction_allowed(self) -> bool:
        return allow_module_distinction(self._selected_modules)

    # ---- queries
    def reload(self) -> None:
        snapshot = self._ws.snapshot
        tasks = self._ws.project_tasks()
        modules = self._ws.project_modules()

        options = module_options(modules, tasks)
        option_ids = [o.key for o in options]
        previous_ids = [o.key for o in self._module_options] if self._module_options else None
        if option_ids != previous_ids:
            self._selected_modules = resync_module_selection(self._selected_modules, option_ids, previous_ids)
        self._module_options = options

        self._value_options = dimension_value_options(
            tasks, snapshot.stages, snapshot.task_types,
            priorities(self._settings), statuses(self._settings),
        )
        if self._config:
            self._config = resync_dimension_config(self._config, self._value_options)
        else:
            enabled = self._settings.get("dashboard", {}).get("enabled_dimensions") or ("status",)
            self._config = default_dimension_config(self._value_options, enabled)

        if self._ws.selection.module_distinction and not self.module_distinction_allowed():
            self._ws.set_module_distinction(False)
        self._recompute()

    def _recompute(self) -> None:
        snapshot = self._ws.snapshot
        tasks = self._ws.project_tasks()
        labels = LabelContext.from_entities(snapshot.stages, snapshot.task_types, snapshot.modules)
        by_module = self._ws.selection.module_distinction and self.module_distinction_allowed()
        sort_locale = self._settings.get("dashboard", {}).get("sort_locale") or DEFAULT_SORT_LOCALE
        entries = aggregate(tasks, self._config, labels, self._selected_modules, by_module, sort_locale)
        colored = assign_colors(
            entries, by_module, active_dimensions(self._config), [o.key for o in self._module_options]
        )
        self._total = len(filter_tasks(tasks, self._config, self._selected_modules))
        self._entries = [LegendEntry(e, percentage(e.count, self._total)) for e in colored]
        self.entriesChanged.emit(self._entries)

    # ---- commands
    def toggle_dimension(self, dimension: str, enabled: bool) -> None:
        self._update(dimension, lambda cur: cur.with_enabled(enabled))

    def toggle_value(self, dimension: str, key: str, checked: bool) -> None:
        self._update(dimension, lambda cur: cur.with_value(key, checked))

    def select_all_values(self, dimension: str, checked: bool) -> None:
        self._update(dimension, lambda cur: cur.with_all(checked))

    def _update(self, dimension: str, change) -> None:
        current = self._config.get(dimension)
        if current is None:
            self._log.warning("Unknown dashboard dimension %r", dimension)
            return
        nxt = change(current)
        if nxt == current:
            return
        self._config[dimension] = nxt
        self._recompute()

    def toggle_module(self, module_key: str, checked: bool) -> None:
        chosen = set(self._selected_modules)
        if checked:
            chosen.add(module_key)
        else:
            chosen.discard(module_key)
        self._set_modules(o.key for o in self._module_options if o.key in chosen)

    def select_all_modules(self, checked: bool) -> None:
        self._set_modules(o.key for o in self._module_options if checked)

    def _set_modules(self, ids: Iterable[str]) -> None:
        self._selected_modules = list(ids)
        if self._ws.selection.module_distinction and not self.module_distinction_allowed():
            # workspace emits selectionChanged, which recomputes
            self._ws.set_module_distinction(False)
            return
        self._recompute()

    def set_module_distinction(self, enabled: bool) -> None:
        if enabled and not self.module_distinction_allowed():
            enabled = False
        if enabled == self._ws.selection.module_distinction:
            return
        self._ws.set_module_distinction(enabled)
