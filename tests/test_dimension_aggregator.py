# tests/test_dimension_aggregator.py
from __future__ import annotations

from flowtask.models.entities import Module, TaskType
from flowtask.services.dimension_aggregator import (
    NO_PRIORITY,
    NO_STAGE,
    NO_STATUS,
    PALETTE,
    STATUS_COLORS,
    UNASSIGNED_MODULE,
    ChartEntry,
    DimensionSelection,
    LabelContext,
    active_dimensions,
    adjust_color,
    aggregate,
    assign_colors,
    default_dimension_config,
    dimension_filters,
    dimension_value_options,
    module_options,
    percentage,
    resync_dimension_config,
    sort_by_label,
)
from conftest import make_stage, make_task

STATUSES = ["未开始", "进行中", "已完成"]
PRIORITIES = ["低", "中", "高"]


def _config(tasks, stages=(), task_types=(), enabled=("status",)):
    options = dimension_value_options(tasks, list(stages), list(task_types), PRIORITIES, STATUSES)
    return default_dimension_config(options, enabled), options


def _ten_tasks():
    return [make_task(f"t{i}", status="进行中" if i < 6 else "已完成") for i in range(10)]


def test_status_split_example():
    tasks = _ten_tasks()
    config, _ = _config(tasks)
    entries = aggregate(tasks, config, LabelContext(), [UNASSIGNED_MODULE])
    assert sorted(e.count for e in entries) == [4, 6]
    assert {e.label for e in entries} == {"状态：进行中", "状态：已完成"}


def test_counts_sum_to_filtered_tasks():
    tasks = _ten_tasks() + [make_task("p", priority="", status="")]
    config, _ = _config(tasks, enabled=("priority", "status"))
    entries = aggregate(tasks, config, LabelContext(), [UNASSIGNED_MODULE])
    assert sum(e.count for e in entries) == len(tasks)
    keys = {e.key for e in entries}
    assert f"{NO_PRIORITY}|{NO_STATUS}" in keys


def test_no_enabled_dimension_groups_by_status_without_filtering():
    tasks = _ten_tasks()
    none_cfg, _ = _config(tasks, enabled=())
    status_cfg, _ = _config(tasks, enabled=("status",))
    assert active_dimensions(none_cfg) == ("status",)
    a = aggregate(tasks, none_cfg, LabelContext(), [UNASSIGNED_MODULE])
    b = aggregate(tasks, status_cfg, LabelContext(), [UNASSIGNED_MODULE])
    assert [(e.key, e.count) for e in a] == [(e.key, e.count) for e in b]

    # a stored value selection on a disabled dimension does not gate
    none_cfg["status"] = none_cfg["status"].with_value("已完成", False)
    assert dimension_filters(none_cfg) == {}
    a = aggregate(tasks, none_cfg, LabelContext(), [UNASSIGNED_MODULE])
    assert sorted((e.key, e.count) for e in a) == [("已完成", 4), ("进行中", 6)]

    status_cfg["status"] = status_cfg["status"].with_value("已完成", False)
    b = aggregate(tasks, status_cfg, LabelContext(), [UNASSIGNED_MODULE])
    assert [(e.key, e.count) for e in b] == [("进行中", 6)]


def test_empty_selection_excludes_everything():
    tasks = _ten_tasks()
    config, _ = _config(tasks)
    config["status"] = config["status"].with_all(False)
    assert aggregate(tasks, config, LabelContext(), [UNASSIGNED_MODULE]) == []


def test_disabled_dimension_does_not_filter():
    tasks = _ten_tasks()
    config, _ = _config(tasks, enabled=("status",))
    config["priority"] = config["priority"].with_all(False)
    assert sum(e.count for e in aggregate(tasks, config, LabelContext(), [UNASSIGNED_MODULE])) == 10


def test_module_gate_and_distinction():
    tasks = [
        make_task("a", module_id="m1", status="进行中"),
        make_task("b", module_id="m2", status="进行中"),
        make_task("c", status="进行中"),
    ]
    labels = LabelContext(module_names={"m1": "API", "m2": "Web"})
    config, _ = _config(tasks)
    split = aggregate(tasks, config, labels, ["m1", "m2", UNASSIGNED_MODULE], module_distinction=True)
    assert {e.label for e in split} == {
        "模块：API / 状态：进行中", "模块：Web / 状态：进行中", "模块：未分配模块 / 状态：进行中",
    }
    # a single selected module forces the split off
    single = aggregate(tasks, config, labels, ["m1"], module_distinction=True)
    assert [(e.label, e.count, e.module_key) for e in single] == [("状态：进行中", 1, None)]
    assert aggregate(tasks, config, labels, [], module_distinction=True) == []


def test_stage_and_type_labels_fall_back_for_unknown_ids():
    plan = make_stage("plan", "Plan")
    tasks = [make_task("a", "plan", task_type_id="ghost"), make_task("b", "gone")]
    labels = LabelContext.from_entities([plan], [TaskType("ft", "Feature")])
    config, options = _config(tasks, [plan], [TaskType("ft", "Feature")], enabled=("stage", "task_type"))
    assert [o.key for o in options["stage"]] == [NO_STAGE, "plan", "gone"]
    assert options["stage"][-1].label == "未知阶段(gone)"
    assert options["task_type"][-1].label == "未知类型(ghost)"
    entries = aggregate(tasks, config, labels, [UNASSIGNED_MODULE])
    assert {e.label for e in entries} == {
        "阶段：Plan / 任务类型：未知类型(ghost)",
        "阶段：未知阶段(gone) / 任务类型：未指定类型",
    }


def test_string_options_dedupe_and_put_sentinel_first():
    tasks = [make_task("a", priority="紧急"), make_task("b", priority=" 中 ")]
    _, options = _config(tasks)
    assert [o.key for o in options["priority"]] == [NO_PRIORITY, "低", "中", "高", "紧急"]


def test_module_options_add_unassigned_only_when_needed():
    modules = [Module("m1", "P", "API")]
    assert [o.key for o in module_options(modules, [make_task("a", module_id="m1")])] == ["m1"]
    assert [o.key for o in module_options(modules, [make_task("a")])] == ["m1", UNASSIGNED_MODULE]


def test_resync_keeps_all_selected_sticky():
    old_opts = {"status": [], "stage": [], "task_type": [], "priority": []}
    tasks = _ten_tasks()
    config, options = _config(tasks)
    new_tasks = tasks + [make_task("n", status="阻塞")]
    _, new_options = _config(new_tasks)
    resynced = resync_dimension_config(config, new_options)
    assert "阻塞" in resynced["status"].selected
    assert resynced["status"].enabled

    partial = dict(config)
    partial["status"] = config["status"].with_value("已完成", False)
    resynced = resync_dimension_config(partial, new_options)
    assert "阻塞" not in resynced["status"].selected
    assert "已完成" not in resynced["status"].selected
    assert resync_dimension_config(None, old_opts)["status"] == DimensionSelection(True, (), ())


def test_colors():
    tasks = _ten_tasks()
    config, _ = _config(tasks)
    entries = assign_colors(aggregate(tasks, config, LabelContext(), [UNASSIGNED_MODULE]), False, ("status",))
    assert {e.color for e in entries} == {STATUS_COLORS["进行中"], STATUS_COLORS["已完成"]}

    config, _ = _config(tasks, enabled=("priority", "status"))
    entries = assign_colors(aggregate(tasks, config, LabelContext(), [UNASSIGNED_MODULE]), False,
                            ("priority", "status"))
    assert [e.color for e in entries] == list(PALETTE[: len(entries)])


def test_adjust_color():
    assert adjust_color("#000000", 0.5) == "#808080"
    assert adjust_color("#ffffff", -0.5) == "#808080"
    assert adjust_color("#fff", 0) == "#ffffff"
    assert adjust_color("zzz", 0.1) == "#94a3b8"


def test_percentage():
    assert percentage(1, 3) == "33.3%"
    assert percentage(1, 2) == "50%"
    assert percentage(0, 0) == "0%"


def test_labels_follow_chinese_collation():
    tasks = [make_task("a", status="已完成"), make_task("b", status="未开始"), make_task("c", status="进行中")]
    config, _ = _config(tasks)
    entries = aggregate(tasks, config, LabelContext(), [UNASSIGNED_MODULE])
    # pinyin order: jin < wei < yi
    assert [e.label for e in entries] == ["状态：进行中", "状态：未开始", "状态：已完成"]


def test_sort_locale_is_configurable():
    entries = [ChartEntry("b", "banana", 1), ChartEntry("c", "Cherry", 1), ChartEntry("a", "apple", 1)]
    # case-insensitive dictionary order, not codepoint order (which puts "Cherry" first)
    assert [e.label for e in sort_by_label(entries, "en_US")] == ["apple", "banana", "Cherry"]
