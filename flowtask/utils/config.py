# flowtask/utils/config.py
# Rev 0.2.0
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from .paths import config_dir

SETTINGS_FILENAME = "settings.json"

_DEFAULTS: Dict[str, Any] = {
    "priorities": ["低", "中", "高"],
    "statuses": ["未开始", "进行中", "已完成"],
    "dashboard": {
        "enabled_dimensions": ["status"],
        "sort_locale": "zh_CN",
    },
}

_log = logging.getLogger("flowtask.config")


def settings_file() -> Path:
    return config_dir() / SETTINGS_FILENAME


def default_settings() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    path = path or settings_file()
    data = default_settings()
    if not path.exists():
        return data
    try:
        stored = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        _log.warning("Ignoring unreadable settings file %s", path)
        return data
    if not isinstance(stored, dict):
        return data
    for key, value in stored.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value
    return data


def save_settings(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or settings_file()
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def priorities(settings: Dict[str, Any]) -> List[str]:
    return [str(p) for p in settings.get("priorities") or _DEFAULTS["priorities"]]


def statuses(settings: Dict[str, Any]) -> List[str]:
    return [str(s) for s in settings.get("statuses") or _DEFAULTS["statuses"]]
