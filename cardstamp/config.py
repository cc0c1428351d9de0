from __future__ import annotations

import copy
import os
import platform
import sys
from pathlib import Path
from typing import Any

import yaml

from cardstamp.constants import (
    DEFAULT_ARCHIVE_NAME,
    DEFAULT_DOCUMENT_NAME,
    DEFAULT_FONT_FAMILY,
    RECORD_ERROR_ABORT,
    VALID_PAGE_ORIENTATIONS,
    VALID_PAGE_SIZES,
    VALID_RECORD_ERROR_POLICIES,
)

DEFAULT_CONFIG: dict[str, Any] = {
    "font_family": DEFAULT_FONT_FAMILY,
    "font_path": None,
    "preview_max_width": 640,
    "preview_max_height": 480,
    "archive_name": DEFAULT_ARCHIVE_NAME,
    "document_name": DEFAULT_DOCUMENT_NAME,
    "page_size": "A4",
    "page_orientation": "portrait",
    "page_margin_pt": 20,
    "on_record_error": RECORD_ERROR_ABORT,
}


def get_app_dir() -> Path:
    """Return the application root directory.

    - Frozen (PyInstaller): directory containing the executable.
    - Development: project root (two levels up from this file).
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    # cardstamp/config.py → cardstamp/ → project_root/
    return Path(__file__).resolve().parent.parent


def get_user_data_dir() -> Path:
    """Writable per-user directory; packaged builds must not write into the bundle."""
    if not getattr(sys, "frozen", False):
        return get_app_dir()

    system_name = platform.system().lower()
    if system_name == "windows":
        base = (
            os.environ.get("APPDATA")
            or os.environ.get("LOCALAPPDATA")
            or str(Path.home() / "AppData" / "Roaming")
        )
        return Path(base) / "CardStamp"
    if system_name == "darwin":
        return Path.home() / "Library" / "Application Support" / "CardStamp"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "CardStamp"
    return Path.home() / ".config" / "CardStamp"


def get_config_path() -> Path:
    return get_user_data_dir() / "Config" / "config.yaml"


def get_log_dir() -> Path:
    return get_user_data_dir() / "Logs"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _normalize_config(cfg: dict[str, Any]) -> dict[str, Any]:
    page_size = str(cfg.get("page_size") or "A4").strip().upper()
    cfg["page_size"] = page_size if page_size in VALID_PAGE_SIZES else "A4"

    orientation = str(cfg.get("page_orientation") or "portrait").strip().lower()
    cfg["page_orientation"] = orientation if orientation in VALID_PAGE_ORIENTATIONS else "portrait"

    policy = str(cfg.get("on_record_error") or RECORD_ERROR_ABORT).strip().lower()
    cfg["on_record_error"] = policy if policy in VALID_RECORD_ERROR_POLICIES else RECORD_ERROR_ABORT

    try:
        cfg["page_margin_pt"] = max(0.0, float(cfg.get("page_margin_pt")))
    except (TypeError, ValueError):
        cfg["page_margin_pt"] = float(DEFAULT_CONFIG["page_margin_pt"])

    for key in ("preview_max_width", "preview_max_height"):
        try:
            cfg[key] = max(64, int(cfg.get(key)))
        except (TypeError, ValueError):
            cfg[key] = DEFAULT_CONFIG[key]

    cfg["font_family"] = str(cfg.get("font_family") or DEFAULT_FONT_FAMILY)
    font_path = cfg.get("font_path")
    cfg["font_path"] = str(font_path) if font_path else None
    return cfg


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        return _normalize_config(copy.deepcopy(DEFAULT_CONFIG))

    text = cfg_path.read_text(encoding="utf-8")
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        loaded = {}
    return _normalize_config(_deep_merge(DEFAULT_CONFIG, loaded))


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path
