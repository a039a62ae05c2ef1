import os
import json
import logging
from pathlib import Path
from typing import Dict, Any

from db.connection import DEFAULT_CONNECT_TIMEOUT, DEFAULT_ODBC_DRIVER
from db.executor import ROW_LIMIT

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(os.path.expanduser("~")) / ".dbconnect"
SETTINGS_PATH = CONFIG_DIR / "settings.json"
APP_STATE_PATH = CONFIG_DIR / "app_state.json"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "connect_timeout": DEFAULT_CONNECT_TIMEOUT,
    "row_limit": ROW_LIMIT,
    "odbc_driver": DEFAULT_ODBC_DRIVER,
}

# form fields remembered between sessions; the password is deliberately not one of them
APP_STATE_KEYS = ("engine", "host", "port", "username", "last_query")


def _read_json(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        logger.warning("Ignoring unreadable file %s", path, exc_info=True)
        return {}
    return data if isinstance(data, dict) else {}


def _write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _positive_int(value, default: int) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def load_settings(path: Path = SETTINGS_PATH) -> Dict[str, Any]:
    """Load settings.json merged over DEFAULT_SETTINGS.

    Missing or unreadable files give the defaults; bad values fall back to their default.
    """
    data = _read_json(path)
    odbc_driver = data.get("odbc_driver")
    return {
        "connect_timeout": _positive_int(data.get("connect_timeout"), DEFAULT_SETTINGS["connect_timeout"]),
        "row_limit": _positive_int(data.get("row_limit"), DEFAULT_SETTINGS["row_limit"]),
        "odbc_driver": str(odbc_driver) if odbc_driver else DEFAULT_SETTINGS["odbc_driver"],
    }


def save_settings(settings: Dict[str, Any], path: Path = SETTINGS_PATH) -> None:
    """Save settings.json. Raises on write failures."""
    merged = {**DEFAULT_SETTINGS, **{k: v for k, v in settings.items() if k in DEFAULT_SETTINGS}}
    _write_json(path, merged)


def load_app_state(path: Path = APP_STATE_PATH) -> dict:
    """Load the remembered form state; returns an empty dict when there is none."""
    data = _read_json(path)
    return {k: str(data[k]) for k in APP_STATE_KEYS if data.get(k) is not None}


def save_app_state(state: dict, path: Path = APP_STATE_PATH) -> None:
    """Save the form state. Only APP_STATE_KEYS are written. Raises on write failures."""
    _write_json(path, {k: state[k] for k in APP_STATE_KEYS if state.get(k) is not None})
