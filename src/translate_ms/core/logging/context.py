"""
Request context and logging configuration state.

The request id and the signed-in user live in ContextVars, so every
coroutine spawned while handling a request (including fire-and-forget
usage recording) logs with the same id and user. Level and file settings are
module-level state shared by the whole process.

Environment variables:
    TRANSLATE_MS_LOG_LEVEL:   level override (1-4 or name)
    TRANSLATE_MS_LOG_DIR:     directory for the JSONL log file
    TRANSLATE_MS_JSONL_FILE:  JSONL file name
    TRANSLATE_MS_SETTINGS:    settings.yaml path
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict, Optional

from .levels import LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")
_user: ContextVar[str] = ContextVar("user", default="-")

_configured: bool = False
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, ``"-"`` outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context."""
    _request_id.set(rid)


def get_user() -> str:
    """Signed-in user of the current request, ``"-"`` when anonymous."""
    return _user.get()


def set_user(user_id: Optional[str]) -> None:
    _user.set(user_id or "-")


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options.

    Priority: environment variables, then the ``logging`` section of
    settings.yaml, then built-in defaults. A missing or broken settings
    file is not an error here; logging must come up regardless.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("TRANSLATE_MS_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        try:
            from translate_ms.core.config import load_settings
            cfg.update(load_settings(settings_path).raw.get("logging", {}) or {})
        except (OSError, ValueError):
            pass

    if os.getenv("TRANSLATE_MS_LOG_LEVEL"):
        cfg["level"] = os.environ["TRANSLATE_MS_LOG_LEVEL"]
    if os.getenv("TRANSLATE_MS_LOG_DIR"):
        cfg["log_dir"] = os.environ["TRANSLATE_MS_LOG_DIR"]
    if os.getenv("TRANSLATE_MS_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TRANSLATE_MS_JSONL_FILE"]

    return cfg
