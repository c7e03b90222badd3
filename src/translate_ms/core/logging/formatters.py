"""
Log formatters.

JsonlFormatter writes one JSON object per line for the log file:
    {"ts": "...", "level": 2, "tag": "INFO", "message": "cache_hit",
     "request_id": "ab12cd34ef56", "user": "u-42", "extra": {"tier": "shared"}}

ColoredConsoleFormatter writes a compact line for humans:
    14:30:05 [ INFO  ] (ab12cd34ef56 u-42) cache_hit tier=shared 0.002s
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color


def _paint(text: str, color: str) -> str:
    # read the flag at call time so tests can toggle it
    if not colors.USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """Single-line JSON records for machine parsing (jq, pandas)."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "user": getattr(record, "user", "-"),
            "logger": record.name,
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Human-readable console lines.

    Format: ``HH:MM:SS [ TAG ] (rid user) message key=value 0.123s``

    Timing is green under 100ms, yellow under 1s, red above. A few
    gateway fields get their own colors so provider switches and cache
    tiers stand out when tailing logs.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")
        user = getattr(record, "user", "-")

        parts = [
            _paint(ts, Colors.DIM),
            _paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            label = rid if user == "-" else f"{rid} {user}"
            parts.append(_paint(f"({label})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_paint(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_paint(f"{k}={v}", self._field_color(k, v)))

        return " ".join(parts)

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        if key == "provider":
            return Colors.MAGENTA
        if key in ("tier", "cache"):
            return Colors.GREEN if value not in ("miss", None) else Colors.YELLOW
        if key == "attempt" and isinstance(value, int):
            return Colors.CYAN if value <= 1 else Colors.YELLOW
        return Colors.DIM
