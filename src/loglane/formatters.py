"""
Record renderers and color utilities.
"""

from __future__ import annotations

from typing import Any, Mapping

import orjson

from .levels import name_of, style_of

# =============================================================================
# Serialization
# =============================================================================


def dumps(obj: Any) -> str:
    """Compact JSON serialization using orjson. Unknown types fall back to str."""
    return orjson.dumps(
        obj,
        default=str,
        option=orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC | orjson.OPT_NON_STR_KEYS,
    ).decode()


# =============================================================================
# Colors
# =============================================================================

COLORS = {
    "reset": "\033[0m",
    "white": "\033[37m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "blue": "\033[34m",
}


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text."""
    return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"


def severity_of(record: Mapping[str, Any]) -> Any:
    """Numeric severity of a record, ``level`` first, then ``loglevel_value``."""
    level = record.get("level")
    return level if level else record.get("loglevel_value")


def _wrap(text: str, level: Any, use_color: bool) -> str:
    if not use_color:
        return text
    return colorize(text, style_of(level))


# =============================================================================
# Renderers
# =============================================================================


def render_text(record: Mapping[str, Any], *, use_color: bool = True) -> str:
    """``<SEVERITY> @ <timestamp> : <message>`` plus newline."""
    level = severity_of(record)
    msg = record.get("msg")
    if not msg:
        msg_json = record.get("msg_json")
        msg = dumps(msg_json) if msg_json is not None else ""

    line = f"{name_of(level)} @ {record.get('@timestamp', '')} : {msg}\n"
    return _wrap(line, level, use_color)


def render_compact_json(record: Mapping[str, Any], *, use_color: bool = True) -> str:
    """Whole record as compact JSON plus newline."""
    return _wrap(dumps(record), severity_of(record), use_color) + "\n"
