"""
Severity codec: numeric level bands to names and render styles.
"""

from __future__ import annotations

from typing import Any

TRACE = 10
DEBUG = 20
INFO = 30
WARN = 40
ERROR = 50
FATAL = 60

UNKNOWN = "UNKNOWN"

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARN", "ERROR", "FATAL")

_NAMES = {
    TRACE: "TRACE",
    DEBUG: "DEBUG",
    INFO: "INFO",
    WARN: "WARN",
    ERROR: "ERROR",
    FATAL: "FATAL",
}

_VALUES = {name: value for value, name in _NAMES.items()}
_VALUES["WARNING"] = WARN

_STYLES = {
    TRACE: "white",
    DEBUG: "cyan",
    INFO: "green",
    WARN: "yellow",
    ERROR: "red",
    FATAL: "red",
}
_DEFAULT_STYLE = "blue"


def _band(level: Any) -> int | None:
    # bool is an int subclass but never a severity; JSON may carry 30.0
    if isinstance(level, bool):
        return None
    if isinstance(level, float) and level.is_integer():
        return int(level)
    return level if isinstance(level, int) else None


def name_of(level: Any) -> str:
    """Turn a numeric level into a readable name, ``UNKNOWN`` if unmapped."""
    return _NAMES.get(_band(level), UNKNOWN)


def style_of(level: Any) -> str:
    """Render style (color name) for a numeric level."""
    return _STYLES.get(_band(level), _DEFAULT_STYLE)


def value_of(name: str | None) -> int | None:
    """Numeric band for a level name; ``WARNING`` is accepted for ``WARN``."""
    if not name:
        return None
    return _VALUES.get(name.upper())
