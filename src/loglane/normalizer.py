"""
Record normalization into the canonical field schema.

Three modes are supported:

- ``NONE``: the record is already canonical and passes through untouched.
- ``ALTER``: the record has the logging-framework shape (``time``, numeric
  ``level``, ``hostname``, ``v``, ``name``) and is remapped.
- ``ADAPT``: the record is an arbitrary plain mapping and the canonical fields
  it lacks are backfilled with defaults.

A field counts as absent when its key is missing or its value is ``None``.
Falsy values such as ``0`` or ``""`` are present.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

import orjson
import structlog

from .config import ProcessIdentity
from .levels import INFO, name_of

logger = structlog.get_logger("loglane.normalizer")

CORRELATION_ID = "correlation-id"
EMPTY_MESSAGE = "[empty]"

# Framework bookkeeping: schema version marker and logger name
_BOOKKEEPING_FIELDS = ("v", "name")


class OverwriteMode(str, Enum):
    NONE = "none"
    ALTER = "alter"
    ADAPT = "adapt"


def utc_timestamp() -> str:
    """Current instant as ISO-8601 UTC with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_json_message(msg: Any) -> Optional[dict]:
    """Return the mapping encoded in ``msg`` or ``None`` when it is plain text."""
    if not isinstance(msg, (str, bytes)):
        return None
    try:
        parsed = orjson.loads(msg)
    except orjson.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def resolve_mode(mode: Any) -> OverwriteMode:
    """Overwrite mode for ``mode``; ``None`` and unknown values fall back to ALTER."""
    if mode is None:
        return OverwriteMode.ALTER
    try:
        return OverwriteMode(mode)
    except ValueError:
        logger.warning("unknown overwrite mode, falling back to alter", mode=repr(mode))
        return OverwriteMode.ALTER


def _absent(record: Mapping[str, Any], key: str) -> bool:
    return record.get(key) is None


class RecordNormalizer:
    """Turns raw records into canonical records.

    Args:
        identity: host/pid/color stamped onto records that lack them
        log_fields: static fields merged into every altered record, last
    """

    def __init__(
        self,
        identity: Optional[ProcessIdentity] = None,
        log_fields: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._identity = identity or ProcessIdentity.current()
        self._log_fields: Mapping[str, Any] = MappingProxyType(dict(log_fields or {}))

    @property
    def identity(self) -> ProcessIdentity:
        return self._identity

    @property
    def log_fields(self) -> Mapping[str, Any]:
        return self._log_fields

    def normalize(self, record: Mapping[str, Any], mode: OverwriteMode | str | None = OverwriteMode.ALTER) -> dict:
        mode = resolve_mode(mode)
        if mode is OverwriteMode.NONE:
            return dict(record)
        if mode is OverwriteMode.ADAPT:
            return self.adapt(record)
        return self.alter(record)

    def alter(self, record: Mapping[str, Any]) -> dict:
        """Remap a framework-shaped record. Works on a deep copy."""
        log = copy.deepcopy(dict(record))

        if "time" in log:
            log["@timestamp"] = log.pop("time")

        if _absent(log, "host"):
            log["host"] = self._identity.host

        log.pop("hostname", None)

        for key in _BOOKKEEPING_FIELDS:
            log.pop(key, None)

        if _absent(log, "current_color") and self._identity.service_color is not None:
            log["current_color"] = self._identity.service_color

        if "level" in log:
            level = log.pop("level")
            log["loglevel"] = name_of(level)
            log["loglevel_value"] = level

        msg_json = parse_json_message(log.get("msg"))
        if msg_json is not None:
            log["msg_json"] = msg_json
            del log["msg"]
            self._relocate_correlation_id(log, msg_json)

        log.update(self._log_fields)
        return log

    @staticmethod
    def _relocate_correlation_id(log: dict, msg_json: dict) -> None:
        # Flattens a message that was itself a serialized sub-record
        if not _absent(log, CORRELATION_ID) or _absent(msg_json, CORRELATION_ID):
            return

        log[CORRELATION_ID] = msg_json.pop(CORRELATION_ID)
        if not _absent(msg_json, "msg"):
            log["msg"] = msg_json.pop("msg")

        if not msg_json:
            del log["msg_json"]

    def adapt(self, record: Mapping[str, Any]) -> dict:
        """Backfill canonical fields on a plain mapping. Never removes anything."""
        log = dict(record)
        identity = self._identity

        defaults = (
            ("@timestamp", utc_timestamp),
            ("host", lambda: identity.host),
            ("pid", lambda: identity.pid),
            ("loglevel", lambda: name_of(INFO)),
            ("loglevel_value", lambda: INFO),
            ("log_type", lambda: "application"),
            ("application_type", lambda: "service"),
        )
        for key, default in defaults:
            if _absent(log, key):
                log[key] = default()

        if _absent(log, "service") and self._log_fields.get("service") is not None:
            log["service"] = self._log_fields["service"]

        if _absent(log, "current_color") and identity.service_color is not None:
            log["current_color"] = identity.service_color

        if _absent(log, "msg") and _absent(log, "msg_json"):
            log["msg"] = EMPTY_MESSAGE

        return log


def normalize(
    record: Mapping[str, Any],
    mode: OverwriteMode | str | None = OverwriteMode.ALTER,
    *,
    identity: Optional[ProcessIdentity] = None,
    log_fields: Optional[Mapping[str, Any]] = None,
) -> dict:
    """One-shot normalization without keeping a normalizer around."""
    return RecordNormalizer(identity, log_fields).normalize(record, mode)
