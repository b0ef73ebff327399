"""
Service logger: process-level facade over record streams.

Log calls run through a per-instance structlog processor chain which stamps
framework-shaped records (``name``, ``hostname``, ``pid``, numeric ``level``,
``time``, ``v``) and hands them to every configured stream in ALTER mode.
"""

from __future__ import annotations

import atexit
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import orjson
import structlog
from structlog.typing import EventDict, WrappedLogger

from .config import LoggingSettings, ProcessIdentity
from .exceptions import InvalidRecordType
from .formatters import dumps
from .levels import LOG_LEVELS, name_of, value_of
from .normalizer import CORRELATION_ID, OverwriteMode, utc_timestamp
from .sinks import ConsoleSink, TimerFactory, daemon_timer
from .stream import RecordStream, ensure_mapping

logger = structlog.get_logger("loglane")

MAX_OBJECT_KEYS = 15
OVERSIZED_OBJECT = f"[object with more than {MAX_OBJECT_KEYS} keys]"
UNSERIALIZABLE_MESSAGE = "[unserializable message]"


def canonical_level(level: str | None) -> str | None:
    """Supported level name for ``level`` (case-insensitive), else ``None``."""
    value = value_of(level)
    return name_of(value) if value is not None else None


# =============================================================================
# Structlog Processors
# =============================================================================


def rename_event_key(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename 'event' to 'msg' for the framework record shape."""
    if "event" in event_dict:
        event_dict["msg"] = event_dict.pop("event")
    return event_dict


class _NopLogger:
    """Wrapped logger that discards output; the streams do the writing."""

    def msg(self, message: Any = None) -> None:
        pass

    trace = debug = info = warn = error = fatal = msg


# =============================================================================
# Service Logger
# =============================================================================


class ServiceLogger:
    """Leveled logger writing to a console stream and, outside docker mode, a log file.

    Args:
        settings: Full configuration; built from the environment when omitted
        identity: Host/pid/color stamped onto records
        console: Console sink shared by the console stream
        timer_factory: Timer constructor for the file stream's buffer
        **overrides: Individual ``LoggingSettings`` fields
    """

    def __init__(
        self,
        settings: Optional[LoggingSettings] = None,
        *,
        identity: Optional[ProcessIdentity] = None,
        console: Optional[ConsoleSink] = None,
        timer_factory: TimerFactory = daemon_timer,
        **overrides: Any,
    ):
        if settings is None:
            settings = LoggingSettings(**overrides)
        elif overrides:
            settings = settings.model_copy(update=overrides)
        self._settings = settings

        level = canonical_level(settings.level)
        if settings.level and level is None:
            logger.warning("unsupported log level, defaulting to INFO", level=settings.level)
            level = "INFO"
        self._level = level or ("WARN" if settings.production else "DEBUG")

        self._skip_debug = settings.silence or (settings.production and self._level not in ("TRACE", "DEBUG"))
        self._name = settings.name or ("prod" if settings.production else "dev")
        self._identity = identity or ProcessIdentity.current(settings.service_color)
        self._closed = False

        self._streams = self._create_streams(console, timer_factory)
        self._log = structlog.wrap_logger(
            _NopLogger(),
            processors=[self._filter_level, self._stamp_record, rename_event_key, self._fan_out],
            wrapper_class=structlog.BoundLogger,
            context_class=dict,
            cache_logger_on_first_use=True,
        )
        atexit.register(self.close)

        self._log.info(
            f"Logger is: in-prod={settings.production}, in-docker={settings.docker}, "
            f"level={self._level}, skipDebug={self._skip_debug}"
        )

    def _create_streams(self, console: Optional[ConsoleSink], timer_factory: TimerFactory) -> list[RecordStream]:
        settings = self._settings
        streams = [
            RecordStream(
                None,
                settings.log_fields,
                settings.docker,
                identity=self._identity,
                console=console,
            )
        ]

        if not settings.docker:
            Path(settings.log_dir).mkdir(parents=True, exist_ok=True)
            streams.append(
                RecordStream(
                    settings.log_file,
                    settings.log_fields,
                    flush_size=settings.flush_size,
                    flush_timeout=settings.flush_timeout,
                    identity=self._identity,
                    console=console,
                    timer_factory=timer_factory,
                )
            )
        return streams

    # -------------------------------------------------------------------------
    # Processors
    # -------------------------------------------------------------------------

    def _filter_level(self, wrapped: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        if (value_of(method_name) or 0) < value_of(self._level):
            raise structlog.DropEvent
        return event_dict

    def _stamp_record(self, wrapped: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        record = {
            "name": self._name,
            "hostname": self._identity.host,
            "pid": self._identity.pid,
            "level": value_of(method_name),
        }
        record.update(event_dict)
        record["time"] = utc_timestamp()
        record["v"] = 0
        return record

    def _fan_out(self, wrapped: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
        """Write the record to every stream. Returns empty to suppress default output."""
        for stream in self._streams:
            try:
                stream.write(event_dict, OverwriteMode.ALTER)
            except Exception:
                logger.exception("stream write failed")
        return ""

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> LoggingSettings:
        return self._settings

    @property
    def name(self) -> str:
        return self._name

    @property
    def level(self) -> str:
        return self._level

    @property
    def skip_debug(self) -> bool:
        return self._skip_debug

    @property
    def silence(self) -> bool:
        return self._settings.silence

    @property
    def streams(self) -> tuple[RecordStream, ...]:
        return tuple(self._streams)

    def trace(self, message: Any, correlation_id: Optional[str] = None) -> None:
        if self._skip_debug:
            return
        self._log.trace(self.enhance(message, correlation_id))

    def debug(self, message: Any, correlation_id: Optional[str] = None) -> None:
        if self._skip_debug:
            return
        self._log.debug(self.enhance(message, correlation_id))

    def info(self, message: Any, correlation_id: Optional[str] = None) -> None:
        if self.silence:
            return
        self._log.info(self.enhance(message, correlation_id))

    def warn(self, message: Any, correlation_id: Optional[str] = None) -> None:
        if self.silence:
            return
        self._log.warn(self.enhance(message, correlation_id))

    def error(self, message: Any, correlation_id: Optional[str] = None) -> None:
        if self.silence:
            return
        self._log.error(self.enhance(message, correlation_id))

    def fatal(self, message: Any, correlation_id: Optional[str] = None) -> None:
        if self.silence:
            return
        self._log.fatal(self.enhance(message, correlation_id))

    @staticmethod
    def enhance(message: Any, correlation_id: Optional[str] = None) -> str:
        """Fold the correlation id into the message and serialize objects."""
        try:
            if isinstance(message, Mapping):
                message = dict(message)
                if correlation_id:
                    message[CORRELATION_ID] = correlation_id
                if len(message) <= MAX_OBJECT_KEYS:
                    return dumps(message)
                return OVERSIZED_OBJECT

            if correlation_id:
                return dumps({CORRELATION_ID: correlation_id, "msg": message})
            if isinstance(message, (list, tuple)):
                return dumps(message)
        except orjson.JSONEncodeError as exc:
            logger.error("log message is not serializable", error=str(exc))
            return UNSERIALIZABLE_MESSAGE
        return message if isinstance(message, str) else str(message)

    def raw(self, record: Any, support: bool = False) -> None:
        """Write a mapping straight to every stream, backfilled when ``support`` is set."""
        if self.silence:
            return
        try:
            ensure_mapping(record)
        except InvalidRecordType as exc:
            logger.error("raw() must be called with a mapping", code=exc.code, **exc.details)
            return

        mode = OverwriteMode.ADAPT if support else OverwriteMode.NONE
        for stream in self._streams:
            stream.write(record, mode)

    def change_log_level(self, level: str) -> None:
        new_level = canonical_level(level)
        if new_level is None:
            self._log.error(f"level is not a supported logLevel: {level}, supported: {', '.join(LOG_LEVELS)}")
            return

        self._skip_debug = self.silence or new_level not in ("DEBUG", "TRACE")
        self._log.info(f"changing loglevel from {self._level} to {new_level}.")
        self._level = new_level

    def flush(self) -> None:
        for stream in self._streams:
            stream.flush()

    def close(self) -> None:
        """Flush and release every stream. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for stream in self._streams:
            stream.close()
        atexit.unregister(self.close)

    def __enter__(self) -> "ServiceLogger":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
