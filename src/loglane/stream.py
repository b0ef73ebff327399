"""
Record stream: the single ingress of the emission pipeline.

Every record goes through normalization, is echoed to the console when the
stream has no file destination, and is buffered for the file otherwise.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import orjson
import structlog

from .config import ProcessIdentity
from .exceptions import InvalidRecordType
from .formatters import dumps, render_compact_json, render_text
from .normalizer import OverwriteMode, RecordNormalizer
from .sinks import BufferedSink, ConsoleSink, FileDestination, TimerFactory, daemon_timer

logger = structlog.get_logger("loglane.stream")


def ensure_mapping(record: Any) -> Mapping[str, Any]:
    if not isinstance(record, Mapping):
        raise InvalidRecordType(record)
    return record


class RecordStream:
    """Writes canonical records to the console or to a buffered NDJSON file.

    Args:
        log_file: File destination; ignored in console-JSON mode
        log_fields: Static fields merged into every altered record
        console_json: Render console output as compact JSON instead of text
        flush_size: Buffered lines that trigger a flush
        flush_timeout: Seconds of inactivity before a partial flush
        identity: Host/pid/color stamped onto records
        console: Console sink (default: stdout)
        timer_factory: Timer constructor used by the buffered sink
    """

    def __init__(
        self,
        log_file: str | Path | None = None,
        log_fields: Optional[Mapping[str, Any]] = None,
        console_json: bool = False,
        *,
        flush_size: int = 10,
        flush_timeout: float = 5.0,
        identity: Optional[ProcessIdentity] = None,
        console: Optional[ConsoleSink] = None,
        timer_factory: TimerFactory = daemon_timer,
    ):
        self._normalizer = RecordNormalizer(identity, log_fields)
        self._console_json = console_json
        self._console = console or ConsoleSink()
        self._buffer: BufferedSink | None = None

        if log_file and not console_json:
            self._buffer = BufferedSink(
                FileDestination(log_file),
                flush_size=flush_size,
                flush_timeout=flush_timeout,
                timer_factory=timer_factory,
            )

    @property
    def normalizer(self) -> RecordNormalizer:
        return self._normalizer

    @property
    def buffer(self) -> BufferedSink | None:
        return self._buffer

    @property
    def has_file_destination(self) -> bool:
        return self._buffer is not None

    def write(self, record: Any, mode: OverwriteMode | str | None = OverwriteMode.ALTER) -> None:
        try:
            ensure_mapping(record)
        except InvalidRecordType as exc:
            logger.error("raw stream got a non-mapping record", code=exc.code, **exc.details)
            return

        rec = self._normalizer.normalize(record, mode)

        try:
            if self._buffer is None:
                self._echo(rec)
            else:
                self._buffer.append(dumps(rec))
        except orjson.JSONEncodeError as exc:
            logger.error("record is not serializable", error=str(exc))

    def _echo(self, rec: Mapping[str, Any]) -> None:
        use_color = self._console.use_color
        if self._console_json:
            self._console.write(render_compact_json(rec, use_color=use_color))
        else:
            self._console.write(render_text(rec, use_color=use_color))

    def flush(self) -> int:
        if self._buffer is None:
            return 0
        return self._buffer.flush()

    def close(self) -> None:
        if self._buffer is not None:
            self._buffer.close()

    def __enter__(self) -> "RecordStream":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
