"""
Log sink abstractions and concrete implementations.
"""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

import structlog

from .exceptions import DestinationUnavailable

logger = structlog.get_logger("loglane.sinks")


# =============================================================================
# Destinations
# =============================================================================


class BaseSink(ABC):
    """Abstract base class for line destinations."""

    @abstractmethod
    def write_lines(self, lines: Iterable[str]) -> None:
        """Write each line, newline-terminated, in order."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the sink and release resources."""
        ...


class ConsoleSink(BaseSink):
    """Standard output sink for rendered records.

    Args:
        stream: Output stream (default: stdout)
    """

    def __init__(self, stream: Any = None):
        self._stream = stream or sys.stdout

    @property
    def use_color(self) -> bool:
        return bool(getattr(self._stream, "isatty", lambda: False)())

    def write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()

    def write_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self._stream.write(line + "\n")
        self._stream.flush()

    def close(self) -> None:
        pass


class FileDestination(BaseSink):
    """Append-only newline-delimited file. The parent directory must exist."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        try:
            self._file = open(self._path, "a", encoding="utf-8")
        except OSError as exc:
            raise DestinationUnavailable(str(self._path), exc.strerror or str(exc)) from exc
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    def write_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self._file.write(line + "\n")
        self._file.flush()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._file.close()


# =============================================================================
# Buffering
# =============================================================================


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[..., Timer]


def daemon_timer(interval: float, function: Callable[..., Any], args: Iterable[Any] = ()) -> threading.Timer:
    timer = threading.Timer(interval, function, args=list(args))
    timer.daemon = True
    return timer


class BufferedSink:
    """Batches serialized records and drains them to a destination.

    A flush happens when ``flush_size`` lines are buffered, or when
    ``flush_timeout`` seconds pass without a further append. At most one
    timer is armed at any time; it exists only while the buffer is non-empty
    and below the threshold.

    Args:
        destination: Where flushed lines go
        flush_size: Buffered lines that trigger an immediate flush
        flush_timeout: Seconds since the last append before a partial flush
        timer_factory: ``(interval, function, args)`` -> startable, cancellable timer
    """

    def __init__(
        self,
        destination: BaseSink,
        flush_size: int = 10,
        flush_timeout: float = 5.0,
        timer_factory: TimerFactory = daemon_timer,
    ):
        if flush_size < 1:
            raise ValueError("flush_size must be at least 1")
        self._destination = destination
        self._flush_size = flush_size
        self._flush_timeout = flush_timeout
        self._timer_factory = timer_factory

        self._buffer: list[str] = []
        self._lock = threading.Lock()
        self._timer: Timer | None = None
        # Bumped on every arm and flush so superseded timers can tell they are stale
        self._generation = 0
        self._closed = False

    @property
    def flush_size(self) -> int:
        return self._flush_size

    @property
    def flush_timeout(self) -> float:
        return self._flush_timeout

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._buffer)

    @property
    def timer_armed(self) -> bool:
        with self._lock:
            return self._timer is not None

    def append(self, line: str) -> None:
        with self._lock:
            if self._closed:
                logger.warning("buffered sink is closed, dropping line")
                return
            self._buffer.append(line)
            if len(self._buffer) >= self._flush_size:
                self._flush_locked()
                return
            self._arm_timer_locked()

    def flush(self) -> int:
        """Drain the buffer now. Returns the number of lines written."""
        with self._lock:
            return self._flush_locked()

    def close(self) -> None:
        """Final flush, then release the destination. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._flush_locked()
        self._destination.close()

    def _arm_timer_locked(self) -> None:
        self._cancel_timer_locked()
        self._generation += 1
        self._timer = self._timer_factory(self._flush_timeout, self._on_timeout, (self._generation,))
        self._timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._flush_locked()

    def _flush_locked(self) -> int:
        self._cancel_timer_locked()
        self._generation += 1

        content, self._buffer = self._buffer, []
        if not content:
            return 0

        try:
            self._destination.write_lines(content)
        except OSError:
            logger.exception("log buffer flush failed", lines=len(content))
            return 0
        return len(content)
