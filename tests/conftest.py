from __future__ import annotations

import os
import typing as t

import pytest

from loglane.config import ProcessIdentity
from loglane.sinks import BaseSink


class FakeTimer:
    """Timer double that only fires when the test says so."""

    def __init__(self, interval: float, function: t.Callable[..., t.Any], args: t.Iterable[t.Any] = ()):
        self.interval = interval
        self.function = function
        self.args = tuple(args)
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function(*self.args)


class TimerRecorder:
    """Timer factory keeping every timer it hands out."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function: t.Callable[..., t.Any], args: t.Iterable[t.Any] = ()) -> FakeTimer:
        timer = FakeTimer(interval, function, args)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if timer.started and not timer.cancelled]


class RecordingDestination(BaseSink):
    """Destination keeping each flushed batch."""

    def __init__(self) -> None:
        self.flushes: list[list[str]] = []
        self.closed = False

    def write_lines(self, lines: t.Iterable[str]) -> None:
        self.flushes.append(list(lines))

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep host environment variables and .env files out of the settings."""
    for key in list(os.environ):
        if key.startswith("LOGLANE_") or key == "SERVICE_COLOR":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def identity() -> ProcessIdentity:
    return ProcessIdentity(host="test-host", pid=4242, service_color="blue")


@pytest.fixture
def timers() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture
def destination() -> RecordingDestination:
    return RecordingDestination()
