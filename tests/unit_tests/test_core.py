"""
Service logger tests: level handling, stream fan-out and correlation enrichment.
"""

from __future__ import annotations

import io

import orjson
import pytest
from structlog.testing import capture_logs

from loglane.config import LoggingSettings
from loglane.core import OVERSIZED_OBJECT, UNSERIALIZABLE_MESSAGE, ServiceLogger, canonical_level
from loglane.sinks import ConsoleSink


@pytest.fixture
def make_logger(tmp_path, identity, timers):
    created: list[ServiceLogger] = []

    def _make(**overrides) -> tuple[ServiceLogger, io.StringIO]:
        console_buffer = io.StringIO()
        settings = LoggingSettings(log_dir=str(tmp_path / "logs"), **overrides)
        service_logger = ServiceLogger(
            settings,
            identity=identity,
            console=ConsoleSink(console_buffer),
            timer_factory=timers,
        )
        created.append(service_logger)
        return service_logger, console_buffer

    yield _make

    for service_logger in created:
        service_logger.close()


def file_records(service_logger: ServiceLogger) -> list[dict]:
    service_logger.flush()
    path = service_logger.settings.log_file
    with open(path, encoding="utf-8") as f:
        return [orjson.loads(line) for line in f.read().splitlines()]


def last_record(service_logger: ServiceLogger) -> dict:
    return file_records(service_logger)[-1]


class TestLevels:
    def test_development_defaults(self, make_logger) -> None:
        service_logger, _ = make_logger()

        assert service_logger.level == "DEBUG"
        assert service_logger.name == "dev"
        assert not service_logger.skip_debug
        assert [s.has_file_destination for s in service_logger.streams] == [False, True]

    def test_production_defaults(self, make_logger) -> None:
        service_logger, _ = make_logger(production=True)

        assert service_logger.level == "WARN"
        assert service_logger.name == "prod"
        assert service_logger.skip_debug

    def test_unsupported_level_falls_back_to_info(self, make_logger) -> None:
        with capture_logs() as cap_logs:
            service_logger, _ = make_logger(level="LOUD")

        assert service_logger.level == "INFO"
        assert cap_logs[0]["event"] == "unsupported log level, defaulting to INFO"

    def test_warning_alias(self, make_logger) -> None:
        service_logger, _ = make_logger(level="warning")
        assert service_logger.level == "WARN"

    def test_records_below_level_are_dropped(self, make_logger) -> None:
        service_logger, console_buffer = make_logger(level="ERROR")
        service_logger.info("quiet")
        service_logger.error("loud")

        output = console_buffer.getvalue()
        assert "quiet" not in output
        assert "ERROR @ " in output and "loud" in output
        assert [r["msg"] for r in file_records(service_logger)] == ["loud"]

    def test_skip_debug_drops_trace_and_debug(self, make_logger) -> None:
        service_logger, console_buffer = make_logger(production=True, level="INFO")
        service_logger.debug("hidden")
        service_logger.trace("hidden")
        service_logger.warn("shown")

        output = console_buffer.getvalue()
        assert "hidden" not in output
        assert "WARN @ " in output

    def test_change_log_level(self, make_logger) -> None:
        service_logger, console_buffer = make_logger(level="INFO")
        service_logger.change_log_level("TRACE")
        service_logger.trace("fine grained")

        assert service_logger.level == "TRACE"
        assert not service_logger.skip_debug
        assert "TRACE @ " in console_buffer.getvalue()

    def test_change_to_unsupported_level_is_ignored(self, make_logger) -> None:
        service_logger, _ = make_logger(level="INFO")
        service_logger.change_log_level("LOUD")
        assert service_logger.level == "INFO"

    def test_canonical_level(self) -> None:
        assert canonical_level("fatal") == "FATAL"
        assert canonical_level("nope") is None
        assert canonical_level(None) is None


class TestRecords:
    def test_file_line_is_canonical(self, make_logger) -> None:
        service_logger, _ = make_logger(log_fields={"service": "billing"})
        service_logger.info("hello")

        record = last_record(service_logger)
        assert record["msg"] == "hello"
        assert record["loglevel"] == "INFO"
        assert record["loglevel_value"] == 30
        assert record["host"] == "test-host"
        assert record["pid"] == 4242
        assert record["current_color"] == "blue"
        assert record["service"] == "billing"
        assert record["@timestamp"].endswith("Z")
        for legacy in ("time", "level", "hostname", "name", "v"):
            assert legacy not in record

    def test_every_level_maps_to_its_band(self, make_logger) -> None:
        service_logger, _ = make_logger(level="TRACE")
        for method in ("trace", "debug", "info", "warn", "error", "fatal"):
            getattr(service_logger, method)(method)

        values = {r["msg"]: r["loglevel_value"] for r in file_records(service_logger)}
        assert [values[m] for m in ("trace", "debug", "info", "warn", "error", "fatal")] == [10, 20, 30, 40, 50, 60]

    def test_timer_flushes_file(self, make_logger, timers) -> None:
        service_logger, _ = make_logger()
        service_logger.info("eventually")
        timers.live[-1].fire()

        path = service_logger.settings.log_file
        with open(path, encoding="utf-8") as f:
            assert "eventually" in f.read()

    def test_docker_mode_is_console_json_only(self, make_logger, tmp_path) -> None:
        service_logger, console_buffer = make_logger(docker=True)
        service_logger.info("contained")

        assert len(service_logger.streams) == 1
        assert not (tmp_path / "logs").exists()
        last_line = orjson.loads(console_buffer.getvalue().splitlines()[-1])
        assert last_line["msg"] == "contained"

    def test_silence(self, make_logger) -> None:
        service_logger, console_buffer = make_logger(silence=True)
        before = console_buffer.getvalue()

        service_logger.error("nothing")
        service_logger.debug("nothing")
        service_logger.raw({"msg": "nothing"})

        assert console_buffer.getvalue() == before

    def test_close_is_idempotent_and_flushes(self, make_logger) -> None:
        service_logger, _ = make_logger()
        service_logger.info("last words")
        service_logger.close()
        service_logger.close()

        with open(service_logger.settings.log_file, encoding="utf-8") as f:
            assert "last words" in f.read()


class TestCorrelation:
    def test_string_message_with_correlation_id(self, make_logger) -> None:
        service_logger, _ = make_logger()
        service_logger.info("hello", correlation_id="abc")

        record = last_record(service_logger)
        assert record["correlation-id"] == "abc"
        assert record["msg"] == "hello"
        assert "msg_json" not in record

    def test_mapping_message_with_correlation_id(self, make_logger) -> None:
        service_logger, _ = make_logger()
        service_logger.info({"user": "u1"}, correlation_id="c1")

        record = last_record(service_logger)
        assert record["correlation-id"] == "c1"
        assert record["msg_json"] == {"user": "u1"}
        assert "msg" not in record

    def test_enhance(self) -> None:
        assert ServiceLogger.enhance("plain") == "plain"
        assert ServiceLogger.enhance(42) == "42"
        assert orjson.loads(ServiceLogger.enhance("hi", "abc")) == {"correlation-id": "abc", "msg": "hi"}
        assert orjson.loads(ServiceLogger.enhance({"a": 1}, "abc")) == {"a": 1, "correlation-id": "abc"}
        assert ServiceLogger.enhance({str(i): i for i in range(16)}) == OVERSIZED_OBJECT
        assert ServiceLogger.enhance([1, 2]) == "[1,2]"
        assert ServiceLogger.enhance(("a", 1)) == '["a",1]'

    def test_unserializable_message_is_reported(self, make_logger) -> None:
        service_logger, _ = make_logger()
        with capture_logs() as cap_logs:
            service_logger.info({"n": 2**70})

        assert cap_logs[0]["event"] == "log message is not serializable"
        assert last_record(service_logger)["msg"] == UNSERIALIZABLE_MESSAGE


class TestRaw:
    def test_support_mode_backfills(self, make_logger) -> None:
        service_logger, _ = make_logger()
        service_logger.raw({"event": "signup"}, support=True)

        record = last_record(service_logger)
        assert record["event"] == "signup"
        assert record["loglevel"] == "INFO"
        assert record["log_type"] == "application"
        assert record["msg"] == "[empty]"

    def test_plain_mode_writes_as_is(self, make_logger) -> None:
        service_logger, _ = make_logger()
        service_logger.raw({"custom": 1})

        assert last_record(service_logger) == {"custom": 1}

    def test_non_mapping_is_reported(self, make_logger) -> None:
        service_logger, _ = make_logger()
        with capture_logs() as cap_logs:
            service_logger.raw("nope")

        assert cap_logs[0]["event"] == "raw() must be called with a mapping"
