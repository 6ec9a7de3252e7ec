"""
Tests for observability — event bus delivery and logging setup.
"""

import logging
import threading

import pytest

from dnacomposer.core.observability.logging_config import (
    parse_level,
    resolve_level,
    setup_from_environment,
    setup_logging,
)
from dnacomposer.core.services.event_bus import EventBus

# ── Event Bus Tests ──────────────────────────────────────────────────


class TestEventBus:
    def test_event_shape(self, bus):
        event = bus.publish("module:registered", key="auth", data={"version": "1.0.0"})
        assert event["v"] == 1
        assert event["seq"] == 1
        assert event["type"] == "module:registered"
        assert event["key"] == "auth"
        assert event["data"] == {"version": "1.0.0"}
        assert event["ts"] > 0

    def test_seq_monotonic(self, bus):
        seqs = [bus.publish("x:y")["seq"] for _ in range(5)]
        assert seqs == [1, 2, 3, 4, 5]
        assert bus.seq == 5

    def test_zero_listeners(self, bus):
        assert bus.listener_count == 0
        bus.publish("composition:started")

    def test_prefix_filter(self, bus):
        got: list[str] = []
        bus.subscribe(lambda e: got.append(e["type"]), prefix="migration:")
        bus.publish("composition:started")
        bus.publish("migration:started")
        assert got == ["migration:started"]

    def test_unsubscribe(self, bus):
        got: list[dict] = []
        unsubscribe = bus.subscribe(got.append)
        bus.publish("a:b")
        unsubscribe()
        unsubscribe()
        bus.publish("a:c")
        assert len(got) == 1
        assert bus.listener_count == 0

    def test_failing_listener_isolated(self, bus, caplog):
        got: list[dict] = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(got.append)
        with caplog.at_level(logging.WARNING):
            bus.publish("a:b")
        assert len(got) == 1
        assert "failed on a:b" in caplog.text

    def test_listener_may_publish(self, bus):
        got: list[str] = []

        def chain(event):
            got.append(event["type"])
            if event["type"] == "a:first":
                bus.publish("a:second")

        bus.subscribe(chain)
        bus.publish("a:first")
        assert got == ["a:first", "a:second"]

    def test_recent_buffer(self):
        bus = EventBus(buffer_size=3)
        for i in range(5):
            bus.publish(f"e:{i}")
        assert [e["type"] for e in bus.recent()] == ["e:2", "e:3", "e:4"]
        assert [e["seq"] for e in bus.recent(since=4)] == [5]
        assert bus.recent(prefix="nope:") == []

    def test_clear_listeners(self, bus):
        bus.subscribe(lambda e: None)
        bus.clear_listeners()
        assert bus.listener_count == 0

    def test_asynchronous_delivery(self):
        bus = EventBus(asynchronous=True)
        delivered = threading.Event()
        threads: list[str] = []

        def listener(event):
            threads.append(threading.current_thread().name)
            delivered.set()

        bus.subscribe(listener)
        bus.publish("a:b")
        assert bus.flush(timeout=2)
        assert delivered.is_set()
        assert threads == ["event-bus"]

    def test_asynchronous_slow_listener_does_not_block(self):
        bus = EventBus(asynchronous=True)
        release = threading.Event()
        bus.subscribe(lambda e: release.wait(2))
        bus.publish("a:b")
        bus.publish("a:c")
        assert bus.seq == 2
        release.set()
        assert bus.flush(timeout=3)


# ── Logging Tests ────────────────────────────────────────────────────


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


class TestLevels:
    @pytest.mark.parametrize("name,expected", [
        ("DEBUG", logging.DEBUG),
        ("info", logging.INFO),
        (" warning ", logging.WARNING),
        ("bogus", logging.WARNING),
        (None, logging.WARNING),
        ("", logging.WARNING),
    ])
    def test_parse_level(self, name, expected):
        assert parse_level(name) == expected

    def test_flags_win(self):
        env = {"DNA_LOG_LEVEL": "INFO"}
        assert resolve_level(debug=True, verbose=True, environ=env) == "DEBUG"
        assert resolve_level(verbose=True, environ=env) == "INFO"
        assert resolve_level(quiet=True, environ=env) == "ERROR"

    def test_env_then_default(self):
        assert resolve_level(environ={"DNA_LOG_LEVEL": "DEBUG"}) == "DEBUG"
        assert resolve_level(environ={}) == "WARNING"


class TestSetupLogging:
    def test_console_only(self, restore_root_logger):
        setup_logging("INFO")
        assert restore_root_logger.level == logging.INFO
        assert len(restore_root_logger.handlers) == 1

    def test_idempotent(self, restore_root_logger):
        setup_logging("INFO")
        setup_logging("INFO")
        assert len(restore_root_logger.handlers) == 1

    def test_file_output(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "dna.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        assert restore_root_logger.level == logging.DEBUG
        logging.getLogger("dnacomposer.test").debug("hello file")
        for h in restore_root_logger.handlers:
            h.flush()
        assert "hello file" in log_file.read_text()

    def test_third_party_quieted(self, restore_root_logger):
        setup_logging("INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_from_environment(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "env.log"
        setup_from_environment("ERROR", environ={"DNA_LOG_FILE": str(log_file)})
        assert len(restore_root_logger.handlers) == 2
        assert restore_root_logger.level == logging.ERROR
