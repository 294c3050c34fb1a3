"""Tests for observability module."""

import json
import logging
import sys

from filecache.observability import (
    LogEntry,
    LogLevel,
    StructuredFormatter,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
    unregister_metric_callback,
)


class TestLogEntry:
    """Tests for LogEntry."""

    def test_to_json_basic(self) -> None:
        """to_json produces valid JSON."""
        entry = LogEntry(
            level=LogLevel.INFO,
            message="Test message",
            timestamp="2024-01-01T00:00:00Z",
            logger="test",
        )
        result = json.loads(entry.to_json())

        assert result == {
            "level": "INFO",
            "message": "Test message",
            "timestamp": "2024-01-01T00:00:00Z",
            "logger": "test",
        }

    def test_to_json_optional_fields(self) -> None:
        """Context, error and duration are included when set."""
        entry = LogEntry(
            level=LogLevel.ERROR,
            message="Failed",
            timestamp="2024-01-01T00:00:00Z",
            logger="test",
            context={"path": "store/cache.db"},
            error={"type": "StoreOpenError", "message": "boom"},
            duration_ms=1.5,
        )
        result = json.loads(entry.to_json())

        assert result["context"] == {"path": "store/cache.db"}
        assert result["error"]["type"] == "StoreOpenError"
        assert result["duration_ms"] == 1.5


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_format_with_context_and_error(self) -> None:
        """Records carry context and exception info."""
        try:
            raise ValueError("bad value")
        except ValueError:
            record = logging.LogRecord(
                name="filecache.test",
                level=logging.ERROR,
                pathname=__file__,
                lineno=1,
                msg="Operation failed",
                args=(),
                exc_info=sys.exc_info(),
            )
        record.context = {"key": "user:1"}

        result = json.loads(StructuredFormatter().format(record))

        assert result["level"] == "ERROR"
        assert result["logger"] == "filecache.test"
        assert result["context"] == {"key": "user:1"}
        assert result["error"] == {"type": "ValueError", "message": "bad value"}


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_logs_through_configured_handler(self, capsys) -> None:
        """Module loggers write JSON through the filecache handler."""
        configure_logging(LogLevel.DEBUG)
        logger = get_logger("filecache.test_module")
        assert isinstance(logger, StructuredLogger)

        logger.debug("Cache cleared", context={"prefix": "a:"}, duration_ms=2.0)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        result = json.loads(line)
        assert result["message"] == "Cache cleared"
        assert result["context"] == {"prefix": "a:"}
        assert result["duration_ms"] == 2.0

    def test_level_filters(self, capsys) -> None:
        """Messages below the configured level are dropped."""
        configure_logging(LogLevel.WARNING, format="text")
        logger = get_logger("filecache.test_module")

        logger.info("hidden")
        logger.warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def teardown_method(self) -> None:
        root = logging.getLogger("filecache")
        root.handlers.clear()
        root.setLevel(logging.NOTSET)


class TestTimer:
    """Tests for Timer."""

    def test_measures_duration(self) -> None:
        """duration_ms is non-negative after the block."""
        with Timer() as t:
            sum(range(1000))
        assert t.duration_ms >= 0


class TestMetrics:
    """Tests for metric callbacks."""

    def test_emit(self, metrics) -> None:
        """Callbacks receive name, value and labels."""
        emit_metric("filecache.test", 2.5, {"a": 1})
        emit_counter("filecache.count")
        emit_timer("filecache.time", 12.0)

        assert metrics == [
            ("filecache.test", 2.5, {"a": 1}),
            ("filecache.count", 1.0, {}),
            ("filecache.time", 12.0, {}),
        ]

    def test_failing_callback_is_isolated(self, metrics) -> None:
        """A raising callback does not stop others."""

        def broken(name, value, labels):
            raise RuntimeError("metrics backend down")

        register_metric_callback(broken)
        try:
            emit_counter("filecache.count")
        finally:
            unregister_metric_callback(broken)

        assert metrics == [("filecache.count", 1.0, {})]

    def test_unregister_unknown(self) -> None:
        """Unregistering an unknown callback is ignored."""
        unregister_metric_callback(lambda *args: None)
