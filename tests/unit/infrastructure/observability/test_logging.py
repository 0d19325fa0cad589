"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from labelcatalog.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from labelcatalog.infrastructure.observability.logger_template import (
    log_operation,
    log_slow_operation,
)


def _record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("labelcatalog.test", logging.INFO, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self) -> None:
        result = set_correlation_id("test-123-abc")
        assert result == "test-123-abc"
        assert get_correlation_id() == "test-123-abc"

    def test_set_correlation_id_generates_uuid_when_none(self) -> None:
        """Test that setting None generates a fresh id."""
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_filter_attaches_current_id(self) -> None:
        set_correlation_id("cid-1")
        record = _record()

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "cid-1"


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self) -> None:
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging(log_level="LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_single_handler_after_repeated_calls(self) -> None:
        """Test that configuring twice doesn't stack handlers."""
        configure_logging(json_format=True)
        configure_logging(json_format=False)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, CompactExceptionFormatter)

    def test_noisy_libraries_quieted(self) -> None:
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestFormatters:
    def test_json_formatter_fields(self) -> None:
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("catalog_import.started", correlation_id="cid-9", label_id="x")

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "catalog_import.started"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "labelcatalog.test"
        assert payload["correlation_id"] == "cid-9"
        assert payload["label_id"] == "x"

    def test_compact_formatter_prints_root_cause_first(self) -> None:
        formatter = CompactExceptionFormatter()
        try:
            try:
                raise KeyError("inner")
            except KeyError as e:
                raise RuntimeError("outer") from e
        except RuntimeError:
            text = formatter.formatException(sys.exc_info())

        lines = [line for line in text.splitlines() if line.startswith("╰─►")]
        assert lines == ["╰─► KeyError: 'inner'", "╰─► RuntimeError: outer"]


class TestLogOperation:
    """log_operation()/log_slow_operation() helpers."""

    async def test_completed_includes_result_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("labelcatalog.test.ops")
        with caplog.at_level(logging.INFO, logger="labelcatalog.test.ops"):
            async with log_operation(logger, "catalog_import", label_id="x") as extra:
                extra["releases_imported"] = 3

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["catalog_import.started", "catalog_import.completed"]
        assert caplog.records[-1].releases_imported == 3
        assert caplog.records[-1].label_id == "x"

    async def test_failure_is_logged_and_reraised(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("labelcatalog.test.ops")
        with caplog.at_level(logging.INFO, logger="labelcatalog.test.ops"):
            with pytest.raises(ValueError):
                async with log_operation(logger, "catalog_import"):
                    raise ValueError("boom")

        failed = caplog.records[-1]
        assert failed.getMessage() == "catalog_import.failed"
        assert failed.error_type == "ValueError"

    def test_slow_operation_only_over_threshold(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("labelcatalog.test.slow")
        with caplog.at_level(logging.WARNING, logger="labelcatalog.test.slow"):
            log_slow_operation(logger, "read", duration_ms=100, threshold_ms=500)
            log_slow_operation(logger, "read", duration_ms=900, threshold_ms=500)

        assert len(caplog.records) == 1
        assert caplog.records[0].duration_ms == 900
