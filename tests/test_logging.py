"""Tests for structured logging and correlation IDs."""
import io
import json
import logging

import pytest

from loterias.core.logging import (
    ColoredFormatter,
    JSONFormatter,
    configure_logging,
    correlation_scope,
    get_correlation_id,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("loterias.test", logging.INFO, __file__, 1, message, (), None)
    record.__dict__.update(extra)
    return record


class TestCorrelationScope:
    """Tests for correlation_scope()."""

    def test_scope_sets_and_restores_id(self):
        assert get_correlation_id() == ""

        with correlation_scope("sync") as correlation_id:
            assert correlation_id.startswith("sync-")
            assert get_correlation_id() == correlation_id

        assert get_correlation_id() == ""

    def test_nested_scopes(self):
        with correlation_scope("bootstrap") as outer:
            with correlation_scope("snapshot"):
                assert get_correlation_id().startswith("snapshot-")
            assert get_correlation_id() == outer


class TestFormatters:
    """Tests for log formatters."""

    def test_json_formatter_fields(self):
        with correlation_scope("sync") as correlation_id:
            line = JSONFormatter().format(make_record("Store updated", game="megasena"))

        data = json.loads(line)
        assert data["message"] == "Store updated"
        assert data["level"] == "INFO"
        assert data["correlation_id"] == correlation_id
        assert data["extra"] == {"game": "megasena"}

    def test_json_formatter_without_extra(self):
        data = json.loads(JSONFormatter().format(make_record("Mega-Sena acumulou")))

        assert data["message"] == "Mega-Sena acumulou"
        assert "extra" not in data

    def test_colored_formatter_appends_correlation_id(self):
        with correlation_scope("sync") as correlation_id:
            line = ColoredFormatter().format(make_record("hello"))

        assert line.endswith(f"correlation_id={correlation_id}")

    def test_configure_logging_uses_given_handler(self, restore_root_logger):
        stream = io.StringIO()
        configure_logging(level="DEBUG", json_output=True, handler=logging.StreamHandler(stream))

        logging.getLogger("loterias.test").info("configured")

        assert json.loads(stream.getvalue())["message"] == "configured"
        assert logging.getLogger("httpx").level == logging.WARNING
