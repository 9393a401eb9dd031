"""Tests for error types, diagnostics and logging setup."""

import json
import logging

import structlog

from typed_records.config import LoggingConfig
from typed_records.errors import (
    BindSynthesisError,
    CatalogFetchError,
    ConfigError,
    DiagnosticKind,
    Diagnostics,
    ErrorCode,
    TypedRecordsError,
)
from typed_records.logging import configure_logging


class TestErrors:
    def test_str_and_dict(self):
        error = CatalogFetchError.query_failed("PRAGMA x", "boom")
        assert isinstance(error, TypedRecordsError)
        assert str(error) == "[1001] CATALOG_QUERY_FAILED: Catalog query failed: PRAGMA x: boom"
        assert error.to_dict() == {
            "code": 1001,
            "error": "CATALOG_QUERY_FAILED",
            "message": "Catalog query failed: PRAGMA x: boom",
            "details": {"sql": "PRAGMA x", "reason": "boom"},
        }

    def test_codes(self):
        assert ConfigError.file_not_found("a.yaml").code == ErrorCode.CONFIG_FILE_NOT_FOUND
        error = BindSynthesisError.no_binder("person", "photo", "custom:Image")
        assert error.code == ErrorCode.GENERATION_NO_BINDER
        assert error.details["property"] == "photo"


class TestDiagnostics:
    """Tests for the diagnostics collector."""

    def test_collect_and_filter(self):
        diagnostics = Diagnostics()
        diagnostics.add(DiagnosticKind.UNSUPPORTED_DEFAULT, "t", "no", property="a")
        diagnostics.add(DiagnosticKind.SKIPPED_VIEW, "v", "broken")
        assert len(diagnostics) == 2
        assert [d.entity for d in diagnostics.of_kind(DiagnosticKind.SKIPPED_VIEW)] == ["v"]
        assert [d.property for d in diagnostics.for_entity("t")] == ["a"]
        assert [d.kind for d in diagnostics] == [
            DiagnosticKind.UNSUPPORTED_DEFAULT,
            DiagnosticKind.SKIPPED_VIEW,
        ]

    def test_to_dict(self):
        diagnostic = Diagnostics().add(DiagnosticKind.SKIPPED_VIEW, "v", "broken")
        assert diagnostic.to_dict() == {
            "kind": "skipped_view",
            "entity": "v",
            "property": None,
            "message": "broken",
        }

    def test_logged_as_warning(self, tmp_path):
        """Test each diagnostic is written to the configured log."""
        path = tmp_path / "logs" / "typed_records.log"
        configure_logging(config=LoggingConfig(format="json", destination=str(path)))
        try:
            Diagnostics().add(DiagnosticKind.UNSUPPORTED_DEFAULT, "t", "no", property="a")
            for handler in logging.getLogger().handlers:
                handler.flush()
            [line] = path.read_text().splitlines()
            event = json.loads(line)
            assert event["event"] == "generation.diagnostic"
            assert event["level"] == "warning"
            assert event["entity"] == "t"
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            logging.getLogger().handlers.clear()
            structlog.reset_defaults()


class TestConfigureLogging:
    def test_level_filters(self, tmp_path):
        path = tmp_path / "quiet.log"
        configure_logging(config=LoggingConfig(level="ERROR", destination=str(path)))
        try:
            structlog.get_logger().warning("ignored")
            structlog.get_logger().error("kept")
            for handler in logging.getLogger().handlers:
                handler.flush()
            text = path.read_text()
            assert "kept" in text
            assert "ignored" not in text
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            logging.getLogger().handlers.clear()
            structlog.reset_defaults()

    def test_reconfigure_closes_file(self, tmp_path):
        """Test the previous log file is closed when logging is set up again."""
        configure_logging(config=LoggingConfig(destination=str(tmp_path / "first.log")))
        try:
            [first] = logging.getLogger().handlers
            configure_logging(config=LoggingConfig(destination=str(tmp_path / "second.log")))
            assert first.stream is None
            [second] = logging.getLogger().handlers
            assert second.baseFilename.endswith("second.log")
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            logging.getLogger().handlers.clear()
            structlog.reset_defaults()
