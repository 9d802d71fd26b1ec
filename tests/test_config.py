"""Tests for settings and the audit logger."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from pydantic import ValidationError

from card_ledger.audit import AuditLogger, create_correlation_id
from card_ledger.config import GoogleSheetsSettings, LedgerSettings, get_settings
from card_ledger.models.credit_card import PartialAggregationWarning

from conftest import run


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self, monkeypatch):
        """Test the out-of-the-box configuration."""
        for name in ("LEDGER_DEFAULT_PROJECTION_HORIZON", "LEDGER_LOG_LEVEL", "LEDGER_CACHE_TTL_SECONDS"):
            monkeypatch.delenv(name, raising=False)
        settings = LedgerSettings()

        assert settings.default_projection_horizon == 12
        assert settings.projection_procedure == "calculate_credit_limit_projection"
        assert settings.max_concurrent_fetches == 8
        assert settings.excluded_card_suffix == " (Excluído)"
        assert settings.fallback_card_name == "Cartão"
        assert settings.cache_ttl_seconds == 300

    def test_environment_override(self, monkeypatch):
        """Test reading values from LEDGER_* variables."""
        monkeypatch.setenv("LEDGER_DEFAULT_PROJECTION_HORIZON", "6")
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "debug")
        settings = LedgerSettings()

        assert settings.default_projection_horizon == 6
        assert settings.log_level == "DEBUG"

    def test_rejects_unknown_log_level(self, monkeypatch):
        """Test log level validation."""
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            LedgerSettings()

    def test_rejects_negative_horizon(self, monkeypatch):
        """Test horizon bounds."""
        monkeypatch.setenv("LEDGER_DEFAULT_PROJECTION_HORIZON", "-1")
        with pytest.raises(ValidationError):
            LedgerSettings()

    def test_only_ledger_fields(self):
        """Test that every setting is one the ledger reads."""
        assert set(LedgerSettings.model_fields) == {
            "log_level",
            "default_projection_horizon",
            "projection_procedure",
            "max_concurrent_fetches",
            "excluded_card_suffix",
            "fallback_card_name",
            "cache_ttl_seconds",
        }

    def test_root_settings_expose_ledger(self):
        """Test the root container."""
        assert isinstance(get_settings().ledger, LedgerSettings)


class TestGoogleSheetsSettings:
    """Tests for GoogleSheetsSettings."""

    def test_reads_environment(self, monkeypatch, tmp_path):
        """Test loading credentials path and spreadsheet id."""
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

        settings = GoogleSheetsSettings()

        assert settings.spreadsheet_id == "sheet-123"
        assert settings.credentials_path == str(credentials)

    def test_missing_credentials_file_warns(self, monkeypatch, tmp_path):
        """Test that a missing credentials file only warns."""
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(tmp_path / "missing.json"))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

        with pytest.warns(UserWarning, match="credentials file not found"):
            GoogleSheetsSettings()


class TestAuditLogger:
    """Tests for AuditLogger."""

    def _logger(self) -> AuditLogger:
        audit_logger = AuditLogger()
        audit_logger._logger = MagicMock()
        return audit_logger

    def test_info_event(self):
        """Test that routine reads log at info."""
        audit_logger = self._logger()
        correlation_id = create_correlation_id()

        run(audit_logger.log_purchases_fetched("c1", 3, correlation_id))

        audit_logger._logger.info.assert_called_once()
        fields = audit_logger._logger.info.call_args.kwargs
        assert fields["event_type"] == "purchases_fetched"
        assert fields["credit_card_id"] == "c1"
        assert fields["correlation_id"] == str(correlation_id)
        assert fields["details"] == {"purchase_count": 3}

    def test_skipped_bill_is_warning(self):
        """Test that skipped bills log at warning with the error."""
        audit_logger = self._logger()
        warning = PartialAggregationWarning(
            bill_id="b7", credit_card_id="c1", bill_month="2025-07", error="timeout",
        )

        run(audit_logger.log_bill_skipped(warning, uuid4()))

        fields = audit_logger._logger.warning.call_args.kwargs
        assert fields["event_type"] == "bill_skipped"
        assert fields["error_message"] == "timeout"
        assert fields["details"] == {"bill_id": "b7", "bill_month": "2025-07"}

    def test_aggregation_with_skips_is_warning(self):
        """Test the severity of a partial aggregation."""
        audit_logger = self._logger()
        run(audit_logger.log_bills_aggregated("c1", 2, 1, "20.00"))
        audit_logger._logger.warning.assert_called_once()
        audit_logger._logger.info.assert_not_called()

    def test_data_access_failure_is_error(self):
        """Test that store failures log at error."""
        audit_logger = self._logger()
        run(audit_logger.log_data_access_failed("fetch_balances", "database unavailable"))

        fields = audit_logger._logger.error.call_args.kwargs
        assert fields["details"] == {"operation": "fetch_balances"}
        assert fields["error_message"] == "database unavailable"

    def test_cache_invalidation_is_debug(self):
        """Test that cache invalidation logs at debug."""
        audit_logger = self._logger()
        run(audit_logger.log_cache_invalidated(["bills/c1"], 1))
        audit_logger._logger.debug.assert_called_once()
