"""
Tests for configuration, logging helpers and amount parsing
"""

import io
import json
import logging
import pytest
from decimal import Decimal

from sparesti.config import SparestiConfig, get_config, reload_config
from sparesti.logging_config import setup_logging, get_logger, log_action, TextFormatter
from sparesti.ledger import LedgerService
from sparesti.money import to_amount, format_amount


class TestConfig:
    """Test environment-driven settings"""

    def test_defaults(self):
        config = SparestiConfig()
        assert config.recent_transaction_days == 30
        assert config.transfer_category == "Transfer"
        assert config.amount_precision == 2
        assert config.enable_audit_logging

    def test_environment_overrides(self, monkeypatch):
        """Test that SPARESTI_ variables override defaults"""
        monkeypatch.setenv("SPARESTI_DATABASE_URL", "memory://")
        monkeypatch.setenv("SPARESTI_RECENT_TRANSACTION_DAYS", "14")
        monkeypatch.setenv("SPARESTI_ENABLE_AUDIT_LOGGING", "false")

        config = reload_config()
        try:
            assert config.database_url == "memory://"
            assert config.recent_transaction_days == 14
            assert not config.enable_audit_logging
            assert get_config() is config
        finally:
            monkeypatch.undo()
            reload_config()


class TestLogging:
    """Test structured logging helpers"""

    def _capture(self, log_format):
        logger = setup_logging("DEBUG", logger_name="sparesti.test", log_format=log_format)
        stream = io.StringIO()
        logger.handlers[0].setStream(stream)
        return logger, stream

    def test_json_format_includes_structured_fields(self):
        logger, stream = self._capture("json")

        log_action(logger, "info", "Transaction posted", owner_id=7,
                   action="add_transaction", resource="account:1001",
                   extra={"amount": "10.00"})

        entry = json.loads(stream.getvalue())
        assert entry["message"] == "Transaction posted"
        assert entry["level"] == "INFO"
        assert entry["owner_id"] == 7
        assert entry["action"] == "add_transaction"
        assert entry["resource"] == "account:1001"
        assert entry["extra"] == {"amount": "10.00"}
        assert "correlation_id" not in entry

    def test_text_format(self):
        logger, stream = self._capture("text")

        log_action(logger, "warning", "Rejected add_transaction", resource="account:4040")

        line = stream.getvalue()
        assert "WARNING" in line
        assert "Rejected add_transaction" in line
        assert "resource=account:4040" in line

    def test_get_logger_children(self):
        assert get_logger("sparesti.ledger").name == "sparesti.ledger"
        assert isinstance(get_logger(), logging.Logger)


class TestAmounts:
    """Test Decimal amount conversion"""

    def test_rounding_half_up(self):
        assert to_amount("10.005") == Decimal('10.01')
        assert to_amount(Decimal('-2.345')) == Decimal('-2.35')
        assert to_amount(5) == Decimal('5.00')

    def test_float_goes_through_string(self):
        assert to_amount(0.1) == Decimal('0.10')

    def test_custom_precision(self):
        assert to_amount("1.23456", precision=3) == Decimal('1.235')

    @pytest.mark.parametrize("value", [None, "abc", "", "NaN", "Infinity", True])
    def test_invalid_amounts(self, value):
        with pytest.raises(ValueError):
            to_amount(value)

    def test_out_of_range_amount(self):
        """Test that rounding past the context precision is a ValueError"""
        with pytest.raises(ValueError, match="out of range"):
            to_amount("1e30")
        assert to_amount("1e25") == Decimal('10000000000000000000000000.00')

    def test_format_amount(self):
        assert format_amount(Decimal('-1250.50')) == "-1,250.50"
        assert format_amount(Decimal('7')) == "7"


class TestLoggingFromConfig:
    """Test that the ledger entry point applies the logging settings"""

    def teardown_method(self):
        logger = logging.getLogger("sparesti")
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    def test_level_and_format_from_environment(self, monkeypatch):
        monkeypatch.setenv("SPARESTI_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("SPARESTI_LOG_FORMAT", "text")

        LedgerService.from_config(SparestiConfig(database_url="memory://"))

        logger = logging.getLogger("sparesti")
        assert logger.level == logging.ERROR
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, TextFormatter)

    def test_log_file(self, tmp_path):
        """Test that ledger entries land in the configured file as JSON"""
        log_file = tmp_path / "sparesti.log"
        ledger = LedgerService.from_config(SparestiConfig(
            database_url="memory://", log_level="INFO", log_format="json", log_file=str(log_file)
        ))
        ledger.open_account(1001, owner_id=7)

        logging.getLogger("sparesti").handlers[0].flush()
        entry = json.loads(log_file.read_text().splitlines()[0])
        assert entry["message"] == "Account created"
        assert entry["owner_id"] == 7
        assert entry["logger"] == "sparesti.ledger"
