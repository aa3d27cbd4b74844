"""
Tests for ledger event logging
"""

import pytest
from decimal import Decimal

from artosku.config import AppSettings
from artosku.events import LedgerEventLogger, configure_logging
from artosku.models import (
    LedgerEvent,
    LedgerEventSeverity,
    LedgerEventType,
)

from tests.conftest import OWNER, new_wallet


class TestLedgerEventLogger:
    """Tests for LedgerEventLogger."""

    def test_history_records_events(self):
        events = LedgerEventLogger(OWNER)
        wallet = new_wallet("BCA", "100")

        events.log_wallet_created(wallet)
        events.log_balance_adjusted(wallet, Decimal("90"))

        history = events.history
        assert [e.event_type for e in history] == [
            LedgerEventType.WALLET_CREATED,
            LedgerEventType.BALANCE_ADJUSTED,
        ]
        assert all(e.owner_id == OWNER for e in history)

    def test_history_is_bounded(self):
        """Test that only the most recent events are kept."""
        events = LedgerEventLogger(OWNER, history_size=3)
        for index in range(5):
            events.log_budget_set(f"Kategori {index}", Decimal("100"))

        history = events.history
        assert len(history) == 3
        assert history[0].details["category"] == "Kategori 2"

    def test_failure_events_have_error_severity(self):
        events = LedgerEventLogger(OWNER)
        events.log_commit_failed("transfer", "Sheets unavailable")
        events.log_partial_commit("transfer", ["a"], ["b"], "timeout")

        commit_failed, partial = events.history
        assert commit_failed.severity == LedgerEventSeverity.ERROR
        assert partial.severity == LedgerEventSeverity.CRITICAL
        assert partial.details["pending"] == ["b"]

    def test_log_returns_event(self):
        events = LedgerEventLogger(OWNER)
        event = LedgerEvent(
            event_type=LedgerEventType.LEDGER_LOADED,
            severity=LedgerEventSeverity.DEBUG,
            description="loaded",
        )
        assert events.log(event) is event


class TestConfigureLogging:
    """Tests for logging setup."""

    @pytest.mark.parametrize("log_json", [True, False])
    def test_configure_logging(self, log_json):
        """Test that both renderers configure without error."""
        configure_logging(AppSettings(log_level="DEBUG", log_json=log_json))
        LedgerEventLogger(OWNER).log_ledger_loaded(1, 2, 3)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
