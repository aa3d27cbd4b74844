"""
Ledger Event Logger

DESIGN DECISION: Every completed ledger operation is logged as a typed
LedgerEvent. This provides:
1. Traceability of every balance movement
2. Debugging information when storage fails half-way
3. A single place where severity is decided

Events go to the structured local log only. There is no event store.
"""

import logging
import sys
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from artosku.config.settings import AppSettings
from artosku.models.events import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
)
from artosku.models.ledger import Debt, Transaction, Wallet


def configure_logging(app_settings: Optional[AppSettings] = None) -> None:
    """
    Configure stdlib logging and structlog once at startup.

    JSON output by default; a console renderer when log_json is off.
    """
    app_settings = app_settings or AppSettings()
    level = getattr(logging, app_settings.log_level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    renderer: Any
    if app_settings.log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LedgerEventLogger:
    """
    Central ledger event logging.

    Keeps the last events in memory (bounded) so callers and tests can
    inspect what happened in this session.
    """

    def __init__(self, owner_id: str, history_size: int = 200):
        self._owner_id = owner_id
        self._history_size = history_size
        self._history: list[LedgerEvent] = []
        self._logger = structlog.get_logger("artosku.events")

    @property
    def history(self) -> list[LedgerEvent]:
        return list(self._history)

    def log(self, event: LedgerEvent) -> LedgerEvent:
        """Log an event at the level its severity maps to."""
        log_dict = event.to_log_dict()

        if event.severity in (LedgerEventSeverity.ERROR, LedgerEventSeverity.CRITICAL):
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)

        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]
        return event

    # -------------------------------------------------------------------------
    # Wallets
    # -------------------------------------------------------------------------

    def log_wallet_created(self, wallet: Wallet) -> None:
        self.log(LedgerEventBuilder.wallet_created(wallet, self._owner_id))

    def log_wallet_updated(self, wallet: Wallet, fields: list[str]) -> None:
        self.log(LedgerEventBuilder.wallet_updated(wallet, fields, self._owner_id))

    def log_wallet_deleted(
        self,
        wallet: Wallet,
        removed_transactions: int,
        removed_debts: int,
    ) -> None:
        self.log(LedgerEventBuilder.wallet_deleted(
            wallet, removed_transactions, removed_debts, self._owner_id
        ))

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def log_transaction_recorded(self, transaction: Transaction) -> None:
        self.log(LedgerEventBuilder.transaction_recorded(transaction, self._owner_id))

    def log_transaction_deleted(self, transaction: Transaction, removed_ids: list[UUID]) -> None:
        self.log(LedgerEventBuilder.transaction_deleted(
            transaction, removed_ids, self._owner_id
        ))

    def log_transfer_completed(self, outgoing: Transaction, incoming: Transaction) -> None:
        self.log(LedgerEventBuilder.transfer_completed(outgoing, incoming, self._owner_id))

    def log_topup_recorded(self, transaction: Transaction) -> None:
        self.log(LedgerEventBuilder.topup_recorded(transaction, self._owner_id))

    def log_balance_adjusted(self, wallet: Wallet, previous_balance: Decimal) -> None:
        self.log(LedgerEventBuilder.balance_adjusted(wallet, previous_balance, self._owner_id))

    # -------------------------------------------------------------------------
    # Debts and budgets
    # -------------------------------------------------------------------------

    def log_debt_created(self, debt: Debt) -> None:
        self.log(LedgerEventBuilder.debt_created(debt, self._owner_id))

    def log_debt_repaid(self, debt: Debt, paid: Decimal) -> None:
        self.log(LedgerEventBuilder.debt_repaid(debt, paid, self._owner_id))

    def log_debt_deleted(self, debt: Debt, removed_entries: int) -> None:
        self.log(LedgerEventBuilder.debt_deleted(debt, removed_entries, self._owner_id))

    def log_budget_set(self, category: str, limit: Decimal) -> None:
        self.log(LedgerEventBuilder.budget_set(category, limit, self._owner_id))

    def log_budget_removed(self, category: str) -> None:
        self.log(LedgerEventBuilder.budget_removed(category, self._owner_id))

    # -------------------------------------------------------------------------
    # Session and storage
    # -------------------------------------------------------------------------

    def log_ledger_loaded(self, wallets: int, transactions: int, debts: int) -> None:
        self.log(LedgerEventBuilder.ledger_loaded(
            self._owner_id, wallets, transactions, debts
        ))

    def log_ledger_reconciled(self, details: dict[str, Any]) -> None:
        self.log(LedgerEventBuilder.ledger_reconciled(self._owner_id, details))

    def log_commit_failed(self, operation: str, error_message: str) -> None:
        self.log(LedgerEventBuilder.commit_failed(operation, error_message, self._owner_id))

    def log_partial_commit(
        self,
        operation: str,
        applied: list[str],
        pending: list[str],
        error_message: str,
    ) -> None:
        self.log(LedgerEventBuilder.partial_commit(
            operation, applied, pending, error_message, self._owner_id
        ))

    def log_pending_resumed(self, steps: int) -> None:
        self.log(LedgerEventBuilder.pending_resumed(steps, self._owner_id))
