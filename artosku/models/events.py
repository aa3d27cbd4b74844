"""
Ledger Event Models

Every completed ledger operation, and every storage failure, is described by
a LedgerEvent and written to the structured log.

DESIGN DECISION: Events are log records only. Nothing here is persisted,
and the ledger never reads them back.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from artosku.models.ledger import Debt, Transaction, Wallet, utc_now


class LedgerEventType(str, Enum):
    """Types of events the ledger emits."""
    # Wallets
    WALLET_CREATED = "wallet_created"
    WALLET_UPDATED = "wallet_updated"
    WALLET_DELETED = "wallet_deleted"

    # Entries
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSFER_COMPLETED = "transfer_completed"
    TOPUP_RECORDED = "topup_recorded"
    BALANCE_ADJUSTED = "balance_adjusted"

    # Debts
    DEBT_CREATED = "debt_created"
    DEBT_REPAID = "debt_repaid"
    DEBT_SETTLED = "debt_settled"
    DEBT_DELETED = "debt_deleted"

    # Budgets
    BUDGET_SET = "budget_set"
    BUDGET_REMOVED = "budget_removed"

    # Session and storage
    LEDGER_LOADED = "ledger_loaded"
    LEDGER_RECONCILED = "ledger_reconciled"
    COMMIT_FAILED = "commit_failed"
    PARTIAL_COMMIT = "partial_commit"
    PENDING_RESUMED = "pending_resumed"


class LedgerEventSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class LedgerEvent(BaseModel):
    """A single ledger event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: LedgerEventType
    severity: LedgerEventSeverity = LedgerEventSeverity.INFO

    owner_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'wallet', 'transaction', 'debt')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.transfer_completed(outgoing, incoming, owner_id)
    """

    @staticmethod
    def wallet_created(wallet: Wallet, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.WALLET_CREATED,
            owner_id=owner_id,
            entity_type="wallet",
            entity_id=wallet.id,
            description=f"Wallet created: {wallet.name}",
            details={
                "wallet_type": wallet.type.value,
                "opening_balance": str(wallet.opening_balance),
            },
        )

    @staticmethod
    def wallet_updated(wallet: Wallet, fields: list[str], owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.WALLET_UPDATED,
            owner_id=owner_id,
            entity_type="wallet",
            entity_id=wallet.id,
            description=f"Wallet updated: {wallet.name}",
            details={"fields": fields},
        )

    @staticmethod
    def wallet_deleted(
        wallet: Wallet,
        removed_transactions: int,
        removed_debts: int,
        owner_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.WALLET_DELETED,
            owner_id=owner_id,
            entity_type="wallet",
            entity_id=wallet.id,
            description=f"Wallet deleted: {wallet.name}",
            details={
                "removed_transactions": removed_transactions,
                "removed_debts": removed_debts,
            },
        )

    @staticmethod
    def transaction_recorded(transaction: Transaction, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_RECORDED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction.id,
            description=(
                f"{transaction.type.value} recorded: "
                f"{transaction.category_label} {_money(transaction.amount)}"
            ),
            details={
                "wallet_id": str(transaction.wallet_id),
                "amount": str(transaction.amount),
                "type": transaction.type.value,
                "category": transaction.category_label,
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction: Transaction,
        removed_ids: list[UUID],
        owner_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_DELETED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction.id,
            description=f"Transaction deleted: {transaction.description or transaction.category_label}",
            details={
                "removed_ids": [str(i) for i in removed_ids],
                "amount": str(transaction.amount),
                "type": transaction.type.value,
            },
        )

    @staticmethod
    def transfer_completed(
        outgoing: Transaction,
        incoming: Transaction,
        owner_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSFER_COMPLETED,
            owner_id=owner_id,
            entity_type="transfer",
            entity_id=outgoing.transfer_id,
            description=f"Transfer completed: {_money(outgoing.amount)}",
            details={
                "from_wallet_id": str(outgoing.wallet_id),
                "to_wallet_id": str(incoming.wallet_id),
                "amount": str(outgoing.amount),
            },
        )

    @staticmethod
    def topup_recorded(transaction: Transaction, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TOPUP_RECORDED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction.id,
            description=f"Top-up recorded: {_money(transaction.amount)}",
            details={
                "wallet_id": str(transaction.wallet_id),
                "amount": str(transaction.amount),
                "transfer_id": str(transaction.transfer_id) if transaction.transfer_id else None,
            },
        )

    @staticmethod
    def balance_adjusted(
        wallet: Wallet,
        previous_balance: Decimal,
        owner_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_ADJUSTED,
            owner_id=owner_id,
            entity_type="wallet",
            entity_id=wallet.id,
            description=f"Balance adjusted: {wallet.name}",
            details={
                "previous_balance": str(previous_balance),
                "new_balance": str(wallet.balance),
            },
        )

    @staticmethod
    def debt_created(debt: Debt, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.DEBT_CREATED,
            owner_id=owner_id,
            entity_type="debt",
            entity_id=debt.id,
            description=f"{debt.type.value.capitalize()} created: {debt.title}",
            details={
                "initial_amount": str(debt.initial_amount),
                "wallet_id": str(debt.wallet_id),
                "due_date": debt.due_date.isoformat() if debt.due_date else None,
            },
        )

    @staticmethod
    def debt_repaid(debt: Debt, paid: Decimal, owner_id: str) -> LedgerEvent:
        event_type = (
            LedgerEventType.DEBT_SETTLED if debt.is_paid
            else LedgerEventType.DEBT_REPAID
        )
        return LedgerEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="debt",
            entity_id=debt.id,
            description=f"Payment of {_money(paid)} for {debt.title}",
            details={
                "paid": str(paid),
                "remaining": str(debt.amount),
                "status": debt.status.value,
            },
        )

    @staticmethod
    def debt_deleted(debt: Debt, removed_entries: int, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.DEBT_DELETED,
            owner_id=owner_id,
            entity_type="debt",
            entity_id=debt.id,
            description=f"{debt.type.value.capitalize()} deleted: {debt.title}",
            details={"removed_entries": removed_entries},
        )

    @staticmethod
    def budget_set(category: str, limit: Decimal, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BUDGET_SET,
            owner_id=owner_id,
            entity_type="budget",
            description=f"Budget set: {category} {_money(limit)}",
            details={"category": category, "monthly_limit": str(limit)},
        )

    @staticmethod
    def budget_removed(category: str, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BUDGET_REMOVED,
            owner_id=owner_id,
            entity_type="budget",
            description=f"Budget removed: {category}",
            details={"category": category},
        )

    @staticmethod
    def ledger_loaded(
        owner_id: str,
        wallets: int,
        transactions: int,
        debts: int,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.LEDGER_LOADED,
            owner_id=owner_id,
            description="Ledger loaded from storage",
            details={
                "wallets": wallets,
                "transactions": transactions,
                "debts": debts,
            },
        )

    @staticmethod
    def ledger_reconciled(owner_id: str, details: dict[str, Any]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.LEDGER_RECONCILED,
            severity=LedgerEventSeverity.WARNING,
            owner_id=owner_id,
            description="Ledger repaired from the transaction log",
            details=details,
        )

    @staticmethod
    def commit_failed(
        operation: str,
        error_message: str,
        owner_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.COMMIT_FAILED,
            severity=LedgerEventSeverity.ERROR,
            owner_id=owner_id,
            description=f"Storage rejected {operation}; nothing was applied",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def partial_commit(
        operation: str,
        applied: list[str],
        pending: list[str],
        error_message: str,
        owner_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PARTIAL_COMMIT,
            severity=LedgerEventSeverity.CRITICAL,
            owner_id=owner_id,
            description=f"{operation} only partially reached storage",
            details={
                "operation": operation,
                "applied": applied,
                "pending": pending,
            },
            error_message=error_message,
        )

    @staticmethod
    def pending_resumed(steps: int, owner_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PENDING_RESUMED,
            owner_id=owner_id,
            description=f"Resumed {steps} pending storage steps",
            details={"steps": steps},
        )
