"""
Debt Lifecycle Engine

Tracks what the owner owes (hutang) and is owed (piutang).

Lifecycle:
    OPEN     amount == initial_amount
    PARTIAL  0 < amount < initial_amount
    CLOSED   amount == 0 (terminal)

Creating a debt posts one loan entry against the settlement wallet
(DEBT: cash in, RECEIVABLE: cash out). Each repayment posts the opposite
flow as an ordinary EXPENSE or INCOME entry linked to the debt.
Every entry carries the Loan category and the debt_id.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from artosku.ledger.book import LedgerBook
from artosku.ledger.errors import AlreadySettledError, LedgerValidationError
from artosku.ledger.validation import build, parse_amount
from artosku.models.ledger import (
    Debt,
    DebtType,
    Transaction,
    TransactionCategory,
    utc_now,
)


logger = structlog.get_logger(__name__)

_TYPE_LABELS = {
    DebtType.DEBT: "Hutang",
    DebtType.RECEIVABLE: "Piutang",
}


class DebtLifecycle:
    """Create, repay and delete debts against a ledger book."""

    def __init__(self, book: LedgerBook):
        self._book = book

    def create(
        self,
        title: str,
        initial_amount: Any,
        type: Union[DebtType, str],
        wallet_id: UUID,
        due_date: Optional[date] = None,
        when: Optional[datetime] = None,
    ) -> tuple[Debt, Transaction]:
        """
        Open a new debt and post its loan entry.

        Returns:
            (debt, loan entry)

        Raises:
            InvalidAmountError: initial_amount is not positive
            WalletNotFoundError: settlement wallet is missing
            LedgerValidationError: any other invalid field
        """
        principal = parse_amount(initial_amount, "initial amount")
        try:
            debt_type = DebtType(type)
        except ValueError:
            raise LedgerValidationError(f"Unknown debt type: {type!r}") from None
        wallet = self._book.wallet(wallet_id)

        debt = build(
            Debt,
            title=title,
            amount=principal,
            initial_amount=principal,
            due_date=due_date,
            type=debt_type,
            wallet_id=wallet.id,
        )
        origin = build(
            Transaction,
            wallet_id=wallet.id,
            amount=principal,
            type=debt_type.origin_type,
            category=TransactionCategory.LOAN,
            date=when or utc_now(),
            description=f"New {_TYPE_LABELS[debt_type]}: {debt.title}",
            debt_id=debt.id,
        )

        with self._book.unit_of_work():
            self._book.put_debt(debt)
            self._book.post(origin)

        logger.info(
            "debt_created",
            debt_id=str(debt.id),
            debt_type=debt_type.value,
            amount=str(principal),
        )
        return debt, origin

    def repay(
        self,
        debt_id: UUID,
        payment_amount: Any,
        when: Optional[datetime] = None,
    ) -> tuple[Debt, Transaction]:
        """
        Pay off part or all of a debt.

        Overpayment is clamped to the remaining amount, so the entry posted is
        never larger than what was owed.

        Returns:
            (updated debt, repayment entry)

        Raises:
            DebtNotFoundError: no such debt
            AlreadySettledError: debt is already closed
            InvalidAmountError: payment is not positive
        """
        debt = self._book.debt(debt_id)
        payment = parse_amount(payment_amount, "payment amount")
        if debt.is_paid:
            raise AlreadySettledError(debt.id)

        effective = min(payment, debt.amount)
        remaining = debt.amount - effective
        label = "Full" if remaining == 0 else "Partial"

        entry = build(
            Transaction,
            wallet_id=debt.wallet_id,
            amount=effective,
            type=debt.type.repayment_type,
            category=TransactionCategory.LOAN,
            date=when or utc_now(),
            description=f"Payment for {debt.title} ({label})",
            debt_id=debt.id,
        )
        updated = debt.model_copy(update={
            "amount": remaining,
            "is_paid": remaining == 0,
            "updated_at": utc_now(),
        })

        with self._book.unit_of_work():
            self._book.post(entry)
            self._book.put_debt(updated)

        logger.info(
            "debt_repaid",
            debt_id=str(debt.id),
            paid=str(effective),
            clamped=payment != effective,
            remaining=str(remaining),
        )
        return updated, entry

    def reinstate(self, debt_id: UUID, amount: Decimal) -> Debt:
        """
        Add a removed repayment back onto the debt.

        Called when a repayment entry is deleted; a closed debt reopens.
        """
        debt = self._book.debt(debt_id)
        restored = min(debt.amount + amount, debt.initial_amount)
        updated = debt.model_copy(update={
            "amount": restored,
            "is_paid": restored == 0,
            "updated_at": utc_now(),
        })
        return self._book.put_debt(updated)

    def delete(self, debt_id: UUID) -> tuple[Debt, list[Transaction]]:
        """
        Remove a debt and unwind every entry linked to it.

        The loan entry and all repayments are reverted, so the settlement
        wallet ends where it was before the debt existed.

        Returns:
            (removed debt, removed entries)

        Raises:
            DebtNotFoundError: no such debt
        """
        debt = self._book.debt(debt_id)
        linked = self._book.transactions_for_debt(debt.id)

        with self._book.unit_of_work():
            for transaction in linked:
                self._book.unpost(transaction.id)
            self._book.remove_debt(debt.id)

        logger.info(
            "debt_deleted",
            debt_id=str(debt.id),
            removed_entries=len(linked),
        )
        return debt, linked
