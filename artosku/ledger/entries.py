"""
Entry Recorder

Single ledger entries entered by the owner: income, expenses, top-ups and
balance corrections, plus deletion of any entry.

DESIGN DECISION: Only INCOME and EXPENSE can be recorded here. Loan entries
belong to the debt engine and transfer legs to the transfer orchestrator, so
deleting one of those goes through its own rules:
- either leg of a transfer removes both legs
- a repayment puts its amount back on the debt
- a loan entry cannot be deleted on its own (delete the debt instead)
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from artosku.ledger.book import LedgerBook
from artosku.ledger.debts import DebtLifecycle
from artosku.ledger.errors import LedgerValidationError
from artosku.ledger.transfers import TransferOrchestrator
from artosku.ledger.validation import build, parse_amount, parse_money
from artosku.models.ledger import (
    Transaction,
    TransactionCategory,
    TransactionType,
    category_label,
    utc_now,
)


logger = structlog.get_logger(__name__)

RECORDABLE_TYPES = (TransactionType.INCOME, TransactionType.EXPENSE)

DEFAULT_TOPUP_NOTE = "Top Up"
DEFAULT_DEPOSIT_NOTE = "Quick Deposit"
ADJUSTMENT_NOTE = "Balance adjustment"


class EntryRecorder:
    """Records and deletes single ledger entries."""

    def __init__(self, book: LedgerBook):
        self._book = book

    def record(
        self,
        wallet_id: UUID,
        amount: Any,
        type: Union[TransactionType, str],
        category: Union[TransactionCategory, str] = TransactionCategory.OTHERS,
        description: str = "",
        date: Optional[datetime] = None,
    ) -> Transaction:
        """
        Post an INCOME or EXPENSE entry.

        Raises:
            LedgerValidationError: DEBT/RECEIVABLE type, Loan category, or any
                invalid field
            InvalidAmountError: amount is not positive
            WalletNotFoundError: wallet is missing
        """
        try:
            entry_type = TransactionType(type)
        except ValueError:
            raise LedgerValidationError(f"Unknown transaction type: {type!r}") from None
        if entry_type not in RECORDABLE_TYPES:
            raise LedgerValidationError(
                f"{entry_type.value} entries are created through the debt engine"
            )
        label = str(category_label(category)).strip().lower()
        if label == TransactionCategory.LOAN.value.lower():
            raise LedgerValidationError(
                "Loan entries are created through the debt engine"
            )

        value = parse_amount(amount)
        transaction = self._post_entry(
            wallet_id, value, entry_type, category, description, date
        )

        logger.debug(
            "entry_recorded",
            transaction_id=str(transaction.id),
            type=entry_type.value,
            amount=str(value),
        )
        return transaction

    def delete(self, transaction_id: UUID) -> list[Transaction]:
        """
        Delete an entry and revert its effect.

        Returns every entry removed (two for a transfer).

        Raises:
            TransactionNotFoundError: no such entry
            LedgerValidationError: the entry created a debt
        """
        transaction = self._book.transaction(transaction_id)

        if transaction.is_loan_origin:
            raise LedgerValidationError(
                "A loan entry cannot be deleted on its own; delete its debt instead"
            )

        if transaction.transfer_id is not None:
            targets = self._book.transactions_for_transfer(transaction.transfer_id)
        else:
            targets = [transaction]

        with self._book.unit_of_work():
            for target in targets:
                self._book.unpost(target.id)
            # An orphan repayment has no debt left to reinstate
            if transaction.is_repayment and self._book.has_debt(transaction.debt_id):
                DebtLifecycle(self._book).reinstate(
                    transaction.debt_id, transaction.amount
                )

        logger.debug(
            "entry_deleted",
            transaction_id=str(transaction.id),
            removed=len(targets),
        )
        return targets

    def top_up(
        self,
        wallet_id: UUID,
        amount: Any,
        note: Optional[str] = None,
        source_wallet_id: Optional[UUID] = None,
        date: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        Add capital to a wallet.

        From outside the ledger this is one INCOME entry tagged Topup. From
        another wallet it is a transfer tagged Topup.
        """
        if source_wallet_id is not None:
            outgoing, incoming = TransferOrchestrator(self._book).transfer(
                source_wallet_id,
                wallet_id,
                amount,
                note=note or DEFAULT_DEPOSIT_NOTE,
                date=date,
                category=TransactionCategory.TOPUP,
            )
            return [outgoing, incoming]

        entry = self._post_entry(
            wallet_id,
            parse_amount(amount),
            TransactionType.INCOME,
            TransactionCategory.TOPUP,
            (note or "").strip() or DEFAULT_TOPUP_NOTE,
            date,
        )
        return [entry]

    def adjust_balance(self, wallet_id: UUID, new_balance: Any) -> Optional[Transaction]:
        """
        Bring a wallet to `new_balance` with a correcting entry.

        The difference is posted as INCOME (gain) or EXPENSE (loss) in the
        Adjustment category. Returns None when nothing changes.
        """
        target = parse_money(new_balance, "new balance")
        wallet = self._book.wallet(wallet_id)
        diff: Decimal = target - wallet.balance
        if diff == 0:
            return None

        entry_type = TransactionType.INCOME if diff > 0 else TransactionType.EXPENSE
        return self._post_entry(
            wallet_id,
            abs(diff),
            entry_type,
            TransactionCategory.ADJUSTMENT,
            ADJUSTMENT_NOTE,
            None,
        )

    def _post_entry(
        self,
        wallet_id: UUID,
        amount: Decimal,
        entry_type: TransactionType,
        category: Union[TransactionCategory, str],
        description: str,
        date: Optional[datetime],
    ) -> Transaction:
        self._book.wallet(wallet_id)
        transaction = build(
            Transaction,
            wallet_id=wallet_id,
            amount=amount,
            type=entry_type,
            category=category,
            date=date or utc_now(),
            description=description,
        )
        with self._book.unit_of_work():
            self._book.post(transaction)
        return transaction
