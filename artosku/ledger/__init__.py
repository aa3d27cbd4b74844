"""
Ledger core: balance engine, book, and the operation engines built on it.
"""

from artosku.ledger.balance import (
    POLARITY,
    apply_transaction,
    derive_balance,
    revert_transaction,
    signed_amount,
)
from artosku.ledger.book import LedgerBook
from artosku.ledger.debts import DebtLifecycle
from artosku.ledger.entries import EntryRecorder
from artosku.ledger.errors import (
    AlreadySettledError,
    DebtNotFoundError,
    InconsistentStateError,
    InvalidAmountError,
    LedgerError,
    LedgerValidationError,
    NotFoundError,
    PartialFailureError,
    SameWalletError,
    TransactionNotFoundError,
    WalletNotFoundError,
)
from artosku.ledger.transfers import TransferOrchestrator

__all__ = [
    "POLARITY",
    "apply_transaction",
    "derive_balance",
    "revert_transaction",
    "signed_amount",
    "LedgerBook",
    "DebtLifecycle",
    "EntryRecorder",
    "TransferOrchestrator",
    # Errors
    "LedgerError",
    "LedgerValidationError",
    "InvalidAmountError",
    "SameWalletError",
    "NotFoundError",
    "WalletNotFoundError",
    "DebtNotFoundError",
    "TransactionNotFoundError",
    "AlreadySettledError",
    "InconsistentStateError",
    "PartialFailureError",
]
