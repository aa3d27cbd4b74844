"""
Balance Mutation Engine

The only place that knows how a transaction moves a wallet balance.

DESIGN DECISION: One polarity convention, used by every engine and report.
The type tag is the cash-flow direction of that specific entry:

    INCOME     +1
    EXPENSE    -1
    DEBT       +1   loan taken, cash received
    RECEIVABLE -1   loan given, cash paid out

Repayments are ordinary INCOME/EXPENSE entries linked to their debt.
Both functions are pure: they return the new balance and mutate nothing.
"""

from decimal import Decimal
from typing import Iterable

from artosku.ledger.errors import InvalidAmountError, WalletNotFoundError
from artosku.models.ledger import Transaction, TransactionType, Wallet


POLARITY: dict[TransactionType, int] = {
    TransactionType.INCOME: 1,
    TransactionType.EXPENSE: -1,
    TransactionType.DEBT: 1,
    TransactionType.RECEIVABLE: -1,
}


def signed_amount(transaction: Transaction) -> Decimal:
    """Amount with the sign its type gives it."""
    return transaction.amount * POLARITY[transaction.type]


def is_inflow(transaction: Transaction) -> bool:
    return POLARITY[transaction.type] > 0


def _check(wallet: Wallet, transaction: Transaction) -> None:
    if transaction.wallet_id != wallet.id:
        raise WalletNotFoundError(
            transaction.wallet_id,
            f"Transaction {transaction.id} posts to wallet {transaction.wallet_id}, "
            f"not {wallet.id}",
        )
    if transaction.amount <= 0:
        raise InvalidAmountError(
            f"Transaction amount must be positive, got {transaction.amount}"
        )


def apply_transaction(wallet: Wallet, transaction: Transaction) -> Decimal:
    """Balance of `wallet` after `transaction` is posted."""
    _check(wallet, transaction)
    return wallet.balance + signed_amount(transaction)


def revert_transaction(wallet: Wallet, transaction: Transaction) -> Decimal:
    """Balance of `wallet` after `transaction` is removed."""
    _check(wallet, transaction)
    return wallet.balance - signed_amount(transaction)


def derive_balance(wallet: Wallet, transactions: Iterable[Transaction]) -> Decimal:
    """Opening balance plus the signed sum of the wallet's entries."""
    total = wallet.opening_balance
    for transaction in transactions:
        if transaction.wallet_id == wallet.id:
            total += signed_amount(transaction)
    return total
