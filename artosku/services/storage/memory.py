"""
In-Memory Storage Implementation

Used for tests, for local runs without credentials, and as the reference
behaviour of a transactional backend.

With atomic=True (the default) a change set is applied all-or-nothing:
the owner's records are snapshotted first and restored if any step fails.
With atomic=False it behaves like a backend without transactions and a
failure half-way surfaces as PartialCommitError.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

import structlog

from artosku.models.changes import PersistStep
from artosku.models.ledger import Budget, Debt, Transaction, Wallet
from artosku.services.storage.interface import (
    ConcurrentModificationError,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


@dataclass
class _OwnerRecords:
    wallets: dict[UUID, Wallet] = field(default_factory=dict)
    transactions: dict[UUID, Transaction] = field(default_factory=dict)
    debts: dict[UUID, Debt] = field(default_factory=dict)
    budgets: dict[str, Budget] = field(default_factory=dict)

    def copy(self) -> "_OwnerRecords":
        return _OwnerRecords(
            wallets={k: v.model_copy() for k, v in self.wallets.items()},
            transactions=dict(self.transactions),
            debts=dict(self.debts),
            budgets=dict(self.budgets),
        )


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage held in process memory, one record set per owner."""

    def __init__(self, atomic: bool = True):
        self.atomic = atomic
        self._owners: dict[str, _OwnerRecords] = {}

    def _records(self, owner_id: str) -> _OwnerRecords:
        return self._owners.setdefault(owner_id, _OwnerRecords())

    # =========================================================================
    # LOADING
    # =========================================================================

    async def load_wallets(self, owner_id: str) -> list[Wallet]:
        return [w.model_copy() for w in self._records(owner_id).wallets.values()]

    async def load_transactions(self, owner_id: str) -> list[Transaction]:
        return [t.model_copy() for t in self._records(owner_id).transactions.values()]

    async def load_debts(self, owner_id: str) -> list[Debt]:
        return [d.model_copy() for d in self._records(owner_id).debts.values()]

    async def load_budgets(self, owner_id: str) -> list[Budget]:
        return [b.model_copy() for b in self._records(owner_id).budgets.values()]

    # =========================================================================
    # WRITES
    # =========================================================================

    async def save_wallet(self, owner_id: str, wallet: Wallet) -> bool:
        self._records(owner_id).wallets[wallet.id] = wallet.model_copy()
        return True

    async def delete_wallet(self, owner_id: str, wallet_id: UUID) -> bool:
        """Delete a wallet with its transactions and debts, like a cascading FK."""
        records = self._records(owner_id)
        if records.wallets.pop(wallet_id, None) is None:
            return False
        records.transactions = {
            k: t for k, t in records.transactions.items() if t.wallet_id != wallet_id
        }
        records.debts = {
            k: d for k, d in records.debts.items() if d.wallet_id != wallet_id
        }
        return True

    async def save_transaction(self, owner_id: str, transaction: Transaction) -> bool:
        records = self._records(owner_id)
        if transaction.wallet_id not in records.wallets:
            raise RecordNotFoundError(
                f"Wallet not found for transaction {transaction.id}: {transaction.wallet_id}"
            )
        records.transactions[transaction.id] = transaction.model_copy()
        return True

    async def delete_transaction(self, owner_id: str, transaction_id: UUID) -> bool:
        return self._records(owner_id).transactions.pop(transaction_id, None) is not None

    async def save_debt(self, owner_id: str, debt: Debt) -> bool:
        records = self._records(owner_id)
        if debt.wallet_id not in records.wallets:
            raise RecordNotFoundError(
                f"Wallet not found for debt {debt.id}: {debt.wallet_id}"
            )
        records.debts[debt.id] = debt.model_copy()
        return True

    async def delete_debt(self, owner_id: str, debt_id: UUID) -> bool:
        return self._records(owner_id).debts.pop(debt_id, None) is not None

    async def save_budget(self, owner_id: str, budget: Budget) -> bool:
        self._records(owner_id).budgets[budget.category_label] = budget.model_copy()
        return True

    async def delete_budget(self, owner_id: str, category: str) -> bool:
        return self._records(owner_id).budgets.pop(category, None) is not None

    async def swap_balance(
        self,
        owner_id: str,
        wallet_id: UUID,
        expected: Decimal,
        new: Decimal,
    ) -> bool:
        wallet = self._records(owner_id).wallets.get(wallet_id)
        if wallet is None:
            raise RecordNotFoundError(f"Wallet not found: {wallet_id}")
        if wallet.balance == new:
            return True
        if wallet.balance != expected:
            raise ConcurrentModificationError(wallet_id, expected, wallet.balance)
        wallets = self._records(owner_id).wallets
        wallets[wallet_id] = wallet.model_copy(update={"balance": new})
        return True

    # =========================================================================
    # CHANGE SETS
    # =========================================================================

    async def apply_steps(self, owner_id: str, steps: list[PersistStep]) -> int:
        if not self.atomic:
            return await super().apply_steps(owner_id, steps)

        saved = self._records(owner_id).copy()
        try:
            return await super().apply_steps(owner_id, steps)
        except StorageError as e:
            self._owners[owner_id] = saved
            logger.warning(
                "storage_rolled_back",
                owner_id=owner_id,
                steps=len(steps),
                error=str(e),
            )
            raise StorageError(f"Change set rolled back: {e}") from e
