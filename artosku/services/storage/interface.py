"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the ledger core decoupled from any storage implementation

The interface is intentionally simple - we're not building a full ORM.
Records are loaded whole per owner, and every write is an idempotent
upsert, delete or balance compare-and-swap.

Multi-record operations arrive as a LedgerChangeSet through apply_all().
The default apply_steps() writes steps one by one and reports exactly how
far it got; a backend with real transactions overrides it to apply all
steps or none.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from artosku.models.changes import LedgerChangeSet, PersistAction, PersistStep
from artosku.models.ledger import Budget, Debt, Transaction, Wallet


logger = structlog.get_logger(__name__)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Every method is scoped to one owner.
    """

    # =========================================================================
    # LOADING
    # =========================================================================

    @abstractmethod
    async def load_wallets(self, owner_id: str) -> list[Wallet]:
        """Get every wallet the owner has."""
        pass

    @abstractmethod
    async def load_transactions(self, owner_id: str) -> list[Transaction]:
        """Get every transaction the owner has, in stored order."""
        pass

    @abstractmethod
    async def load_debts(self, owner_id: str) -> list[Debt]:
        pass

    @abstractmethod
    async def load_budgets(self, owner_id: str) -> list[Budget]:
        pass

    # =========================================================================
    # WRITES
    # =========================================================================

    @abstractmethod
    async def save_wallet(self, owner_id: str, wallet: Wallet) -> bool:
        """
        Insert or replace a wallet record.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_wallet(self, owner_id: str, wallet_id: UUID) -> bool:
        """
        Delete a wallet record.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def save_transaction(self, owner_id: str, transaction: Transaction) -> bool:
        """Insert or replace a transaction record."""
        pass

    @abstractmethod
    async def delete_transaction(self, owner_id: str, transaction_id: UUID) -> bool:
        """Delete a transaction. False if none existed."""
        pass

    @abstractmethod
    async def save_debt(self, owner_id: str, debt: Debt) -> bool:
        """Insert or replace a debt record."""
        pass

    @abstractmethod
    async def delete_debt(self, owner_id: str, debt_id: UUID) -> bool:
        """Delete a debt. False if none existed."""
        pass

    @abstractmethod
    async def save_budget(self, owner_id: str, budget: Budget) -> bool:
        """Insert or replace the budget of one category."""
        pass

    @abstractmethod
    async def delete_budget(self, owner_id: str, category: str) -> bool:
        """Delete the budget of one category. False if none existed."""
        pass

    @abstractmethod
    async def swap_balance(
        self,
        owner_id: str,
        wallet_id: UUID,
        expected: Decimal,
        new: Decimal,
    ) -> bool:
        """
        Compare-and-swap a stored wallet balance.

        Succeeds when the stored balance equals `expected` (it becomes `new`)
        or already equals `new` (a retried swap).

        Raises:
            RecordNotFoundError: wallet does not exist
            ConcurrentModificationError: stored balance is neither value
        """
        pass

    # =========================================================================
    # CHANGE SETS
    # =========================================================================

    async def apply_step(self, owner_id: str, step: PersistStep) -> None:
        """Perform a single persist step."""
        action = step.action
        if action == PersistAction.SAVE_WALLET:
            await self.save_wallet(owner_id, step.wallet)
        elif action == PersistAction.SAVE_DEBT:
            await self.save_debt(owner_id, step.debt)
        elif action == PersistAction.SAVE_TRANSACTION:
            await self.save_transaction(owner_id, step.transaction)
        elif action == PersistAction.DELETE_TRANSACTION:
            await self.delete_transaction(owner_id, UUID(step.entity_id))
        elif action == PersistAction.DELETE_DEBT:
            await self.delete_debt(owner_id, UUID(step.entity_id))
        elif action == PersistAction.SAVE_BUDGET:
            await self.save_budget(owner_id, step.budget)
        elif action == PersistAction.DELETE_BUDGET:
            await self.delete_budget(owner_id, step.entity_id)
        elif action == PersistAction.SWAP_BALANCE:
            await self.swap_balance(
                owner_id,
                UUID(step.entity_id),
                step.expected_balance,
                step.new_balance,
            )
        elif action == PersistAction.DELETE_WALLET:
            await self.delete_wallet(owner_id, UUID(step.entity_id))
        else:
            raise StorageError(f"Unknown persist action: {action}")

    async def apply_steps(self, owner_id: str, steps: list[PersistStep]) -> int:
        """
        Apply steps in order, stopping at the first failure.

        Returns:
            Number of steps applied

        Raises:
            StorageError: the first step failed, nothing was written
            PartialCommitError: a later step failed after earlier ones landed
        """
        applied: list[PersistStep] = []
        for index, step in enumerate(steps):
            try:
                await self.apply_step(owner_id, step)
            except StorageError as e:
                if not applied:
                    raise
                logger.error(
                    "storage_partial_commit",
                    owner_id=owner_id,
                    failed_step=step.describe(),
                    applied=len(applied),
                    remaining=len(steps) - index - 1,
                    error=str(e),
                )
                raise PartialCommitError(
                    applied=applied,
                    failed=step,
                    remaining=steps[index + 1:],
                    cause=e,
                ) from e
            applied.append(step)
        return len(applied)

    async def apply_all(self, owner_id: str, changes: LedgerChangeSet) -> int:
        """Persist one unit of work."""
        return await self.apply_steps(owner_id, changes.steps())


# =============================================================================
# EXCEPTIONS
# =============================================================================

class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Record not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConcurrentModificationError(StorageError):
    """A compare-and-swap found a balance nobody expected."""

    def __init__(
        self,
        wallet_id: UUID,
        expected: Decimal,
        actual: Decimal,
    ):
        self.wallet_id = wallet_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Wallet {wallet_id} balance changed concurrently: "
            f"expected {expected}, found {actual}"
        )


class PartialCommitError(StorageError):
    """
    Some steps of a change set were written, the rest were not.

    `pending` is the failed step followed by every step after it.
    """

    def __init__(
        self,
        applied: list[PersistStep],
        failed: PersistStep,
        remaining: list[PersistStep],
        cause: Optional[BaseException] = None,
    ):
        self.applied = applied
        self.failed = failed
        self.remaining = remaining
        self.cause = cause
        super().__init__(
            f"Partial commit: {len(applied)} step(s) applied, "
            f"failed at {failed.describe()}"
        )

    @property
    def pending(self) -> list[PersistStep]:
        return [self.failed, *self.remaining]
