"""
Tests for the in-memory storage backend and the change set protocol
"""

import pytest
from decimal import Decimal

from artosku.models import (
    Budget,
    LedgerChangeSet,
    PersistAction,
    PersistStep,
    Transaction,
)
from artosku.services import (
    ConcurrentModificationError,
    InMemoryLedgerStorage,
    PartialCommitError,
    RecordNotFoundError,
    StorageError,
)

from tests.conftest import OWNER, FlakyStorage, new_wallet


def _expense(wallet, amount="100") -> Transaction:
    return Transaction(wallet_id=wallet.id, amount=Decimal(amount), type="EXPENSE")


def _swap(wallet, expected: str, new: str) -> PersistStep:
    return PersistStep(
        action=PersistAction.SWAP_BALANCE,
        entity_id=str(wallet.id),
        expected_balance=Decimal(expected),
        new_balance=Decimal(new),
    )


class TestRecords:
    """Tests for individual record writes."""

    @pytest.mark.asyncio
    async def test_owners_are_isolated(self, storage):
        """Test that one owner never sees another's records."""
        await storage.save_wallet(OWNER, new_wallet("Cash", "10"))
        assert await storage.load_wallets("someone-else") == []
        assert len(await storage.load_wallets(OWNER)) == 1

    @pytest.mark.asyncio
    async def test_transaction_needs_wallet(self, storage):
        with pytest.raises(RecordNotFoundError):
            await storage.save_transaction(OWNER, _expense(new_wallet()))

    @pytest.mark.asyncio
    async def test_delete_wallet_cascades(self, storage):
        """Test that removing a wallet removes its entries."""
        wallet = new_wallet("Cash", "100")
        await storage.save_wallet(OWNER, wallet)
        await storage.save_transaction(OWNER, _expense(wallet))

        assert await storage.delete_wallet(OWNER, wallet.id)
        assert await storage.load_transactions(OWNER) == []
        assert not await storage.delete_wallet(OWNER, wallet.id)

    @pytest.mark.asyncio
    async def test_budget_upsert_and_delete(self, storage):
        await storage.save_budget(OWNER, Budget(category="Makan", monthly_limit=100))
        await storage.save_budget(OWNER, Budget(category="Makan", monthly_limit=200))
        [budget] = await storage.load_budgets(OWNER)
        assert budget.monthly_limit == Decimal("200")
        assert await storage.delete_budget(OWNER, "Makan")
        assert not await storage.delete_budget(OWNER, "Makan")


class TestSwapBalance:
    """Tests for the balance compare-and-swap."""

    @pytest.mark.asyncio
    async def test_swap_from_expected(self, storage):
        wallet = new_wallet("Cash", "100")
        await storage.save_wallet(OWNER, wallet)
        assert await storage.swap_balance(OWNER, wallet.id, Decimal("100"), Decimal("70"))
        [stored] = await storage.load_wallets(OWNER)
        assert stored.balance == Decimal("70")

    @pytest.mark.asyncio
    async def test_swap_retry_is_idempotent(self, storage):
        """Test that repeating a swap that already landed succeeds."""
        wallet = new_wallet("Cash", "100")
        await storage.save_wallet(OWNER, wallet)
        await storage.swap_balance(OWNER, wallet.id, Decimal("100"), Decimal("70"))
        assert await storage.swap_balance(OWNER, wallet.id, Decimal("100"), Decimal("70"))

    @pytest.mark.asyncio
    async def test_swap_conflict(self, storage):
        """Test that an unexpected stored balance is refused."""
        wallet = new_wallet("Cash", "100")
        await storage.save_wallet(OWNER, wallet)
        with pytest.raises(ConcurrentModificationError) as exc_info:
            await storage.swap_balance(OWNER, wallet.id, Decimal("90"), Decimal("50"))
        assert exc_info.value.actual == Decimal("100")


class TestApplySteps:
    """Tests for applying change sets."""

    @pytest.mark.asyncio
    async def test_apply_all_in_order(self, storage):
        wallet = new_wallet("Cash", "100")
        await storage.save_wallet(OWNER, wallet)

        changes = LedgerChangeSet()
        tx = _expense(wallet, "30")
        changes.record_transaction_added(tx)
        changes.record_balance(wallet.id, Decimal("100"), Decimal("70"))

        assert await storage.apply_all(OWNER, changes) == 2
        [stored] = await storage.load_wallets(OWNER)
        assert stored.balance == Decimal("70")

    @pytest.mark.asyncio
    async def test_atomic_rollback(self):
        """Test that a failing change set leaves nothing behind."""
        storage = InMemoryLedgerStorage(atomic=True)
        wallet = new_wallet("Cash", "100")
        await storage.save_wallet(OWNER, wallet)

        steps = [
            PersistStep(
                action=PersistAction.SAVE_TRANSACTION,
                entity_id="x",
                transaction=_expense(wallet),
            ),
            _swap(wallet, "999", "0"),
        ]
        with pytest.raises(StorageError) as exc_info:
            await storage.apply_steps(OWNER, steps)

        assert not isinstance(exc_info.value, PartialCommitError)
        assert await storage.load_transactions(OWNER) == []

    @pytest.mark.asyncio
    async def test_partial_commit_reports_progress(self):
        """Test that a non-atomic backend reports exactly what landed."""
        storage = FlakyStorage()
        wallet = new_wallet("Cash", "100")
        await storage.save_wallet(OWNER, wallet)
        tx = _expense(wallet)
        steps = [
            PersistStep(
                action=PersistAction.SAVE_TRANSACTION,
                entity_id=str(tx.id),
                transaction=tx,
            ),
            _swap(wallet, "100", "0"),
        ]
        storage.fail_on(2)

        with pytest.raises(PartialCommitError) as exc_info:
            await storage.apply_steps(OWNER, steps)

        error = exc_info.value
        assert error.applied == steps[:1]
        assert error.pending == steps[1:]
        assert len(await storage.load_transactions(OWNER)) == 1

    @pytest.mark.asyncio
    async def test_first_step_failure_is_plain_error(self):
        storage = FlakyStorage()
        storage.fail_on(1)
        wallet = new_wallet("Cash", "100")
        step = PersistStep(
            action=PersistAction.SAVE_WALLET, entity_id=str(wallet.id), wallet=wallet
        )
        with pytest.raises(StorageError) as exc_info:
            await storage.apply_steps(OWNER, [step])
        assert not isinstance(exc_info.value, PartialCommitError)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
