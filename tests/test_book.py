"""
Tests for the ledger book: unit of work, verification and reconciliation
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from artosku.ledger import (
    InconsistentStateError,
    LedgerBook,
    LedgerValidationError,
    TransactionNotFoundError,
    WalletNotFoundError,
)
from artosku.models import (
    Budget,
    Debt,
    DebtType,
    PersistAction,
    Transaction,
    TransactionCategory,
    TransactionType,
    Wallet,
)

from tests.conftest import OWNER, new_wallet


def _entry(wallet: Wallet, amount: str, type=TransactionType.EXPENSE, **extra) -> Transaction:
    return Transaction(wallet_id=wallet.id, amount=Decimal(amount), type=type, **extra)


class TestPosting:
    """Tests for posting and unposting entries."""

    def test_post_moves_balance(self, book, wallet_a):
        """Test that posting applies the entry to its wallet."""
        book.post(_entry(wallet_a, "30000"))
        assert book.wallet(wallet_a.id).balance == Decimal("970000")

    def test_unpost_restores_balance(self, book, wallet_a):
        tx = book.post(_entry(wallet_a, "30000"))
        book.unpost(tx.id)
        assert book.wallet(wallet_a.id).balance == Decimal("1000000")
        assert book.transactions == []

    def test_post_to_missing_wallet(self, book):
        """Test that an entry needs an existing wallet."""
        ghost = new_wallet("Ghost")
        with pytest.raises(WalletNotFoundError):
            book.post(_entry(ghost, "10"))

    def test_duplicate_post_rejected(self, book, wallet_a):
        tx = book.post(_entry(wallet_a, "10"))
        with pytest.raises(LedgerValidationError):
            book.post(tx)

    def test_unpost_unknown(self, book):
        with pytest.raises(TransactionNotFoundError):
            book.unpost(uuid4())

    def test_posting_order_kept(self, book, wallet_a):
        """Test that transactions come back in posting order."""
        first = book.post(_entry(wallet_a, "1"))
        second = book.post(_entry(wallet_a, "2"))
        assert [t.id for t in book.transactions] == [first.id, second.id]


class TestWallets:
    """Tests for wallet management in the book."""

    def test_add_wallet_requires_matching_opening(self, book):
        wallet = Wallet(
            name="Odd", balance=Decimal("10"), opening_balance=Decimal("0")
        )
        with pytest.raises(LedgerValidationError):
            book.add_wallet(wallet)

    def test_update_wallet_details(self, book, wallet_a):
        """Test that presentation fields can change."""
        updated = book.update_wallet(wallet_a.id, name="BCA Utama", color="#0055ff")
        assert updated.name == "BCA Utama"
        assert updated.balance == Decimal("1000000")

    def test_update_wallet_balance_rejected(self, book, wallet_a):
        """Test that balances only move through entries."""
        with pytest.raises(LedgerValidationError, match="balance"):
            book.update_wallet(wallet_a.id, balance=Decimal("5"))

    def test_remove_wallet_cascades(self, book, wallet_a, wallet_b):
        """Test that a wallet takes its entries and debts with it."""
        own = book.post(_entry(wallet_a, "100"))
        other = book.post(_entry(wallet_b, "50", TransactionType.INCOME))
        debt = book.put_debt(Debt(
            title="Teman",
            amount=Decimal("100"),
            initial_amount=Decimal("100"),
            type=DebtType.DEBT,
            wallet_id=wallet_a.id,
        ))

        transactions, debts = book.remove_wallet(wallet_a.id)

        assert [t.id for t in transactions] == [own.id]
        assert [d.id for d in debts] == [debt.id]
        assert [t.id for t in book.transactions] == [other.id]
        assert not book.has_wallet(wallet_a.id)

    def test_total_balance(self, book, wallet_a, wallet_b):
        assert book.total_balance() == Decimal("1000000")


class TestUnitOfWork:
    """Tests for grouped mutations."""

    def test_rollback_on_error(self, book, wallet_a, wallet_b):
        """Test that a failing unit leaves no trace."""
        with pytest.raises(RuntimeError):
            with book.unit_of_work():
                book.post(_entry(wallet_a, "100"))
                book.post(_entry(wallet_b, "100", TransactionType.INCOME))
                raise RuntimeError("boom")

        assert book.transactions == []
        assert book.wallet(wallet_a.id).balance == Decimal("1000000")
        assert book.wallet(wallet_b.id).balance == Decimal("0")
        assert not book.in_unit_of_work

    def test_change_set_records_mutations(self, book, wallet_a):
        """Test that the yielded change set holds the unit's writes."""
        with book.unit_of_work() as changes:
            tx = book.post(_entry(wallet_a, "100"))

        actions = [s.action for s in changes.steps()]
        assert actions == [PersistAction.SAVE_TRANSACTION, PersistAction.SWAP_BALANCE]
        assert changes.new_transactions[tx.id].amount == Decimal("100")
        assert changes.balance_delta(wallet_a.id) == Decimal("-100")

    def test_nested_unit_joins_outer(self, book, wallet_a):
        """Test that an inner failure rolls back the whole outer unit."""
        with pytest.raises(ValueError):
            with book.unit_of_work() as outer:
                book.post(_entry(wallet_a, "10"))
                with book.unit_of_work() as inner:
                    assert inner is outer
                    book.post(_entry(wallet_a, "20"))
                raise ValueError("late failure")

        assert book.transactions == []
        assert book.wallet(wallet_a.id).balance == Decimal("1000000")

    def test_mutations_outside_unit_not_tracked(self, book, wallet_a):
        book.post(_entry(wallet_a, "10"))
        assert not book.in_unit_of_work


class TestVerifyAndReconcile:
    """Tests for invariant checks and repair."""

    def test_verify_clean_ledger(self, book, wallet_a):
        book.post(_entry(wallet_a, "100"))
        book.verify()

    def test_verify_reports_drift(self, wallet_a):
        """Test that a stored balance off the log is reported."""
        drifted = wallet_a.model_copy(update={"balance": Decimal("5")})
        book = LedgerBook(OWNER, wallets=[drifted])
        with pytest.raises(InconsistentStateError) as exc_info:
            book.verify()
        assert len(exc_info.value.problems) == 1

    def test_reconcile_repairs_balance(self):
        """Test recovery after balances fell behind the log."""
        wallet = new_wallet("Cash", "1000")
        tx = _entry(wallet, "300")
        stale = LedgerBook(OWNER, wallets=[wallet], transactions=[tx])

        report = stale.reconcile()

        assert report.repaired
        assert report.wallet_drift[0].derived_balance == Decimal("700")
        assert stale.wallet(wallet.id).balance == Decimal("700")
        stale.verify()

    def test_reconcile_removes_orphans(self):
        """Test that entries for missing wallets are dropped."""
        wallet = new_wallet("Cash", "0")
        ghost = new_wallet("Ghost", "0")
        orphan = _entry(ghost, "50")
        book = LedgerBook(OWNER, wallets=[wallet], transactions=[orphan])

        report = book.reconcile()

        assert report.removed_orphan_transaction_ids == [orphan.id]
        assert book.transactions == []

    def test_reconcile_repairs_debt_amount(self):
        """Test that a debt is recomputed from its repayments."""
        wallet = new_wallet("Cash", "0")
        debt = Debt(
            title="Teman",
            amount=Decimal("200"),
            initial_amount=Decimal("200"),
            type=DebtType.DEBT,
            wallet_id=wallet.id,
        )
        origin = _entry(wallet, "200", TransactionType.DEBT, debt_id=debt.id)
        repayment = _entry(wallet, "50", TransactionType.EXPENSE, debt_id=debt.id)
        book = LedgerBook(
            OWNER,
            wallets=[wallet],
            transactions=[origin, repayment],
            debts=[debt],
        )

        report = book.reconcile()

        assert report.debt_repairs[0].derived_amount == Decimal("150")
        assert book.debt(debt.id).amount == Decimal("150")
        assert book.wallet(wallet.id).balance == Decimal("150")
        book.verify()

    def test_reconcile_reports_legacy_debt(self):
        """Test that debts without a creation entry are only reported."""
        wallet = new_wallet("Cash", "0")
        debt = Debt(
            title="Lama",
            amount=Decimal("80"),
            initial_amount=Decimal("100"),
            type=DebtType.RECEIVABLE,
            wallet_id=wallet.id,
        )
        book = LedgerBook(OWNER, wallets=[wallet], debts=[debt])

        report = book.reconcile()

        assert report.debts_missing_origin == [debt.id]
        assert report.has_warnings
        assert book.debt(debt.id).amount == Decimal("80")

    def test_reconcile_completes_lone_transfer_leg(self):
        """Test that a transfer missing its incoming leg is completed, not dropped."""
        source = new_wallet("BCA", "500000")
        destination = new_wallet("GoPay", "0")
        outgoing = _entry(
            source, "200000",
            category=TransactionCategory.TRANSFER,
            description="Transfer to GoPay: Bayar",
            transfer_id=uuid4(),
            counterpart_wallet_id=destination.id,
        )
        book = LedgerBook(OWNER, wallets=[source, destination], transactions=[outgoing])

        with pytest.raises(InconsistentStateError) as exc_info:
            book.verify()
        assert any("missing its leg" in p for p in exc_info.value.problems)

        report = book.reconcile()

        [incoming_id] = report.completed_transfer_legs
        incoming = book.transaction(incoming_id)
        assert incoming.type == TransactionType.INCOME
        assert incoming.wallet_id == destination.id
        assert incoming.transfer_id == outgoing.transfer_id
        assert incoming.counterpart_wallet_id == source.id
        assert incoming.date == outgoing.date
        assert incoming.description == "Transfer from BCA: Bayar"
        assert book.wallet(source.id).balance == Decimal("300000")
        assert book.wallet(destination.id).balance == Decimal("200000")
        assert book.total_balance() == Decimal("500000")
        book.verify()

    def test_reconcile_keeps_leg_of_deleted_wallet(self):
        """Test that a leg whose counterpart wallet is gone stays single."""
        source = new_wallet("BCA", "800")
        outgoing = _entry(
            source, "200",
            transfer_id=uuid4(),
            counterpart_wallet_id=uuid4(),
        )
        book = LedgerBook(OWNER, wallets=[source], transactions=[outgoing])

        report = book.reconcile()

        assert report.completed_transfer_legs == []
        assert not report.has_warnings
        assert len(book.transactions) == 1

    def test_reconcile_reports_unlinked_transfer_leg(self):
        """Test that a lone leg without a recorded counterpart is reported."""
        source = new_wallet("BCA", "800")
        outgoing = _entry(source, "200", transfer_id=uuid4())
        book = LedgerBook(OWNER, wallets=[source], transactions=[outgoing])

        report = book.reconcile()

        assert report.unmatched_transfer_legs == [outgoing.id]
        assert report.has_warnings
        assert len(book.transactions) == 1

    def test_reconcile_clean_ledger_is_noop(self, book, wallet_a):
        report = book.reconcile()
        assert not report.repaired
        assert not report.has_warnings


class TestBudgetsAndSnapshot:
    """Tests for budgets and snapshots."""

    def test_budget_replace_and_remove(self, book):
        book.put_budget(Budget(category="Makan", monthly_limit=Decimal("100")))
        book.put_budget(Budget(category="makan", monthly_limit=Decimal("200")))
        assert book.budget("Makan").monthly_limit == Decimal("200")
        assert book.remove_budget("Makan") is not None
        assert book.remove_budget("Makan") is None

    def test_snapshot_is_detached(self, book, wallet_a):
        """Test that snapshots do not follow later mutations."""
        snapshot = book.snapshot()
        book.post(_entry(wallet_a, "100"))
        assert snapshot.wallets[0].balance == Decimal("1000000")
        assert snapshot.transactions == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
