"""
Tests for ArtosKu models

Test strategy:
1. Unit tests for individual components (models, engines, reports)
2. Service tests against in-memory storage
3. No real API calls in tests (Google Sheets is faked)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from artosku.models import (
    Budget,
    Debt,
    DebtStatus,
    DebtType,
    LedgerChangeSet,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
    PersistAction,
    Transaction,
    TransactionCategory,
    TransactionType,
    Wallet,
    WalletType,
    to_money,
)


class TestWalletModel:
    """Tests for the Wallet model."""

    def test_wallet_creation(self):
        """Test Wallet model creation."""
        wallet = Wallet(name="BCA", type=WalletType.BANK, balance=Decimal("1000000"))
        assert wallet.name == "BCA"
        assert wallet.type == WalletType.BANK
        assert wallet.opening_balance == Decimal("1000000")

    def test_wallet_strips_whitespace(self):
        """Test that whitespace is stripped from the wallet name."""
        wallet = Wallet(name="  Cash  ", balance=Decimal("0"))
        assert wallet.name == "Cash"

    def test_wallet_rejects_float_balance(self):
        """Test that float money is refused."""
        with pytest.raises(ValidationError):
            Wallet(name="Cash", balance=10.5)

    def test_wallet_allows_negative_balance(self):
        """Test that overdrawn wallets are representable."""
        wallet = Wallet(name="Cash", balance=Decimal("-5000"))
        assert wallet.balance == Decimal("-5000")

    def test_wallet_naive_created_at_is_utc(self):
        """Test that naive timestamps are read as UTC."""
        wallet = Wallet(name="Cash", balance=0, created_at=datetime(2025, 1, 1, 8, 0))
        assert wallet.created_at.tzinfo == timezone.utc


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        tx = Transaction(
            wallet_id=uuid4(),
            amount=Decimal("25000"),
            type=TransactionType.EXPENSE,
            category="Makan",
            description="Lunch",
        )
        assert tx.category == TransactionCategory.FOOD
        assert tx.category_label == "Makan"
        assert not tx.is_loan_origin

    def test_category_matches_member_name(self):
        """Test that member names map onto stored labels."""
        tx = Transaction(wallet_id=uuid4(), amount=1, type="INCOME", category="salary")
        assert tx.category == TransactionCategory.SALARY

    def test_free_text_category_kept(self):
        """Test that unknown categories survive as free text."""
        tx = Transaction(wallet_id=uuid4(), amount=1, type="EXPENSE", category="Kopi")
        assert tx.category == "Kopi"
        assert tx.category_label == "Kopi"

    def test_empty_category_rejected(self):
        with pytest.raises(ValidationError):
            Transaction(wallet_id=uuid4(), amount=1, type="EXPENSE", category="  ")

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (Decimal("0"), Decimal("-100")):
            with pytest.raises(ValidationError):
                Transaction(wallet_id=uuid4(), amount=amount, type="EXPENSE")

    def test_transaction_rejects_three_decimal_places(self):
        with pytest.raises(ValidationError):
            Transaction(wallet_id=uuid4(), amount=Decimal("1.005"), type="EXPENSE")

    def test_loan_origin_and_repayment_flags(self):
        """Test the derived loan flags."""
        debt_id = uuid4()
        origin = Transaction(wallet_id=uuid4(), amount=1, type="DEBT", debt_id=debt_id)
        repayment = Transaction(wallet_id=uuid4(), amount=1, type="EXPENSE", debt_id=debt_id)
        assert origin.is_loan_origin and not origin.is_repayment
        assert repayment.is_repayment and not repayment.is_loan_origin


class TestDebtModel:
    """Tests for the Debt model."""

    def _debt(self, **overrides) -> Debt:
        data = dict(
            title="Pinjam Teman",
            amount=Decimal("200000"),
            initial_amount=Decimal("200000"),
            type=DebtType.DEBT,
            wallet_id=uuid4(),
        )
        data.update(overrides)
        return Debt(**data)

    def test_debt_status_progression(self):
        """Test OPEN, PARTIAL and CLOSED derivation."""
        assert self._debt().status == DebtStatus.OPEN
        assert self._debt(amount=Decimal("150000")).status == DebtStatus.PARTIAL
        closed = self._debt(amount=Decimal("0"), is_paid=True)
        assert closed.status == DebtStatus.CLOSED
        assert closed.repaid_amount == Decimal("200000")

    def test_debt_amount_cannot_exceed_initial(self):
        with pytest.raises(ValidationError):
            self._debt(amount=Decimal("250000"))

    def test_debt_paid_flag_must_match_amount(self):
        """Test that is_paid is set exactly when nothing remains."""
        with pytest.raises(ValidationError):
            self._debt(amount=Decimal("0"), is_paid=False)
        with pytest.raises(ValidationError):
            self._debt(is_paid=True)

    def test_debt_type_polarity_mapping(self):
        assert DebtType.DEBT.origin_type == TransactionType.DEBT
        assert DebtType.DEBT.repayment_type == TransactionType.EXPENSE
        assert DebtType.RECEIVABLE.origin_type == TransactionType.RECEIVABLE
        assert DebtType.RECEIVABLE.repayment_type == TransactionType.INCOME


class TestMoney:
    """Tests for money coercion."""

    def test_to_money_accepts_int_and_str(self):
        assert to_money(5) == Decimal("5")
        assert to_money("12.50") == Decimal("12.50")

    def test_to_money_rejects_float_and_bool(self):
        with pytest.raises(TypeError):
            to_money(1.5)
        with pytest.raises(TypeError):
            to_money(True)


class TestChangeSet:
    """Tests for change set compaction and step ordering."""

    def _tx(self, wallet: Wallet, type: str = "EXPENSE") -> Transaction:
        return Transaction(wallet_id=wallet.id, amount=Decimal("10"), type=type)

    def test_steps_follow_fixed_order(self):
        """Test that balances are swapped after every record write."""
        wallet = Wallet(name="Cash", balance=Decimal("100"))
        removed_wallet = Wallet(name="Old", balance=Decimal("0"))
        debt_id = uuid4()
        changes = LedgerChangeSet()

        changes.record_wallet_removed(removed_wallet.id)
        changes.record_balance(wallet.id, Decimal("100"), Decimal("90"))
        changes.record_transaction_added(self._tx(wallet))
        changes.record_debt_removed(debt_id)
        changes.record_budget_saved(Budget(category="Makan", monthly_limit=Decimal("500000")))

        actions = [step.action for step in changes.steps()]
        assert actions == [
            PersistAction.SAVE_TRANSACTION,
            PersistAction.DELETE_DEBT,
            PersistAction.SAVE_BUDGET,
            PersistAction.SWAP_BALANCE,
            PersistAction.DELETE_WALLET,
        ]

    def test_added_then_removed_transaction_never_persists(self):
        wallet = Wallet(name="Cash", balance=Decimal("0"))
        tx = self._tx(wallet)
        changes = LedgerChangeSet()
        changes.record_transaction_added(tx)
        changes.record_transaction_removed(tx.id)
        assert changes.steps() == []
        assert changes.is_empty

    def test_swap_uses_first_and_last_balance(self):
        """Test that repeated balance changes collapse into one swap."""
        wallet_id = uuid4()
        changes = LedgerChangeSet()
        changes.record_balance(wallet_id, Decimal("100"), Decimal("120"))
        changes.record_balance(wallet_id, Decimal("120"), Decimal("70"))

        [step] = changes.steps()
        assert step.action == PersistAction.SWAP_BALANCE
        assert step.expected_balance == Decimal("100")
        assert step.new_balance == Decimal("70")
        assert changes.balance_delta(wallet_id) == Decimal("-30")

    def test_saved_wallet_written_at_baseline_balance(self):
        """Test that a saved wallet carries the balance storage agrees on."""
        wallet = Wallet(name="Cash", balance=Decimal("100"))
        changes = LedgerChangeSet()
        changes.record_balance(wallet.id, Decimal("100"), Decimal("150"))
        changes.record_wallet_saved(wallet.model_copy(update={"balance": Decimal("150")}))

        save, swap = changes.steps()
        assert save.wallet.balance == Decimal("100")
        assert swap.new_balance == Decimal("150")

    def test_no_swap_for_removed_wallet(self):
        wallet_id = uuid4()
        changes = LedgerChangeSet()
        changes.record_balance(wallet_id, Decimal("100"), Decimal("0"))
        changes.record_wallet_removed(wallet_id)
        assert [s.action for s in changes.steps()] == [PersistAction.DELETE_WALLET]


class TestLedgerEvents:
    """Tests for ledger event models."""

    def test_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        event = LedgerEvent(
            event_type=LedgerEventType.WALLET_CREATED,
            owner_id="owner-1",
            entity_type="wallet",
            entity_id=uuid4(),
            description="Wallet created: Cash",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "wallet_created"
        assert log_dict["severity"] == "info"
        assert log_dict["owner_id"] == "owner-1"

    def test_builder_marks_settled_debt(self):
        """Test that a full repayment is a settlement event."""
        debt = Debt(
            title="Pinjam Teman",
            amount=Decimal("0"),
            initial_amount=Decimal("200000"),
            type=DebtType.DEBT,
            is_paid=True,
            wallet_id=uuid4(),
        )
        event = LedgerEventBuilder.debt_repaid(debt, Decimal("150000"), "owner-1")
        assert event.event_type == LedgerEventType.DEBT_SETTLED
        assert event.details["remaining"] == "0"

    def test_partial_commit_is_critical(self):
        event = LedgerEventBuilder.partial_commit(
            "transfer", ["save_transaction:1"], ["swap_balance:2"], "boom", "owner-1"
        )
        assert event.severity == LedgerEventSeverity.CRITICAL
        assert event.error_message == "boom"


class TestCategories:
    """Tests for category labels."""

    def test_category_values(self):
        """Test labels match what the hosted database stores."""
        assert TransactionCategory.FOOD.value == "Makan"
        assert TransactionCategory.TOPUP.value == "Topup"
        assert TransactionCategory.LOAN.value == "Loan"
        assert TransactionCategory.TRANSFER.value == "Transfer"

    def test_budget_category_normalized(self):
        budget = Budget(category="makan", monthly_limit=Decimal("1000"))
        assert budget.category_label == "Makan"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
