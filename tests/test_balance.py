"""
Tests for the balance engine and input validation
"""

import pytest
from decimal import Decimal

from artosku.ledger import (
    InvalidAmountError,
    LedgerValidationError,
    WalletNotFoundError,
    apply_transaction,
    derive_balance,
    revert_transaction,
    signed_amount,
)
from artosku.ledger.validation import build, parse_amount, parse_money
from artosku.models import Transaction, TransactionType, Wallet


def _wallet(balance: str = "1000") -> Wallet:
    return Wallet(name="Cash", balance=Decimal(balance))


def _tx(wallet: Wallet, amount: str, type: TransactionType) -> Transaction:
    return Transaction(wallet_id=wallet.id, amount=Decimal(amount), type=type)


class TestPolarity:
    """Tests for the signed effect of each transaction type."""

    @pytest.mark.parametrize("type,expected", [
        (TransactionType.INCOME, Decimal("1100")),
        (TransactionType.EXPENSE, Decimal("900")),
        (TransactionType.DEBT, Decimal("1100")),
        (TransactionType.RECEIVABLE, Decimal("900")),
    ])
    def test_apply_transaction(self, type, expected):
        """Test the direction every type moves the balance."""
        wallet = _wallet()
        assert apply_transaction(wallet, _tx(wallet, "100", type)) == expected

    def test_revert_is_inverse_of_apply(self):
        """Test that reverting undoes applying exactly."""
        wallet = _wallet()
        for type in TransactionType:
            tx = _tx(wallet, "123.45", type)
            applied = wallet.model_copy(update={"balance": apply_transaction(wallet, tx)})
            assert revert_transaction(applied, tx) == Decimal("1000")

    def test_apply_is_pure(self):
        wallet = _wallet()
        apply_transaction(wallet, _tx(wallet, "100", TransactionType.EXPENSE))
        assert wallet.balance == Decimal("1000")

    def test_wrong_wallet_rejected(self):
        """Test that an entry for another wallet is refused."""
        wallet = _wallet()
        other = _wallet()
        with pytest.raises(WalletNotFoundError):
            apply_transaction(wallet, _tx(other, "10", TransactionType.INCOME))

    def test_signed_amount(self):
        wallet = _wallet()
        assert signed_amount(_tx(wallet, "5", TransactionType.RECEIVABLE)) == Decimal("-5")

    def test_derive_balance_ignores_other_wallets(self):
        """Test derivation from opening balance and own entries only."""
        wallet = _wallet("0")
        other = _wallet("0")
        txs = [
            _tx(wallet, "500", TransactionType.INCOME),
            _tx(wallet, "200", TransactionType.EXPENSE),
            _tx(other, "999", TransactionType.INCOME),
        ]
        assert derive_balance(wallet, txs) == Decimal("300")


class TestMoneyParsing:
    """Tests for money input validation."""

    def test_parse_money_quantizes(self):
        assert parse_money("10") == Decimal("10.00")
        assert parse_money(Decimal("10.5")) == Decimal("10.50")

    def test_parse_money_allows_negative(self):
        assert parse_money("-250.00") == Decimal("-250.00")

    @pytest.mark.parametrize("value", [1.5, "abc", "NaN", "Infinity", "10.001", True])
    def test_parse_money_rejects(self, value):
        """Test that unusable money values are refused, never rounded."""
        with pytest.raises(InvalidAmountError):
            parse_money(value)

    @pytest.mark.parametrize("value", [0, "0.00", "-1"])
    def test_parse_amount_requires_positive(self, value):
        with pytest.raises(InvalidAmountError):
            parse_amount(value)

    def test_invalid_amount_is_validation_error(self):
        """Test the error hierarchy callers catch."""
        with pytest.raises(LedgerValidationError):
            parse_amount(-5)

    def test_build_wraps_pydantic_errors(self):
        """Test that model errors surface as ledger validation errors."""
        with pytest.raises(LedgerValidationError, match="Wallet"):
            build(Wallet, name="", balance=Decimal("0"))

    def test_build_returns_model(self):
        wallet = build(Wallet, name="Cash", balance=Decimal("5"))
        assert wallet.opening_balance == Decimal("5")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
