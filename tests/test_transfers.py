"""
Tests for wallet-to-wallet transfers
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from artosku.ledger import (
    InvalidAmountError,
    LedgerBook,
    SameWalletError,
    TransferOrchestrator,
    WalletNotFoundError,
)
from artosku.ledger.transfers import DEFAULT_TRANSFER_NOTE
from artosku.models import TransactionCategory, TransactionType, WalletType
from artosku.reports import LedgerReporter

from tests.conftest import OWNER, new_wallet, utc


@pytest.fixture
def pair():
    book = LedgerBook(OWNER)
    source = book.add_wallet(new_wallet("BCA", "500000", WalletType.BANK))
    destination = book.add_wallet(new_wallet("GoPay", "0", WalletType.EWALLET))
    return book, source, destination


class TestTransfer:
    """Tests for TransferOrchestrator."""

    def test_transfer_moves_money(self, pair):
        """Test 500k/0 becomes 300k/200k."""
        book, source, destination = pair
        TransferOrchestrator(book).transfer(source.id, destination.id, "200000")

        assert book.wallet(source.id).balance == Decimal("300000")
        assert book.wallet(destination.id).balance == Decimal("200000")
        assert book.total_balance() == Decimal("500000")

    def test_transfer_legs_are_linked(self, pair):
        """Test both legs share the transfer id, date and category."""
        book, source, destination = pair
        when = utc(2025, 3, 1)
        outgoing, incoming = TransferOrchestrator(book).transfer(
            source.id, destination.id, 1000, note="Bayar", date=when
        )

        assert outgoing.type == TransactionType.EXPENSE
        assert incoming.type == TransactionType.INCOME
        assert outgoing.transfer_id == incoming.transfer_id is not None
        assert outgoing.date == incoming.date == when
        assert outgoing.category == TransactionCategory.TRANSFER
        assert "GoPay" in outgoing.description and "Bayar" in outgoing.description
        assert "BCA" in incoming.description

    def test_outgoing_posted_first(self, pair):
        book, source, destination = pair
        outgoing, incoming = TransferOrchestrator(book).transfer(
            source.id, destination.id, 1000
        )
        assert [t.id for t in book.transactions] == [outgoing.id, incoming.id]

    def test_default_note(self, pair):
        book, source, destination = pair
        outgoing, _ = TransferOrchestrator(book).transfer(
            source.id, destination.id, 1000, note="   "
        )
        assert outgoing.description.endswith(DEFAULT_TRANSFER_NOTE)

    def test_overdraft_allowed(self, pair):
        """Test that the source may go negative."""
        book, source, destination = pair
        TransferOrchestrator(book).transfer(source.id, destination.id, "600000")
        assert book.wallet(source.id).balance == Decimal("-100000")

    def test_transfer_back_restores_balances(self, pair):
        """Test that A->B then B->A leaves both wallets where they started."""
        book, source, destination = pair
        worth_before = LedgerReporter(book.snapshot()).net_worth().net_worth
        orchestrator = TransferOrchestrator(book)

        orchestrator.transfer(source.id, destination.id, "123456.78")
        assert LedgerReporter(book.snapshot()).net_worth().net_worth == worth_before
        orchestrator.transfer(destination.id, source.id, "123456.78")

        assert book.wallet(source.id).balance == Decimal("500000")
        assert book.wallet(destination.id).balance == Decimal("0")
        assert len(book.transactions) == 4

    def test_same_wallet_rejected(self, pair):
        book, source, _ = pair
        with pytest.raises(SameWalletError):
            TransferOrchestrator(book).transfer(source.id, source.id, 100)

    def test_same_wallet_checked_before_amount(self, pair):
        """Test the order validation errors are reported in."""
        book, source, _ = pair
        with pytest.raises(SameWalletError):
            TransferOrchestrator(book).transfer(source.id, source.id, -1)

    @pytest.mark.parametrize("amount", [0, -100, "12.345"])
    def test_invalid_amount(self, pair, amount):
        book, source, destination = pair
        with pytest.raises(InvalidAmountError):
            TransferOrchestrator(book).transfer(source.id, destination.id, amount)
        assert book.transactions == []

    def test_missing_wallet_changes_nothing(self, pair):
        """Test that a missing destination leaves both balances alone."""
        book, source, _ = pair
        with pytest.raises(WalletNotFoundError):
            TransferOrchestrator(book).transfer(source.id, uuid4(), 100)
        assert book.wallet(source.id).balance == Decimal("500000")
        assert book.transactions == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
