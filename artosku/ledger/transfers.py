"""
Transfer Orchestrator

Moves money between two wallets as a pair of linked entries.

DESIGN DECISION: A transfer is an EXPENSE on the source and an INCOME on the
destination, posted in that order inside one unit of work. Both legs share a
transfer_id, a date and the Transfer category, and each names the wallet
holding the other leg. Either both legs exist or neither does.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from artosku.ledger.book import (
    TRANSFER_IN_DESCRIPTION,
    TRANSFER_OUT_DESCRIPTION,
    LedgerBook,
)
from artosku.ledger.errors import SameWalletError
from artosku.ledger.validation import build, parse_amount
from artosku.models.ledger import (
    Transaction,
    TransactionCategory,
    TransactionType,
    utc_now,
)


logger = structlog.get_logger(__name__)

DEFAULT_TRANSFER_NOTE = "Transfer antar aset"


class TransferOrchestrator:
    """Posts both legs of a wallet-to-wallet transfer."""

    def __init__(self, book: LedgerBook):
        self._book = book

    def transfer(
        self,
        from_wallet_id: UUID,
        to_wallet_id: UUID,
        amount: Any,
        note: Optional[str] = None,
        date: Optional[datetime] = None,
        category: TransactionCategory = TransactionCategory.TRANSFER,
    ) -> tuple[Transaction, Transaction]:
        """
        Move `amount` from one wallet to another.

        Overdraft is allowed: the source balance may go negative.

        Returns:
            (outgoing, incoming) entries

        Raises:
            SameWalletError: source and destination are the same wallet
            InvalidAmountError: amount is not a positive money value
            WalletNotFoundError: either wallet is missing
        """
        if from_wallet_id == to_wallet_id:
            raise SameWalletError(f"Cannot transfer from wallet {from_wallet_id} to itself")
        value: Decimal = parse_amount(amount)
        source = self._book.wallet(from_wallet_id)
        destination = self._book.wallet(to_wallet_id)

        note = (note or "").strip() or DEFAULT_TRANSFER_NOTE
        when = date or utc_now()
        transfer_id = uuid4()

        outgoing = build(
            Transaction,
            wallet_id=source.id,
            amount=value,
            type=TransactionType.EXPENSE,
            category=category,
            date=when,
            description=TRANSFER_OUT_DESCRIPTION.format(name=destination.name, note=note),
            transfer_id=transfer_id,
            counterpart_wallet_id=destination.id,
        )
        incoming = build(
            Transaction,
            wallet_id=destination.id,
            amount=value,
            type=TransactionType.INCOME,
            category=category,
            date=when,
            description=TRANSFER_IN_DESCRIPTION.format(name=source.name, note=note),
            transfer_id=transfer_id,
            counterpart_wallet_id=source.id,
        )

        with self._book.unit_of_work():
            self._book.post(outgoing)
            self._book.post(incoming)

        logger.info(
            "transfer_posted",
            transfer_id=str(transfer_id),
            from_wallet_id=str(source.id),
            to_wallet_id=str(destination.id),
            amount=str(value),
        )
        return outgoing, incoming
