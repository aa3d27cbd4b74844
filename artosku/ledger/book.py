"""
Ledger Book

The in-memory state of one owner's ledger: wallets, transactions, debts and
budgets. Every engine works against a LedgerBook; nothing holds ledger state
at module level.

DESIGN DECISION: Multi-entry operations run inside unit_of_work().
- Any exception inside the unit restores the book to its state at entry.
- While a unit is open, every mutation is recorded in a LedgerChangeSet,
  which the service hands to storage in one call.
- A unit opened inside another unit joins it.
"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional, Union
from uuid import UUID

import structlog

from artosku.ledger.balance import apply_transaction, derive_balance, revert_transaction
from artosku.ledger.errors import (
    DebtNotFoundError,
    InconsistentStateError,
    LedgerValidationError,
    TransactionNotFoundError,
    WalletNotFoundError,
)
from artosku.ledger.validation import build
from artosku.models.changes import LedgerChangeSet
from artosku.models.ledger import (
    Budget,
    Debt,
    Transaction,
    TransactionCategory,
    TransactionType,
    Wallet,
    category_label,
    utc_now,
)
from artosku.models.reports import (
    BalanceRepair,
    DebtRepair,
    LedgerSnapshot,
    ReconciliationReport,
)


logger = structlog.get_logger(__name__)

# Fields a caller may change on an existing wallet
EDITABLE_WALLET_FIELDS = frozenset({
    "name", "type", "code", "icon", "color", "provider", "detail",
})

TRANSFER_OUT_DESCRIPTION = "Transfer to {name}: {note}"
TRANSFER_IN_DESCRIPTION = "Transfer from {name}: {note}"


class LedgerBook:
    """
    One owner's ledger held in memory.

    Transactions are kept in posting order.
    """

    def __init__(
        self,
        owner_id: str,
        wallets: Iterable[Wallet] = (),
        transactions: Iterable[Transaction] = (),
        debts: Iterable[Debt] = (),
        budgets: Iterable[Budget] = (),
    ):
        self.owner_id = owner_id
        self._wallets: dict[UUID, Wallet] = {w.id: w.model_copy() for w in wallets}
        self._transactions: dict[UUID, Transaction] = {
            t.id: t.model_copy() for t in transactions
        }
        self._debts: dict[UUID, Debt] = {d.id: d.model_copy() for d in debts}
        self._budgets: dict[str, Budget] = {
            b.category_label: b.model_copy() for b in budgets
        }
        self._changes: Optional[LedgerChangeSet] = None

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    @property
    def wallets(self) -> list[Wallet]:
        return list(self._wallets.values())

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions.values())

    @property
    def debts(self) -> list[Debt]:
        return list(self._debts.values())

    @property
    def budgets(self) -> list[Budget]:
        return list(self._budgets.values())

    def wallet(self, wallet_id: UUID) -> Wallet:
        try:
            return self._wallets[wallet_id]
        except KeyError:
            raise WalletNotFoundError(wallet_id) from None

    def has_wallet(self, wallet_id: UUID) -> bool:
        return wallet_id in self._wallets

    def transaction(self, transaction_id: UUID) -> Transaction:
        try:
            return self._transactions[transaction_id]
        except KeyError:
            raise TransactionNotFoundError(transaction_id) from None

    def debt(self, debt_id: UUID) -> Debt:
        try:
            return self._debts[debt_id]
        except KeyError:
            raise DebtNotFoundError(debt_id) from None

    def has_debt(self, debt_id: Optional[UUID]) -> bool:
        return debt_id in self._debts

    def budget(self, category: Union[TransactionCategory, str]) -> Optional[Budget]:
        return self._budgets.get(category_label(category))

    def transactions_for_wallet(self, wallet_id: UUID) -> list[Transaction]:
        return [t for t in self._transactions.values() if t.wallet_id == wallet_id]

    def transactions_for_debt(self, debt_id: UUID) -> list[Transaction]:
        return [t for t in self._transactions.values() if t.debt_id == debt_id]

    def transactions_for_transfer(self, transfer_id: UUID) -> list[Transaction]:
        return [t for t in self._transactions.values() if t.transfer_id == transfer_id]

    def loan_origin(self, debt_id: UUID) -> Optional[Transaction]:
        """The entry that created a debt, if it is still in the log."""
        for transaction in self.transactions_for_debt(debt_id):
            if transaction.is_loan_origin:
                return transaction
        return None

    def total_balance(self) -> Decimal:
        return sum((w.balance for w in self._wallets.values()), Decimal("0"))

    # =========================================================================
    # UNIT OF WORK
    # =========================================================================

    @property
    def in_unit_of_work(self) -> bool:
        return self._changes is not None

    @contextmanager
    def unit_of_work(self) -> Iterator[LedgerChangeSet]:
        """
        Group mutations so they apply together or not at all.

        Yields the change set collecting this unit's writes.
        """
        if self._changes is not None:
            yield self._changes
            return

        saved = self._capture()
        self._changes = LedgerChangeSet()
        try:
            yield self._changes
        except BaseException:
            self._restore(saved)
            logger.debug("unit_of_work_rolled_back", owner_id=self.owner_id)
            raise
        finally:
            self._changes = None

    def _capture(self) -> tuple:
        return (
            dict(self._wallets),
            dict(self._transactions),
            dict(self._debts),
            dict(self._budgets),
        )

    def _restore(self, saved: tuple) -> None:
        self._wallets, self._transactions, self._debts, self._budgets = saved

    # =========================================================================
    # WALLETS
    # =========================================================================

    def add_wallet(self, wallet: Wallet) -> Wallet:
        if wallet.id in self._wallets:
            raise LedgerValidationError(f"Wallet already exists: {wallet.id}")
        if wallet.balance != wallet.opening_balance:
            raise LedgerValidationError(
                "A new wallet's balance must equal its opening balance"
            )
        stored = wallet.model_copy()
        self._wallets[stored.id] = stored
        if self._changes is not None:
            self._changes.record_wallet_saved(stored)
        return stored

    def update_wallet(self, wallet_id: UUID, **fields: Any) -> Wallet:
        """
        Change presentation details of a wallet.

        Balances only move through transactions, so balance, opening_balance
        and identity fields are rejected here.
        """
        current = self.wallet(wallet_id)
        illegal = set(fields) - EDITABLE_WALLET_FIELDS
        if illegal:
            raise LedgerValidationError(
                f"Wallet fields cannot be edited: {', '.join(sorted(illegal))}"
            )

        updated = build(Wallet, **{**current.model_dump(), **fields})
        self._wallets[wallet_id] = updated
        if self._changes is not None:
            self._changes.record_wallet_saved(updated)
        return updated

    def remove_wallet(self, wallet_id: UUID) -> tuple[list[Transaction], list[Debt]]:
        """
        Delete a wallet with every transaction and debt linked to it.

        The other leg of a transfer stays on its own wallet.
        Returns the removed transactions and debts.
        """
        wallet = self.wallet(wallet_id)

        removed_transactions = self.transactions_for_wallet(wallet_id)
        for transaction in removed_transactions:
            del self._transactions[transaction.id]
            if self._changes is not None:
                self._changes.record_transaction_removed(transaction.id)

        removed_debts = [d for d in self._debts.values() if d.wallet_id == wallet_id]
        for debt in removed_debts:
            del self._debts[debt.id]
            if self._changes is not None:
                self._changes.record_debt_removed(debt.id)

        del self._wallets[wallet.id]
        if self._changes is not None:
            self._changes.record_wallet_removed(wallet.id)

        return removed_transactions, removed_debts

    def _set_balance(self, wallet: Wallet, new_balance: Decimal) -> Wallet:
        updated = wallet.model_copy(update={"balance": new_balance})
        self._wallets[wallet.id] = updated
        if self._changes is not None:
            self._changes.record_balance(wallet.id, wallet.balance, new_balance)
        return updated

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def post(self, transaction: Transaction) -> Transaction:
        """Append a transaction to the log and move its wallet balance."""
        if transaction.id in self._transactions:
            raise LedgerValidationError(f"Transaction already posted: {transaction.id}")

        wallet = self.wallet(transaction.wallet_id)
        new_balance = apply_transaction(wallet, transaction)

        self._transactions[transaction.id] = transaction
        self._set_balance(wallet, new_balance)
        if self._changes is not None:
            self._changes.record_transaction_added(transaction)
        return transaction

    def unpost(self, transaction_id: UUID) -> Transaction:
        """Remove a transaction from the log and revert its wallet balance."""
        transaction = self.transaction(transaction_id)

        # An orphan entry has no wallet left to revert
        if transaction.wallet_id in self._wallets:
            wallet = self._wallets[transaction.wallet_id]
            self._set_balance(wallet, revert_transaction(wallet, transaction))

        del self._transactions[transaction_id]
        if self._changes is not None:
            self._changes.record_transaction_removed(transaction_id)
        return transaction

    # =========================================================================
    # DEBTS AND BUDGETS
    # =========================================================================

    def put_debt(self, debt: Debt) -> Debt:
        if not self.has_wallet(debt.wallet_id):
            raise WalletNotFoundError(debt.wallet_id)
        self._debts[debt.id] = debt
        if self._changes is not None:
            self._changes.record_debt_saved(debt)
        return debt

    def remove_debt(self, debt_id: UUID) -> Debt:
        debt = self.debt(debt_id)
        del self._debts[debt_id]
        if self._changes is not None:
            self._changes.record_debt_removed(debt_id)
        return debt

    def put_budget(self, budget: Budget) -> Budget:
        self._budgets[budget.category_label] = budget
        if self._changes is not None:
            self._changes.record_budget_saved(budget)
        return budget

    def remove_budget(self, category: Union[TransactionCategory, str]) -> Optional[Budget]:
        """Remove a category budget. Returns None if none was set."""
        label = category_label(category)
        budget = self._budgets.pop(label, None)
        if budget is not None and self._changes is not None:
            self._changes.record_budget_removed(label)
        return budget

    # =========================================================================
    # SNAPSHOT, VERIFY, RECONCILE
    # =========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """Deep copy of the current state for read-only reporting."""
        return LedgerSnapshot(
            owner_id=self.owner_id,
            wallets=[w.model_copy(deep=True) for w in self._wallets.values()],
            transactions=[t.model_copy(deep=True) for t in self._transactions.values()],
            debts=[d.model_copy(deep=True) for d in self._debts.values()],
            budgets=[b.model_copy(deep=True) for b in self._budgets.values()],
        )

    def _derived_debt_amount(self, debt: Debt) -> Decimal:
        repaid = sum(
            (t.amount for t in self.transactions_for_debt(debt.id) if t.is_repayment),
            Decimal("0"),
        )
        return min(max(debt.initial_amount - repaid, Decimal("0")), debt.initial_amount)

    def _problems(self) -> list[str]:
        problems = []

        for transaction in self._transactions.values():
            if transaction.wallet_id not in self._wallets:
                problems.append(
                    f"transaction {transaction.id} references missing wallet "
                    f"{transaction.wallet_id}"
                )

        for wallet in self._wallets.values():
            derived = derive_balance(wallet, self._transactions.values())
            if derived != wallet.balance:
                problems.append(
                    f"wallet {wallet.id} balance {wallet.balance} != derived {derived}"
                )

        for debt in self._debts.values():
            if self.loan_origin(debt.id) is None:
                continue
            derived = self._derived_debt_amount(debt)
            if derived != debt.amount:
                problems.append(
                    f"debt {debt.id} amount {debt.amount} != derived {derived}"
                )

        for leg in self._lone_transfer_legs():
            problems.append(
                f"transfer {leg.transfer_id} is missing its leg on wallet "
                f"{leg.counterpart_wallet_id}"
            )

        return problems

    def verify(self) -> None:
        """
        Check every invariant the transaction log determines.

        Raises:
            InconsistentStateError: listing each violated invariant
        """
        problems = self._problems()
        if problems:
            raise InconsistentStateError(
                f"Ledger for {self.owner_id} is inconsistent ({len(problems)} problem(s))",
                problems,
            )

    def reconcile(self) -> ReconciliationReport:
        """
        Restore invariants from the transaction log.

        Orphan entries are removed first. A transfer that lost one leg
        (an interrupted commit writes the legs one at a time) gets the
        missing leg posted back while its counterpart wallet exists. Then
        wallet balances and debt amounts are recomputed. Debts without a
        creation entry, entries pointing at missing debts and lone legs
        with no recorded counterpart are only reported.
        """
        report = ReconciliationReport()

        with self.unit_of_work():
            for transaction in list(self._transactions.values()):
                if transaction.wallet_id not in self._wallets:
                    self.unpost(transaction.id)
                    report.removed_orphan_transaction_ids.append(transaction.id)

            self._complete_transfers(report)

            for wallet in list(self._wallets.values()):
                derived = derive_balance(wallet, self._transactions.values())
                if derived != wallet.balance:
                    report.wallet_drift.append(BalanceRepair(
                        wallet_id=wallet.id,
                        stored_balance=wallet.balance,
                        derived_balance=derived,
                    ))
                    self._set_balance(wallet, derived)

            for debt in list(self._debts.values()):
                if self.loan_origin(debt.id) is None:
                    report.debts_missing_origin.append(debt.id)
                    continue
                derived = self._derived_debt_amount(debt)
                if derived != debt.amount:
                    report.debt_repairs.append(DebtRepair(
                        debt_id=debt.id,
                        stored_amount=debt.amount,
                        derived_amount=derived,
                    ))
                    self.put_debt(debt.model_copy(update={
                        "amount": derived,
                        "is_paid": derived == 0,
                        "updated_at": utc_now(),
                    }))

            for transaction in self._transactions.values():
                if transaction.debt_id is not None and transaction.debt_id not in self._debts:
                    report.orphan_debt_entries.append(transaction.id)

        if report.repaired or report.has_warnings:
            logger.warning(
                "ledger_reconciled",
                owner_id=self.owner_id,
                wallet_drift=len(report.wallet_drift),
                debt_repairs=len(report.debt_repairs),
                removed_orphans=len(report.removed_orphan_transaction_ids),
                debts_missing_origin=len(report.debts_missing_origin),
                orphan_debt_entries=len(report.orphan_debt_entries),
                completed_transfer_legs=len(report.completed_transfer_legs),
                unmatched_transfer_legs=len(report.unmatched_transfer_legs),
            )
        return report

    def _single_transfer_legs(self) -> list[Transaction]:
        """Transfer entries whose transfer has no other leg in the log."""
        legs_by_transfer: dict[UUID, list[Transaction]] = {}
        for transaction in self._transactions.values():
            if transaction.transfer_id is not None:
                legs_by_transfer.setdefault(transaction.transfer_id, []).append(transaction)
        return [legs[0] for legs in legs_by_transfer.values() if len(legs) == 1]

    def _lone_transfer_legs(self) -> list[Transaction]:
        """Single legs whose counterpart wallet still exists."""
        return [
            leg for leg in self._single_transfer_legs()
            if leg.counterpart_wallet_id in self._wallets
        ]

    def _complete_transfers(self, report: ReconciliationReport) -> None:
        for leg in self._single_transfer_legs():
            if leg.counterpart_wallet_id is None:
                report.unmatched_transfer_legs.append(leg.id)
                continue
            # The counterpart wallet was deleted along with its leg
            if leg.counterpart_wallet_id not in self._wallets:
                continue

            origin = self._wallets[leg.wallet_id]
            note = leg.description.partition(": ")[2]
            if leg.type == TransactionType.EXPENSE:
                template = TRANSFER_IN_DESCRIPTION
            else:
                template = TRANSFER_OUT_DESCRIPTION
            missing = self.post(
                leg.counterpart_leg(template.format(name=origin.name, note=note))
            )
            report.completed_transfer_legs.append(missing.id)

