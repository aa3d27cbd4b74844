"""
Change Set Models

A logical ledger operation (a transfer, a debt repayment, a wallet deletion)
touches several records. The ledger book records what it touched in a
LedgerChangeSet, and storage receives the whole set at once.

DESIGN DECISION: steps() fixes the order writes reach storage:
1. save wallets   2. save debts   3. save transactions (posting order)
4. delete transactions   5. delete debts   6. budgets
7. compare-and-swap wallet balances   8. delete wallets

Balances are swapped last, so a backend that dies half-way always leaves the
transaction log ahead of the stored balances. Reconciliation on the next load
repairs that deterministically.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from artosku.models.ledger import Budget, Debt, Transaction, Wallet


class PersistAction(str, Enum):
    """One kind of storage write."""
    SAVE_WALLET = "save_wallet"
    SAVE_DEBT = "save_debt"
    SAVE_TRANSACTION = "save_transaction"
    DELETE_TRANSACTION = "delete_transaction"
    DELETE_DEBT = "delete_debt"
    SAVE_BUDGET = "save_budget"
    DELETE_BUDGET = "delete_budget"
    SWAP_BALANCE = "swap_balance"
    DELETE_WALLET = "delete_wallet"


class PersistStep(BaseModel):
    """
    A single idempotent storage write.

    Saves are upserts, deletes of missing records are no-ops, and a balance
    swap that finds the new balance already stored succeeds. That makes any
    suffix of a step list safe to retry.
    """

    action: PersistAction
    entity_id: str = Field(
        ...,
        description="ID of the record written (category label for budgets)"
    )

    wallet: Optional[Wallet] = None
    transaction: Optional[Transaction] = None
    debt: Optional[Debt] = None
    budget: Optional[Budget] = None

    # SWAP_BALANCE only
    expected_balance: Optional[Decimal] = None
    new_balance: Optional[Decimal] = None

    def describe(self) -> str:
        if self.action == PersistAction.SWAP_BALANCE:
            return (
                f"{self.action.value}:{self.entity_id} "
                f"{self.expected_balance} -> {self.new_balance}"
            )
        return f"{self.action.value}:{self.entity_id}"


class LedgerChangeSet(BaseModel):
    """
    Everything one unit of work changed.

    Entries are compacted as they are recorded: a transaction added and
    removed inside the same unit never reaches storage.
    """

    saved_wallets: dict[UUID, Wallet] = Field(default_factory=dict)
    removed_wallet_ids: list[UUID] = Field(default_factory=list)
    saved_debts: dict[UUID, Debt] = Field(default_factory=dict)
    removed_debt_ids: list[UUID] = Field(default_factory=list)
    new_transactions: dict[UUID, Transaction] = Field(default_factory=dict)
    removed_transaction_ids: list[UUID] = Field(default_factory=list)
    saved_budgets: dict[str, Budget] = Field(default_factory=dict)
    removed_budget_categories: list[str] = Field(default_factory=list)

    # First-seen and latest balance per touched wallet
    balance_before: dict[UUID, Decimal] = Field(default_factory=dict)
    balance_after: dict[UUID, Decimal] = Field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record_wallet_saved(self, wallet: Wallet) -> None:
        self.saved_wallets[wallet.id] = wallet.model_copy()

    def record_wallet_removed(self, wallet_id: UUID) -> None:
        self.saved_wallets.pop(wallet_id, None)
        if wallet_id not in self.removed_wallet_ids:
            self.removed_wallet_ids.append(wallet_id)

    def record_transaction_added(self, transaction: Transaction) -> None:
        self.new_transactions[transaction.id] = transaction.model_copy()

    def record_transaction_removed(self, transaction_id: UUID) -> None:
        if self.new_transactions.pop(transaction_id, None) is not None:
            return
        if transaction_id not in self.removed_transaction_ids:
            self.removed_transaction_ids.append(transaction_id)

    def record_debt_saved(self, debt: Debt) -> None:
        self.saved_debts[debt.id] = debt.model_copy()

    def record_debt_removed(self, debt_id: UUID) -> None:
        self.saved_debts.pop(debt_id, None)
        if debt_id not in self.removed_debt_ids:
            self.removed_debt_ids.append(debt_id)

    def record_budget_saved(self, budget: Budget) -> None:
        label = budget.category_label
        if label in self.removed_budget_categories:
            self.removed_budget_categories.remove(label)
        self.saved_budgets[label] = budget.model_copy()

    def record_budget_removed(self, category: str) -> None:
        self.saved_budgets.pop(category, None)
        if category not in self.removed_budget_categories:
            self.removed_budget_categories.append(category)

    def record_balance(self, wallet_id: UUID, before: Decimal, after: Decimal) -> None:
        self.balance_before.setdefault(wallet_id, before)
        self.balance_after[wallet_id] = after

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.steps()

    def balance_delta(self, wallet_id: UUID) -> Decimal:
        """Net balance change of a wallet within this unit."""
        if wallet_id not in self.balance_after:
            return Decimal("0")
        return self.balance_after[wallet_id] - self.balance_before[wallet_id]

    def steps(self) -> list[PersistStep]:
        """Ordered storage writes for this change set."""
        removed_wallets = set(self.removed_wallet_ids)
        steps: list[PersistStep] = []

        for wallet_id, wallet in self.saved_wallets.items():
            # Saved at the balance storage already agrees on; the swap below
            # moves it forward.
            baseline = self.balance_before.get(wallet_id, wallet.balance)
            steps.append(PersistStep(
                action=PersistAction.SAVE_WALLET,
                entity_id=str(wallet_id),
                wallet=wallet.model_copy(update={"balance": baseline}),
            ))

        for debt_id, debt in self.saved_debts.items():
            steps.append(PersistStep(
                action=PersistAction.SAVE_DEBT,
                entity_id=str(debt_id),
                debt=debt,
            ))

        for tx_id, transaction in self.new_transactions.items():
            steps.append(PersistStep(
                action=PersistAction.SAVE_TRANSACTION,
                entity_id=str(tx_id),
                transaction=transaction,
            ))

        for tx_id in self.removed_transaction_ids:
            steps.append(PersistStep(
                action=PersistAction.DELETE_TRANSACTION,
                entity_id=str(tx_id),
            ))

        for debt_id in self.removed_debt_ids:
            steps.append(PersistStep(
                action=PersistAction.DELETE_DEBT,
                entity_id=str(debt_id),
            ))

        for label, budget in self.saved_budgets.items():
            steps.append(PersistStep(
                action=PersistAction.SAVE_BUDGET,
                entity_id=label,
                budget=budget,
            ))

        for label in self.removed_budget_categories:
            steps.append(PersistStep(
                action=PersistAction.DELETE_BUDGET,
                entity_id=label,
            ))

        for wallet_id, after in self.balance_after.items():
            before = self.balance_before[wallet_id]
            if wallet_id in removed_wallets or before == after:
                continue
            steps.append(PersistStep(
                action=PersistAction.SWAP_BALANCE,
                entity_id=str(wallet_id),
                expected_balance=before,
                new_balance=after,
            ))

        for wallet_id in self.removed_wallet_ids:
            steps.append(PersistStep(
                action=PersistAction.DELETE_WALLET,
                entity_id=str(wallet_id),
            ))

        return steps
