"""
Main Orchestrator for ArtosKu

This module ties the ledger core to storage and logging, and defines the
end-to-end flow of every ledger operation:

    validate -> mutate the book (unit of work) -> persist the change set
             -> log the event

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is persisted that the book did not accept
- A storage failure with nothing written restores the book exactly
- A storage failure half-way is never hidden: it raises
  PartialFailureError, keeps the missing steps, and blocks further
  mutations until resume_pending() or reload()

Only one LedgerService should write to a given owner's ledger at a time.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar, Union
from uuid import UUID

import structlog

from artosku.config import AppSettings, LedgerSettings, get_settings
from artosku.events import LedgerEventLogger
from artosku.ledger import (
    DebtLifecycle,
    EntryRecorder,
    InconsistentStateError,
    LedgerBook,
    LedgerValidationError,
    PartialFailureError,
    TransferOrchestrator,
)
from artosku.ledger.book import EDITABLE_WALLET_FIELDS
from artosku.ledger.validation import build, parse_amount, parse_money
from artosku.models.changes import PersistStep
from artosku.models.ledger import (
    Budget,
    Debt,
    DebtType,
    Transaction,
    TransactionCategory,
    TransactionType,
    Wallet,
    WalletType,
    category_label,
)
from artosku.models.reports import LedgerSnapshot, ReconciliationReport
from artosku.reports import LedgerReporter
from artosku.services.identity import IdentityProviderInterface, StaticIdentityProvider
from artosku.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    PartialCommitError,
    StorageError,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class LedgerService:
    """
    One owner's ledger session.

    Flow:
    1. load() reads the owner's records and reconciles them
    2. Each operation mutates the in-memory book inside a unit of work
    3. The unit's change set goes to storage in one apply_all() call
    4. Success is logged as a ledger event

    Reports are computed from a snapshot through `reporter`.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        identity: IdentityProviderInterface,
        event_logger: Optional[LedgerEventLogger] = None,
        settings: Optional[LedgerSettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._owner_id = identity.current_owner_id()
        self._events = event_logger or LedgerEventLogger(self._owner_id)
        self._settings = settings or get_settings().ledger
        app_settings = app_settings or get_settings().app
        self._verify = self._settings.verify_after_operation or app_settings.debug_mode

        self._book: Optional[LedgerBook] = None
        self._entries: Optional[EntryRecorder] = None
        self._transfers: Optional[TransferOrchestrator] = None
        self._debts: Optional[DebtLifecycle] = None
        self._pending: list[PersistStep] = []

    # =========================================================================
    # SESSION STATE
    # =========================================================================

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def events(self) -> LedgerEventLogger:
        return self._events

    @property
    def book(self) -> LedgerBook:
        if self._book is None:
            raise InconsistentStateError("Ledger not loaded; call load() first")
        return self._book

    @property
    def reporter(self) -> LedgerReporter:
        """Reports over a fresh snapshot of the current state."""
        return LedgerReporter(self.book.snapshot(), self._settings)

    def snapshot(self) -> LedgerSnapshot:
        return self.book.snapshot()

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    @property
    def pending_steps(self) -> list[PersistStep]:
        return list(self._pending)

    async def load(self) -> ReconciliationReport:
        """
        Read the owner's ledger from storage.

        With reconcile_on_load, drift left by an interrupted commit is
        repaired from the transaction log and the repair is persisted.
        """
        owner_id = self._owner_id
        wallets = await self._storage.load_wallets(owner_id)
        transactions = await self._storage.load_transactions(owner_id)
        debts = await self._storage.load_debts(owner_id)
        budgets = await self._storage.load_budgets(owner_id)

        book = LedgerBook(owner_id, wallets, transactions, debts, budgets)
        self._book = book
        self._entries = EntryRecorder(book)
        self._transfers = TransferOrchestrator(book)
        self._debts = DebtLifecycle(book)
        self._pending = []

        self._events.log_ledger_loaded(len(wallets), len(transactions), len(debts))

        if not self._settings.reconcile_on_load:
            return ReconciliationReport()
        return await self.reconcile()

    async def reload(self) -> ReconciliationReport:
        """Discard session state (including pending steps) and load again."""
        self._book = None
        self._pending = []
        return await self.load()

    async def resume_pending(self) -> int:
        """
        Retry the storage steps a partial commit left behind.

        Every step is idempotent, so retrying ones that did land is harmless.

        Returns:
            Number of steps applied

        Raises:
            PartialFailureError: storage failed again part-way
            StorageError: storage failed before writing anything
        """
        if not self._pending:
            return 0

        steps = self._pending
        try:
            applied = await self._storage.apply_steps(self._owner_id, steps)
        except PartialCommitError as e:
            self._pending = e.pending
            self._events.log_partial_commit(
                "resume_pending",
                [s.describe() for s in e.applied],
                [s.describe() for s in e.pending],
                str(e.cause or e),
            )
            raise PartialFailureError("resume_pending", e.applied, e.pending, e) from e

        self._pending = []
        self._events.log_pending_resumed(applied)
        return applied

    def verify(self) -> None:
        self.book.verify()

    async def reconcile(self) -> ReconciliationReport:
        """Repair the book from its transaction log and persist the repair."""
        report = await self._run("reconcile", lambda: self.book.reconcile())
        if report.repaired or report.has_warnings:
            self._events.log_ledger_reconciled({
                "wallet_drift": [str(r.wallet_id) for r in report.wallet_drift],
                "debt_repairs": [str(r.debt_id) for r in report.debt_repairs],
                "removed_orphans": [str(i) for i in report.removed_orphan_transaction_ids],
                "debts_missing_origin": [str(i) for i in report.debts_missing_origin],
                "orphan_debt_entries": [str(i) for i in report.orphan_debt_entries],
                "completed_transfer_legs": [str(i) for i in report.completed_transfer_legs],
                "unmatched_transfer_legs": [str(i) for i in report.unmatched_transfer_legs],
            })
        return report

    # =========================================================================
    # COMMIT
    # =========================================================================

    async def _run(self, operation: str, action: Callable[[], T]) -> T:
        """
        Apply `action` to the book and persist what it changed.

        A storage error with nothing written rolls the book back and
        propagates. A partial write keeps the book's new state, stores the
        missing steps and raises PartialFailureError.
        """
        book = self.book
        if self._pending:
            raise InconsistentStateError(
                f"{len(self._pending)} storage step(s) from an earlier operation "
                "are pending; call resume_pending() or reload() first"
            )

        partial: Optional[PartialCommitError] = None
        with book.unit_of_work() as changes:
            result = action()
            if not changes.is_empty:
                try:
                    await self._storage.apply_all(self._owner_id, changes)
                except PartialCommitError as e:
                    partial = e
                except StorageError as e:
                    self._events.log_commit_failed(operation, str(e))
                    raise

        if partial is not None:
            self._pending = partial.pending
            self._events.log_partial_commit(
                operation,
                [s.describe() for s in partial.applied],
                [s.describe() for s in partial.pending],
                str(partial.cause or partial),
            )
            raise PartialFailureError(
                operation, partial.applied, partial.pending, partial
            ) from partial

        if self._verify:
            book.verify()
        return result

    # =========================================================================
    # WALLETS
    # =========================================================================

    async def create_wallet(
        self,
        name: str,
        opening_balance: Any = 0,
        type: Union[WalletType, str] = WalletType.CASH,
        **details: Any,
    ) -> Wallet:
        """Create a wallet whose balance starts at `opening_balance`."""
        illegal = set(details) - EDITABLE_WALLET_FIELDS
        if illegal:
            raise LedgerValidationError(
                f"Wallet fields cannot be set on creation: {', '.join(sorted(illegal))}"
            )
        balance = parse_money(opening_balance, "opening balance")
        wallet = build(
            Wallet,
            name=name,
            type=type,
            balance=balance,
            opening_balance=balance,
            **details,
        )
        created = await self._run("create_wallet", lambda: self.book.add_wallet(wallet))
        self._events.log_wallet_created(created)
        return created

    async def update_wallet(self, wallet_id: UUID, **fields: Any) -> Wallet:
        """Change a wallet's name, type or presentation details."""
        updated = await self._run(
            "update_wallet",
            lambda: self.book.update_wallet(wallet_id, **fields),
        )
        self._events.log_wallet_updated(updated, sorted(fields))
        return updated

    async def delete_wallet(self, wallet_id: UUID) -> Wallet:
        """Delete a wallet with its transactions and debts."""
        wallet = self.book.wallet(wallet_id)
        removed_transactions, removed_debts = await self._run(
            "delete_wallet",
            lambda: self.book.remove_wallet(wallet_id),
        )
        self._events.log_wallet_deleted(
            wallet, len(removed_transactions), len(removed_debts)
        )
        return wallet

    # =========================================================================
    # ENTRIES
    # =========================================================================

    async def record_transaction(
        self,
        wallet_id: UUID,
        amount: Any,
        type: Union[TransactionType, str],
        category: Union[TransactionCategory, str] = TransactionCategory.OTHERS,
        description: str = "",
        when: Optional[datetime] = None,
    ) -> Transaction:
        """Record an INCOME or EXPENSE entry."""
        transaction = await self._run(
            "record_transaction",
            lambda: self._entries.record(
                wallet_id, amount, type, category, description, when
            ),
        )
        self._events.log_transaction_recorded(transaction)
        return transaction

    async def delete_transaction(self, transaction_id: UUID) -> list[Transaction]:
        """Delete an entry (both legs for a transfer). Returns what was removed."""
        removed = await self._run(
            "delete_transaction",
            lambda: self._entries.delete(transaction_id),
        )
        self._events.log_transaction_deleted(removed[0], [t.id for t in removed])
        return removed

    async def top_up(
        self,
        wallet_id: UUID,
        amount: Any,
        note: Optional[str] = None,
        source_wallet_id: Optional[UUID] = None,
        when: Optional[datetime] = None,
    ) -> list[Transaction]:
        """Add capital to a wallet, from outside or from another wallet."""
        entries = await self._run(
            "top_up",
            lambda: self._entries.top_up(wallet_id, amount, note, source_wallet_id, when),
        )
        self._events.log_topup_recorded(entries[-1])
        return entries

    async def adjust_balance(self, wallet_id: UUID, new_balance: Any) -> Optional[Transaction]:
        """Correct a wallet to `new_balance` with an Adjustment entry."""
        previous = self.book.wallet(wallet_id).balance
        entry = await self._run(
            "adjust_balance",
            lambda: self._entries.adjust_balance(wallet_id, new_balance),
        )
        if entry is not None:
            self._events.log_balance_adjusted(self.book.wallet(wallet_id), previous)
        return entry

    async def transfer(
        self,
        from_wallet_id: UUID,
        to_wallet_id: UUID,
        amount: Any,
        note: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> tuple[Transaction, Transaction]:
        """Move money between two wallets."""
        outgoing, incoming = await self._run(
            "transfer",
            lambda: self._transfers.transfer(
                from_wallet_id, to_wallet_id, amount, note, when
            ),
        )
        self._events.log_transfer_completed(outgoing, incoming)
        return outgoing, incoming

    # =========================================================================
    # DEBTS
    # =========================================================================

    async def create_debt(
        self,
        title: str,
        amount: Any,
        type: Union[DebtType, str],
        wallet_id: UUID,
        due_date: Optional[date] = None,
        when: Optional[datetime] = None,
    ) -> tuple[Debt, Transaction]:
        """Open a debt or receivable settled through `wallet_id`."""
        debt, origin = await self._run(
            "create_debt",
            lambda: self._debts.create(title, amount, type, wallet_id, due_date, when),
        )
        self._events.log_debt_created(debt)
        return debt, origin

    async def repay_debt(
        self,
        debt_id: UUID,
        amount: Any,
        when: Optional[datetime] = None,
    ) -> tuple[Debt, Transaction]:
        """Record a repayment; overpayment is clamped to what remains."""
        debt, entry = await self._run(
            "repay_debt",
            lambda: self._debts.repay(debt_id, amount, when),
        )
        self._events.log_debt_repaid(debt, entry.amount)
        return debt, entry

    async def delete_debt(self, debt_id: UUID) -> Debt:
        """Delete a debt and unwind every entry linked to it."""
        debt, removed = await self._run(
            "delete_debt",
            lambda: self._debts.delete(debt_id),
        )
        self._events.log_debt_deleted(debt, len(removed))
        return debt

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def set_budget(
        self,
        category: Union[TransactionCategory, str],
        monthly_limit: Any,
    ) -> Budget:
        """Set (or replace) the monthly limit of a category."""
        limit: Decimal = parse_amount(monthly_limit, "monthly limit")
        budget = build(Budget, category=category, monthly_limit=limit)
        saved = await self._run("set_budget", lambda: self.book.put_budget(budget))
        self._events.log_budget_set(saved.category_label, saved.monthly_limit)
        return saved

    async def remove_budget(self, category: Union[TransactionCategory, str]) -> bool:
        """Remove a category budget. False if none was set."""
        removed = await self._run("remove_budget", lambda: self.book.remove_budget(category))
        if removed is None:
            return False
        self._events.log_budget_removed(category_label(category))
        return True


def create_ledger_service(
    owner_id: Optional[str] = None,
    storage: Optional[LedgerStorageInterface] = None,
) -> LedgerService:
    """
    Factory function to create a ledger service from settings.

    Args:
        owner_id: Owner of the ledger. Falls back to DEFAULT_OWNER_ID.
        storage: Storage backend. Built from STORAGE_BACKEND when omitted.

    Returns:
        An unloaded LedgerService; call load() before use.
    """
    settings = get_settings()
    app_settings = settings.app

    owner = owner_id or app_settings.default_owner_id
    if not owner:
        raise ValueError("No owner id given and DEFAULT_OWNER_ID is not set")

    if storage is None:
        if app_settings.storage_backend == "google_sheets":
            storage = GoogleSheetsLedgerStorage(GoogleSheetsClient(settings.google_sheets))
        else:
            storage = InMemoryLedgerStorage()

    logger.info(
        "ledger_service_created",
        owner_id=owner,
        storage_backend=type(storage).__name__,
    )
    return LedgerService(
        storage=storage,
        identity=StaticIdentityProvider(owner),
        settings=settings.ledger,
        app_settings=app_settings,
    )
