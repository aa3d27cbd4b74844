"""
Shared fixtures for ArtosKu tests.

Everything runs in memory. Google Sheets is replaced by an in-process fake.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio

from artosku.config import AppSettings, LedgerSettings
from artosku.events import LedgerEventLogger
from artosku.ledger import LedgerBook
from artosku.models import PersistStep, Wallet, WalletType
from artosku.orchestrator import LedgerService
from artosku.services import (
    InMemoryLedgerStorage,
    StaticIdentityProvider,
    StorageConnectionError,
)


OWNER = "owner-1"


def utc(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """Aware UTC datetime shortcut."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def new_wallet(
    name: str = "Cash",
    balance: str = "0",
    type: WalletType = WalletType.CASH,
) -> Wallet:
    amount = Decimal(balance)
    return Wallet(name=name, type=type, balance=amount, opening_balance=amount)


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    """UTC reporting and invariant checks after every operation."""
    return LedgerSettings(timezone="UTC", verify_after_operation=True)


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(debug_mode=False, log_json=False)


@pytest.fixture
def book() -> LedgerBook:
    return LedgerBook(OWNER)


@pytest.fixture
def wallet_a(book: LedgerBook) -> Wallet:
    return book.add_wallet(new_wallet("BCA", "1000000", WalletType.BANK))


@pytest.fixture
def wallet_b(book: LedgerBook) -> Wallet:
    return book.add_wallet(new_wallet("GoPay", "0", WalletType.EWALLET))


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest_asyncio.fixture
async def service(
    storage: InMemoryLedgerStorage,
    ledger_settings: LedgerSettings,
    app_settings: AppSettings,
) -> LedgerService:
    """A loaded service over empty in-memory storage."""
    ledger = LedgerService(
        storage=storage,
        identity=StaticIdentityProvider(OWNER),
        event_logger=LedgerEventLogger(OWNER),
        settings=ledger_settings,
        app_settings=app_settings,
    )
    await ledger.load()
    return ledger


class FlakyStorage(InMemoryLedgerStorage):
    """
    In-memory storage without transactions that fails one chosen step.

    fail_on(n) makes the n-th step from now raise StorageConnectionError.
    """

    def __init__(self, atomic: bool = False):
        super().__init__(atomic=atomic)
        self.calls = 0
        self.fail_at: Optional[int] = None

    def fail_on(self, n: int) -> None:
        self.fail_at = self.calls + n

    async def apply_step(self, owner_id: str, step: PersistStep) -> None:
        self.calls += 1
        if self.calls == self.fail_at:
            self.fail_at = None
            raise StorageConnectionError(f"Sheets unavailable at {step.describe()}")
        await super().apply_step(owner_id, step)


@pytest.fixture
def flaky_storage() -> FlakyStorage:
    return FlakyStorage()


@pytest_asyncio.fixture
async def flaky_service(
    flaky_storage: FlakyStorage,
    ledger_settings: LedgerSettings,
    app_settings: AppSettings,
) -> LedgerService:
    """A loaded service whose storage can be told to fail mid-commit."""
    ledger = LedgerService(
        storage=flaky_storage,
        identity=StaticIdentityProvider(OWNER),
        settings=ledger_settings,
        app_settings=app_settings,
    )
    await ledger.load()
    return ledger
