"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is a supported storage backend because:
1. Owners can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions. Change sets are written step by step in the fixed
  order (balances last); a failure half-way raises PartialCommitError and
  the service either resumes the missing steps or reconciles on reload.
- Limited query capabilities (we filter in Python)

One worksheet per entity. Every row carries the owner id, and records are
upserted by id.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from artosku.config import GoogleSheetsSettings, get_settings
from artosku.models.ledger import (
    Budget,
    Debt,
    DebtType,
    Transaction,
    TransactionType,
    Wallet,
    WalletType,
)
from artosku.services.storage.interface import (
    ConcurrentModificationError,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings. owner_id is always column A, the record key column B.
WALLET_COLUMNS = [
    "owner_id",
    "id",
    "name",
    "type",
    "balance",
    "opening_balance",
    "code",
    "icon",
    "color",
    "provider",
    "detail",
    "created_at",
]

TRANSACTION_COLUMNS = [
    "owner_id",
    "id",
    "wallet_id",
    "amount",
    "type",
    "category",
    "date",
    "description",
    "transfer_id",
    "debt_id",
    "created_at",
    "counterpart_wallet_id",
]

DEBT_COLUMNS = [
    "owner_id",
    "id",
    "title",
    "amount",
    "initial_amount",
    "due_date",
    "type",
    "is_paid",
    "wallet_id",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "owner_id",
    "category",
    "monthly_limit",
]

# 1-based column of the wallet balance, for compare-and-swap updates
BALANCE_COLUMN = WALLET_COLUMNS.index("balance") + 1

# Lookups and CAS mismatches are answers, not transient failures
sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(
        (RecordNotFoundError, ConcurrentModificationError)
    ),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_wallets_sheet(self) -> gspread.Worksheet:
        """Get or create the Wallets worksheet."""
        return self._get_or_create(self._settings.wallets_sheet_name, WALLET_COLUMNS, 100)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            5000,  # More rows for the log
        )

    def get_debts_sheet(self) -> gspread.Worksheet:
        """Get or create the Debts worksheet."""
        return self._get_or_create(self._settings.debts_sheet_name, DEBT_COLUMNS, 500)

    def get_budgets_sheet(self) -> gspread.Worksheet:
        """Get or create the Budgets worksheet."""
        return self._get_or_create(self._settings.budgets_sheet_name, BUDGET_COLUMNS, 100)


def _safe_getter(row: list) -> Callable[[int], str]:
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _optional_uuid(value: str) -> Optional[UUID]:
    return UUID(value) if value else None


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Each entity is one row; rows of all owners share a worksheet and are
    told apart by the owner_id column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # =========================================================================
    # ROW CONVERSION
    # =========================================================================

    def _wallet_to_row(self, owner_id: str, wallet: Wallet) -> list:
        """Convert a Wallet to a spreadsheet row."""
        return [
            owner_id,
            str(wallet.id),
            wallet.name,
            wallet.type.value,
            str(wallet.balance),
            str(wallet.opening_balance),
            wallet.code or "",
            wallet.icon or "",
            wallet.color or "",
            wallet.provider or "",
            wallet.detail or "",
            wallet.created_at.isoformat(),
        ]

    def _row_to_wallet(self, row: list) -> Wallet:
        """Convert a spreadsheet row to a Wallet."""
        safe_get = _safe_getter(row)
        return Wallet(
            id=UUID(safe_get(1)),
            name=safe_get(2),
            type=WalletType(safe_get(3, WalletType.CASH.value)),
            balance=Decimal(safe_get(4, "0")),
            opening_balance=Decimal(safe_get(5)) if safe_get(5) else None,
            code=safe_get(6) or None,
            icon=safe_get(7) or None,
            color=safe_get(8) or None,
            provider=safe_get(9) or None,
            detail=safe_get(10) or None,
            created_at=datetime.fromisoformat(safe_get(11)),
        )

    def _transaction_to_row(self, owner_id: str, transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            owner_id,
            str(transaction.id),
            str(transaction.wallet_id),
            str(transaction.amount),
            transaction.type.value,
            transaction.category_label,
            transaction.date.isoformat(),
            transaction.description,
            str(transaction.transfer_id) if transaction.transfer_id else "",
            str(transaction.debt_id) if transaction.debt_id else "",
            transaction.created_at.isoformat(),
            str(transaction.counterpart_wallet_id) if transaction.counterpart_wallet_id else "",
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        safe_get = _safe_getter(row)
        return Transaction(
            id=UUID(safe_get(1)),
            wallet_id=UUID(safe_get(2)),
            amount=Decimal(safe_get(3)),
            type=TransactionType(safe_get(4)),
            category=safe_get(5, "Others"),
            date=datetime.fromisoformat(safe_get(6)),
            description=safe_get(7),
            transfer_id=_optional_uuid(safe_get(8)),
            debt_id=_optional_uuid(safe_get(9)),
            created_at=datetime.fromisoformat(safe_get(10)),
            counterpart_wallet_id=_optional_uuid(safe_get(11)),
        )

    def _debt_to_row(self, owner_id: str, debt: Debt) -> list:
        """Convert a Debt to a spreadsheet row."""
        return [
            owner_id,
            str(debt.id),
            debt.title,
            str(debt.amount),
            str(debt.initial_amount),
            debt.due_date.isoformat() if debt.due_date else "",
            debt.type.value,
            str(debt.is_paid),
            str(debt.wallet_id),
            debt.created_at.isoformat(),
            debt.updated_at.isoformat(),
        ]

    def _row_to_debt(self, row: list) -> Debt:
        """Convert a spreadsheet row to a Debt."""
        safe_get = _safe_getter(row)
        return Debt(
            id=UUID(safe_get(1)),
            title=safe_get(2),
            amount=Decimal(safe_get(3)),
            initial_amount=Decimal(safe_get(4)),
            due_date=date.fromisoformat(safe_get(5)) if safe_get(5) else None,
            type=DebtType(safe_get(6)),
            is_paid=safe_get(7).lower() == "true",
            wallet_id=UUID(safe_get(8)),
            created_at=datetime.fromisoformat(safe_get(9)),
            updated_at=datetime.fromisoformat(safe_get(10)),
        )

    def _budget_to_row(self, owner_id: str, budget: Budget) -> list:
        return [owner_id, budget.category_label, str(budget.monthly_limit)]

    def _row_to_budget(self, row: list) -> Budget:
        safe_get = _safe_getter(row)
        return Budget(category=safe_get(1), monthly_limit=Decimal(safe_get(2)))

    # =========================================================================
    # ROW HELPERS
    # =========================================================================

    @staticmethod
    def _owner_rows(sheet: gspread.Worksheet, owner_id: str) -> list[list]:
        # Skip header
        return [row for row in sheet.get_all_values()[1:] if row and row[0] == owner_id]

    @staticmethod
    def _find_row(sheet: gspread.Worksheet, owner_id: str, key: str) -> Optional[int]:
        """1-based row number of the owner's record with this key."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if len(row) > 1 and row[0] == owner_id and row[1] == key:
                return idx
        return None

    def _upsert(self, sheet: gspread.Worksheet, owner_id: str, key: str, row: list) -> None:
        idx = self._find_row(sheet, owner_id, key)
        if idx is None:
            sheet.append_row(row, value_input_option="RAW")
        else:
            sheet.update(range_name=f"A{idx}", values=[row], value_input_option="RAW")

    def _delete(self, sheet: gspread.Worksheet, owner_id: str, key: str) -> bool:
        idx = self._find_row(sheet, owner_id, key)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    # =========================================================================
    # LOADING
    # =========================================================================

    @sheets_retry
    async def load_wallets(self, owner_id: str) -> list[Wallet]:
        try:
            sheet = self._client.get_wallets_sheet()
            return [self._row_to_wallet(row) for row in self._owner_rows(sheet, owner_id)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load wallets: {e}")

    @sheets_retry
    async def load_transactions(self, owner_id: str) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            return [
                self._row_to_transaction(row) for row in self._owner_rows(sheet, owner_id)
            ]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load transactions: {e}")

    @sheets_retry
    async def load_debts(self, owner_id: str) -> list[Debt]:
        try:
            sheet = self._client.get_debts_sheet()
            return [self._row_to_debt(row) for row in self._owner_rows(sheet, owner_id)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load debts: {e}")

    @sheets_retry
    async def load_budgets(self, owner_id: str) -> list[Budget]:
        try:
            sheet = self._client.get_budgets_sheet()
            return [self._row_to_budget(row) for row in self._owner_rows(sheet, owner_id)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load budgets: {e}")

    # =========================================================================
    # WRITES
    # =========================================================================

    @sheets_retry
    async def save_wallet(self, owner_id: str, wallet: Wallet) -> bool:
        try:
            sheet = self._client.get_wallets_sheet()
            self._upsert(sheet, owner_id, str(wallet.id), self._wallet_to_row(owner_id, wallet))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save wallet: {e}")

    @sheets_retry
    async def delete_wallet(self, owner_id: str, wallet_id: UUID) -> bool:
        try:
            return self._delete(self._client.get_wallets_sheet(), owner_id, str(wallet_id))
        except Exception as e:
            raise StorageError(f"Failed to delete wallet: {e}")

    @sheets_retry
    async def save_transaction(self, owner_id: str, transaction: Transaction) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            self._upsert(
                sheet,
                owner_id,
                str(transaction.id),
                self._transaction_to_row(owner_id, transaction),
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    @sheets_retry
    async def delete_transaction(self, owner_id: str, transaction_id: UUID) -> bool:
        try:
            return self._delete(
                self._client.get_transactions_sheet(), owner_id, str(transaction_id)
            )
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    @sheets_retry
    async def save_debt(self, owner_id: str, debt: Debt) -> bool:
        try:
            sheet = self._client.get_debts_sheet()
            self._upsert(sheet, owner_id, str(debt.id), self._debt_to_row(owner_id, debt))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save debt: {e}")

    @sheets_retry
    async def delete_debt(self, owner_id: str, debt_id: UUID) -> bool:
        try:
            return self._delete(self._client.get_debts_sheet(), owner_id, str(debt_id))
        except Exception as e:
            raise StorageError(f"Failed to delete debt: {e}")

    @sheets_retry
    async def save_budget(self, owner_id: str, budget: Budget) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            self._upsert(
                sheet,
                owner_id,
                budget.category_label,
                self._budget_to_row(owner_id, budget),
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    @sheets_retry
    async def delete_budget(self, owner_id: str, category: str) -> bool:
        try:
            return self._delete(self._client.get_budgets_sheet(), owner_id, category)
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}")

    @sheets_retry
    async def swap_balance(
        self,
        owner_id: str,
        wallet_id: UUID,
        expected: Decimal,
        new: Decimal,
    ) -> bool:
        """
        Read-compare-write of the balance cell.

        Sheets has no conditional write, so a concurrent writer between the
        read and the write can still slip through; single-writer use only.
        """
        try:
            sheet = self._client.get_wallets_sheet()
            idx = self._find_row(sheet, owner_id, str(wallet_id))
            if idx is None:
                raise RecordNotFoundError(f"Wallet not found: {wallet_id}")

            current = Decimal(sheet.cell(idx, BALANCE_COLUMN).value or "0")
            if current == new:
                return True
            if current != expected:
                raise ConcurrentModificationError(wallet_id, expected, current)

            sheet.update_cell(idx, BALANCE_COLUMN, str(new))
            logger.debug(
                "balance_swapped",
                owner_id=owner_id,
                wallet_id=str(wallet_id),
                new_balance=str(new),
            )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update balance: {e}")
