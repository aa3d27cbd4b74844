"""
Report Models

Result shapes returned by the reporting engine. They are plain values:
computed from a snapshot on every call, never stored.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from artosku.models.ledger import Budget, Debt, Transaction, Wallet, WalletType


class FlowDirection(str, Enum):
    """Which side of the cash flow a report looks at."""
    INFLOW = "inflow"    # INCOME and DEBT entries
    OUTFLOW = "outflow"  # EXPENSE and RECEIVABLE entries


class TransactionFilter(str, Enum):
    """Type filter for transaction listings."""
    ALL = "ALL"
    INCOME = "INCOME"    # inflows
    EXPENSE = "EXPENSE"  # outflows
    DEBT = "DEBT"        # loan entries (creation and repayments)


class BudgetStatus(str, Enum):
    OK = "ok"
    NEAR = "near"
    OVER = "over"


class DebtPosition(str, Enum):
    """Whether the owner is a net debtor or creditor."""
    NET_DEBTOR = "net_debtor"
    NET_CREDITOR = "net_creditor"
    BALANCED = "balanced"


class AlertKind(str, Enum):
    LOW_BALANCE = "low_balance"
    DEBT_DUE = "debt_due"                  # we owe, due soon
    PAYMENT_EXPECTED = "payment_expected"  # owed to us, due soon


class AlertLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


# =============================================================================
# SNAPSHOT
# =============================================================================

class LedgerSnapshot(BaseModel):
    """Immutable copy of a ledger taken for reporting."""

    owner_id: str
    wallets: list[Wallet] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)


# =============================================================================
# BALANCES
# =============================================================================

class BalancePoint(BaseModel):
    """Closing balance of one calendar day."""
    day: date
    balance: Decimal
    change: Decimal = Field(
        default=Decimal("0"),
        description="Net signed movement during the day"
    )


class NetWorth(BaseModel):
    wallet_total: Decimal
    unpaid_debt: Decimal = Field(description="Still owed to others")
    unpaid_receivable: Decimal = Field(description="Still owed to us")
    net_worth: Decimal
    debt_position: DebtPosition


class WalletPerformance(BaseModel):
    """Profit or loss of a wallet against the capital put into it."""
    wallet_id: UUID
    name: str
    type: WalletType
    balance: Decimal
    opening_balance: Decimal
    capital_basis: Decimal
    top_up_total: Decimal
    top_up_count: int
    profit: Decimal
    profit_percent: Optional[Decimal] = Field(
        default=None,
        description="None when the capital basis is zero"
    )


class InvestmentSummary(BaseModel):
    total_balance: Decimal
    total_capital: Decimal
    total_profit: Decimal
    profit_percent: Optional[Decimal] = None
    wallets: list[WalletPerformance] = Field(default_factory=list)


class AllocationSlice(BaseModel):
    wallet_type: WalletType
    total: Decimal
    share_percent: Decimal


# =============================================================================
# SPENDING
# =============================================================================

class CategoryTotal(BaseModel):
    category: str
    total: Decimal
    share_percent: Decimal
    count: int


class BudgetLine(BaseModel):
    category: str
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    percent_used: Decimal
    status: BudgetStatus


class SpendingInsights(BaseModel):
    current_month_total: Decimal
    last_month_total: Decimal
    change_percent: Decimal = Field(
        default=Decimal("0"),
        description="Zero when last month had no spending"
    )
    top_category: Optional[str] = None
    top_category_total: Decimal = Decimal("0")
    daily_average: Decimal


class DailySummary(BaseModel):
    day: date
    total_balance: Decimal
    inflow_today: Decimal
    outflow_today: Decimal
    outflow_yesterday: Decimal
    net_change_today: Decimal
    change_percent: Decimal


class DayGroup(BaseModel):
    """Transactions of one local calendar day, newest first."""
    day: date
    transactions: list[Transaction]
    net_change: Decimal


class CategoryDailySeries(BaseModel):
    category: str
    points: dict[date, Decimal] = Field(default_factory=dict)


# =============================================================================
# ALERTS
# =============================================================================

class LedgerAlert(BaseModel):
    """One item of the owner's notification list."""
    kind: AlertKind
    level: AlertLevel
    title: str
    message: str
    wallet_id: Optional[UUID] = None
    debt_id: Optional[UUID] = None
    due_date: Optional[date] = None


# =============================================================================
# RECONCILIATION
# =============================================================================

class BalanceRepair(BaseModel):
    wallet_id: UUID
    stored_balance: Decimal
    derived_balance: Decimal


class DebtRepair(BaseModel):
    debt_id: UUID
    stored_amount: Decimal
    derived_amount: Decimal


class ReconciliationReport(BaseModel):
    """What reconcile() found and repaired."""

    wallet_drift: list[BalanceRepair] = Field(default_factory=list)
    debt_repairs: list[DebtRepair] = Field(default_factory=list)
    removed_orphan_transaction_ids: list[UUID] = Field(default_factory=list)
    completed_transfer_legs: list[UUID] = Field(
        default_factory=list,
        description="Transfer legs posted back to pair a lone leg"
    )

    # Reported only, never repaired
    debts_missing_origin: list[UUID] = Field(default_factory=list)
    orphan_debt_entries: list[UUID] = Field(default_factory=list)
    unmatched_transfer_legs: list[UUID] = Field(
        default_factory=list,
        description="Lone transfer legs with no recorded counterpart wallet"
    )

    @property
    def repaired(self) -> bool:
        return bool(
            self.wallet_drift
            or self.debt_repairs
            or self.removed_orphan_transaction_ids
            or self.completed_transfer_legs
        )

    @property
    def has_warnings(self) -> bool:
        return bool(
            self.debts_missing_origin
            or self.orphan_debt_entries
            or self.unmatched_transfer_legs
        )
