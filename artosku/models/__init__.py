"""
Data models for the ArtosKu ledger.
"""

from artosku.models.changes import (
    LedgerChangeSet,
    PersistAction,
    PersistStep,
)
from artosku.models.events import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
)
from artosku.models.ledger import (
    Budget,
    Debt,
    DebtStatus,
    DebtType,
    Transaction,
    TransactionCategory,
    TransactionType,
    Wallet,
    WalletType,
    category_label,
    ensure_utc,
    to_money,
    utc_now,
)
from artosku.models.reports import (
    AlertKind,
    AlertLevel,
    AllocationSlice,
    BalancePoint,
    BalanceRepair,
    BudgetLine,
    BudgetStatus,
    CategoryDailySeries,
    CategoryTotal,
    DailySummary,
    DayGroup,
    DebtPosition,
    DebtRepair,
    FlowDirection,
    InvestmentSummary,
    LedgerAlert,
    LedgerSnapshot,
    NetWorth,
    ReconciliationReport,
    SpendingInsights,
    TransactionFilter,
    WalletPerformance,
)

__all__ = [
    # Ledger entities
    "Wallet",
    "WalletType",
    "Transaction",
    "TransactionType",
    "TransactionCategory",
    "Debt",
    "DebtType",
    "DebtStatus",
    "Budget",
    "category_label",
    "ensure_utc",
    "to_money",
    "utc_now",
    # Change sets
    "LedgerChangeSet",
    "PersistAction",
    "PersistStep",
    # Events
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventSeverity",
    "LedgerEventType",
    # Reports
    "AlertKind",
    "AlertLevel",
    "AllocationSlice",
    "BalancePoint",
    "BalanceRepair",
    "BudgetLine",
    "BudgetStatus",
    "CategoryDailySeries",
    "CategoryTotal",
    "DailySummary",
    "DayGroup",
    "DebtPosition",
    "DebtRepair",
    "FlowDirection",
    "InvestmentSummary",
    "LedgerAlert",
    "LedgerSnapshot",
    "NetWorth",
    "ReconciliationReport",
    "SpendingInsights",
    "TransactionFilter",
    "WalletPerformance",
]
