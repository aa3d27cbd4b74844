"""Read-only reports over ledger snapshots."""

from artosku.reports.reporter import LedgerReporter, month_bounds, percent

__all__ = ["LedgerReporter", "month_bounds", "percent"]
