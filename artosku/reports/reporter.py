"""
Aggregation and Reporting Engine

DESIGN DECISION: Reporting is DETERMINISTIC and read-only.
Every report is computed from a LedgerSnapshot by replaying the log.
Nothing here mutates an entity or caches a result, so a report can never
disagree with the ledger it was taken from.

All reports use the same polarity table as the balance engine and group
transactions by calendar day in the configured reporting timezone.
"""

import calendar
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from uuid import UUID

from artosku.config.settings import LedgerSettings
from artosku.ledger.balance import POLARITY, signed_amount
from artosku.ledger.errors import WalletNotFoundError
from artosku.models.ledger import (
    Debt,
    DebtType,
    Transaction,
    TransactionCategory,
    Wallet,
    WalletType,
    ensure_utc,
    utc_now,
)
from artosku.models.reports import (
    AlertKind,
    AlertLevel,
    AllocationSlice,
    BalancePoint,
    BudgetLine,
    BudgetStatus,
    CategoryDailySeries,
    CategoryTotal,
    DailySummary,
    DayGroup,
    DebtPosition,
    FlowDirection,
    InvestmentSummary,
    LedgerAlert,
    LedgerSnapshot,
    NetWorth,
    SpendingInsights,
    TransactionFilter,
    WalletPerformance,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def percent(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole as a percentage rounded to two places."""
    return (part / whole * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def sort_key(transaction: Transaction) -> tuple:
    """Chronological order: date, then creation time, then id."""
    return (transaction.date, transaction.created_at, str(transaction.id))


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of the month containing `day`."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


class LedgerReporter:
    """
    Read-only reports over one ledger snapshot.

    Usage:
        reporter = LedgerReporter(book.snapshot())
        reporter.net_worth()
    """

    def __init__(
        self,
        snapshot: LedgerSnapshot,
        settings: Optional[LedgerSettings] = None,
    ):
        self._snapshot = snapshot
        self._settings = settings or LedgerSettings()
        self._tz = self._settings.tzinfo
        self._capital = set(self._settings.capital_categories_list)
        self._wallets: dict[UUID, Wallet] = {w.id: w for w in snapshot.wallets}

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    # =========================================================================
    # HELPERS
    # =========================================================================

    def local_day(self, moment: datetime) -> date:
        """Calendar day of `moment` in the reporting timezone."""
        return ensure_utc(moment).astimezone(self._tz).date()

    def _today(self, as_of: Optional[datetime]) -> date:
        return self.local_day(as_of or utc_now())

    def _wallet(self, wallet_id: UUID) -> Wallet:
        try:
            return self._wallets[wallet_id]
        except KeyError:
            raise WalletNotFoundError(wallet_id) from None

    def _chronological(self, wallet_ids: Optional[set[UUID]] = None) -> list[Transaction]:
        transactions = self._snapshot.transactions
        if wallet_ids is not None:
            transactions = [t for t in transactions if t.wallet_id in wallet_ids]
        return sorted(transactions, key=sort_key)

    def _in_window(
        self,
        transaction: Transaction,
        start: Optional[date],
        end: Optional[date],
    ) -> bool:
        day = self.local_day(transaction.date)
        if start is not None and day < start:
            return False
        if end is not None and day > end:
            return False
        return True

    @staticmethod
    def _matches_direction(transaction: Transaction, direction: FlowDirection) -> bool:
        if direction == FlowDirection.INFLOW:
            return POLARITY[transaction.type] > 0
        return POLARITY[transaction.type] < 0

    @staticmethod
    def _is_transfer(transaction: Transaction) -> bool:
        return (
            transaction.transfer_id is not None
            or transaction.category == TransactionCategory.TRANSFER
        )

    def _flows(
        self,
        direction: FlowDirection,
        start: Optional[date] = None,
        end: Optional[date] = None,
        include_transfers: bool = False,
        wallet_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        return [
            t for t in self._snapshot.transactions
            if self._matches_direction(t, direction)
            and self._in_window(t, start, end)
            and (include_transfers or not self._is_transfer(t))
            and (wallet_id is None or t.wallet_id == wallet_id)
        ]

    @staticmethod
    def _total(transactions: Iterable[Transaction]) -> Decimal:
        return sum((t.amount for t in transactions), ZERO)

    # =========================================================================
    # BALANCES
    # =========================================================================

    def running_balance(
        self,
        wallet_id: Optional[UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[BalancePoint]:
        """
        Closing balance for every day with activity.

        Replays forward from the opening balances. Entries dated before
        `start` are folded into the starting value; entries after `end` are
        ignored. Without a window the last point equals the current balance.
        """
        if wallet_id is not None:
            wallets = [self._wallet(wallet_id)]
        else:
            wallets = list(self._wallets.values())

        balance = sum((w.opening_balance for w in wallets), ZERO)
        changes: dict[date, Decimal] = {}

        for transaction in self._chronological({w.id for w in wallets}):
            day = self.local_day(transaction.date)
            if start is not None and day < start:
                balance += signed_amount(transaction)
                continue
            if end is not None and day > end:
                break
            changes[day] = changes.get(day, ZERO) + signed_amount(transaction)

        points = []
        for day in sorted(changes):
            balance += changes[day]
            points.append(BalancePoint(day=day, balance=balance, change=changes[day]))
        return points

    def balance_on(self, day: date, wallet_id: Optional[UUID] = None) -> Decimal:
        """Balance at the end of `day`."""
        if wallet_id is not None:
            wallets = [self._wallet(wallet_id)]
        else:
            wallets = list(self._wallets.values())

        balance = sum((w.opening_balance for w in wallets), ZERO)
        ids = {w.id for w in wallets}
        for transaction in self._snapshot.transactions:
            if transaction.wallet_id in ids and self.local_day(transaction.date) <= day:
                balance += signed_amount(transaction)
        return balance

    def net_worth(self) -> NetWorth:
        """Wallet total minus what is owed plus what is owed to us."""
        wallet_total = sum((w.balance for w in self._wallets.values()), ZERO)
        unpaid_debt = sum(
            (d.amount for d in self._snapshot.debts
             if d.type == DebtType.DEBT and not d.is_paid),
            ZERO,
        )
        unpaid_receivable = sum(
            (d.amount for d in self._snapshot.debts
             if d.type == DebtType.RECEIVABLE and not d.is_paid),
            ZERO,
        )

        if unpaid_debt > unpaid_receivable:
            position = DebtPosition.NET_DEBTOR
        elif unpaid_receivable > unpaid_debt:
            position = DebtPosition.NET_CREDITOR
        else:
            position = DebtPosition.BALANCED

        return NetWorth(
            wallet_total=wallet_total,
            unpaid_debt=unpaid_debt,
            unpaid_receivable=unpaid_receivable,
            net_worth=wallet_total - unpaid_debt + unpaid_receivable,
            debt_position=position,
        )

    # =========================================================================
    # WALLET PERFORMANCE
    # =========================================================================

    def wallet_performance(self, wallet_id: UUID) -> WalletPerformance:
        """
        Profit of a wallet over the capital put into it.

        Capital basis is the opening balance plus the signed sum of entries
        in the capital categories (top-ups, transfers and loans). Anything
        else that moved the balance counts as profit or loss.
        """
        wallet = self._wallet(wallet_id)
        capital = wallet.opening_balance
        top_up_total = ZERO
        top_up_count = 0

        for transaction in self._snapshot.transactions:
            if transaction.wallet_id != wallet.id:
                continue
            if transaction.category_label in self._capital:
                capital += signed_amount(transaction)
            if (
                transaction.category == TransactionCategory.TOPUP
                and POLARITY[transaction.type] > 0
            ):
                top_up_total += transaction.amount
                top_up_count += 1

        profit = wallet.balance - capital
        return WalletPerformance(
            wallet_id=wallet.id,
            name=wallet.name,
            type=wallet.type,
            balance=wallet.balance,
            opening_balance=wallet.opening_balance,
            capital_basis=capital,
            top_up_total=top_up_total,
            top_up_count=top_up_count,
            profit=profit,
            profit_percent=percent(profit, capital) if capital != 0 else None,
        )

    def wallet_ranking(self) -> list[WalletPerformance]:
        """All wallets, best profit first."""
        performances = [self.wallet_performance(w) for w in self._wallets]
        return sorted(performances, key=lambda p: (-p.profit, p.name))

    def investment_summary(self) -> InvestmentSummary:
        """Totals over INVESTMENT wallets."""
        wallets = [
            self.wallet_performance(w.id) for w in self._wallets.values()
            if w.type == WalletType.INVESTMENT
        ]
        total_balance = sum((p.balance for p in wallets), ZERO)
        total_capital = sum((p.capital_basis for p in wallets), ZERO)
        total_profit = total_balance - total_capital
        return InvestmentSummary(
            total_balance=total_balance,
            total_capital=total_capital,
            total_profit=total_profit,
            profit_percent=percent(total_profit, total_capital) if total_capital != 0 else None,
            wallets=wallets,
        )

    def asset_allocation(self) -> list[AllocationSlice]:
        """Balance held per wallet type, largest first."""
        totals: dict[WalletType, Decimal] = defaultdict(lambda: ZERO)
        for wallet in self._wallets.values():
            totals[wallet.type] += wallet.balance

        grand_total = sum(totals.values(), ZERO)
        slices = [
            AllocationSlice(
                wallet_type=wallet_type,
                total=total,
                share_percent=percent(total, grand_total) if grand_total != 0 else ZERO,
            )
            for wallet_type, total in totals.items()
        ]
        return sorted(slices, key=lambda s: (-s.total, s.wallet_type.value))

    # =========================================================================
    # SPENDING
    # =========================================================================

    def category_totals(
        self,
        direction: FlowDirection = FlowDirection.OUTFLOW,
        start: Optional[date] = None,
        end: Optional[date] = None,
        include_transfers: bool = False,
        wallet_id: Optional[UUID] = None,
    ) -> list[CategoryTotal]:
        """Totals per category for one side of the cash flow, largest first."""
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        counts: dict[str, int] = defaultdict(int)
        for transaction in self._flows(direction, start, end, include_transfers, wallet_id):
            totals[transaction.category_label] += transaction.amount
            counts[transaction.category_label] += 1

        grand_total = sum(totals.values(), ZERO)
        rows = [
            CategoryTotal(
                category=category,
                total=total,
                share_percent=percent(total, grand_total) if grand_total else ZERO,
                count=counts[category],
            )
            for category, total in totals.items()
        ]
        return sorted(rows, key=lambda r: (-r.total, r.category))

    def budget_report(self, month: Optional[date] = None) -> list[BudgetLine]:
        """
        Spending against each category budget for one calendar month.

        OVER when spending exceeds the limit, NEAR when it exceeds the
        configured share of it.
        """
        first, last = month_bounds(month or self._today(None))
        spent_by_category = {
            row.category: row.total
            for row in self.category_totals(FlowDirection.OUTFLOW, first, last)
        }
        near_ratio = Decimal(str(self._settings.budget_near_ratio))

        lines = []
        for budget in self._snapshot.budgets:
            limit = budget.monthly_limit
            spent = spent_by_category.get(budget.category_label, ZERO)
            if spent > limit:
                status = BudgetStatus.OVER
            elif spent > limit * near_ratio:
                status = BudgetStatus.NEAR
            else:
                status = BudgetStatus.OK
            lines.append(BudgetLine(
                category=budget.category_label,
                limit=limit,
                spent=spent,
                remaining=limit - spent,
                percent_used=percent(spent, limit),
                status=status,
            ))
        return sorted(lines, key=lambda line: line.category)

    def spending_insights(self, as_of: Optional[datetime] = None) -> SpendingInsights:
        """Month-over-month spending, top category and trailing daily average."""
        today = self._today(as_of)
        month_start, _ = month_bounds(today)
        last_month_start, last_month_end = month_bounds(month_start - timedelta(days=1))

        current = self._total(self._flows(FlowDirection.OUTFLOW, month_start, today))
        previous = self._total(
            self._flows(FlowDirection.OUTFLOW, last_month_start, last_month_end)
        )
        change = percent(current - previous, previous) if previous > 0 else ZERO

        categories = self.category_totals(FlowDirection.OUTFLOW, month_start, today)
        top = categories[0] if categories else None

        window = self._settings.insight_window_days
        window_start = today - timedelta(days=window - 1)
        trailing = self._total(self._flows(FlowDirection.OUTFLOW, window_start, today))

        return SpendingInsights(
            current_month_total=current,
            last_month_total=previous,
            change_percent=change,
            top_category=top.category if top else None,
            top_category_total=top.total if top else ZERO,
            daily_average=(trailing / window).quantize(CENT, rounding=ROUND_HALF_UP),
        )

    def daily_summary(self, as_of: Optional[datetime] = None) -> DailySummary:
        """
        Today's movement relative to the balance before today.

        Every entry counts, transfer legs included; they cancel out in the
        net change.
        """
        today = self._today(as_of)
        yesterday = today - timedelta(days=1)

        inflow = self._total(self._flows(FlowDirection.INFLOW, today, today, True))
        outflow = self._total(self._flows(FlowDirection.OUTFLOW, today, today, True))
        outflow_yesterday = self._total(
            self._flows(FlowDirection.OUTFLOW, yesterday, yesterday, True)
        )

        balance = self.balance_on(today)
        net_change = inflow - outflow
        previous = balance - net_change
        if previous > 0:
            change = percent(net_change, previous)
        elif previous == 0 and net_change > 0:
            change = HUNDRED
        else:
            change = ZERO

        return DailySummary(
            day=today,
            total_balance=balance,
            inflow_today=inflow,
            outflow_today=outflow,
            outflow_yesterday=outflow_yesterday,
            net_change_today=net_change,
            change_percent=change,
        )

    def category_daily_totals(
        self,
        direction: FlowDirection = FlowDirection.OUTFLOW,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[CategoryDailySeries]:
        """Per-category totals for each local day, for charting."""
        series: dict[str, dict[date, Decimal]] = defaultdict(dict)
        for transaction in self._flows(direction, start, end):
            day = self.local_day(transaction.date)
            points = series[transaction.category_label]
            points[day] = points.get(day, ZERO) + transaction.amount

        return [
            CategoryDailySeries(
                category=category,
                points=dict(sorted(points.items())),
            )
            for category, points in sorted(series.items())
        ]

    # =========================================================================
    # ALERTS
    # =========================================================================

    def format_money(self, amount: Decimal) -> str:
        """Amount with the ledger currency code, e.g. 'IDR 100,000.00'."""
        return f"{self._settings.currency} {amount:,.2f}"

    def low_balance_wallets(self) -> list[Wallet]:
        """Wallets below the low-balance threshold, lowest first."""
        threshold = self._settings.low_balance_threshold
        wallets = [w for w in self._wallets.values() if w.balance < threshold]
        return sorted(wallets, key=lambda w: (w.balance, w.name))

    def due_soon(self, as_of: Optional[datetime] = None) -> list[Debt]:
        """
        Unpaid debts and receivables due between today and the alert
        horizon, both inclusive. Overdue and undated debts are left out.
        """
        today = self._today(as_of)
        horizon = today + timedelta(days=self._settings.due_soon_days)
        debts = [
            d for d in self._snapshot.debts
            if not d.is_paid
            and d.due_date is not None
            and today <= d.due_date <= horizon
        ]
        return sorted(debts, key=lambda d: (d.due_date, d.title))

    def alerts(self, as_of: Optional[datetime] = None) -> list[LedgerAlert]:
        """Low-balance warnings followed by upcoming debt due dates."""
        alerts = [
            LedgerAlert(
                kind=AlertKind.LOW_BALANCE,
                level=AlertLevel.WARNING,
                title="Low Balance Alert",
                message=(
                    f"Your {wallet.name} balance is below "
                    f"{self.format_money(self._settings.low_balance_threshold)}"
                ),
                wallet_id=wallet.id,
            )
            for wallet in self.low_balance_wallets()
        ]

        for debt in self.due_soon(as_of):
            owed_by_us = debt.type == DebtType.DEBT
            alerts.append(LedgerAlert(
                kind=AlertKind.DEBT_DUE if owed_by_us else AlertKind.PAYMENT_EXPECTED,
                level=AlertLevel.DANGER if owed_by_us else AlertLevel.INFO,
                title="Debt Due Soon" if owed_by_us else "Payment Expected",
                message=(
                    f"{debt.title} ({self.format_money(debt.amount)}) is due on "
                    f"{debt.due_date:%d/%m/%Y}"
                ),
                debt_id=debt.id,
                due_date=debt.due_date,
            ))
        return alerts

    # =========================================================================
    # LISTING
    # =========================================================================

    def list_transactions(
        self,
        search: Optional[str] = None,
        kind: TransactionFilter = TransactionFilter.ALL,
        wallet_id: Optional[UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """
        Transactions newest first.

        `search` matches description or category, case-insensitively.
        """
        needle = (search or "").strip().lower()
        results = []
        for transaction in sorted(self._snapshot.transactions, key=sort_key, reverse=True):
            if wallet_id is not None and transaction.wallet_id != wallet_id:
                continue
            if not self._in_window(transaction, start, end):
                continue
            if kind == TransactionFilter.INCOME and POLARITY[transaction.type] < 0:
                continue
            if kind == TransactionFilter.EXPENSE and POLARITY[transaction.type] > 0:
                continue
            if kind == TransactionFilter.DEBT and transaction.debt_id is None:
                continue
            if needle and not (
                needle in transaction.description.lower()
                or needle in transaction.category_label.lower()
            ):
                continue
            results.append(transaction)
            if limit is not None and len(results) >= limit:
                break
        return results

    def group_by_day(
        self,
        transactions: Optional[list[Transaction]] = None,
    ) -> list[DayGroup]:
        """Group transactions by local day, newest day first."""
        if transactions is None:
            transactions = self.list_transactions()

        groups: dict[date, list[Transaction]] = defaultdict(list)
        for transaction in sorted(transactions, key=sort_key, reverse=True):
            groups[self.local_day(transaction.date)].append(transaction)

        return [
            DayGroup(
                day=day,
                transactions=entries,
                net_change=sum((signed_amount(t) for t in entries), ZERO),
            )
            for day, entries in sorted(groups.items(), reverse=True)
        ]
