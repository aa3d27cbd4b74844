"""
Core Ledger Models for ArtosKu

These models define the strict schemas for the three ledger entities
(wallets, transactions, debts) plus category budgets.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Money is always Decimal with at most two decimal places,
matching the DECIMAL(15, 2) columns of the hosted database. Binary floats
are rejected on input rather than silently rounded.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_money(value: Any) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Floats are refused: they cannot represent most currency amounts exactly.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"Money must be Decimal, int or str, got {type(value).__name__}"
        )
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _reject_float(value: Any) -> Any:
    if isinstance(value, float):
        raise ValueError("Money must be Decimal, int or str, not float")
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Polarity tag of a ledger entry.

    DEBT and RECEIVABLE only ever appear on loan-creation entries.
    Repayments are recorded as INCOME or EXPENSE.
    """
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    DEBT = "DEBT"              # money borrowed (hutang), cash received
    RECEIVABLE = "RECEIVABLE"  # money lent (piutang), cash given out


class TransactionCategory(str, Enum):
    """
    Supported transaction categories.

    Values are the labels the hosted database already stores.
    Free text is still accepted for edge cases (see Transaction.category).
    """
    FOOD = "Makan"
    TRANSPORT = "Transport"
    SHOPPING = "Shop"
    BILLS = "Tagihan"
    ENTERTAINMENT = "Hiburan"
    HEALTH = "Kesehatan"
    SALARY = "Gaji"
    INVESTMENT = "Investasi"
    GIFT = "Hadiah"
    TOPUP = "Topup"
    LOAN = "Loan"
    TRANSFER = "Transfer"
    ADJUSTMENT = "Adjustment"
    OTHERS = "Others"


class WalletType(str, Enum):
    """Kinds of money pools."""
    CASH = "CASH"
    BANK = "BANK"
    EWALLET = "EWALLET"
    INVESTMENT = "INVESTMENT"


class DebtType(str, Enum):
    """Direction of a debt position."""
    DEBT = "DEBT"              # we owe someone
    RECEIVABLE = "RECEIVABLE"  # someone owes us

    @property
    def origin_type(self) -> TransactionType:
        """Transaction type of the loan-creation entry."""
        return TransactionType(self.value)

    @property
    def repayment_type(self) -> TransactionType:
        """Transaction type of a repayment entry."""
        if self is DebtType.DEBT:
            return TransactionType.EXPENSE
        return TransactionType.INCOME


class DebtStatus(str, Enum):
    """Lifecycle state derived from remaining vs initial amount."""
    OPEN = "open"        # nothing repaid yet
    PARTIAL = "partial"  # some repaid
    CLOSED = "closed"    # fully repaid, terminal


def _normalize_category(value: Any) -> Any:
    """Map known labels (or member names) onto the enum, keep free text."""
    if isinstance(value, TransactionCategory):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Category must be text, got {type(value).__name__}")
    text = value.strip()
    if not text:
        raise ValueError("Category cannot be empty")
    lowered = text.lower()
    for category in TransactionCategory:
        if lowered in (category.value.lower(), category.name.lower()):
            return category
    return text


def category_label(category: Union[TransactionCategory, str]) -> str:
    """Stored label of a category, enum or free text."""
    if isinstance(category, TransactionCategory):
        return category.value
    return category


# =============================================================================
# WALLET
# =============================================================================

class Wallet(BaseModel):
    """
    A named pool of money with a running balance.

    CRITICAL: balance must always equal opening_balance plus the signed sum
    of every transaction that references this wallet. Only the balance
    engine (and reconciliation) may change it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique wallet ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    type: WalletType = Field(
        default=WalletType.CASH,
        description="Wallet kind"
    )
    balance: Decimal = Field(
        ...,
        decimal_places=2,
        description="Current signed balance"
    )
    opening_balance: Decimal = Field(
        ...,
        decimal_places=2,
        description="Balance at creation (immutable)"
    )

    # Presentation details
    code: Optional[str] = Field(
        default=None,
        max_length=20,
        description="Short code, e.g. BCA or GOPAY"
    )
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    provider: Optional[str] = Field(default=None, max_length=100)
    detail: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Free-form detail, e.g. 'Main Savings - **** 9012'"
    )

    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='before')
    @classmethod
    def default_opening_balance(cls, data: Any) -> Any:
        """Records written before opening balances were tracked start from their balance."""
        if isinstance(data, dict) and data.get("opening_balance") is None and "balance" in data:
            data = {**data, "opening_balance": data["balance"]}
        return data

    @field_validator('balance', 'opening_balance', mode='before')
    @classmethod
    def reject_float_money(cls, v: Any) -> Any:
        return _reject_float(v)

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger entry against exactly one wallet.

    Transactions are never edited. Correcting one means delete + recreate.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    wallet_id: UUID = Field(
        ...,
        description="Wallet this entry posts to"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Positive magnitude"
    )
    type: TransactionType
    category: Union[TransactionCategory, str] = Field(
        default=TransactionCategory.OTHERS,
        union_mode="left_to_right",
        description="Known category or free text"
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the money moved (display grouping and ordering)"
    )
    description: str = Field(
        default="",
        max_length=500,
    )

    # Links to the operation that composed this entry
    transfer_id: Optional[UUID] = Field(
        default=None,
        description="Shared by both legs of a transfer"
    )
    debt_id: Optional[UUID] = Field(
        default=None,
        description="Debt this loan-creation or repayment entry belongs to"
    )
    counterpart_wallet_id: Optional[UUID] = Field(
        default=None,
        description="Wallet holding the other leg of a transfer"
    )

    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_transfer_link(self) -> 'Transaction':
        if self.counterpart_wallet_id is not None and self.transfer_id is None:
            raise ValueError("counterpart_wallet_id is only set on transfer legs")
        if self.counterpart_wallet_id == self.wallet_id:
            raise ValueError("A transfer leg cannot point at its own wallet")
        return self

    @field_validator('amount', mode='before')
    @classmethod
    def reject_float_amount(cls, v: Any) -> Any:
        return _reject_float(v)

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        return _normalize_category(v)

    @field_validator('date', 'created_at')
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def category_label(self) -> str:
        return category_label(self.category)

    @property
    def is_loan_origin(self) -> bool:
        """True for the entry that created a debt or receivable."""
        return self.type in (TransactionType.DEBT, TransactionType.RECEIVABLE)

    @property
    def is_repayment(self) -> bool:
        return self.debt_id is not None and not self.is_loan_origin

    def counterpart_leg(self, description: str) -> 'Transaction':
        """
        The other leg of this transfer: same amount, date and category on
        the counterpart wallet, with the opposite direction.
        """
        if self.transfer_id is None or self.counterpart_wallet_id is None:
            raise ValueError("Only a linked transfer leg has a counterpart")
        if self.type == TransactionType.EXPENSE:
            mirrored = TransactionType.INCOME
        else:
            mirrored = TransactionType.EXPENSE
        return Transaction(
            wallet_id=self.counterpart_wallet_id,
            amount=self.amount,
            type=mirrored,
            category=self.category,
            date=self.date,
            description=description,
            transfer_id=self.transfer_id,
            counterpart_wallet_id=self.wallet_id,
            created_at=self.created_at,
        )


# =============================================================================
# DEBT / RECEIVABLE
# =============================================================================

class Debt(BaseModel):
    """
    A payable (hutang) or receivable (piutang) position.

    Invariants:
    - 0 <= amount <= initial_amount
    - is_paid if and only if amount == 0
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Who or what the debt is with"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Remaining amount"
    )
    initial_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Original principal (immutable)"
    )
    due_date: Optional[date] = None
    type: DebtType
    is_paid: bool = False
    wallet_id: UUID = Field(
        ...,
        description="Settlement wallet"
    )

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('amount', 'initial_amount', mode='before')
    @classmethod
    def reject_float_money(cls, v: Any) -> Any:
        return _reject_float(v)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode='after')
    def validate_amounts(self) -> 'Debt':
        """Validate remaining amount against principal and paid flag."""
        if self.amount > self.initial_amount:
            raise ValueError("Remaining amount cannot exceed initial amount")
        if self.is_paid != (self.amount == 0):
            raise ValueError("is_paid must be set exactly when nothing remains")
        return self

    @property
    def status(self) -> DebtStatus:
        if self.amount == 0:
            return DebtStatus.CLOSED
        if self.amount == self.initial_amount:
            return DebtStatus.OPEN
        return DebtStatus.PARTIAL

    @property
    def repaid_amount(self) -> Decimal:
        return self.initial_amount - self.amount


# =============================================================================
# BUDGET
# =============================================================================

class Budget(BaseModel):
    """Monthly spending limit for one category. No history, no enforcement."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    category: Union[TransactionCategory, str] = Field(
        ...,
        union_mode="left_to_right",
    )
    monthly_limit: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
    )

    @field_validator('monthly_limit', mode='before')
    @classmethod
    def reject_float_limit(cls, v: Any) -> Any:
        return _reject_float(v)

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        return _normalize_category(v)

    @property
    def category_label(self) -> str:
        return category_label(self.category)
