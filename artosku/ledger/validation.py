"""
Input Validation for Ledger Operations

Every engine validates its input here before touching the book.

IMPORTANT: Validation NEVER silently fixes issues. A value with more than two
decimal places is rejected, not rounded; a float is rejected, not converted.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from artosku.ledger.errors import InvalidAmountError, LedgerValidationError
from artosku.models.ledger import to_money


CENT = Decimal("0.01")

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_money(value: Any, field: str = "amount") -> Decimal:
    """
    Convert user input to a two-place Decimal.

    Raises:
        InvalidAmountError: float input, non-numeric text, NaN/infinity,
            or more than two decimal places
    """
    try:
        money = to_money(value)
        if not money.is_finite():
            raise InvalidAmountError(f"Invalid {field}: {value!r}")
        quantized = money.quantize(CENT)
    except (TypeError, InvalidOperation) as e:
        raise InvalidAmountError(f"Invalid {field}: {value!r} ({e})")

    if money != quantized:
        raise InvalidAmountError(
            f"Invalid {field}: {value!r} has more than two decimal places"
        )
    return quantized


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """Like parse_money, but the result must also be strictly positive."""
    money = parse_money(value, field)
    if money <= 0:
        raise InvalidAmountError(f"{field.capitalize()} must be positive, got {money}")
    return money


def build(model: type[ModelT], **data: Any) -> ModelT:
    """
    Construct a model, translating pydantic failures into ledger errors.

    Callers see LedgerValidationError regardless of which field was bad.
    """
    try:
        return model(**data)
    except ValidationError as e:
        issues = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise LedgerValidationError(f"Invalid {model.__name__}: {issues}") from e
