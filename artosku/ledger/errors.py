"""
Ledger Exceptions

Every failure the ledger core raises is a LedgerError. Errors are raised
where they are detected and are never turned into silent corrections.
"""

from typing import Optional
from uuid import UUID


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


# =============================================================================
# VALIDATION - raised before anything is mutated
# =============================================================================

class LedgerValidationError(LedgerError):
    """Input rejected before any state changed."""
    pass


class InvalidAmountError(LedgerValidationError):
    """Amount is zero, negative or not a usable money value."""
    pass


class SameWalletError(LedgerValidationError):
    """A transfer names the same wallet on both sides."""
    pass


# =============================================================================
# LOOKUPS
# =============================================================================

class NotFoundError(LedgerError):
    """A referenced ledger entity does not exist."""

    entity = "Entity"

    def __init__(self, entity_id: Optional[UUID] = None, message: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity} not found: {entity_id}")


class WalletNotFoundError(NotFoundError):
    entity = "Wallet"


class DebtNotFoundError(NotFoundError):
    entity = "Debt"


class TransactionNotFoundError(NotFoundError):
    entity = "Transaction"


# =============================================================================
# STATE
# =============================================================================

class AlreadySettledError(LedgerError):
    """Repayment attempted on a debt that is already fully paid."""

    def __init__(self, debt_id: UUID):
        self.debt_id = debt_id
        super().__init__(f"Debt already settled: {debt_id}")


class InconsistentStateError(LedgerError):
    """
    The ledger does not satisfy its invariants, or cannot accept a mutation.

    Raised by LedgerBook.verify() and by the service while storage steps
    from an earlier partial commit are still pending.
    """

    def __init__(self, message: str, problems: Optional[list[str]] = None):
        self.problems = problems or []
        super().__init__(message)


class PartialFailureError(LedgerError):
    """
    A multi-record operation reached storage only partly.

    The session ledger holds the intended state. `pending` lists the storage
    steps still missing; LedgerService.resume_pending() retries them.
    """

    def __init__(
        self,
        operation: str,
        applied: list,
        pending: list,
        cause: Optional[BaseException] = None,
    ):
        self.operation = operation
        self.applied = applied
        self.pending = pending
        self.cause = cause
        super().__init__(
            f"{operation} partially persisted: "
            f"{len(applied)} step(s) applied, {len(pending)} pending"
        )
