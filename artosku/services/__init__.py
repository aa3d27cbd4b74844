"""Services package."""

from artosku.services.identity import (
    IdentityProviderInterface,
    StaticIdentityProvider,
)
from artosku.services.storage import (
    ConcurrentModificationError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    PartialCommitError,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Identity
    "IdentityProviderInterface",
    "StaticIdentityProvider",
    # Storage services
    "LedgerStorageInterface",
    "InMemoryLedgerStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "ConcurrentModificationError",
    "PartialCommitError",
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
]
