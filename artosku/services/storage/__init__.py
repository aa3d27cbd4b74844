"""
Storage Services Package

Provides the abstract ledger storage interface and its implementations:
in-memory (tests, local runs) and Google Sheets.
"""

from artosku.services.storage.interface import (
    ConcurrentModificationError,
    LedgerStorageInterface,
    PartialCommitError,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)
from artosku.services.storage.memory import InMemoryLedgerStorage
from artosku.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "LedgerStorageInterface",
    # Exceptions
    "ConcurrentModificationError",
    "PartialCommitError",
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "InMemoryLedgerStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
