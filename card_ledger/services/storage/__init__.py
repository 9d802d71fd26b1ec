"""
Storage Services Package

Provides the abstract data store interface and its implementations.
Google Sheets is the configured backend; the in-memory store backs tests.
"""

from card_ledger.services.storage.interface import (
    ConnectionError,
    DataAccessError,
    DataStoreInterface,
    Embed,
    QueryFilter,
    StorageError,
    TableQuery,
)
from card_ledger.services.storage.memory import (
    InMemoryDataStore,
    as_bool,
    evaluate_query,
)
from card_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDataStore,
)

__all__ = [
    # Interface
    "DataStoreInterface",
    "Embed",
    "QueryFilter",
    "TableQuery",
    # Exceptions
    "ConnectionError",
    "DataAccessError",
    "StorageError",
    # In-memory implementation
    "InMemoryDataStore",
    "as_bool",
    "evaluate_query",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsDataStore",
]
