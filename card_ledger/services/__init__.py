"""Services package."""

from card_ledger.services.cache import ReadCache
from card_ledger.services.storage import (
    ConnectionError,
    DataAccessError,
    DataStoreInterface,
    Embed,
    GoogleSheetsClient,
    GoogleSheetsDataStore,
    InMemoryDataStore,
    QueryFilter,
    StorageError,
    TableQuery,
)

__all__ = [
    # Cache
    "ReadCache",
    # Storage services
    "ConnectionError",
    "DataAccessError",
    "DataStoreInterface",
    "Embed",
    "GoogleSheetsClient",
    "GoogleSheetsDataStore",
    "InMemoryDataStore",
    "QueryFilter",
    "StorageError",
    "TableQuery",
]
