"""
Abstract Data Store Interface

DESIGN DECISION: The ledger talks to its data store through an abstract
interface with exactly two operations:
1. query - filtered, sorted row retrieval with embedded related rows
2. call - invocation of a named server-side computation

This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing
3. Add caching layers above the ledger without touching it

The interface is intentionally simple - we're not building a full ORM.
Requests are plain pydantic objects so every backend can interpret them.
"""

from abc import ABC, abstractmethod
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


FilterOp = Literal["eq", "neq", "in", "gte", "lte"]


class QueryFilter(BaseModel):
    """
    A single column predicate.

    Dotted columns ("credit_cards.is_active") address a field of an
    embedded single-row relation.
    """

    column: str = Field(..., min_length=1)
    op: FilterOp = "eq"
    value: Any = None


class Embed(BaseModel):
    """
    A related table embedded into each result row.

    For each row, related rows are those whose `foreign_key` equals the
    row's `local_key`. With `many=False` the first match is embedded as a
    dict (or None); with `many=True` all matches are embedded as a list.
    With `inner=True`, rows without a match are dropped.
    """

    name: str = Field(..., min_length=1, description="Key the embed is stored under")
    table: str = Field(..., min_length=1)
    local_key: str = Field(..., min_length=1)
    foreign_key: str = Field(default="id", min_length=1)
    columns: Optional[list[str]] = None
    many: bool = False
    inner: bool = False


class TableQuery(BaseModel):
    """A read request against one table."""

    table: str = Field(..., min_length=1)
    columns: Optional[list[str]] = Field(
        default=None,
        description="Columns to return (None returns every column)"
    )
    filters: list[QueryFilter] = Field(default_factory=list)
    embeds: list[Embed] = Field(default_factory=list)
    order_by: Optional[str] = None
    descending: bool = False

    def where(self, column: str, value: Any, op: FilterOp = "eq") -> "TableQuery":
        """Return a copy of this query with one more filter."""
        return self.model_copy(
            update={"filters": [*self.filters, QueryFilter(column=column, op=op, value=value)]}
        )


class DataStoreInterface(ABC):
    """
    Abstract interface for data store access.

    Any backend (Google Sheets, a hosted database, memory)
    must implement these methods.
    """

    @abstractmethod
    async def query(self, request: TableQuery) -> list[dict]:
        """
        Retrieve rows matching a query.

        Args:
            request: Table, filters, embeds and ordering

        Returns:
            Matching rows as dicts, embeds included

        Raises:
            DataAccessError: If the store could not answer
        """
        pass

    @abstractmethod
    async def call(self, procedure: str, params: dict[str, Any]) -> list[dict]:
        """
        Invoke a named server-side computation.

        Args:
            procedure: Procedure name
            params: Named parameters

        Returns:
            Rows produced by the procedure, in the order produced

        Raises:
            DataAccessError: If the invocation failed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DataAccessError(StorageError):
    """
    The store failed or returned an error payload.

    Never mapped to an empty result: callers must be able to tell
    "no data" from "could not determine".
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConnectionError(DataAccessError):
    """Could not connect to storage backend."""
    pass
