"""
In-Memory Data Store

Tables are lists of dicts held in process memory. Used by the tests
and for local runs without a configured backend.

The query evaluation here is shared with the Google Sheets store:
both load plain rows and filter, embed and sort them in Python.
"""

import asyncio
import copy
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Optional, Union

from card_ledger.services.storage.interface import (
    DataAccessError,
    DataStoreInterface,
    Embed,
    QueryFilter,
    TableQuery,
)


ProcedureResult = Union[list[dict], Awaitable[list[dict]]]
Procedure = Callable[[dict[str, Any]], ProcedureResult]

_TRUE_STRINGS = {"true", "t", "yes", "1"}
_FALSE_STRINGS = {"false", "f", "no", "0", ""}


def as_bool(value: Any) -> Optional[bool]:
    """Read a boolean cell ("TRUE", "false", 1, ...); None if it is not one."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    return None


def _as_number(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def _equal(left: Any, right: Any) -> bool:
    """
    Compare a cell with a filter value, tolerating stringly-typed cells.

    Strings are compared exactly ("007" is not "7"); only two non-string
    numbers compare by value.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return as_bool(left) is not None and as_bool(left) == as_bool(right)
    if left == right:
        return True
    if left is None or right is None:
        return False
    if not isinstance(left, str) and not isinstance(right, str):
        left_num, right_num = _as_number(left), _as_number(right)
        if left_num is not None and right_num is not None:
            return left_num == right_num
    return str(left) == str(right)


def _compare(left: Any, right: Any) -> int:
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        a, b = left_num, right_num
    else:
        a, b = str(left), str(right)
    return (a > b) - (a < b)


def _resolve(row: dict, column: str) -> list[Any]:
    """Values a (possibly dotted) column takes in a row."""
    if "." not in column:
        return [row.get(column)]

    head, rest = column.split(".", 1)
    embedded = row.get(head)
    if embedded is None:
        return []
    if isinstance(embedded, list):
        values = []
        for item in embedded:
            values.extend(_resolve(item, rest))
        return values
    return _resolve(embedded, rest)


def _matches(row: dict, flt: QueryFilter) -> bool:
    for cell in _resolve(row, flt.column):
        if flt.op == "eq" and _equal(cell, flt.value):
            return True
        if flt.op == "neq" and not _equal(cell, flt.value):
            return True
        if flt.op == "in" and any(_equal(cell, v) for v in (flt.value or [])):
            return True
        if flt.op == "gte" and cell is not None and _compare(cell, flt.value) >= 0:
            return True
        if flt.op == "lte" and cell is not None and _compare(cell, flt.value) <= 0:
            return True
    return False


def _select(row: dict, columns: Optional[list[str]]) -> dict:
    if columns is None:
        return dict(row)
    return {column: row.get(column) for column in columns}


def _embed(row: dict, embed: Embed, tables: dict[str, list[dict]]) -> Optional[dict]:
    """Attach related rows to a row. Returns None if an inner embed has no match."""
    if embed.table not in tables:
        raise DataAccessError(f"Unknown table: {embed.table}")

    key = row.get(embed.local_key)
    related = [
        _select(other, embed.columns)
        for other in tables[embed.table]
        if key is not None and _equal(other.get(embed.foreign_key), key)
    ]

    if embed.inner and not related:
        return None

    result = dict(row)
    if embed.many:
        result[embed.name] = related
    else:
        result[embed.name] = related[0] if related else None
    return result


def _sort(rows: list[dict], column: str, descending: bool) -> list[dict]:
    """Sort rows by a column; rows missing the column always go last."""
    present = [row for row in rows if row.get(column) not in (None, "")]
    missing = [row for row in rows if row.get(column) in (None, "")]

    numeric = all(_as_number(row[column]) is not None for row in present)
    if numeric:
        present.sort(key=lambda r: _as_number(r[column]), reverse=descending)
    else:
        present.sort(key=lambda r: str(r[column]), reverse=descending)
    return present + missing


def evaluate_query(tables: dict[str, list[dict]], request: TableQuery) -> list[dict]:
    """
    Run a TableQuery over in-memory tables.

    Embeds are attached first so filters may address embedded fields,
    then rows are filtered, sorted and projected to the requested columns.
    """
    if request.table not in tables:
        raise DataAccessError(f"Unknown table: {request.table}")

    rows = []
    for row in tables[request.table]:
        current: Optional[dict] = dict(row)
        for embed in request.embeds:
            current = _embed(current, embed, tables)
            if current is None:
                break
        if current is None:
            continue
        if all(_matches(current, flt) for flt in request.filters):
            rows.append(current)

    if request.order_by:
        rows = _sort(rows, request.order_by, request.descending)

    if request.columns is not None:
        keep = list(request.columns) + [embed.name for embed in request.embeds]
        rows = [{key: row.get(key) for key in keep} for row in rows]

    return rows


class InMemoryDataStore(DataStoreInterface):
    """
    Data store backed by dicts.

    Procedures are plain (sync or async) callables registered by name.
    """

    def __init__(
        self,
        tables: Optional[dict[str, list[dict]]] = None,
        procedures: Optional[dict[str, Procedure]] = None,
    ):
        self._tables: dict[str, list[dict]] = copy.deepcopy(tables) if tables else {}
        self._procedures: dict[str, Procedure] = dict(procedures or {})

    def insert(self, table: str, *rows: dict) -> None:
        """Append rows to a table, creating it if needed."""
        self._tables.setdefault(table, []).extend(dict(row) for row in rows)

    def register_procedure(self, name: str, procedure: Procedure) -> None:
        self._procedures[name] = procedure

    async def query(self, request: TableQuery) -> list[dict]:
        return copy.deepcopy(evaluate_query(self._tables, request))

    async def call(self, procedure: str, params: dict[str, Any]) -> list[dict]:
        if procedure not in self._procedures:
            raise DataAccessError(f"Unknown procedure: {procedure}")

        try:
            result = self._procedures[procedure](dict(params))
            if asyncio.iscoroutine(result):
                result = await result
        except DataAccessError:
            raise
        except Exception as e:
            raise DataAccessError(f"Procedure {procedure} failed: {e}", cause=e) from e

        return [dict(row) for row in (result or [])]
