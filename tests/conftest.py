"""
Shared fixtures.

The sample ledger mirrors what the Google Sheets store hands back:
money as strings, bill months as the first day of the month.

Card c1 (active, limit 5000.00):
- p1 "Notebook" 300.00 in 3: 2025-06 paid, 2025-07 paid, 2025-08 unpaid
- p2 "Mercado" 100.00 in 3: 2025-07, 2025-08, 2025-09 unpaid
  (33.33, 33.33, 33.34)
- bills 2025-04 (unpaid, no installments), 2025-05 (paid, no installments),
  2025-06 (paid), 2025-07, 2025-08, 2025-09

Card c2 (deactivated, limit 2000.00):
- p3 "Livro" 50.00 in 1: 2025-05 unpaid
- bill 2025-05 unpaid
"""

import asyncio
from typing import Any

import pytest

from card_ledger.services.storage import DataAccessError, InMemoryDataStore, TableQuery


def run(coro: Any) -> Any:
    """Drive a coroutine to completion from a plain test."""
    return asyncio.run(coro)


def sample_tables() -> dict[str, list[dict]]:
    return {
        "credit_cards": [
            {
                "id": "c1", "name": "Nubank", "credit_limit": "5000.00",
                "closing_day": 3, "due_day": 10, "is_active": True,
            },
            {
                "id": "c2", "name": "Itaú", "credit_limit": "2000.00",
                "closing_day": 25, "due_day": 5, "is_active": False,
            },
        ],
        "credit_card_purchases": [
            {
                "id": "p1", "credit_card_id": "c1", "description": "Notebook",
                "amount": "300.00", "installments": 3,
                "purchase_date": "2025-05-10", "category": "Eletrônicos",
            },
            {
                "id": "p2", "credit_card_id": "c1", "description": "Mercado",
                "amount": "100.00", "installments": 3,
                "purchase_date": "2025-06-15", "category": "Alimentação",
            },
            {
                "id": "p3", "credit_card_id": "c2", "description": "Livro",
                "amount": "50.00", "installments": 1,
                "purchase_date": "2025-04-02", "category": None,
            },
        ],
        "credit_card_installments": [
            _installment("i1", "p1", "c1", 1, "100.00", "2025-06-01", True),
            _installment("i2", "p1", "c1", 2, "100.00", "2025-07-01", True),
            _installment("i3", "p1", "c1", 3, "100.00", "2025-08-01", False),
            _installment("i4", "p2", "c1", 1, "33.33", "2025-07-01", False),
            _installment("i5", "p2", "c1", 2, "33.33", "2025-08-01", False),
            _installment("i6", "p2", "c1", 3, "33.34", "2025-09-01", False),
            _installment("i7", "p3", "c2", 1, "50.00", "2025-05-01", False),
        ],
        "credit_card_bills": [
            _bill("b4", "c1", "2025-04-01", "120.00", False),
            _bill("b5", "c1", "2025-05-01", "80.00", True),
            _bill("b6", "c1", "2025-06-01", "999.00", True),
            _bill("b7", "c1", "2025-07-01", "0", False),
            _bill("b8", "c1", "2025-08-01", "100.00", False),
            _bill("b9", "c1", "2025-09-01", "33.34", False),
            _bill("b10", "c2", "2025-05-01", "50.00", False),
        ],
    }


def _installment(
    id: str,
    purchase_id: str,
    card_id: str,
    number: int,
    amount: str,
    bill_month: str,
    is_paid: bool,
) -> dict:
    return {
        "id": id,
        "purchase_id": purchase_id,
        "credit_card_id": card_id,
        "installment_number": number,
        "amount": amount,
        "bill_month": bill_month,
        "is_paid": is_paid,
    }


def _bill(id: str, card_id: str, bill_month: str, total: str, is_paid: bool) -> dict:
    year, month, _ = bill_month.split("-")
    return {
        "id": id,
        "credit_card_id": card_id,
        "bill_month": bill_month,
        "total_amount": total,
        "closing_date": f"{year}-{month}-03",
        "due_date": f"{year}-{month}-10",
        "is_paid": is_paid,
        "paid_date": f"{year}-{month}-09" if is_paid else "",
    }


class FlakyDataStore(InMemoryDataStore):
    """
    In-memory store whose installment reads fail for chosen bill months.

    Other reads wait one loop iteration first, so failing and
    succeeding fetches are in flight at the same time.
    """

    def __init__(self, tables: dict[str, list[dict]], failing_months: set[str]):
        super().__init__(tables)
        self.failing_months = failing_months
        self.queries: list[TableQuery] = []

    async def query(self, request: TableQuery) -> list[dict]:
        self.queries.append(request)
        if request.table == "credit_card_installments":
            months = {f.value for f in request.filters if f.column == "bill_month"}
            if months & self.failing_months:
                raise DataAccessError(f"installments unavailable for {sorted(months)}")
            await asyncio.sleep(0)
        return await super().query(request)


class BrokenDataStore(InMemoryDataStore):
    """In-memory store where every operation fails."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    async def query(self, request: TableQuery) -> list[dict]:
        self.calls += 1
        raise DataAccessError("database unavailable", cause=RuntimeError("timeout"))

    async def call(self, procedure: str, params: dict) -> list[dict]:
        self.calls += 1
        raise DataAccessError("database unavailable", cause=RuntimeError("timeout"))


@pytest.fixture
def tables() -> dict[str, list[dict]]:
    return sample_tables()


@pytest.fixture
def store(tables) -> InMemoryDataStore:
    return InMemoryDataStore(tables)
