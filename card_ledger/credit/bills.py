"""
Bill Aggregator

CRITICAL: A bill's stored total is never trusted.
Purchases get edited and deleted after their bills were created, so the
stored total can be stale. Every read recomputes each bill's total as
the sum of the installment rows for (card, bill month).

Aggregation rules:
- Only bills of active cards are listed, newest bill month first
- A bill with no installment rows is kept only if it was paid
  (a "ghost" bill that is unpaid is dropped silently)
- If one bill's installments cannot be fetched, that bill is skipped
  and reported as a warning; the other bills are still returned
- If the bill list itself cannot be fetched, the whole call fails
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from card_ledger.audit import AuditLogger
from card_ledger.credit.ledger import CARDS_TABLE, INSTALLMENTS_TABLE, PURCHASES_TABLE
from card_ledger.models.credit_card import (
    Bill,
    BillAggregation,
    BillInstallmentDetail,
    BillMonth,
    PartialAggregationWarning,
)
from card_ledger.services.storage import (
    DataAccessError,
    DataStoreInterface,
    Embed,
    TableQuery,
    as_bool,
)


BILLS_TABLE = "credit_card_bills"

logger = structlog.get_logger(__name__)


def _bill_month_key(value: Any) -> str:
    """Render a stored bill month for messages, whatever its shape."""
    try:
        return BillMonth.parse(value).isoformat()
    except ValueError:
        return str(value)


class BillAggregator:
    """
    Lists a card's bills with totals recomputed from installments.

    Installment fetches run concurrently, at most `max_concurrency`
    at a time. One failed fetch never cancels the others.
    """

    def __init__(
        self,
        store: DataStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_concurrency: int = 8,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._store = store
        self._audit_logger = audit_logger
        self._max_concurrency = max_concurrency

    async def aggregate(
        self,
        credit_card_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BillAggregation:
        """
        Aggregate the bills of one card.

        Returns:
            Retained bills (bill month descending) and one warning per
            bill whose installments could not be read

        Raises:
            DataAccessError: If the bill list could not be read
        """
        if not credit_card_id:
            return BillAggregation(credit_card_id="")

        raw_bills = await self._list_bills(credit_card_id, correlation_id)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def recompute(row: dict) -> Optional[Bill]:
            async with semaphore:
                return await self._recompute_bill(row)

        outcomes = await asyncio.gather(
            *(recompute(row) for row in raw_bills),
            return_exceptions=True,
        )

        bills: list[Bill] = []
        warnings: list[PartialAggregationWarning] = []
        for row, outcome in zip(raw_bills, outcomes):
            if isinstance(outcome, (DataAccessError, ValueError, ArithmeticError, LookupError)):
                warning = PartialAggregationWarning(
                    bill_id=str(row.get("id", "")),
                    credit_card_id=credit_card_id,
                    bill_month=_bill_month_key(row.get("bill_month")),
                    error=str(outcome),
                )
                warnings.append(warning)
                logger.warning(
                    "bill_skipped",
                    bill_id=warning.bill_id,
                    bill_month=warning.bill_month,
                    error=warning.error,
                )
                if self._audit_logger:
                    await self._audit_logger.log_bill_skipped(warning, correlation_id)
            elif isinstance(outcome, BaseException):
                raise outcome
            elif outcome is not None:
                bills.append(outcome)

        aggregation = BillAggregation(
            credit_card_id=credit_card_id,
            bills=bills,
            warnings=warnings,
        )

        if self._audit_logger:
            await self._audit_logger.log_bills_aggregated(
                credit_card_id=credit_card_id,
                bill_count=len(bills),
                skipped_count=len(warnings),
                total_amount=str(aggregation.total_amount),
                correlation_id=correlation_id,
            )

        return aggregation

    async def _list_bills(
        self,
        credit_card_id: str,
        correlation_id: Optional[UUID],
    ) -> list[dict]:
        query = TableQuery(
            table=BILLS_TABLE,
            embeds=[
                Embed(
                    name="card",
                    table=CARDS_TABLE,
                    local_key="credit_card_id",
                    foreign_key="id",
                    columns=["name", "is_active"],
                    inner=True,
                ),
            ],
            order_by="bill_month",
            descending=True,
        ).where("credit_card_id", credit_card_id).where("card.is_active", True)

        try:
            return await self._store.query(query)
        except DataAccessError as e:
            if self._audit_logger:
                await self._audit_logger.log_data_access_failed(
                    operation="list_bills",
                    error_message=str(e),
                    credit_card_id=credit_card_id,
                    correlation_id=correlation_id,
                )
            raise

    async def _recompute_bill(self, row: dict) -> Optional[Bill]:
        """
        Replace a bill's stored total with the sum of its installments.

        Returns None for an unpaid bill without installments.
        """
        query = TableQuery(
            table=INSTALLMENTS_TABLE,
            columns=["amount"],
        ).where("credit_card_id", row.get("credit_card_id")).where(
            "bill_month", row.get("bill_month")
        )

        installments = await self._store.query(query)

        if not installments and not as_bool(row.get("is_paid")):
            logger.debug(
                "ghost_bill_dropped",
                bill_id=row.get("id"),
                bill_month=_bill_month_key(row.get("bill_month")),
            )
            return None

        total = sum(
            (Decimal(str(inst["amount"])) for inst in installments),
            Decimal("0.00"),
        )
        return Bill.model_validate({**row, "total_amount": total})

    async def fetch_bill_details(
        self,
        credit_card_id: str,
        bill_month: Union[str, BillMonth],
        correlation_id: Optional[UUID] = None,
    ) -> list[BillInstallmentDetail]:
        """
        List the installments charged on one bill, with their purchases.

        `bill_month` is matched against stored values as given; pass the
        stored representation when the store uses full dates.

        Raises:
            DataAccessError: If the installments could not be read
        """
        if not credit_card_id or not bill_month:
            return []

        month_value = bill_month.isoformat() if isinstance(bill_month, BillMonth) else bill_month
        query = TableQuery(
            table=INSTALLMENTS_TABLE,
            columns=["id", "installment_number", "amount"],
            embeds=[
                Embed(
                    name="purchase",
                    table=PURCHASES_TABLE,
                    local_key="purchase_id",
                    foreign_key="id",
                    columns=["description", "purchase_date", "installments", "category"],
                    inner=True,
                ),
            ],
            order_by="installment_number",
        ).where("credit_card_id", credit_card_id).where("bill_month", month_value)

        try:
            rows = await self._store.query(query)
            details = [
                BillInstallmentDetail(
                    id=str(row["id"]),
                    description=row["purchase"]["description"],
                    purchase_date=row["purchase"]["purchase_date"],
                    installment_number=row["installment_number"],
                    total_installments=row["purchase"]["installments"],
                    amount=row["amount"],
                    category=row["purchase"].get("category"),
                )
                for row in rows
            ]
        except DataAccessError as e:
            await self._report_details_failure(str(e), credit_card_id, correlation_id)
            raise
        except (ValidationError, KeyError) as e:
            await self._report_details_failure(str(e), credit_card_id, correlation_id)
            raise DataAccessError(f"Malformed installment row: {e}", cause=e) from e

        if self._audit_logger:
            await self._audit_logger.log_bill_details_fetched(
                credit_card_id=credit_card_id,
                bill_month=_bill_month_key(month_value),
                line_count=len(details),
                correlation_id=correlation_id,
            )

        return details

    async def _report_details_failure(
        self,
        error: str,
        credit_card_id: str,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_data_access_failed(
                operation="fetch_bill_details",
                error_message=error,
                credit_card_id=credit_card_id,
                correlation_id=correlation_id,
            )


def split_by_due_date(
    bills: list[Bill],
    today: Optional[date] = None,
) -> tuple[list[Bill], list[Bill]]:
    """
    Split unpaid bills into (upcoming, overdue).

    Upcoming bills are due today or later; overdue bills were due
    before today. Paid bills and bills without a due date are in neither.
    """
    today = today or date.today()
    upcoming = [b for b in bills if not b.is_paid and b.due_date and b.due_date >= today]
    overdue = [b for b in bills if not b.is_paid and b.due_date and b.due_date < today]
    return upcoming, overdue
