"""
Purchase Ledger Reader

Reads credit card purchases together with:
- the owning card's name and active flag
- the paid flag of each of the purchase's installments

GUARANTEES:
- Most recent purchases first
- A failed read raises DataAccessError; it never looks like "no purchases"
"""

from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from card_ledger.audit import AuditLogger
from card_ledger.models.credit_card import Purchase
from card_ledger.services.storage import (
    DataAccessError,
    DataStoreInterface,
    Embed,
    TableQuery,
)


PURCHASES_TABLE = "credit_card_purchases"
CARDS_TABLE = "credit_cards"
INSTALLMENTS_TABLE = "credit_card_installments"

PURCHASE_COLUMNS = [
    "id",
    "credit_card_id",
    "description",
    "amount",
    "installments",
    "purchase_date",
    "category",
]


def purchase_ledger_query(credit_card_id: Optional[str] = None) -> TableQuery:
    """Build the purchase read, optionally restricted to one card."""
    query = TableQuery(
        table=PURCHASES_TABLE,
        columns=PURCHASE_COLUMNS,
        embeds=[
            Embed(
                name="card",
                table=CARDS_TABLE,
                local_key="credit_card_id",
                foreign_key="id",
                columns=["name", "is_active"],
            ),
            Embed(
                name="installment_flags",
                table=INSTALLMENTS_TABLE,
                local_key="id",
                foreign_key="purchase_id",
                columns=["is_paid"],
                many=True,
            ),
        ],
        order_by="purchase_date",
        descending=True,
    )
    if credit_card_id:
        query = query.where("credit_card_id", credit_card_id)
    return query


class PurchaseLedgerReader:
    """
    Fetches purchases with their card and installment flags.

    Purchases of deactivated cards are returned too; marking them
    is the status transformer's job.
    """

    def __init__(
        self,
        store: DataStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def fetch_purchases(
        self,
        credit_card_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Purchase]:
        """
        Fetch every purchase, or only those of one card.

        Raises:
            DataAccessError: If the query fails or returns malformed rows
        """
        try:
            rows = await self._store.query(purchase_ledger_query(credit_card_id))
            purchases = [Purchase.model_validate(row) for row in rows]
        except DataAccessError as e:
            await self._report_failure(str(e), credit_card_id, correlation_id)
            raise
        except ValidationError as e:
            await self._report_failure(str(e), credit_card_id, correlation_id)
            raise DataAccessError(f"Malformed purchase row: {e}", cause=e) from e

        if self._audit_logger:
            await self._audit_logger.log_purchases_fetched(
                credit_card_id=credit_card_id,
                count=len(purchases),
                correlation_id=correlation_id,
            )

        return purchases

    async def _report_failure(
        self,
        error: str,
        credit_card_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_data_access_failed(
                operation="fetch_purchases",
                error_message=error,
                credit_card_id=credit_card_id,
                correlation_id=correlation_id,
            )
