"""
Card Balances

Current limit usage of every active card: the unpaid installments
charged to the card are committed, the rest of the limit is available.
Deactivated cards and their installments are left out entirely.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from card_ledger.audit import AuditLogger
from card_ledger.credit.ledger import CARDS_TABLE, INSTALLMENTS_TABLE
from card_ledger.models.credit_card import CreditCard, CreditCardBalance
from card_ledger.services.storage import (
    DataAccessError,
    DataStoreInterface,
    Embed,
    TableQuery,
)


class CardBalanceReader:
    """Computes committed and available limit per active card."""

    def __init__(
        self,
        store: DataStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def fetch_balances(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> list[CreditCardBalance]:
        """
        Balances of all active cards, ordered by card name.

        Available limit may be negative when a card is over its limit.

        Raises:
            DataAccessError: If cards or installments could not be read
        """
        try:
            cards = await self._active_cards()
            committed = await self._unpaid_by_card()
        except DataAccessError as e:
            if self._audit_logger:
                await self._audit_logger.log_data_access_failed(
                    operation="fetch_balances",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        balances = []
        for card in sorted(cards, key=lambda c: c.name.lower()):
            total_committed = committed.get(card.id, Decimal("0.00"))
            balances.append(CreditCardBalance(
                card_id=card.id,
                card_name=card.name,
                credit_limit=card.credit_limit,
                total_committed=total_committed,
                available_limit=card.credit_limit - total_committed,
                is_active=card.is_active,
            ))

        if self._audit_logger:
            await self._audit_logger.log_balances_computed(
                card_count=len(balances),
                total_committed=str(sum(committed.values(), Decimal("0.00"))),
                correlation_id=correlation_id,
            )

        return balances

    async def _active_cards(self) -> list[CreditCard]:
        rows = await self._store.query(
            TableQuery(table=CARDS_TABLE).where("is_active", True)
        )
        try:
            return [CreditCard.model_validate(row) for row in rows]
        except ValidationError as e:
            raise DataAccessError(f"Malformed credit card row: {e}", cause=e) from e

    async def _unpaid_by_card(self) -> dict[str, Decimal]:
        rows = await self._store.query(
            TableQuery(
                table=INSTALLMENTS_TABLE,
                columns=["credit_card_id", "amount"],
                embeds=[
                    Embed(
                        name="card",
                        table=CARDS_TABLE,
                        local_key="credit_card_id",
                        foreign_key="id",
                        columns=["is_active"],
                        inner=True,
                    ),
                ],
            ).where("is_paid", False).where("card.is_active", True)
        )

        committed: dict[str, Decimal] = {}
        for row in rows:
            card_id = str(row["credit_card_id"])
            try:
                amount = Decimal(str(row["amount"]))
            except ArithmeticError as e:
                raise DataAccessError(f"Malformed installment amount: {row['amount']!r}", cause=e) from e
            committed[card_id] = committed.get(card_id, Decimal("0.00")) + amount
        return committed
