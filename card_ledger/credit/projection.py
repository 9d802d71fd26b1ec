"""
Credit Limit Projector

The projector answers "how much of this card's limit will be in use in
each of the next N months". It does no arithmetic itself: the numbers
come from a ProjectionBackend.

Backends:
- RemoteProjectionBackend: a named procedure on the data store
- LocalProjectionBackend: the same projection computed in Python from
  the card's limit and its aggregated bills (tests, and stores without
  procedures such as Google Sheets)

Inputs are validated before any backend is touched.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import ValidationError

from card_ledger.audit import AuditLogger
from card_ledger.credit.bills import BillAggregator
from card_ledger.credit.ledger import CARDS_TABLE
from card_ledger.models.credit_card import Bill, BillMonth, LimitProjection
from card_ledger.services.storage import DataAccessError, DataStoreInterface, TableQuery


DEFAULT_HORIZON = 12
DEFAULT_PROCEDURE = "calculate_credit_limit_projection"


class ProjectionValidationError(ValueError):
    """Projection request rejected before reaching a backend."""
    pass


class ProjectionBackend(ABC):
    """Anything that can project a card's limit usage."""

    @abstractmethod
    async def project(self, credit_card_id: str, horizon: int) -> list[LimitProjection]:
        """
        Project limit usage for `horizon` months starting this month.

        Returns:
            One record per month, month ascending (may be empty)

        Raises:
            DataAccessError: If the projection could not be computed
        """
        pass


def _parse_projection_rows(rows: list[dict]) -> list[LimitProjection]:
    try:
        return [LimitProjection.model_validate(row) for row in rows]
    except ValidationError as e:
        raise DataAccessError(f"Malformed projection row: {e}", cause=e) from e


class RemoteProjectionBackend(ProjectionBackend):
    """Delegates the projection to a store procedure."""

    def __init__(self, store: DataStoreInterface, procedure: str = DEFAULT_PROCEDURE):
        self._store = store
        self._procedure = procedure

    async def project(self, credit_card_id: str, horizon: int) -> list[LimitProjection]:
        rows = await self._store.call(
            self._procedure,
            {"p_credit_card_id": credit_card_id, "p_months_ahead": horizon},
        )
        return _parse_projection_rows(rows)


def project_limit(
    credit_limit: Decimal,
    bills: Iterable[Bill],
    start: BillMonth,
    horizon: int,
) -> list[LimitProjection]:
    """
    Project limit usage from a card's bills.

    For each month from `start`, the limit in use is the total of the
    unpaid bills of that month; bills are assumed paid once their month
    has passed. Available limit never goes below zero.
    """
    unpaid_by_month: dict[BillMonth, Decimal] = {}
    for bill in bills:
        if bill.is_paid:
            continue
        unpaid_by_month[bill.bill_month] = (
            unpaid_by_month.get(bill.bill_month, Decimal("0.00")) + bill.total_amount
        )

    projections = []
    for offset in range(horizon):
        month = start.shift(offset)
        used = unpaid_by_month.get(month, Decimal("0.00"))
        projections.append(LimitProjection(
            month=month.first_day(),
            projected_used=used,
            projected_available=max(Decimal("0.00"), credit_limit - used),
        ))
    return projections


class LocalProjectionBackend(ProjectionBackend):
    """
    Computes the projection in Python.

    Reads the card's limit, aggregates its bills (recomputed totals)
    and applies `project_limit` from the current month. A partial
    aggregation raises DataAccessError: a skipped bill would otherwise
    show its month as unused limit.
    """

    def __init__(
        self,
        store: DataStoreInterface,
        aggregator: Optional[BillAggregator] = None,
        today: Optional[date] = None,
    ):
        self._store = store
        self._aggregator = aggregator or BillAggregator(store)
        self._today = today

    async def _credit_limit(self, credit_card_id: str) -> Decimal:
        rows = await self._store.query(
            TableQuery(table=CARDS_TABLE, columns=["credit_limit"]).where("id", credit_card_id)
        )
        if not rows:
            raise DataAccessError(f"Credit card not found: {credit_card_id}")
        try:
            return Decimal(str(rows[0]["credit_limit"]))
        except ArithmeticError as e:
            raise DataAccessError(f"Malformed credit limit for {credit_card_id}", cause=e) from e

    async def project(self, credit_card_id: str, horizon: int) -> list[LimitProjection]:
        credit_limit = await self._credit_limit(credit_card_id)
        aggregation = await self._aggregator.aggregate(credit_card_id)
        if aggregation.is_partial:
            skipped = "; ".join(
                f"{w.bill_month} ({w.bill_id}): {w.error}" for w in aggregation.warnings
            )
            raise DataAccessError(
                f"Cannot project {credit_card_id}: bills could not be aggregated: {skipped}"
            )
        start = BillMonth.of(self._today or date.today())
        return project_limit(credit_limit, aggregation.bills, start, horizon)


class LimitProjector:
    """
    Validates projection requests and passes them to a backend.

    Backend results are returned as produced; failures propagate.
    """

    def __init__(
        self,
        backend: ProjectionBackend,
        default_horizon: int = DEFAULT_HORIZON,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._default_horizon = default_horizon
        self._audit_logger = audit_logger

    def validate(self, credit_card_id: Any, horizon: Any = None) -> tuple[str, int]:
        """
        Check a request and resolve the default horizon.

        Raises:
            ProjectionValidationError: On an empty card or a bad horizon
        """
        if not isinstance(credit_card_id, str) or not credit_card_id.strip():
            raise ProjectionValidationError("Credit card reference must be a non-empty string")

        if horizon is None:
            horizon = self._default_horizon
        if isinstance(horizon, bool) or not isinstance(horizon, int):
            raise ProjectionValidationError(f"Horizon must be an integer, got {horizon!r}")
        if horizon < 0:
            raise ProjectionValidationError(f"Horizon must not be negative, got {horizon}")

        return credit_card_id, horizon

    async def project(
        self,
        credit_card_id: str,
        horizon: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[LimitProjection]:
        """
        Project a card's limit usage.

        Raises:
            ProjectionValidationError: Before any backend call, on bad input
            DataAccessError: If the backend failed
        """
        try:
            credit_card_id, horizon = self.validate(credit_card_id, horizon)
        except ProjectionValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_projection_rejected(
                    credit_card_id=credit_card_id if isinstance(credit_card_id, str) else None,
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            raise

        try:
            projections = await self._backend.project(credit_card_id, horizon)
        except DataAccessError as e:
            if self._audit_logger:
                await self._audit_logger.log_data_access_failed(
                    operation="project_limit",
                    error_message=str(e),
                    credit_card_id=credit_card_id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_projection_computed(
                credit_card_id=credit_card_id,
                horizon=horizon,
                month_count=len(projections),
                correlation_id=correlation_id,
            )

        return projections
