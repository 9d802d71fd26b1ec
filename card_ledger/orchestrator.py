"""
Main Orchestrator for the Credit Card Ledger

This module ties together the ledger components and the layers
around them:
1. Purchase status (ledger reader -> status transformer)
2. Bills (bill aggregator)
3. Limit projections (projector -> backend)
4. Card balances

DESIGN DECISION: The components themselves never cache.
The orchestrator owns the read cache and is the only place that
invalidates it, after the application reports a mutation.

Every request gets a correlation ID so its audit events can be traced.
"""

from typing import Optional, Union
from uuid import UUID

from card_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from card_ledger.config import get_settings
from card_ledger.credit import (
    BillAggregator,
    CardBalanceReader,
    LimitProjector,
    LocalProjectionBackend,
    ProjectionBackend,
    PurchaseLedgerReader,
    RemoteProjectionBackend,
    build_purchase_statuses,
)
from card_ledger.models.credit_card import (
    BillAggregation,
    BillInstallmentDetail,
    BillMonth,
    CreditCardBalance,
    LimitProjection,
    PurchaseStatus,
)
from card_ledger.services.cache import ReadCache
from card_ledger.services.storage import DataStoreInterface, GoogleSheetsDataStore


class CreditCardService:
    """
    Entry point for everything the application reads about credit cards.

    Results are cached per request key; call `invalidate_after_mutation`
    after creating or editing purchases, paying bills or changing cards.
    """

    def __init__(
        self,
        store: DataStoreInterface,
        projection_backend: Optional[ProjectionBackend] = None,
        cache: Optional[ReadCache] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        settings = get_settings().ledger

        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        # an empty ReadCache is falsy
        self._cache = cache if cache is not None else ReadCache(ttl_seconds=settings.cache_ttl_seconds)
        self._excluded_suffix = settings.excluded_card_suffix
        self._fallback_name = settings.fallback_card_name

        self._ledger = PurchaseLedgerReader(store, self._audit_logger)
        self._aggregator = BillAggregator(
            store,
            self._audit_logger,
            max_concurrency=settings.max_concurrent_fetches,
        )
        self._balances = CardBalanceReader(store, self._audit_logger)
        self._projector = LimitProjector(
            projection_backend or RemoteProjectionBackend(store, settings.projection_procedure),
            default_horizon=settings.default_projection_horizon,
            audit_logger=self._audit_logger,
        )

    async def purchase_statuses(
        self,
        credit_card_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[PurchaseStatus]:
        """Payment status of every purchase, or of one card's purchases."""
        correlation_id = correlation_id or create_correlation_id()

        async def load() -> list[PurchaseStatus]:
            purchases = await self._ledger.fetch_purchases(credit_card_id, correlation_id)
            statuses = build_purchase_statuses(
                purchases, self._excluded_suffix, self._fallback_name
            )
            await self._audit_logger.log_purchase_status_computed(
                credit_card_id=credit_card_id,
                count=len(statuses),
                settled=sum(1 for s in statuses if s.is_settled),
                correlation_id=correlation_id,
            )
            return statuses

        return await self._cache.get_or_load(("purchase-status", credit_card_id), load)

    async def bills_for_card(
        self,
        credit_card_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BillAggregation:
        """
        Bills of one card with recomputed totals.

        Partial aggregations (some bills skipped) are not cached, so the
        next read retries the skipped bills.
        """
        correlation_id = correlation_id or create_correlation_id()
        key = ("bills", credit_card_id)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        aggregation = await self._aggregator.aggregate(credit_card_id, correlation_id)
        if not aggregation.is_partial:
            self._cache.set(key, aggregation)
        return aggregation

    async def bill_details(
        self,
        credit_card_id: str,
        bill_month: Union[str, BillMonth],
        correlation_id: Optional[UUID] = None,
    ) -> list[BillInstallmentDetail]:
        """Installment lines of one bill."""
        correlation_id = correlation_id or create_correlation_id()
        month_key = str(bill_month)

        return await self._cache.get_or_load(
            ("bill-details", credit_card_id, month_key),
            lambda: self._aggregator.fetch_bill_details(
                credit_card_id, bill_month, correlation_id
            ),
        )

    async def projections(
        self,
        credit_card_id: str,
        horizon: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[LimitProjection]:
        """Projected limit usage of one card for the coming months."""
        correlation_id = correlation_id or create_correlation_id()

        return await self._cache.get_or_load(
            ("projections", credit_card_id, horizon),
            lambda: self._projector.project(credit_card_id, horizon, correlation_id),
        )

    async def balances(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> list[CreditCardBalance]:
        """Current committed and available limit of every active card."""
        correlation_id = correlation_id or create_correlation_id()

        return await self._cache.get_or_load(
            ("balances",),
            lambda: self._balances.fetch_balances(correlation_id),
        )

    async def invalidate_after_mutation(
        self,
        credit_card_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Drop cached results affected by a write.

        With a card, only that card's results (and the cross-card
        views) are dropped; without one, everything is.
        Returns the number of entries removed.
        """
        if credit_card_id is None:
            prefixes = []
            removed = self._cache.invalidate()
        else:
            prefixes = [
                ("purchase-status", credit_card_id),
                ("purchase-status", None),
                ("bills", credit_card_id),
                ("bill-details", credit_card_id),
                ("projections", credit_card_id),
                ("balances",),
            ]
            removed = self._cache.invalidate(*prefixes)

        await self._audit_logger.log_cache_invalidated(
            prefixes=["/".join(str(part) for part in prefix) for prefix in prefixes],
            removed=removed,
            correlation_id=correlation_id,
        )
        return removed


def create_default_service(store: Optional[DataStoreInterface] = None) -> CreditCardService:
    """
    Build a CreditCardService from settings.

    Without a store, the Google Sheets store is used. Google Sheets has no
    server-side procedures, so projections are then computed locally.
    """
    settings = get_settings().ledger
    configure_logging(settings.log_level)

    projection_backend: Optional[ProjectionBackend] = None
    if store is None:
        store = GoogleSheetsDataStore()
        projection_backend = LocalProjectionBackend(
            store,
            aggregator=BillAggregator(store, max_concurrency=settings.max_concurrent_fetches),
        )

    return CreditCardService(store, projection_backend=projection_backend)
