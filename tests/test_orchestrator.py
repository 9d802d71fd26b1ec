"""Tests for the credit card service."""

from datetime import date
from decimal import Decimal

import pytest

from card_ledger.credit import LocalProjectionBackend, ProjectionValidationError
from card_ledger.orchestrator import CreditCardService, create_default_service
from card_ledger.services.cache import ReadCache
from card_ledger.services.storage import InMemoryDataStore, TableQuery

from conftest import FlakyDataStore, run, sample_tables


class CountingDataStore(InMemoryDataStore):
    """In-memory store counting reads per table."""

    def __init__(self, tables=None, procedures=None):
        super().__init__(tables, procedures)
        self.reads: dict[str, int] = {}

    async def query(self, request: TableQuery) -> list[dict]:
        self.reads[request.table] = self.reads.get(request.table, 0) + 1
        return await super().query(request)


@pytest.fixture
def counting_store() -> CountingDataStore:
    return CountingDataStore(sample_tables())


class TestCreditCardService:
    """Tests for CreditCardService."""

    def test_purchase_statuses_are_cached(self, counting_store):
        """Test that a second read is served from the cache."""
        service = CreditCardService(counting_store, cache=ReadCache())

        first = run(service.purchase_statuses())
        second = run(service.purchase_statuses())

        assert [s.id for s in first] == ["p2", "p1", "p3"]
        assert second == first
        assert counting_store.reads["credit_card_purchases"] == 1

    def test_per_card_statuses_are_separate_entries(self, counting_store):
        """Test that card filters do not share cache entries."""
        service = CreditCardService(counting_store, cache=ReadCache())

        assert [s.id for s in run(service.purchase_statuses("c2"))] == ["p3"]
        assert len(run(service.purchase_statuses())) == 3

    def test_bills_are_cached(self, counting_store):
        """Test that complete aggregations are cached."""
        service = CreditCardService(counting_store, cache=ReadCache())

        aggregation = run(service.bills_for_card("c1"))
        run(service.bills_for_card("c1"))

        assert len(aggregation.bills) == 5
        assert counting_store.reads["credit_card_bills"] == 1

    def test_partial_aggregation_is_not_cached(self):
        """Test that skipped bills are retried on the next read."""
        store = FlakyDataStore(sample_tables(), failing_months={"2025-07-01"})
        service = CreditCardService(store, cache=ReadCache())

        first = run(service.bills_for_card("c1"))
        assert first.is_partial is True

        store.failing_months = set()
        second = run(service.bills_for_card("c1"))
        assert second.is_partial is False
        assert len(second.bills) == 5

    def test_bill_details(self, counting_store):
        """Test bill lines through the service."""
        service = CreditCardService(counting_store, cache=ReadCache())
        details = run(service.bill_details("c1", "2025-08-01"))
        run(service.bill_details("c1", "2025-08-01"))

        assert sum(d.amount for d in details) == Decimal("133.33")
        assert counting_store.reads["credit_card_installments"] == 1

    def test_projections_with_local_backend(self, counting_store):
        """Test projections computed from the ledger."""
        service = CreditCardService(
            counting_store,
            projection_backend=LocalProjectionBackend(counting_store, today=date(2025, 8, 2)),
            cache=ReadCache(),
        )
        projections = run(service.projections("c1", 2))

        assert [(p.month, p.projected_used) for p in projections] == [
            (date(2025, 8, 1), Decimal("133.33")),
            (date(2025, 9, 1), Decimal("33.34")),
        ]

    def test_projections_with_remote_backend(self):
        """Test that the default backend calls the store procedure."""
        received = []

        def procedure(params):
            received.append(params)
            return [{"month": "2025-08", "projected_used": "10.00", "projected_available": "90.00"}]

        store = InMemoryDataStore(
            sample_tables(),
            procedures={"calculate_credit_limit_projection": procedure},
        )
        service = CreditCardService(store, cache=ReadCache())

        projections = run(service.projections("c1"))

        assert received == [{"p_credit_card_id": "c1", "p_months_ahead": 12}]
        assert projections[0].month == date(2025, 8, 1)

    def test_rejected_projection_is_not_cached(self, counting_store):
        """Test that validation errors propagate through the service."""
        cache = ReadCache()
        service = CreditCardService(counting_store, cache=cache)
        with pytest.raises(ProjectionValidationError):
            run(service.projections("c1", -1))
        assert len(cache) == 0

    def test_balances(self, counting_store):
        """Test balances through the service."""
        service = CreditCardService(counting_store, cache=ReadCache())
        balances = run(service.balances())
        assert [(b.card_id, b.available_limit) for b in balances] == [("c1", Decimal("4800.00"))]

    def test_invalidate_one_card(self, counting_store):
        """Test that a card's mutation drops its entries and the cross-card views."""
        cache = ReadCache()
        service = CreditCardService(counting_store, cache=cache)
        run(service.purchase_statuses())
        run(service.purchase_statuses("c1"))
        run(service.purchase_statuses("c2"))
        run(service.bills_for_card("c1"))
        run(service.balances())

        assert run(service.invalidate_after_mutation("c1")) == 4
        assert len(cache) == 1

        run(service.purchase_statuses("c1"))
        assert counting_store.reads["credit_card_purchases"] == 4

    def test_invalidate_everything(self, counting_store):
        """Test that a mutation without a card clears the cache."""
        cache = ReadCache()
        service = CreditCardService(counting_store, cache=cache)
        run(service.purchase_statuses("c2"))
        run(service.balances())

        assert run(service.invalidate_after_mutation()) == 2
        assert len(cache) == 0


class TestCreateDefaultService:
    """Tests for create_default_service."""

    def test_uses_given_store(self, counting_store):
        """Test building the service around an explicit store."""
        service = create_default_service(counting_store)
        assert isinstance(service, CreditCardService)
        assert len(run(service.purchase_statuses())) == 3
