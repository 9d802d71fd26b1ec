"""Credit card ledger components."""

from card_ledger.credit.balances import CardBalanceReader
from card_ledger.credit.bills import BILLS_TABLE, BillAggregator, split_by_due_date
from card_ledger.credit.ledger import (
    CARDS_TABLE,
    INSTALLMENTS_TABLE,
    PURCHASES_TABLE,
    PurchaseLedgerReader,
    purchase_ledger_query,
)
from card_ledger.credit.projection import (
    LimitProjector,
    LocalProjectionBackend,
    ProjectionBackend,
    ProjectionValidationError,
    RemoteProjectionBackend,
    project_limit,
)
from card_ledger.credit.status import (
    build_purchase_statuses,
    card_display_name,
    remaining_amount,
    to_purchase_status,
)

__all__ = [
    # Tables
    "BILLS_TABLE",
    "CARDS_TABLE",
    "INSTALLMENTS_TABLE",
    "PURCHASES_TABLE",
    # Ledger reader
    "PurchaseLedgerReader",
    "purchase_ledger_query",
    # Purchase status
    "build_purchase_statuses",
    "card_display_name",
    "remaining_amount",
    "to_purchase_status",
    # Bills
    "BillAggregator",
    "split_by_due_date",
    # Projection
    "LimitProjector",
    "LocalProjectionBackend",
    "ProjectionBackend",
    "ProjectionValidationError",
    "RemoteProjectionBackend",
    "project_limit",
    # Balances
    "CardBalanceReader",
]
