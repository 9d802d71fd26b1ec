"""
Audit Logger

DESIGN DECISION: Every read the ledger serves is logged.
This provides:
1. Traceability of which card was read and what came back
2. Debugging capability when the store fails
3. Visibility of bills skipped during aggregation

The audit logger:
- Is async so callers await it in the same flow as their reads
- Only writes to the structured local log (the ledger is read-only)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from card_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from card_ledger.models.credit_card import PartialAggregationWarning


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and so structlog) to stdout at `level`."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Every method builds one AuditEvent and writes it to the
    structured log at the event's severity.
    """

    def __init__(self, logger_name: str = "card_ledger.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event at its severity."""
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log_purchases_fetched(
        self,
        credit_card_id: Optional[str],
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.purchases_fetched(
            credit_card_id=credit_card_id,
            count=count,
            correlation_id=correlation_id,
        ))

    async def log_purchase_status_computed(
        self,
        credit_card_id: Optional[str],
        count: int,
        settled: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.purchase_status_computed(
            credit_card_id=credit_card_id,
            count=count,
            settled=settled,
            correlation_id=correlation_id,
        ))

    async def log_bills_aggregated(
        self,
        credit_card_id: str,
        bill_count: int,
        skipped_count: int,
        total_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bills_aggregated(
            credit_card_id=credit_card_id,
            bill_count=bill_count,
            skipped_count=skipped_count,
            total_amount=total_amount,
            correlation_id=correlation_id,
        ))

    async def log_bill_skipped(
        self,
        warning: PartialAggregationWarning,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log one bill dropped from an aggregation."""
        await self.log(AuditEventBuilder.bill_skipped(
            credit_card_id=warning.credit_card_id,
            bill_id=warning.bill_id,
            bill_month=warning.bill_month,
            error=warning.error,
            correlation_id=correlation_id,
        ))

    async def log_bill_details_fetched(
        self,
        credit_card_id: str,
        bill_month: str,
        line_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bill_details_fetched(
            credit_card_id=credit_card_id,
            bill_month=bill_month,
            line_count=line_count,
            correlation_id=correlation_id,
        ))

    async def log_projection_computed(
        self,
        credit_card_id: str,
        horizon: int,
        month_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.projection_computed(
            credit_card_id=credit_card_id,
            horizon=horizon,
            month_count=month_count,
            correlation_id=correlation_id,
        ))

    async def log_projection_rejected(
        self,
        credit_card_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.projection_rejected(
            credit_card_id=credit_card_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_balances_computed(
        self,
        card_count: int,
        total_committed: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balances_computed(
            card_count=card_count,
            total_committed=total_committed,
            correlation_id=correlation_id,
        ))

    async def log_cache_invalidated(
        self,
        prefixes: list[str],
        removed: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.cache_invalidated(
            prefixes=prefixes,
            removed=removed,
            correlation_id=correlation_id,
        ))

    async def log_data_access_failed(
        self,
        operation: str,
        error_message: str,
        credit_card_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a store failure that is about to be raised to the caller."""
        await self.log(AuditEventBuilder.data_access_failed(
            operation=operation,
            error_message=error_message,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request (e.g., opening a card's bills).
    Pass it through all subsequent operations.
    """
    return uuid4()
