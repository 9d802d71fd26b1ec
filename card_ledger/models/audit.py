"""
Audit Models for the Credit Card Ledger

Every read the ledger performs is described by an audit event.
This provides:
1. Traceability of what was read for which card
2. Debugging information when a store read fails
3. A record of bills skipped during aggregation

DESIGN DECISION: The ledger is read-only, so audit events are only
emitted to the structured log. Nothing is written back to the store.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger reads
    PURCHASES_FETCHED = "purchases_fetched"
    PURCHASE_STATUS_COMPUTED = "purchase_status_computed"

    # Bill aggregation
    BILLS_AGGREGATED = "bills_aggregated"
    BILL_SKIPPED = "bill_skipped"
    BILL_DETAILS_FETCHED = "bill_details_fetched"

    # Limits
    PROJECTION_COMPUTED = "projection_computed"
    PROJECTION_REJECTED = "projection_rejected"
    BALANCES_COMPUTED = "balances_computed"

    # Cache
    CACHE_INVALIDATED = "cache_invalidated"

    # System events
    DATA_ACCESS_FAILED = "data_access_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Events raised while serving one request share a correlation ID.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context
    credit_card_id: Optional[str] = Field(
        default=None,
        description="Card the event relates to, if any"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events raised by one request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "credit_card_id": self.credit_card_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.purchases_fetched(card_id, 12, correlation_id)
        event = AuditEventBuilder.bill_skipped(warning, correlation_id)
    """

    @staticmethod
    def purchases_fetched(
        credit_card_id: Optional[str],
        count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASES_FETCHED,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description=f"Fetched {count} purchases",
            details={"purchase_count": count},
        )

    @staticmethod
    def purchase_status_computed(
        credit_card_id: Optional[str],
        count: int,
        settled: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASE_STATUS_COMPUTED,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description=f"Computed status of {count} purchases ({settled} settled)",
            details={"purchase_count": count, "settled_count": settled},
        )

    @staticmethod
    def bills_aggregated(
        credit_card_id: str,
        bill_count: int,
        skipped_count: int,
        total_amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_AGGREGATED,
            severity=AuditSeverity.WARNING if skipped_count else AuditSeverity.INFO,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description=f"Aggregated {bill_count} bills, skipped {skipped_count}",
            details={
                "bill_count": bill_count,
                "skipped_count": skipped_count,
                "total_amount": total_amount,
            },
        )

    @staticmethod
    def bill_skipped(
        credit_card_id: str,
        bill_id: str,
        bill_month: str,
        error: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SKIPPED,
            severity=AuditSeverity.WARNING,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description=f"Bill {bill_month} skipped: installments unavailable",
            details={"bill_id": bill_id, "bill_month": bill_month},
            error_message=error,
        )

    @staticmethod
    def bill_details_fetched(
        credit_card_id: str,
        bill_month: str,
        line_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DETAILS_FETCHED,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description=f"Fetched {line_count} lines of bill {bill_month}",
            details={"bill_month": bill_month, "line_count": line_count},
        )

    @staticmethod
    def projection_computed(
        credit_card_id: str,
        horizon: int,
        month_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_COMPUTED,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description=f"Projected {month_count} months of limit usage",
            details={"horizon": horizon, "month_count": month_count},
        )

    @staticmethod
    def projection_rejected(
        credit_card_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_REJECTED,
            severity=AuditSeverity.WARNING,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description="Projection request rejected",
            error_message=reason,
        )

    @staticmethod
    def balances_computed(
        card_count: int,
        total_committed: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_COMPUTED,
            correlation_id=correlation_id,
            description=f"Computed balances of {card_count} active cards",
            details={"card_count": card_count, "total_committed": total_committed},
        )

    @staticmethod
    def cache_invalidated(
        prefixes: list[str],
        removed: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_INVALIDATED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f"Invalidated {removed} cached results",
            details={"prefixes": prefixes, "removed": removed},
        )

    @staticmethod
    def data_access_failed(
        operation: str,
        error_message: str,
        credit_card_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_ACCESS_FAILED,
            severity=AuditSeverity.ERROR,
            credit_card_id=credit_card_id,
            correlation_id=correlation_id,
            description=f"Data access failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
