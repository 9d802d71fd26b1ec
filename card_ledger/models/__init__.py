"""
Data Models Package

This package contains all Pydantic models used by the credit card ledger.
All rows read from the data store are parsed into these schemas.
"""

from card_ledger.models.credit_card import (
    CENT,
    MAX_INSTALLMENTS,
    Bill,
    BillAggregation,
    BillInstallmentDetail,
    BillMonth,
    CardSummary,
    CreditCard,
    CreditCardBalance,
    Installment,
    InstallmentFlag,
    LimitProjection,
    PartialAggregationWarning,
    Purchase,
    PurchaseStatus,
    installments_consistent,
    split_amount,
    to_money,
)
from card_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Credit card models
    "CENT",
    "MAX_INSTALLMENTS",
    "Bill",
    "BillAggregation",
    "BillInstallmentDetail",
    "BillMonth",
    "CardSummary",
    "CreditCard",
    "CreditCardBalance",
    "Installment",
    "InstallmentFlag",
    "LimitProjection",
    "PartialAggregationWarning",
    "Purchase",
    "PurchaseStatus",
    "installments_consistent",
    "split_amount",
    "to_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
