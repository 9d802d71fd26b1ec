"""
Purchase Status Transformer

Maps a purchase and its installment flags to a PurchaseStatus:
how many installments are paid, how much is still owed, and which
card name to show.

Pure per-record functions: no I/O, no shared state.
"""

from decimal import Decimal
from typing import Iterable, Optional

from card_ledger.models.credit_card import (
    Purchase,
    PurchaseStatus,
    to_money,
)


DEFAULT_EXCLUDED_SUFFIX = " (Excluído)"
DEFAULT_FALLBACK_NAME = "Cartão"


def card_display_name(
    name: Optional[str],
    is_active: bool,
    excluded_suffix: str = DEFAULT_EXCLUDED_SUFFIX,
    fallback_name: str = DEFAULT_FALLBACK_NAME,
) -> str:
    """Card name, marked as excluded when the card was deactivated."""
    display = name or fallback_name
    if not is_active:
        return f"{display}{excluded_suffix}"
    return display


def remaining_amount(total: Decimal, installments: int, paid: int) -> Decimal:
    """
    Amount still owed on a purchase.

    Computed as the per-installment share times the unpaid installments,
    not as total minus the paid rows' amounts. The two differ by up to a
    cent when the last installment absorbed a rounding remainder.
    """
    paid = min(max(paid, 0), installments)
    remaining = to_money(total / installments * (installments - paid))
    return min(max(remaining, Decimal("0.00")), to_money(total))


def to_purchase_status(
    purchase: Purchase,
    excluded_suffix: str = DEFAULT_EXCLUDED_SUFFIX,
    fallback_name: str = DEFAULT_FALLBACK_NAME,
) -> PurchaseStatus:
    """Build the status view of one purchase."""
    paid = purchase.paid_installments
    card_active = purchase.card.is_active if purchase.card else True
    card_name = purchase.card.name if purchase.card else None

    return PurchaseStatus(
        id=purchase.id,
        description=purchase.description,
        total_amount=purchase.amount,
        installments=purchase.installments,
        paid_installments=paid,
        remaining_amount=remaining_amount(purchase.amount, purchase.installments, paid),
        credit_card_name=card_display_name(
            card_name, card_active, excluded_suffix, fallback_name
        ),
        credit_card_active=card_active,
        purchase_date=purchase.purchase_date,
        category=purchase.category,
    )


def build_purchase_statuses(
    purchases: Iterable[Purchase],
    excluded_suffix: str = DEFAULT_EXCLUDED_SUFFIX,
    fallback_name: str = DEFAULT_FALLBACK_NAME,
) -> list[PurchaseStatus]:
    """Build status views, keeping the input order."""
    return [
        to_purchase_status(purchase, excluded_suffix, fallback_name)
        for purchase in purchases
    ]
