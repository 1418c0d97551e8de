# Overview: Per-sale money arithmetic shared by cash, commission and reporting services.

from __future__ import annotations

from decimal import Decimal

from ..models.ledger import (
    PAYMENT_CARD,
    PAYMENT_CASH,
    PAYMENT_MIXED,
    PAYMENT_ONLINE,
    PAYMENT_TRANSFER,
)
from ..money import ZERO, from_cents


def effective_paid(sale) -> Decimal:
    """What the customer actually paid: real_paid when short of total, else total."""
    total = from_cents(sale.total_cents)
    if sale.real_paid_cents is not None and sale.real_paid_cents < (sale.total_cents or 0):
        return from_cents(sale.real_paid_cents)
    return total


def payment_ratio(sale) -> Decimal:
    """
    Share of the ticket actually collected.

    Applied uniformly to every line item's revenue and commission.
    """
    if sale.real_paid_cents is None or not sale.total_cents:
        return Decimal(1)
    if sale.real_paid_cents >= sale.total_cents:
        return Decimal(1)
    return Decimal(sale.real_paid_cents) / Decimal(sale.total_cents)


def cash_component(sale) -> Decimal:
    """Portion of a sale that went into the cash drawer."""
    if sale.payment_method == PAYMENT_CASH:
        return effective_paid(sale)
    if sale.payment_method == PAYMENT_MIXED:
        return from_cents(sale.mixed_cash_cents)
    return ZERO


def deposit_component(sale) -> Decimal:
    """Portion of a sale collected outside the drawer (card, transfer, online)."""
    if sale.payment_method in (PAYMENT_CARD, PAYMENT_TRANSFER, PAYMENT_ONLINE):
        return effective_paid(sale)
    if sale.payment_method == PAYMENT_MIXED:
        return from_cents(sale.mixed_card_cents) + from_cents(sale.mixed_online_cents)
    return ZERO


def item_gross(item) -> Decimal:
    """Line subtotal before discount; falls back to unit price x quantity."""
    if item.subtotal_cents is not None:
        return from_cents(item.subtotal_cents)
    return from_cents(item.unit_price_cents) * (item.quantity or 0)


def item_net(item) -> Decimal:
    """Line subtotal after discount, before the payment ratio."""
    return item_gross(item) - from_cents(item.discount_cents)


def item_revenue(item, ratio: Decimal) -> Decimal:
    return item_net(item) * ratio
