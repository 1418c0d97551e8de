# Overview: Commission attribution of payouts and pending commission liabilities.

"""
Commission Attribution

WHY: Commission payouts are recorded as plain expenses. To report what each
professional was paid (service commission, product commission, tip) the
engine classifies those expenses and splits each one into buckets.

DESIGN PRINCIPLES:
- Per-record only: the buckets of an expense depend on its own fields.
- Typed breakdown columns win. The comment parser is a legacy adapter and
  its failure is not an error; the full amount falls to the service bucket.
- Rule priority for earning commissions: professional-specific rule for the
  catalog item, then the catalog item's default, then the professional's
  default.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from flask import current_app, has_app_context

from ..models.catalog import COMMISSION_FIXED, COMMISSION_PERCENT
from ..models.ledger import (
    CATEGORY_COMMISSION,
    ITEM_PRODUCT,
    ITEM_SERVICE,
    STATUS_DEPOSIT_PAID,
    STATUS_PARTIAL,
    STATUS_PENDING,
)
from ..money import ZERO, bps_fraction, from_cents, parse_amount, round_money, to_cents
from ..store import RecordKind
from .sale_amounts import item_gross, item_net, item_revenue, payment_ratio

logger = logging.getLogger(__name__)


# Sales at least this far short of their total are not fully paid
FULLY_PAID_TOLERANCE_CENTS = 100

UNSETTLED_STATUSES = (STATUS_DEPOSIT_PAID, STATUS_PARTIAL, STATUS_PENDING)

_AMOUNT = r"(-?\$?\s*-?[\d,]*\.?\d+)"
_SERVICE_RE = re.compile(r"service\s+commission\s*:?\s*" + _AMOUNT, re.IGNORECASE)
_PRODUCT_RE = re.compile(r"product\s+commission\s*:?\s*" + _AMOUNT, re.IGNORECASE)
_TIP_RE = re.compile(r"\btips?\s*:?\s*" + _AMOUNT, re.IGNORECASE)


class CommissionError(Exception):
    """Raised for commission rule or attribution errors."""
    pass


@dataclass
class CommissionBreakdown:
    service_commission: Decimal = field(default=ZERO)
    product_commission: Decimal = field(default=ZERO)
    tip: Decimal = field(default=ZERO)

    @property
    def total(self) -> Decimal:
        return self.service_commission + self.product_commission + self.tip

    def add(self, other: "CommissionBreakdown") -> None:
        self.service_commission += other.service_commission
        self.product_commission += other.product_commission
        self.tip += other.tip

    def rounded(self) -> "CommissionBreakdown":
        return CommissionBreakdown(
            service_commission=round_money(self.service_commission),
            product_commission=round_money(self.product_commission),
            tip=round_money(self.tip),
        )

    def to_dict(self) -> dict:
        return {
            "service_commission_cents": to_cents(self.service_commission),
            "product_commission_cents": to_cents(self.product_commission),
            "tip_cents": to_cents(self.tip),
            "total_cents": to_cents(self.total),
        }


def parse_commission_comment(comment: Optional[str]) -> Optional[CommissionBreakdown]:
    """
    Legacy import adapter for "Service Commission: $70.00, Product
    Commission: $26.85, Tip: $0.00".

    Each segment is optional. Returns None when no segment parses.
    """
    if not comment:
        return None

    found = False
    values = {}
    for key, pattern in (("service_commission", _SERVICE_RE), ("product_commission", _PRODUCT_RE), ("tip", _TIP_RE)):
        match = pattern.search(comment)
        amount = parse_amount(match.group(1).replace("$", "").replace(" ", "")) if match else None
        if amount is not None:
            found = True
        values[key] = amount if amount is not None else ZERO

    if not found:
        return None
    return CommissionBreakdown(**values)


def is_commission_expense(expense) -> bool:
    return expense.category == CATEGORY_COMMISSION


def resolve_recipient_name(recipient: Optional[str], professionals_by_id: dict) -> str:
    """Professional display name when recipient is a professional id, else the raw recipient."""
    if recipient is None:
        return ""
    professional = professionals_by_id.get(str(recipient).strip())
    if professional is not None:
        return professional.name
    return recipient


def expense_breakdown(expense) -> CommissionBreakdown:
    """Bucket split of one commission expense."""
    if expense.has_breakdown:
        return CommissionBreakdown(
            service_commission=from_cents(expense.service_commission_cents),
            product_commission=from_cents(expense.product_commission_cents),
            tip=from_cents(expense.tip_cents),
        )
    parsed = parse_commission_comment(expense.comment)
    if parsed is not None:
        return parsed
    return CommissionBreakdown(service_commission=from_cents(expense.amount_cents))


def summarize(expenses: Iterable, professionals: Iterable) -> dict[str, CommissionBreakdown]:
    """
    Commission paid per recipient name across the given expenses.

    Non-commission expenses are ignored; recipients whose total is exactly
    zero are omitted.
    """
    by_id = {str(p.id): p for p in professionals}
    summary: dict[str, CommissionBreakdown] = {}

    for expense in expenses:
        if not is_commission_expense(expense):
            continue
        name = resolve_recipient_name(expense.recipient, by_id)
        summary.setdefault(name, CommissionBreakdown()).add(expense_breakdown(expense))

    return {name: b.rounded() for name, b in summary.items() if b.total != ZERO}


@dataclass(frozen=True)
class CommissionRule:
    commission_type: str
    value: int  # bps for PERCENT, cents for FIXED
    source: str

    def apply(self, base: Decimal) -> Decimal:
        if self.commission_type == COMMISSION_PERCENT:
            return base * bps_fraction(self.value)
        if self.commission_type == COMMISSION_FIXED:
            return from_cents(self.value)
        raise CommissionError(f"Unknown commission type: {self.commission_type}")


def _rule(commission_type, value, source) -> Optional[CommissionRule]:
    if not commission_type or value is None:
        return None
    return CommissionRule(commission_type=commission_type, value=value, source=source)


class CommissionRules:
    """Catalog snapshot used to resolve the commission rule of a sale item."""

    def __init__(self, professionals, services, products, professional_rules):
        self.professionals = {p.id: p for p in professionals}
        self.services = {s.id: s for s in services}
        self.products = {p.id: p for p in products}
        self.specific = {
            (r.professional_id, r.item_kind, r.catalog_id): r for r in professional_rules
        }

    @classmethod
    def from_store(cls, store) -> "CommissionRules":
        return cls(store.professionals(), store.services(), store.products(), store.professional_rules())

    def catalog_entry(self, item):
        if item.kind == ITEM_SERVICE:
            return self.services.get(item.catalog_id)
        if item.kind == ITEM_PRODUCT:
            return self.products.get(item.catalog_id)
        return None

    def resolve(self, item) -> Optional[CommissionRule]:
        professional = self.professionals.get(item.professional_id)
        if professional is None:
            return None

        specific = self.specific.get((professional.id, item.kind, item.catalog_id))
        if specific is not None:
            return _rule(specific.commission_type, specific.commission_value, "professional_item")

        entry = self.catalog_entry(item)
        if entry is not None:
            rule = _rule(entry.commission_type, entry.commission_value, "catalog_default")
            if rule is not None:
                return rule

        return _rule(
            professional.default_commission_type,
            professional.default_commission_value,
            "professional_default",
        )

    def item_commission(self, item, base: Decimal) -> Decimal:
        rule = self.resolve(item)
        if rule is None:
            return ZERO
        return rule.apply(base)


def discounts_affect_commissions() -> bool:
    if has_app_context():
        return bool(current_app.config.get("DISCOUNTS_AFFECT_COMMISSIONS", True))
    return True


def earned_commission(rules: CommissionRules, item, use_net: bool) -> Optional[tuple[Decimal, Decimal]]:
    """
    (sale amount, commission) earned by a fully paid item, or None when the
    item has no catalog entry or no applicable rule.
    """
    if rules.catalog_entry(item) is None:
        return None
    rule = rules.resolve(item)
    if rule is None:
        return None
    sale_amount = item_net(item)
    base = sale_amount if use_net else item_gross(item)
    return sale_amount, rule.apply(base)


def is_fully_paid(sale) -> bool:
    if sale.payment_status in UNSETTLED_STATUSES:
        return False
    if sale.real_paid_cents is not None and (sale.total_cents - sale.real_paid_cents) > FULLY_PAID_TOLERANCE_CENTS:
        return False
    return True


def tip_recipient(sale) -> Optional[int]:
    """Professional with the highest gross item revenue on the sale; first seen wins ties."""
    revenue: dict[int, Decimal] = {}
    for item in sale.items:
        if item.professional_id is None:
            continue
        revenue[item.professional_id] = revenue.get(item.professional_id, ZERO) + item_gross(item)

    top, best = None, None
    for professional_id, amount in revenue.items():
        if best is None or amount > best:
            top, best = professional_id, amount
    return top


@dataclass
class PendingLine:
    sale_id: int
    item_index: Optional[int]
    kind: str  # SERVICE, PRODUCT, TIP
    sale_amount: Decimal
    commission: Decimal

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "item_index": self.item_index,
            "kind": self.kind,
            "sale_amount_cents": to_cents(self.sale_amount),
            "commission_cents": to_cents(self.commission),
        }


@dataclass
class PendingCommission:
    professional_id: int
    professional_name: str
    lines: list[PendingLine] = field(default_factory=list)

    @property
    def total_sales(self) -> Decimal:
        return sum((l.sale_amount for l in self.lines if l.kind != "TIP"), ZERO)

    @property
    def total_commission(self) -> Decimal:
        return sum((l.commission for l in self.lines if l.kind != "TIP"), ZERO)

    @property
    def total_tips(self) -> Decimal:
        return sum((l.commission for l in self.lines if l.kind == "TIP"), ZERO)

    def to_dict(self) -> dict:
        return {
            "professional_id": self.professional_id,
            "professional_name": self.professional_name,
            "total_sales_cents": to_cents(self.total_sales),
            "total_commission_cents": to_cents(self.total_commission),
            "total_tips_cents": to_cents(self.total_tips),
            "total_payout_cents": to_cents(self.total_commission + self.total_tips),
            "lines": [l.to_dict() for l in self.lines],
        }


def pending_commissions(
    store,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    location_id: Optional[int] = None,
    professional_id: Optional[int] = None,
) -> list[PendingCommission]:
    """
    Unpaid commission and tip liabilities per professional.

    Only fully paid sales earn commission. Items already settled
    (commission_paid) and tips already settled (tip_paid) are excluded.
    """
    rules = CommissionRules.from_store(store)
    use_net = discounts_affect_commissions()
    pending: dict[int, PendingCommission] = {}

    def _bucket(pid):
        if pid not in pending:
            pending[pid] = PendingCommission(pid, rules.professionals[pid].name)
        return pending[pid]

    for sale in store.query(RecordKind.SALE, location_id, date_from=date_from, date_to=date_to):
        if not is_fully_paid(sale):
            continue

        for item in sale.items:
            if item.commission_paid or item.professional_id not in rules.professionals:
                continue
            if professional_id is not None and item.professional_id != professional_id:
                continue
            earned = earned_commission(rules, item, use_net)
            if earned is None:
                continue
            sale_amount, commission = earned
            _bucket(item.professional_id).lines.append(
                PendingLine(sale.id, item.item_index, item.kind, sale_amount, commission)
            )

        if sale.tip_cents and not sale.tip_paid:
            pid = tip_recipient(sale)
            if pid not in rules.professionals:
                continue
            if professional_id is not None and pid != professional_id:
                continue
            tip = from_cents(sale.tip_cents)
            _bucket(pid).lines.append(PendingLine(sale.id, None, "TIP", tip, tip))

    result = sorted(pending.values(), key=lambda p: p.professional_name)
    logger.debug("Pending commissions computed for %s professionals", len(result))
    return result


def product_commission_for_sale(rules: CommissionRules, sale) -> Decimal:
    """Professional commission on a sale's product items, on post-ratio revenue."""
    ratio = payment_ratio(sale)
    total = ZERO
    for item in sale.items:
        if item.kind != ITEM_PRODUCT or item.professional_id is None:
            continue
        if rules.products.get(item.catalog_id) is None:
            continue
        total += rules.item_commission(item, item_revenue(item, ratio))
    return total
