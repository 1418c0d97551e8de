# Overview: Monthly profit and loss aggregation with field-level override merge.

"""
Monthly Finance Report

WHY: The monthly report is derived from sales and expenses every time it is
read. An operator can freeze any figure with a MonthlyOverride; the report
always shows the frozen value when one exists, next to the automatic one.

COMPUTATION ORDER (later steps consume earlier results):
1. Service revenue: service items, (subtotal - discount) x payment ratio.
2. Product revenue, reinvestment (purchase cost x quantity), professional
   product commission; product subtotal = revenue - reinvestment -
   professional commission.
3. Commission payouts in the period: service commissions (service + tip
   buckets) and product commissions.
4. Payroll and fixed costs by expense category.
5. Service expense = all commission payouts + payroll + fixed costs -
   professional product commission (already charged to products in 2).
6. Service subtotal = service revenue - service expense.
7. Local admin commissions: a percentage applies to the service subtotal
   (service side) or the product subtotal (product side), never to revenue.
   Net utilities subtract them.
8. Override merge, field by field. Automatic figures are always computed
   from automatic inputs; an overridden figure never feeds another step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from ..models.catalog import COMMISSION_FIXED, COMMISSION_PERCENT
from ..models.finance import (
    ADMIN_SIDE_PRODUCT,
    ADMIN_SIDE_SERVICE,
    ADMIN_SIDES,
    EXPENSE_CATEGORY_KEYS,
    OVERRIDE_FIELDS,
)
from ..models.ledger import (
    CATEGORY_COMMISSION,
    CATEGORY_FIXED_COST,
    CATEGORY_OTHER,
    CATEGORY_PAYROLL,
    ITEM_PRODUCT,
    ITEM_SERVICE,
)
from ..money import ZERO, bps_fraction, from_cents, round_money, to_cents
from ..store import RecordKind
from ..time_utils import month_bounds
from ..validation import ValidationError
from .cash_service import daily_income
from .commission_service import CommissionRules, product_commission_for_sale, summarize
from .sale_amounts import item_revenue, payment_ratio

logger = logging.getLogger(__name__)

# Expense category key (override JSON) per ExpenseCategory
CATEGORY_KEYS = {
    CATEGORY_COMMISSION: "commissions",
    CATEGORY_PAYROLL: "payroll",
    CATEGORY_FIXED_COST: "fixed_costs",
    CATEGORY_OTHER: "other",
}


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


@dataclass(frozen=True)
class ReportFigure:
    automatic: Decimal
    override: Optional[Decimal] = None

    @property
    def value(self) -> Decimal:
        return self.override if self.override is not None else self.automatic

    @property
    def is_overridden(self) -> bool:
        return self.override is not None

    def to_dict(self) -> dict:
        return {
            "automatic_cents": to_cents(self.automatic),
            "override_cents": to_cents(self.override) if self.override is not None else None,
            "value_cents": to_cents(self.value),
        }


@dataclass(frozen=True)
class AdminCommissionLine:
    admin_id: int
    name: str
    side: str
    commission_type: str
    commission_value: int
    source: str  # adjustment, base
    figure: ReportFigure

    def to_dict(self) -> dict:
        return {
            "admin_id": self.admin_id,
            "name": self.name,
            "side": self.side,
            "commission_type": self.commission_type,
            "commission_value": self.commission_value,
            "source": self.source,
            **self.figure.to_dict(),
        }


@dataclass
class MonthlyReport:
    year: int
    month: int
    location_id: Optional[int]
    figures: dict[str, ReportFigure]
    expense_categories: dict[str, ReportFigure]
    admin_commissions: list[AdminCommissionLine]
    commissions_by_recipient: dict = field(default_factory=dict)
    daily_income: list = field(default_factory=list)
    override_id: Optional[int] = None
    override_note: Optional[str] = None

    def value(self, name: str) -> Decimal:
        return self.figures[name].value

    def admin_total(self, side: str) -> Decimal:
        return sum((line.figure.value for line in self.admin_commissions if line.side == side), ZERO)

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "month": self.month,
            "location_id": self.location_id,
            "has_override": self.override_id is not None,
            "override_note": self.override_note,
            "figures": {name: fig.to_dict() for name, fig in self.figures.items()},
            "expense_categories": {name: fig.to_dict() for name, fig in self.expense_categories.items()},
            "admin_commissions": [line.to_dict() for line in self.admin_commissions],
            "commissions_by_recipient": {
                name: breakdown.to_dict() for name, breakdown in self.commissions_by_recipient.items()
            },
            "daily_income": [row.to_dict() for row in self.daily_income],
        }


def _validate_period(year, month) -> None:
    if not isinstance(year, int) or year < 1:
        raise ValidationError("year must be a positive integer")
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")


def _admin_config(admin, side: str, adjustments: dict):
    adjustment = adjustments.get((admin.id, side))
    if adjustment is not None:
        return adjustment.commission_type, adjustment.commission_value, "adjustment"
    if side == ADMIN_SIDE_SERVICE:
        return admin.service_commission_type, admin.service_commission_value, "base"
    return admin.product_commission_type, admin.product_commission_value, "base"


def _admin_amount(commission_type: str, value: int, base: Decimal) -> Decimal:
    if commission_type == COMMISSION_PERCENT:
        return base * bps_fraction(value)
    if commission_type == COMMISSION_FIXED:
        return from_cents(value)
    raise ReportError(f"Unknown admin commission type: {commission_type}")


def _override_amount(override, name: str) -> Optional[Decimal]:
    if override is None:
        return None
    cents = override.field_cents(name)
    return from_cents(cents) if cents is not None else None


def _json_override(mapping: Optional[dict], *keys) -> Optional[Decimal]:
    node = mapping or {}
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    if node is None:
        return None
    return from_cents(node)


def monthly_report(store, month: int, year: int, location_id: Optional[int] = None) -> MonthlyReport:
    """Automatic monthly figures merged with the period's override, if any."""
    _validate_period(year, month)
    date_from, date_to = month_bounds(year, month)

    sales = store.query(RecordKind.SALE, location_id, date_from=date_from, date_to=date_to)
    expenses = store.query(RecordKind.EXPENSE, location_id, date_from=date_from, date_to=date_to)
    rules = CommissionRules.from_store(store)

    # 1-2. revenue side
    service_revenue = ZERO
    product_revenue = ZERO
    reinvestment = ZERO
    professional_product_commission = ZERO
    for sale in sales:
        ratio = payment_ratio(sale)
        for item in sale.items:
            if item.kind == ITEM_SERVICE:
                service_revenue += item_revenue(item, ratio)
            elif item.kind == ITEM_PRODUCT:
                product_revenue += item_revenue(item, ratio)
                product = rules.products.get(item.catalog_id)
                if product is not None and product.purchase_cost_cents:
                    reinvestment += from_cents(product.purchase_cost_cents) * (item.quantity or 0)
        professional_product_commission += product_commission_for_sale(rules, sale)

    product_subtotal = product_revenue - reinvestment - professional_product_commission

    # 3. commission payouts
    by_recipient = summarize(expenses, rules.professionals.values())
    service_commissions = sum((b.service_commission + b.tip for b in by_recipient.values()), ZERO)
    product_commissions = sum((b.product_commission for b in by_recipient.values()), ZERO)

    # 4. other expense categories
    category_totals = {key: ZERO for key in EXPENSE_CATEGORY_KEYS}
    for expense in expenses:
        key = CATEGORY_KEYS.get(expense.category, "other")
        if key == "commissions":
            continue
        category_totals[key] += from_cents(expense.amount_cents)
    category_totals["commissions"] = service_commissions + product_commissions
    payroll = category_totals["payroll"]
    fixed_costs = category_totals["fixed_costs"]

    # 5-6. service side
    service_expense = (
        service_commissions + product_commissions + payroll + fixed_costs - professional_product_commission
    )
    service_subtotal = service_revenue - service_expense

    override = store.get_override(year, month, location_id)

    # 7. local admins
    adjustments = {(a.admin_id, a.side): a for a in store.admin_adjustments(year, month)}
    admin_lines = []
    admin_totals = {side: ZERO for side in ADMIN_SIDES}
    for admin in store.local_admins(location_id):
        for side in ADMIN_SIDES:
            commission_type, value, source = _admin_config(admin, side, adjustments)
            if not commission_type or value is None:
                continue
            base = service_subtotal if side == ADMIN_SIDE_SERVICE else product_subtotal
            amount = _admin_amount(commission_type, value, base)
            admin_totals[side] += amount
            admin_lines.append(AdminCommissionLine(
                admin_id=admin.id,
                name=admin.name,
                side=side,
                commission_type=commission_type,
                commission_value=value,
                source=source,
                figure=ReportFigure(
                    round_money(amount),
                    _json_override(override.admin_commissions if override else None, str(admin.id), side),
                ),
            ))

    automatic = {
        "service_revenue": service_revenue,
        "service_commissions": service_commissions,
        "service_expense": service_expense,
        "service_subtotal": service_subtotal,
        "service_net_utility": service_subtotal - admin_totals[ADMIN_SIDE_SERVICE],
        "product_revenue": product_revenue,
        "reinvestment": reinvestment,
        "product_professional_commission": professional_product_commission,
        "product_subtotal": product_subtotal,
        "product_net_utility": product_subtotal - admin_totals[ADMIN_SIDE_PRODUCT],
    }

    # 8. override merge
    figures = {
        name: ReportFigure(round_money(automatic[name]), _override_amount(override, name))
        for name in OVERRIDE_FIELDS
    }
    categories = {
        key: ReportFigure(
            round_money(category_totals[key]),
            _json_override(override.expense_categories if override else None, key),
        )
        for key in EXPENSE_CATEGORY_KEYS
    }

    return MonthlyReport(
        year=year,
        month=month,
        location_id=location_id,
        figures=figures,
        expense_categories=categories,
        admin_commissions=admin_lines,
        commissions_by_recipient=by_recipient,
        daily_income=daily_income(sales),
        override_id=override.id if override else None,
        override_note=override.note if override else None,
    )


def annual_summary(store, year: int, location_id: Optional[int] = None) -> dict:
    """Twelve monthly reports (each with its own override) and year totals of the shown values."""
    _validate_period(year, 1)
    months = [monthly_report(store, month, year, location_id) for month in range(1, 13)]

    totals = {name: ZERO for name in OVERRIDE_FIELDS}
    category_totals = {key: ZERO for key in EXPENSE_CATEGORY_KEYS}
    admin_totals = {side: ZERO for side in ADMIN_SIDES}
    for report in months:
        for name in OVERRIDE_FIELDS:
            totals[name] += report.value(name)
        for key in EXPENSE_CATEGORY_KEYS:
            category_totals[key] += report.expense_categories[key].value
        for side in ADMIN_SIDES:
            admin_totals[side] += report.admin_total(side)

    return {
        "year": year,
        "location_id": location_id,
        "months": [
            {
                "month": report.month,
                "has_override": report.override_id is not None,
                "values": {name: to_cents(report.value(name)) for name in OVERRIDE_FIELDS},
            }
            for report in months
        ],
        "totals": {name: to_cents(value) for name, value in totals.items()},
        "expense_categories": {key: to_cents(value) for key, value in category_totals.items()},
        "admin_commissions": {side: to_cents(value) for side, value in admin_totals.items()},
    }
