# Overview: Validated recording of sales, expenses and manual incomes.

"""
Transaction Stream Recording

WHY: Sales, expenses and manual incomes are written by independent
point-of-sale and finance workflows. Everything the reconciliation engine
derives is only as good as these records, so malformed input is rejected
here before any write.

DESIGN PRINCIPLES:
- One store transaction per record; a validation failure writes nothing.
- Expense category is decided once, when the expense is recorded.
- Free-text commission comments are kept verbatim; the typed breakdown
  columns are the canonical representation.
"""

from __future__ import annotations

import logging

from ..models import Sale, SaleItem, Expense, ManualIncome
from ..models.ledger import (
    CATEGORY_COMMISSION,
    CATEGORY_FIXED_COST,
    CATEGORY_OTHER,
    CATEGORY_PAYROLL,
    EXPENSE_CATEGORIES,
    ITEM_KINDS,
    PAYMENT_METHODS,
    PAYMENT_MIXED,
    SALE_PAYMENT_STATUSES,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_amount_range,
    validate_payload,
)

logger = logging.getLogger(__name__)


# Legacy free-text conventions mapped onto ExpenseCategory
COMMISSION_KEYWORD = "commission"
PAYROLL_CONCEPT = "Payroll"
FIXED_COSTS_RECIPIENT = "Fixed costs"


SALE_POLICY = ModelValidationPolicy(
    writable_fields={
        "location_id", "sold_at", "total_cents", "real_paid_cents", "payment_method",
        "payment_status", "mixed_cash_cents", "mixed_card_cents", "mixed_online_cents",
        "tip_cents", "tip_paid",
    },
    required_on_create={"location_id", "sold_at", "total_cents", "payment_method"},
)

SALE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "kind", "catalog_id", "unit_price_cents", "quantity", "subtotal_cents",
        "discount_cents", "professional_id", "commission_paid",
    },
    required_on_create={"kind"},
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "location_id", "spent_at", "concept", "recipient", "amount_cents", "comment",
        "category", "service_commission_cents", "product_commission_cents", "tip_cents",
    },
    required_on_create={"spent_at", "concept", "recipient", "amount_cents"},
)

MANUAL_INCOME_POLICY = ModelValidationPolicy(
    writable_fields={"location_id", "received_at", "amount_cents", "concept"},
    required_on_create={"received_at", "amount_cents", "concept"},
)


def classify_legacy_expense(concept: str | None, recipient: str | None) -> str:
    """
    Map the legacy string conventions onto an expense category.

    Order matters: a commission concept wins over the payroll concept, which
    wins over the fixed-costs recipient label.
    """
    if concept and COMMISSION_KEYWORD in concept.lower():
        return CATEGORY_COMMISSION
    if concept == PAYROLL_CONCEPT:
        return CATEGORY_PAYROLL
    if recipient == FIXED_COSTS_RECIPIENT:
        return CATEGORY_FIXED_COST
    return CATEGORY_OTHER


def build_sale(payload: dict) -> Sale:
    """Validate a sale payload (with its items) and build an unsaved Sale."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    raw_items = payload.get("items") or []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    header = validate_payload(
        model=Sale,
        payload={k: v for k, v in payload.items() if k != "items"},
        policy=SALE_POLICY,
    )
    enforce_amount_range(
        header, "total_cents", "real_paid_cents", "mixed_cash_cents",
        "mixed_card_cents", "mixed_online_cents", "tip_cents",
    )

    if header["payment_method"] not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment_method: {header['payment_method']}. Must be one of {list(PAYMENT_METHODS)}")
    if header.get("payment_status") and header["payment_status"] not in SALE_PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment_status: {header['payment_status']}")

    real_paid = header.get("real_paid_cents")
    if real_paid is not None:
        if real_paid > header["total_cents"]:
            raise ValidationError("real_paid_cents cannot exceed total_cents")
        if real_paid == header["total_cents"]:
            # Only partial payments carry real_paid
            header["real_paid_cents"] = None

    mixed_fields = ("mixed_cash_cents", "mixed_card_cents", "mixed_online_cents")
    has_mixed = any(header.get(f) is not None for f in mixed_fields)
    if header["payment_method"] == PAYMENT_MIXED and not has_mixed:
        raise ValidationError("MIXED payments require a mixed breakdown")
    if header["payment_method"] != PAYMENT_MIXED and has_mixed:
        raise ValidationError("Mixed breakdown is only allowed for MIXED payments")

    sale = Sale(**header)
    for index, raw in enumerate(raw_items):
        item_fields = validate_payload(model=SaleItem, payload=raw, policy=SALE_ITEM_POLICY)
        if item_fields["kind"] not in ITEM_KINDS:
            raise ValidationError(f"items[{index}].kind must be one of {list(ITEM_KINDS)}")
        enforce_amount_range(item_fields, "unit_price_cents", "subtotal_cents", "discount_cents")
        if item_fields.get("quantity") is not None and item_fields["quantity"] <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        sale.items.append(SaleItem(item_index=index, **item_fields))
    return sale


def record_sale(store, payload: dict) -> Sale:
    sale = build_sale(payload)

    def _write(tx):
        return tx.add(sale)

    return store.run_transaction(_write)


def build_expense(payload: dict) -> Expense:
    fields = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY)
    enforce_amount_range(
        fields, "amount_cents", "service_commission_cents", "product_commission_cents", "tip_cents",
    )

    category = fields.get("category")
    if category is None:
        fields["category"] = classify_legacy_expense(fields["concept"], fields["recipient"])
    elif category not in EXPENSE_CATEGORIES:
        raise ValidationError(f"Invalid category: {category}. Must be one of {list(EXPENSE_CATEGORIES)}")

    breakdown = [
        fields.get(k) for k in ("service_commission_cents", "product_commission_cents", "tip_cents")
    ]
    if any(v is not None for v in breakdown):
        if fields["category"] != CATEGORY_COMMISSION:
            raise ValidationError("Commission breakdown is only allowed on commission payments")
        if sum(v or 0 for v in breakdown) != fields["amount_cents"]:
            raise ValidationError("Commission breakdown must add up to amount_cents")

    return Expense(**fields)


def record_expense(store, payload: dict) -> Expense:
    expense = build_expense(payload)

    def _write(tx):
        return tx.add(expense)

    expense = store.run_transaction(_write)
    logger.info("Recorded expense %s (%s, %s cents)", expense.id, expense.category, expense.amount_cents)
    return expense


def record_manual_income(store, payload: dict) -> ManualIncome:
    fields = validate_payload(model=ManualIncome, payload=payload, policy=MANUAL_INCOME_POLICY)
    enforce_amount_range(fields, "amount_cents")
    income = ManualIncome(**fields)

    def _write(tx):
        return tx.add(income)

    return store.run_transaction(_write)
