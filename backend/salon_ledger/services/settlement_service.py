# Overview: Commission settlement flags: settle on payout, reverse on payout deletion.

"""
Commission Settlement Ledger

WHY: A sale item earns commission once. SaleItem.commission_paid and
Sale.tip_paid stop the same item or tip from being paid twice; deleting the
payout must put them back so the liability reappears.

TWO REVERSAL MODES:
- Structured: the expense carries ExpenseSettlementRef rows naming exactly
  what it settled. Reversal flips exactly those flags and is idempotent.
  A ref whose sale or item index no longer exists is skipped and reported;
  the rest of the reversal proceeds.
- Heuristic: legacy expenses have no refs. Every item of the recipient on
  any sale of the expense's calendar day (all locations) is flipped back,
  and the sale's tip when the recipient worked on it. Two same-day payouts
  to one professional cannot be told apart, so deleting either reverts both.

Settlement, reversal, deletion and their audit event commit together or
not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from ..models import Expense, ExpenseSettlementRef
from ..models.ledger import CATEGORY_COMMISSION, ITEM_PRODUCT, REF_ITEM, REF_TIP
from ..money import ZERO, from_cents, to_cents
from ..store import RecordKind
from ..time_utils import end_of_day, start_of_day, utcnow
from ..validation import NotFoundError, ValidationError, coerce_int
from .commission_service import (
    CommissionBreakdown,
    CommissionRules,
    discounts_affect_commissions,
    earned_commission,
    is_commission_expense,
    is_fully_paid,
    tip_recipient,
)
from .ledger_service import (
    EVENT_COMMISSION_REVERSED,
    EVENT_COMMISSION_SETTLED,
    EVENT_EXPENSE_DELETED,
    append_ledger_event,
)

logger = logging.getLogger(__name__)

SETTLEMENT_CONCEPT = "Commission payment"

MODE_STRUCTURED = "structured"
MODE_HEURISTIC = "heuristic"


class SettlementError(Exception):
    """Raised when a commission payout cannot be settled or reversed."""
    pass


@dataclass
class ReversalResult:
    mode: str
    affected: list[dict] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"mode": self.mode, "affected": self.affected, "skipped": self.skipped}


def _item_ref(sale_id: int, item_index: int) -> dict:
    return {"ref_type": REF_ITEM, "sale_id": sale_id, "item_index": item_index}


def _tip_ref(sale_id: int) -> dict:
    return {"ref_type": REF_TIP, "sale_id": sale_id, "item_index": None}


def format_commission_comment(breakdown: CommissionBreakdown) -> str:
    """Human-readable breakdown; display only, the typed columns are canonical."""
    return (
        f"Service Commission: ${breakdown.service_commission:,.2f}, "
        f"Product Commission: ${breakdown.product_commission:,.2f}, "
        f"Tip: ${breakdown.tip:,.2f}"
    )


def _normalize_item_refs(item_refs: Iterable) -> list[tuple[int, int]]:
    refs = []
    for raw in item_refs or []:
        if isinstance(raw, dict):
            sale_id, item_index = raw.get("sale_id"), raw.get("item_index")
        else:
            try:
                sale_id, item_index = raw
            except (TypeError, ValueError):
                raise ValidationError("item_refs entries must be {sale_id, item_index}")
        if sale_id is None or item_index is None:
            raise ValidationError("item_refs entries must be {sale_id, item_index}")
        refs.append((coerce_int("sale_id", sale_id), coerce_int("item_index", item_index)))
    if len(set(refs)) != len(refs):
        raise ValidationError("item_refs contains duplicates")
    return refs


def settle_commissions(
    store,
    professional_id: int,
    item_refs: Iterable = (),
    tip_sale_ids: Iterable = (),
    location_id: Optional[int] = None,
    paid_at: Optional[datetime] = None,
) -> Expense:
    """
    Pay out a professional's commissions for the given items and tips.

    Creates one COMMISSION_PAYMENT expense with the typed breakdown and a
    settlement ref per item and tip, and marks them paid. Any invalid ref
    rejects the whole payout before anything is written. The payout is booked
    against the location of the settled sales.
    """
    professional_id = coerce_int("professional_id", professional_id)
    refs = _normalize_item_refs(item_refs)
    tip_ids = [coerce_int("tip_sale_ids", s) for s in (tip_sale_ids or [])]
    if len(set(tip_ids)) != len(tip_ids):
        raise ValidationError("tip_sale_ids contains duplicates")
    if not refs and not tip_ids:
        raise ValidationError("Nothing to settle: provide item_refs or tip_sale_ids")
    if location_id is not None:
        location_id = coerce_int("location_id", location_id)
    paid_at = paid_at or utcnow()
    use_net = discounts_affect_commissions()

    def _write(tx):
        rules = CommissionRules.from_store(tx)
        professional = rules.professionals.get(professional_id)
        if professional is None:
            raise NotFoundError(f"Professional {professional_id} not found")

        sales = {}

        def _sale(sale_id):
            if sale_id not in sales:
                sale = tx.get_sale(sale_id, for_update=True)
                if sale is None:
                    raise NotFoundError(f"Sale {sale_id} not found")
                sales[sale_id] = sale
            return sales[sale_id]

        service_total = ZERO
        product_total = ZERO
        tip_total = ZERO
        to_mark = []

        for sale_id, item_index in refs:
            sale = _sale(sale_id)
            item = sale.item_at(item_index)
            if item is None:
                raise NotFoundError(f"Sale {sale_id} has no item {item_index}")
            if item.professional_id != professional_id:
                raise ValidationError(f"Sale {sale_id} item {item_index} belongs to another professional")
            if item.commission_paid:
                raise ValidationError(f"Sale {sale_id} item {item_index} is already settled")
            if not is_fully_paid(sale):
                raise ValidationError(f"Sale {sale_id} is not fully paid")
            earned = earned_commission(rules, item, use_net)
            if earned is None:
                raise ValidationError(f"Sale {sale_id} item {item_index} has no commission rule")
            if item.kind == ITEM_PRODUCT:
                product_total += earned[1]
            else:
                service_total += earned[1]
            to_mark.append(item)

        tip_sales = []
        for sale_id in tip_ids:
            sale = _sale(sale_id)
            if not sale.tip_cents:
                raise ValidationError(f"Sale {sale_id} has no tip")
            if sale.tip_paid:
                raise ValidationError(f"Sale {sale_id} tip is already settled")
            if tip_recipient(sale) != professional_id:
                raise ValidationError(f"Sale {sale_id} tip belongs to another professional")
            tip_total += from_cents(sale.tip_cents)
            tip_sales.append(sale)

        sale_locations = {sale.location_id for sale in sales.values()}
        if len(sale_locations) > 1:
            raise ValidationError("A payout cannot settle sales from more than one location")
        payout_location = location_id if location_id is not None else next(iter(sale_locations))
        if payout_location not in sale_locations:
            raise ValidationError(f"Settled sales do not belong to location {payout_location}")

        breakdown = CommissionBreakdown(service_total, product_total, tip_total).rounded()
        service_cents = to_cents(breakdown.service_commission)
        product_cents = to_cents(breakdown.product_commission)
        tip_cents = to_cents(breakdown.tip)

        expense = Expense(
            location_id=payout_location,
            spent_at=paid_at,
            concept=SETTLEMENT_CONCEPT,
            recipient=str(professional_id),
            amount_cents=service_cents + product_cents + tip_cents,
            comment=format_commission_comment(breakdown),
            category=CATEGORY_COMMISSION,
            service_commission_cents=service_cents,
            product_commission_cents=product_cents,
            tip_cents=tip_cents,
        )
        for sale_id, item_index in refs:
            expense.settlement_refs.append(
                ExpenseSettlementRef(ref_type=REF_ITEM, sale_id=sale_id, item_index=item_index)
            )
        for sale in tip_sales:
            expense.settlement_refs.append(ExpenseSettlementRef(ref_type=REF_TIP, sale_id=sale.id))

        for item in to_mark:
            item.commission_paid = True
        for sale in tip_sales:
            sale.tip_paid = True

        tx.add(expense)
        append_ledger_event(
            tx,
            event_type=EVENT_COMMISSION_SETTLED,
            entity_type="expense",
            entity_id=expense.id,
            location_id=payout_location,
            occurred_at=paid_at,
            payload={
                "professional_id": professional_id,
                "amount_cents": expense.amount_cents,
                "refs": [ref.to_dict() for ref in expense.settlement_refs],
            },
        )
        return expense

    expense = store.run_transaction(_write)
    logger.info(
        "Settled %s items and %s tips for professional %s (expense %s, %s cents)",
        len(refs), len(tip_ids), professional_id, expense.id, expense.amount_cents,
    )
    return expense


def _reverse_structured(store, expense) -> ReversalResult:
    result = ReversalResult(mode=MODE_STRUCTURED)
    for ref in expense.settlement_refs:
        sale = store.get_sale(ref.sale_id, for_update=True)
        if sale is None:
            result.skipped.append(ref.to_dict())
            logger.warning("Expense %s: settled sale %s no longer exists, skipping", expense.id, ref.sale_id)
            continue

        if ref.ref_type == REF_TIP:
            if sale.tip_paid:
                sale.tip_paid = False
                result.affected.append(_tip_ref(sale.id))
            continue

        item = sale.item_at(ref.item_index)
        if item is None:
            result.skipped.append(ref.to_dict())
            logger.warning(
                "Expense %s: sale %s has no item %s, skipping", expense.id, ref.sale_id, ref.item_index,
            )
            continue
        if item.commission_paid:
            item.commission_paid = False
            result.affected.append(_item_ref(sale.id, item.item_index))
    return result


def _reverse_heuristic(store, expense) -> ReversalResult:
    result = ReversalResult(mode=MODE_HEURISTIC)
    recipient = str(expense.recipient).strip()
    day_sales = store.query(
        RecordKind.SALE,
        None,
        date_from=start_of_day(expense.spent_at),
        date_to=end_of_day(expense.spent_at),
    )
    for sale in day_sales:
        worked_on = False
        for item in sale.items:
            if item.professional_id is None or str(item.professional_id) != recipient:
                continue
            worked_on = True
            if item.commission_paid:
                item.commission_paid = False
                result.affected.append(_item_ref(sale.id, item.item_index))
        if worked_on and sale.tip_paid:
            sale.tip_paid = False
            result.affected.append(_tip_ref(sale.id))
    return result


def reverse_commission_payment(store, expense) -> ReversalResult:
    """
    Return the items and tips a commission payout settled to unpaid.

    Call inside run_transaction, immediately before deleting the expense.
    """
    if expense.has_structured_settlement:
        return _reverse_structured(store, expense)
    return _reverse_heuristic(store, expense)


def delete_expense(store, expense_id: int) -> Optional[ReversalResult]:
    """
    Delete an expense; commission payouts are reversed first.

    Reversal, deletion and the audit event are one transaction. Returns the
    reversal result for commission payouts, None otherwise.
    """

    def _write(tx):
        expense = tx.get_expense(expense_id, for_update=True)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")

        snapshot = expense.to_dict()
        reversal = None
        if is_commission_expense(expense):
            reversal = reverse_commission_payment(tx, expense)

        tx.delete(expense)
        payload = {"expense": snapshot}
        if reversal is not None:
            payload["reversal"] = reversal.to_dict()
        append_ledger_event(
            tx,
            event_type=EVENT_COMMISSION_REVERSED if reversal is not None else EVENT_EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            location_id=snapshot["location_id"],
            note="Skipped dangling settlement refs" if reversal is not None and reversal.skipped else None,
            payload=payload,
        )
        return reversal

    reversal = store.run_transaction(_write)
    if reversal is not None:
        logger.info(
            "Deleted commission expense %s (%s mode): %s refs reversed, %s skipped",
            expense_id, reversal.mode, len(reversal.affected), len(reversal.skipped),
        )
    return reversal


def delete_commission_expense(store, expense_id: int) -> ReversalResult:
    """Delete a commission payout; refuses any other expense."""
    expense = store.get_expense(expense_id)
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found")
    if not is_commission_expense(expense):
        raise SettlementError(f"Expense {expense_id} is not a commission payment")
    return delete_expense(store, expense_id)
