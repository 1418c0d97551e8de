# Overview: Live cash on hand from the latest cash cut plus every cash event since.

"""
Live Cash Calculation

WHY: Cash on hand is never stored. It is derived from the most recent cash
cut (an audited snapshot) plus every cash-affecting event after it, so an
edit anywhere in the three transaction streams shows up immediately.

DESIGN PRINCIPLES:
- Pure read: live_cash() never writes and returns the same value for the
  same store state.
- A cut is an audit snapshot, not a reset: the next period starts from the
  system total the cut recorded, so float changes made while counting do not
  distort the forward balance.
- Events are fetched from the start of the cut's day and filtered strictly
  after the cut timestamp in memory. The over-fetch absorbs clock and index
  skew; the strict filter keeps an event stamped exactly at cut time from
  being counted in both periods.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..models import CashCut
from ..models.ledger import STATUS_DEPOSIT_PAID
from ..money import ZERO, from_cents, round_money, to_cents
from ..store import RecordKind
from ..time_utils import EPOCH, start_of_day, to_utc_z, utcnow
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_amount_range,
    validate_payload,
)
from .ledger_service import EVENT_CASH_CUT_RECORDED, append_ledger_event
from .sale_amounts import cash_component, deposit_component, effective_paid

logger = logging.getLogger(__name__)


class CashError(Exception):
    """Raised for cash calculation or cash cut errors."""
    pass


CASH_CUT_POLICY = ModelValidationPolicy(
    writable_fields={
        "location_id", "cut_at", "counted_total_cents", "base_float_cents",
        "delivered_amount_cents", "received_by", "comment",
    },
    required_on_create={"counted_total_cents", "delivered_amount_cents", "received_by"},
)


@dataclass(frozen=True)
class LiveCash:
    amount: Decimal
    baseline: Decimal
    reference_at: datetime
    cash_cut_id: Optional[int]
    sales_cash: Decimal = field(default=ZERO)
    manual_incomes: Decimal = field(default=ZERO)
    expenses: Decimal = field(default=ZERO)
    location_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "location_id": self.location_id,
            "live_cash_cents": to_cents(self.amount),
            "baseline_cents": to_cents(self.baseline),
            "sales_cash_cents": to_cents(self.sales_cash),
            "manual_incomes_cents": to_cents(self.manual_incomes),
            "expenses_cents": to_cents(self.expenses),
            "since": to_utc_z(self.reference_at),
            "cash_cut_id": self.cash_cut_id,
        }


def resolve_baseline(cut: Optional[CashCut]) -> Decimal:
    """Opening balance a cash cut hands to the next period."""
    if cut is None:
        return ZERO
    if cut.system_total_cents is not None:
        return from_cents(cut.system_total_cents)
    # Legacy cuts flag "use the counted total" with a negative delivered amount
    if (cut.delivered_amount_cents or 0) < 0 and cut.legacy_calculated_total_cents is not None:
        return from_cents(cut.legacy_calculated_total_cents)
    return from_cents(cut.base_float_cents)


def _since(records, attr: str, reference_at: datetime, as_of: Optional[datetime]) -> list:
    selected = []
    for record in records:
        ts = getattr(record, attr)
        if ts <= reference_at:
            continue
        if as_of is not None and ts > as_of:
            continue
        selected.append(record)
    return selected


def live_cash(store, location_id: Optional[int] = None, as_of: Optional[datetime] = None) -> LiveCash:
    """
    Cash on hand for a location (or all locations when location_id is None).

    as_of limits both the cut lookup and the events to a point in time;
    None means "everything recorded so far".
    """
    cut = store.latest_cash_cut(location_id, at_or_before=as_of)
    reference_at = cut.cut_at if cut else EPOCH
    baseline = resolve_baseline(cut)

    fetch_from = start_of_day(reference_at)
    sales = _since(
        store.query(RecordKind.SALE, location_id, date_from=fetch_from, date_to=as_of),
        "sold_at", reference_at, as_of,
    )
    incomes = _since(
        store.query(RecordKind.MANUAL_INCOME, location_id, date_from=fetch_from, date_to=as_of),
        "received_at", reference_at, as_of,
    )
    expenses = _since(
        store.query(RecordKind.EXPENSE, location_id, date_from=fetch_from, date_to=as_of),
        "spent_at", reference_at, as_of,
    )

    sales_cash = sum((cash_component(s) for s in sales), ZERO)
    incomes_total = sum((from_cents(i.amount_cents) for i in incomes), ZERO)
    expenses_total = sum((from_cents(e.amount_cents) for e in expenses), ZERO)

    return LiveCash(
        amount=round_money(baseline + sales_cash + incomes_total - expenses_total),
        baseline=round_money(baseline),
        reference_at=reference_at,
        cash_cut_id=cut.id if cut else None,
        sales_cash=round_money(sales_cash),
        manual_incomes=round_money(incomes_total),
        expenses=round_money(expenses_total),
        location_id=location_id,
    )


def record_cash_cut(store, payload: dict) -> CashCut:
    """
    Record an end-of-shift cash cut.

    The live cash at cut time becomes system_total (the next baseline); the
    counted drawer total is kept for audit and the difference is
    counted - system - base float.
    """
    fields = validate_payload(model=CashCut, payload=payload, policy=CASH_CUT_POLICY)
    enforce_amount_range(fields, "counted_total_cents", "base_float_cents", "delivered_amount_cents")
    cut_at = fields.pop("cut_at", None) or utcnow()

    def _write(tx):
        last = tx.latest_cash_cut(fields.get("location_id"))
        if last is not None and last.cut_at >= cut_at:
            raise ValidationError("cut_at must be later than the previous cash cut")

        current = live_cash(tx, fields.get("location_id"), as_of=cut_at)
        system_total = to_cents(current.amount)
        base_float = fields.get("base_float_cents") or 0
        counted = fields["counted_total_cents"]

        cut = CashCut(
            cut_at=cut_at,
            system_total_cents=system_total,
            legacy_calculated_total_cents=counted,
            difference_cents=counted - system_total - base_float,
            **fields,
        )
        tx.add(cut)
        append_ledger_event(
            tx,
            event_type=EVENT_CASH_CUT_RECORDED,
            entity_type="cash_cut",
            entity_id=cut.id,
            location_id=cut.location_id,
            occurred_at=cut_at,
            payload={
                "system_total_cents": system_total,
                "counted_total_cents": counted,
                "difference_cents": cut.difference_cents,
            },
        )
        return cut

    cut = store.run_transaction(_write)
    if cut.difference_cents:
        logger.warning(
            "Cash cut %s at location %s differs from system by %s cents",
            cut.id, cut.location_id, cut.difference_cents,
        )
    return cut


@dataclass
class DailyIncome:
    day: date
    cash: Decimal = field(default=ZERO)
    deposit: Decimal = field(default=ZERO)
    total: Decimal = field(default=ZERO)

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "cash_cents": to_cents(self.cash),
            "deposit_cents": to_cents(self.deposit),
            "total_cents": to_cents(self.total),
        }


def daily_income(sales) -> list[DailyIncome]:
    """
    Collected income per calendar day, split by where the money went.

    Mixed sales split cash against card+online; the total is the effective
    amount paid.
    """
    days: dict[date, DailyIncome] = {}
    for sale in sales:
        day = sale.sold_at.date()
        row = days.setdefault(day, DailyIncome(day))
        if sale.payment_status == STATUS_DEPOSIT_PAID:
            # Booking deposits are reported apart from the day's takings
            row.deposit += effective_paid(sale)
        else:
            row.cash += cash_component(sale)
            row.deposit += deposit_component(sale)
        row.total += effective_paid(sale)
    return [days[d] for d in sorted(days)]
