# Overview: One-time migration of legacy expenses onto typed categories and breakdowns.

"""
Legacy Expense Migration

Expenses imported from the legacy system arrive as OTHER with their meaning
encoded in free text: a concept containing "commission", the "Payroll"
concept, the "Fixed costs" recipient, and commission comments such as
"Service Commission: $70.00, Product Commission: $26.85, Tip: $0.00".

The migration assigns the category the legacy rules imply and copies a
parseable commission comment into the typed breakdown columns. It is
idempotent: a second run finds nothing to change. Comments are left as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..models.ledger import CATEGORY_COMMISSION, CATEGORY_OTHER
from ..money import to_cents
from ..store import RecordKind
from .commission_service import parse_commission_comment
from .ledger_service import EVENT_CATEGORY_MIGRATED, append_ledger_event
from .records_service import classify_legacy_expense

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    scanned: int = 0
    reclassified: dict = field(default_factory=dict)
    breakdowns_filled: int = 0
    dry_run: bool = False

    @property
    def changed(self) -> int:
        return sum(self.reclassified.values()) + self.breakdowns_filled

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "reclassified": dict(self.reclassified),
            "breakdowns_filled": self.breakdowns_filled,
            "dry_run": self.dry_run,
        }


def _plan(expense) -> tuple[str | None, object | None]:
    """(new category or None, parsed breakdown or None) for one expense."""
    new_category = None
    category = expense.category or CATEGORY_OTHER
    if category == CATEGORY_OTHER:
        classified = classify_legacy_expense(expense.concept, expense.recipient)
        if classified != category:
            new_category = classified
            category = classified

    breakdown = None
    if category == CATEGORY_COMMISSION and not expense.has_breakdown:
        breakdown = parse_commission_comment(expense.comment)
    return new_category, breakdown


def migrate_expense_categories(store, dry_run: bool = False) -> MigrationResult:
    """Classify legacy expenses and fill typed commission breakdowns."""
    result = MigrationResult(dry_run=dry_run)

    if dry_run:
        for expense in store.query(RecordKind.EXPENSE):
            result.scanned += 1
            new_category, breakdown = _plan(expense)
            if new_category:
                result.reclassified[new_category] = result.reclassified.get(new_category, 0) + 1
            if breakdown is not None:
                result.breakdowns_filled += 1
        return result

    def _write(tx):
        result.scanned = 0
        result.reclassified = {}
        result.breakdowns_filled = 0
        for expense in tx.query(RecordKind.EXPENSE):
            result.scanned += 1
            new_category, breakdown = _plan(expense)
            if new_category:
                expense.category = new_category
                result.reclassified[new_category] = result.reclassified.get(new_category, 0) + 1
            if breakdown is not None:
                expense.service_commission_cents = to_cents(breakdown.service_commission)
                expense.product_commission_cents = to_cents(breakdown.product_commission)
                expense.tip_cents = to_cents(breakdown.tip)
                result.breakdowns_filled += 1

        if result.changed:
            append_ledger_event(
                tx,
                event_type=EVENT_CATEGORY_MIGRATED,
                entity_type="expense",
                payload=result.to_dict(),
            )
        return result

    store.run_transaction(_write)
    logger.info(
        "Expense migration: scanned %s, reclassified %s, breakdowns filled %s",
        result.scanned, result.reclassified, result.breakdowns_filled,
    )
    return result
