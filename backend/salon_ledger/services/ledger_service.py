# Overview: Append-only reconciliation event trail.

"""
Reconciliation Event Invariants

- Append-only: events are never updated or deleted.
- No reconciliation logic lives here.
- Events are staged inside the same store transaction as the change they record.
- occurred_at is business time; when omitted the DB default (now) applies.
"""

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..models import ReconciliationEvent

EVENT_COMMISSION_SETTLED = "COMMISSION_SETTLED"
EVENT_COMMISSION_REVERSED = "COMMISSION_REVERSED"
EVENT_EXPENSE_DELETED = "EXPENSE_DELETED"
EVENT_CASH_CUT_RECORDED = "CASH_CUT_RECORDED"
EVENT_OVERRIDE_SAVED = "OVERRIDE_SAVED"
EVENT_OVERRIDE_DELETED = "OVERRIDE_DELETED"
EVENT_ADMIN_ADJUSTMENT_SET = "ADMIN_ADJUSTMENT_SET"
EVENT_CATEGORY_MIGRATED = "EXPENSE_CATEGORY_MIGRATED"


def append_ledger_event(
    store,
    *,
    event_type: str,
    entity_type: str,
    entity_id: int | None = None,
    location_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> ReconciliationEvent:
    """Stage one event on the store; call from inside run_transaction."""
    ev = ReconciliationEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        location_id=location_id,
        note=note[:255] if note else None,
        payload=payload,
    )
    if occurred_at is not None:
        ev.occurred_at = occurred_at  # otherwise the db default applies
    return store.add(ev)
