# Overview: Monthly override and admin commission adjustment maintenance.

from __future__ import annotations

import logging
from typing import Optional

from ..models import AdminCommissionAdjustment, MonthlyOverride
from ..models.catalog import COMMISSION_PERCENT, COMMISSION_TYPES, ROLE_LOCAL_ADMIN
from ..models.finance import ADMIN_SIDES, EXPENSE_CATEGORY_KEYS, OVERRIDE_FIELDS
from ..validation import MAX_AMOUNT_CENTS, NotFoundError, ValidationError, coerce_int
from .ledger_service import (
    EVENT_ADMIN_ADJUSTMENT_SET,
    EVENT_OVERRIDE_DELETED,
    EVENT_OVERRIDE_SAVED,
    append_ledger_event,
)

logger = logging.getLogger(__name__)

# 100% in basis points
MAX_PERCENT_BPS = 10_000


class OverrideError(Exception):
    """Raised when an override cannot be saved or removed."""
    pass


def _validate_period(year, month) -> tuple[int, int]:
    year = coerce_int("year", year)
    month = coerce_int("month", month)
    if year < 1:
        raise ValidationError("year must be a positive integer")
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    return year, month


def _cents(key: str, value) -> Optional[int]:
    if value is None:
        return None
    cents = coerce_int(key, value)
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS} (${MAX_AMOUNT_CENTS / 100:,.2f})")
    return cents


def _clean_fields(raw) -> dict[str, Optional[int]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("fields must be an object")
    unknown = sorted(set(raw) - set(OVERRIDE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown override fields: {', '.join(unknown)}")
    # Net utilities and subtotals may legitimately be negative
    return {name: _cents(name, value) for name, value in raw.items()}


def _clean_admin_commissions(raw) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("admin_commissions must be an object")
    cleaned = {}
    for admin_id, sides in raw.items():
        key = str(coerce_int("admin_commissions key", admin_id))
        if not isinstance(sides, dict):
            raise ValidationError(f"admin_commissions[{key}] must be an object")
        unknown = sorted(set(sides) - set(ADMIN_SIDES))
        if unknown:
            raise ValidationError(f"Unknown admin commission sides: {', '.join(unknown)}")
        entry = {
            side: _cents(f"admin_commissions[{key}].{side}", value)
            for side, value in sides.items()
            if value is not None
        }
        if entry:
            cleaned[key] = entry
    return cleaned


def _clean_expense_categories(raw) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("expense_categories must be an object")
    unknown = sorted(set(raw) - set(EXPENSE_CATEGORY_KEYS))
    if unknown:
        raise ValidationError(f"Unknown expense categories: {', '.join(unknown)}")
    return {
        key: _cents(f"expense_categories.{key}", value)
        for key, value in raw.items()
        if value is not None
    }


def get_override(store, year, month, location_id: Optional[int] = None) -> Optional[MonthlyOverride]:
    year, month = _validate_period(year, month)
    return store.get_override(year, month, location_id)


def save_override(store, year, month, payload: dict, location_id: Optional[int] = None) -> MonthlyOverride:
    """
    Create or fully replace the override for a period.

    payload: {"fields": {name: cents|null}, "admin_commissions": {...},
    "expense_categories": {...}, "note": str}. Fields left out or null
    show the automatic value.
    """
    year, month = _validate_period(year, month)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = {"fields", "admin_commissions", "expense_categories", "note"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    fields = _clean_fields(payload.get("fields"))
    admin_commissions = _clean_admin_commissions(payload.get("admin_commissions"))
    expense_categories = _clean_expense_categories(payload.get("expense_categories"))
    note = payload.get("note")
    if note is not None:
        note = str(note).strip()[:255] or None
    if not any(v is not None for v in fields.values()) and not admin_commissions and not expense_categories:
        raise OverrideError("Override must freeze at least one figure")

    def _write(tx):
        override = tx.put_override(
            year, month, location_id,
            fields=fields,
            admin_commissions=admin_commissions,
            expense_categories=expense_categories,
            note=note,
        )
        append_ledger_event(
            tx,
            event_type=EVENT_OVERRIDE_SAVED,
            entity_type="monthly_override",
            entity_id=override.id,
            location_id=location_id,
            note=note,
            payload=override.to_dict(),
        )
        return override

    override = store.run_transaction(_write)
    logger.info("Saved override for %04d-%02d (location %s)", year, month, location_id)
    return override


def delete_override(store, year, month, location_id: Optional[int] = None) -> None:
    """Remove the override; the next report read is fully automatic."""
    year, month = _validate_period(year, month)

    def _write(tx):
        existing = tx.get_override(year, month, location_id)
        if existing is None:
            raise NotFoundError(f"No override for {year:04d}-{month:02d}")
        snapshot = existing.to_dict()
        tx.delete_override(year, month, location_id)
        append_ledger_event(
            tx,
            event_type=EVENT_OVERRIDE_DELETED,
            entity_type="monthly_override",
            entity_id=snapshot["id"],
            location_id=location_id,
            payload=snapshot,
        )

    store.run_transaction(_write)
    logger.info("Deleted override for %04d-%02d (location %s)", year, month, location_id)


def set_admin_adjustment(store, admin_id, year, month, payload: dict) -> list[AdminCommissionAdjustment]:
    """
    Replace a local admin's commission configuration for one month.

    payload: {"service": {"commission_type", "commission_value"} | null,
    "product": {...} | null}. A null side removes that month's adjustment
    so the admin's base configuration applies again.
    """
    admin_id = coerce_int("admin_id", admin_id)
    year, month = _validate_period(year, month)
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - set(ADMIN_SIDES))
    if unknown:
        raise ValidationError(f"Unknown admin commission sides: {', '.join(unknown)}")

    configs = {}
    for side, raw in payload.items():
        if raw is None:
            configs[side] = None
            continue
        if not isinstance(raw, dict):
            raise ValidationError(f"{side} must be an object")
        commission_type = raw.get("commission_type")
        if commission_type not in COMMISSION_TYPES:
            raise ValidationError(f"{side}.commission_type must be one of {list(COMMISSION_TYPES)}")
        if raw.get("commission_value") is None:
            raise ValidationError(f"{side}.commission_value is required")
        value = coerce_int(f"{side}.commission_value", raw["commission_value"])
        if value < 0:
            raise ValidationError(f"{side}.commission_value must be >= 0")
        if commission_type == COMMISSION_PERCENT and value > MAX_PERCENT_BPS:
            raise ValidationError(f"{side}.commission_value cannot exceed {MAX_PERCENT_BPS} bps")
        configs[side] = (commission_type, value)

    def _write(tx):
        admin = tx.get_staff_user(admin_id)
        if admin is None or admin.role != ROLE_LOCAL_ADMIN:
            raise NotFoundError(f"Local admin {admin_id} not found")

        existing = {a.side: a for a in tx.admin_adjustments(year, month) if a.admin_id == admin_id}
        saved = []
        for side, config in configs.items():
            row = existing.get(side)
            if config is None:
                if row is not None:
                    tx.delete(row)
                continue
            if row is None:
                row = AdminCommissionAdjustment(admin_id=admin_id, year=year, month=month, side=side)
            row.commission_type, row.commission_value = config
            saved.append(tx.add(row))

        append_ledger_event(
            tx,
            event_type=EVENT_ADMIN_ADJUSTMENT_SET,
            entity_type="staff_user",
            entity_id=admin_id,
            location_id=admin.location_id,
            payload={
                "year": year,
                "month": month,
                "adjustments": {
                    side: (None if config is None else {"commission_type": config[0], "commission_value": config[1]})
                    for side, config in configs.items()
                },
            },
        )
        return saved

    return store.run_transaction(_write)
