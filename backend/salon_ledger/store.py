"""
TransactionStore port and its SQLAlchemy adapter.

The reconciliation services receive a TransactionStore and never touch a
persistence driver themselves. Reads return ORM records ordered by their
business timestamp; writes happen only inside run_transaction().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .extensions import db
from .models import (
    AdminCommissionAdjustment,
    CashCut,
    Expense,
    ManualIncome,
    MonthlyOverride,
    Product,
    Professional,
    ProfessionalCommissionRule,
    Sale,
    Service,
    StaffUser,
)
from .models.catalog import ROLE_LOCAL_ADMIN
from .models.finance import OVERRIDE_FIELDS
from .services.concurrency import lock_for_update, run_with_retry

T = TypeVar("T")


class RecordKind(str, Enum):
    SALE = "sale"
    EXPENSE = "expense"
    MANUAL_INCOME = "manual_income"
    CASH_CUT = "cash_cut"


class TransactionAbortedError(RuntimeError):
    """The store could not commit; nothing was written. Safe to retry."""


class TransactionStore(ABC):
    """Generic read/query and transactional-write contract."""

    @abstractmethod
    def query(
        self,
        kind: RecordKind,
        location_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list:
        """Records of one kind, inclusive date bounds, oldest first."""

    @abstractmethod
    def latest_cash_cut(self, location_id: Optional[int] = None, at_or_before: Optional[datetime] = None) -> Optional[CashCut]:
        """Most recent cut by cut_at, optionally no later than at_or_before."""

    @abstractmethod
    def get_sale(self, sale_id: int, *, for_update: bool = False) -> Optional[Sale]:
        ...

    @abstractmethod
    def get_expense(self, expense_id: int, *, for_update: bool = False) -> Optional[Expense]:
        ...

    @abstractmethod
    def get_staff_user(self, user_id: int) -> Optional[StaffUser]:
        ...

    @abstractmethod
    def professionals(self) -> list[Professional]:
        ...

    @abstractmethod
    def products(self) -> list[Product]:
        ...

    @abstractmethod
    def services(self) -> list[Service]:
        ...

    @abstractmethod
    def professional_rules(self) -> list[ProfessionalCommissionRule]:
        ...

    @abstractmethod
    def local_admins(self, location_id: Optional[int] = None) -> list[StaffUser]:
        ...

    @abstractmethod
    def admin_adjustments(self, year: int, month: int) -> list[AdminCommissionAdjustment]:
        ...

    @abstractmethod
    def add(self, record: Any) -> Any:
        """Stage a new record; only valid inside run_transaction."""

    @abstractmethod
    def delete(self, record: Any) -> None:
        """Stage a deletion; only valid inside run_transaction."""

    @abstractmethod
    def run_transaction(self, write_fn: Callable[["TransactionStore"], T]) -> T:
        """
        Run write_fn atomically.

        write_fn reads what it depends on, validates, then stages writes.
        Either everything it staged is committed, or nothing is. Exceptions
        raised by write_fn propagate unchanged after rollback; store
        failures surface as TransactionAbortedError.
        """

    @abstractmethod
    def get_override(self, year: int, month: int, location_id: Optional[int] = None) -> Optional[MonthlyOverride]:
        ...

    @abstractmethod
    def put_override(
        self,
        year: int,
        month: int,
        location_id: Optional[int],
        fields: dict[str, Optional[int]],
        admin_commissions: dict,
        expense_categories: dict,
        note: Optional[str] = None,
    ) -> MonthlyOverride:
        """Create or fully replace the override; only valid inside run_transaction."""

    @abstractmethod
    def delete_override(self, year: int, month: int, location_id: Optional[int] = None) -> bool:
        """Only valid inside run_transaction. Returns False when none existed."""


_TIMESTAMP_COLUMNS = {
    RecordKind.SALE: (Sale, Sale.sold_at),
    RecordKind.EXPENSE: (Expense, Expense.spent_at),
    RecordKind.MANUAL_INCOME: (ManualIncome, ManualIncome.received_at),
    RecordKind.CASH_CUT: (CashCut, CashCut.cut_at),
}


class SqlAlchemyTransactionStore(TransactionStore):
    """TransactionStore backed by a (Flask-)SQLAlchemy session."""

    def __init__(self, session, *, retry_attempts: int = 3, retry_backoff: float = 0.1):
        self.session = session
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def query(self, kind, location_id=None, date_from=None, date_to=None) -> list:
        model, ts_col = _TIMESTAMP_COLUMNS[RecordKind(kind)]
        q = self.session.query(model)
        if location_id is not None:
            q = q.filter(model.location_id == location_id)
        if date_from is not None:
            q = q.filter(ts_col >= date_from)
        if date_to is not None:
            q = q.filter(ts_col <= date_to)
        return q.order_by(ts_col.asc(), model.id.asc()).all()

    def latest_cash_cut(self, location_id=None, at_or_before=None):
        q = self.session.query(CashCut)
        if location_id is not None:
            q = q.filter(CashCut.location_id == location_id)
        if at_or_before is not None:
            q = q.filter(CashCut.cut_at <= at_or_before)
        return q.order_by(CashCut.cut_at.desc(), CashCut.id.desc()).first()

    def get_sale(self, sale_id, *, for_update=False):
        q = self.session.query(Sale).filter_by(id=sale_id)
        if for_update:
            q = lock_for_update(q)
        return q.first()

    def get_expense(self, expense_id, *, for_update=False):
        q = self.session.query(Expense).filter_by(id=expense_id)
        if for_update:
            q = lock_for_update(q)
        return q.first()

    def get_staff_user(self, user_id):
        return self.session.get(StaffUser, user_id)

    def professionals(self):
        return self.session.query(Professional).order_by(Professional.id).all()

    def products(self):
        return self.session.query(Product).order_by(Product.id).all()

    def services(self):
        return self.session.query(Service).order_by(Service.id).all()

    def professional_rules(self):
        return self.session.query(ProfessionalCommissionRule).all()

    def local_admins(self, location_id=None):
        q = self.session.query(StaffUser).filter(
            StaffUser.role == ROLE_LOCAL_ADMIN,
            StaffUser.is_active.is_(True),
        )
        if location_id is not None:
            q = q.filter((StaffUser.location_id == location_id) | (StaffUser.location_id.is_(None)))
        return q.order_by(StaffUser.id).all()

    def admin_adjustments(self, year, month):
        return self.session.query(AdminCommissionAdjustment).filter_by(year=year, month=month).all()

    def add(self, record):
        self.session.add(record)
        self.session.flush()  # assigns ids without committing
        return record

    def delete(self, record):
        self.session.delete(record)
        self.session.flush()

    def run_transaction(self, write_fn):
        def _op():
            try:
                result = write_fn(self)
                self.session.commit()
                return result
            except Exception:
                self.session.rollback()
                raise

        try:
            return run_with_retry(
                _op,
                session=self.session,
                attempts=self.retry_attempts,
                backoff_base=self.retry_backoff,
            )
        except (OperationalError, StaleDataError) as exc:
            raise TransactionAbortedError(f"Store transaction aborted: {exc}") from exc

    def _override_query(self, year, month, location_id):
        q = self.session.query(MonthlyOverride).filter_by(year=year, month=month)
        if location_id is None:
            return q.filter(MonthlyOverride.location_id.is_(None))
        return q.filter(MonthlyOverride.location_id == location_id)

    def get_override(self, year, month, location_id=None):
        return self._override_query(year, month, location_id).first()

    def put_override(self, year, month, location_id, fields, admin_commissions, expense_categories, note=None):
        override = self._override_query(year, month, location_id).first()
        if override is None:
            override = MonthlyOverride(year=year, month=month, location_id=location_id)
            self.session.add(override)
        for field in OVERRIDE_FIELDS:
            setattr(override, f"{field}_cents", fields.get(field))
        override.admin_commissions = dict(admin_commissions)
        override.expense_categories = dict(expense_categories)
        override.note = note
        self.session.flush()
        return override

    def delete_override(self, year, month, location_id=None):
        override = self._override_query(year, month, location_id).first()
        if override is None:
            return False
        self.session.delete(override)
        self.session.flush()
        return True


def get_store() -> SqlAlchemyTransactionStore:
    """Store bound to the current request's session."""
    attempts, backoff = 3, 0.1
    if has_app_context():
        attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", attempts)
        backoff = current_app.config.get("TRANSACTION_RETRY_BACKOFF", backoff)
    return SqlAlchemyTransactionStore(db.session, retry_attempts=attempts, retry_backoff=backoff)
