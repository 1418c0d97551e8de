from __future__ import annotations

from ..extensions import db
from salon_ledger.time_utils import to_utc_z


# Scalar figures an operator may freeze for a month
OVERRIDE_FIELDS = (
    "service_revenue",
    "service_commissions",
    "service_expense",
    "service_subtotal",
    "service_net_utility",
    "product_revenue",
    "reinvestment",
    "product_professional_commission",
    "product_subtotal",
    "product_net_utility",
)

# Keys accepted in MonthlyOverride.expense_categories
EXPENSE_CATEGORY_KEYS = ("commissions", "payroll", "fixed_costs", "other")

ADMIN_SIDE_SERVICE = "service"
ADMIN_SIDE_PRODUCT = "product"
ADMIN_SIDES = (ADMIN_SIDE_SERVICE, ADMIN_SIDE_PRODUCT)


class MonthlyOverride(db.Model):
    """
    Operator-frozen financial figures for one month and location.

    FROZEN: values are stored verbatim and never recomputed. A NULL column
    means the figure is not overridden and the automatic value is shown.
    No expiry: the row lives until an operator deletes it.

    admin_commissions: {"<admin_id>": {"service": cents, "product": cents}}
    expense_categories: {"payroll": cents, "fixed_costs": cents, ...}
    """
    __tablename__ = "monthly_overrides"
    __table_args__ = (
        db.UniqueConstraint("year", "month", "location_id", name="uq_monthly_override_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)

    service_revenue_cents = db.Column(db.Integer, nullable=True)
    service_commissions_cents = db.Column(db.Integer, nullable=True)
    service_expense_cents = db.Column(db.Integer, nullable=True)
    service_subtotal_cents = db.Column(db.Integer, nullable=True)
    service_net_utility_cents = db.Column(db.Integer, nullable=True)
    product_revenue_cents = db.Column(db.Integer, nullable=True)
    reinvestment_cents = db.Column(db.Integer, nullable=True)
    product_professional_commission_cents = db.Column(db.Integer, nullable=True)
    product_subtotal_cents = db.Column(db.Integer, nullable=True)
    product_net_utility_cents = db.Column(db.Integer, nullable=True)

    admin_commissions = db.Column(db.JSON, nullable=False, default=dict)
    expense_categories = db.Column(db.JSON, nullable=False, default=dict)

    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def field_cents(self, field: str) -> int | None:
        return getattr(self, f"{field}_cents")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "month": self.month,
            "location_id": self.location_id,
            "fields": {field: self.field_cents(field) for field in OVERRIDE_FIELDS},
            "admin_commissions": dict(self.admin_commissions or {}),
            "expense_categories": dict(self.expense_categories or {}),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class AdminCommissionAdjustment(db.Model):
    """
    Per-month replacement of a local admin's base commission configuration.

    Unlike MonthlyOverride this is configuration: the amount is still
    computed from the month's utility.
    """
    __tablename__ = "admin_commission_adjustments"
    __table_args__ = (
        db.UniqueConstraint("admin_id", "year", "month", "side", name="uq_admin_adjustment_period_side"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("staff_users.id"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    side = db.Column(db.String(16), nullable=False)  # service, product
    commission_type = db.Column(db.String(16), nullable=False)
    commission_value = db.Column(db.Integer, nullable=False)

    admin = db.relationship("StaffUser", backref=db.backref("commission_adjustments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "year": self.year,
            "month": self.month,
            "side": self.side,
            "commission_type": self.commission_type,
            "commission_value": self.commission_value,
        }
