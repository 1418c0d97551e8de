from __future__ import annotations

from ..extensions import db
from salon_ledger.time_utils import to_utc_z


COMMISSION_PERCENT = "PERCENT"
COMMISSION_FIXED = "FIXED"
COMMISSION_TYPES = (COMMISSION_PERCENT, COMMISSION_FIXED)

ROLE_LOCAL_ADMIN = "LOCAL_ADMIN"
ROLE_RECEPTIONIST = "RECEPTIONIST"
ROLE_OWNER = "OWNER"


class Location(db.Model):
    """A branch of the business. Every ledger record is scoped to one."""
    __tablename__ = "locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    default_float_cents = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "default_float_cents": self.default_float_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Professional(db.Model):
    """
    Service professional (stylist, barber) who earns commissions and tips.

    default_commission_* is the last fallback in commission rule resolution.
    commission_value is basis points for PERCENT rules and cents for FIXED.
    """
    __tablename__ = "professionals"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    default_commission_type = db.Column(db.String(16), nullable=True)
    default_commission_value = db.Column(db.Integer, nullable=True)

    location = db.relationship("Location", backref=db.backref("professionals", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location_id": self.location_id,
            "is_active": self.is_active,
            "default_commission_type": self.default_commission_type,
            "default_commission_value": self.default_commission_value,
        }


class Service(db.Model):
    """Bookable service catalog entry."""
    __tablename__ = "services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    commission_type = db.Column(db.String(16), nullable=True)
    commission_value = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "commission_type": self.commission_type,
            "commission_value": self.commission_value,
        }


class Product(db.Model):
    """
    Retail product catalog entry.

    purchase_cost_cents feeds the monthly reinvestment figure.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    purchase_cost_cents = db.Column(db.Integer, nullable=True)
    commission_type = db.Column(db.String(16), nullable=True)
    commission_value = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "purchase_cost_cents": self.purchase_cost_cents,
            "commission_type": self.commission_type,
            "commission_value": self.commission_value,
        }


class ProfessionalCommissionRule(db.Model):
    """
    Professional-specific commission for one product or service.

    Highest priority in rule resolution.
    """
    __tablename__ = "professional_commission_rules"
    __table_args__ = (
        db.UniqueConstraint("professional_id", "item_kind", "catalog_id", name="uq_prof_commission_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    professional_id = db.Column(db.Integer, db.ForeignKey("professionals.id"), nullable=False, index=True)
    item_kind = db.Column(db.String(16), nullable=False)  # SERVICE, PRODUCT
    catalog_id = db.Column(db.Integer, nullable=False)
    commission_type = db.Column(db.String(16), nullable=False)
    commission_value = db.Column(db.Integer, nullable=False)

    professional = db.relationship("Professional", backref=db.backref("commission_rules", lazy=True))


class StaffUser(db.Model):
    """
    Back-office staff member.

    Local admins earn a share of monthly utility. The base configuration here
    applies to every month unless an AdminCommissionAdjustment exists for it.
    """
    __tablename__ = "staff_users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(32), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    service_commission_type = db.Column(db.String(16), nullable=True)
    service_commission_value = db.Column(db.Integer, nullable=True)
    product_commission_type = db.Column(db.String(16), nullable=True)
    product_commission_value = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "location_id": self.location_id,
            "is_active": self.is_active,
            "service_commission_type": self.service_commission_type,
            "service_commission_value": self.service_commission_value,
            "product_commission_type": self.product_commission_type,
            "product_commission_value": self.product_commission_value,
        }
