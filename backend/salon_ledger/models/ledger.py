from __future__ import annotations

from ..extensions import db
from salon_ledger.time_utils import to_utc_z


# Payment methods
PAYMENT_CASH = "CASH"
PAYMENT_CARD = "CARD"
PAYMENT_TRANSFER = "TRANSFER"
PAYMENT_MIXED = "MIXED"
PAYMENT_ONLINE = "ONLINE"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_TRANSFER, PAYMENT_MIXED, PAYMENT_ONLINE)

# Sale payment status
STATUS_PAID = "PAID"
STATUS_DEPOSIT_PAID = "DEPOSIT_PAID"
STATUS_PARTIAL = "PARTIAL"
STATUS_PENDING = "PENDING"
SALE_PAYMENT_STATUSES = (STATUS_PAID, STATUS_DEPOSIT_PAID, STATUS_PARTIAL, STATUS_PENDING)

ITEM_SERVICE = "SERVICE"
ITEM_PRODUCT = "PRODUCT"
ITEM_KINDS = (ITEM_SERVICE, ITEM_PRODUCT)

# Expense categories (assigned when the expense is recorded)
CATEGORY_COMMISSION = "COMMISSION_PAYMENT"
CATEGORY_PAYROLL = "PAYROLL"
CATEGORY_FIXED_COST = "FIXED_COST"
CATEGORY_OTHER = "OTHER"
EXPENSE_CATEGORIES = (CATEGORY_COMMISSION, CATEGORY_PAYROLL, CATEGORY_FIXED_COST, CATEGORY_OTHER)

REF_ITEM = "ITEM"
REF_TIP = "TIP"


class Sale(db.Model):
    """
    Point-of-sale ticket.

    Immutable once recorded, except for the settlement flags
    (SaleItem.commission_paid and Sale.tip_paid).

    PAYMENT:
    - real_paid_cents is present only when less than total_cents (deposit or
      partial payment); the ratio real_paid/total scales every line item.
    - mixed_*_cents are present only for MIXED payments.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_location_sold", "location_id", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    total_cents = db.Column(db.Integer, nullable=False)
    real_paid_cents = db.Column(db.Integer, nullable=True)
    payment_method = db.Column(db.String(16), nullable=False, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=STATUS_PAID)

    mixed_cash_cents = db.Column(db.Integer, nullable=True)
    mixed_card_cents = db.Column(db.Integer, nullable=True)
    mixed_online_cents = db.Column(db.Integer, nullable=True)

    tip_cents = db.Column(db.Integer, nullable=False, default=0)
    tip_paid = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    location = db.relationship("Location", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.item_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def item_at(self, item_index: int) -> "SaleItem | None":
        for item in self.items:
            if item.item_index == item_index:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "sold_at": to_utc_z(self.sold_at),
            "total_cents": self.total_cents,
            "real_paid_cents": self.real_paid_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "mixed_cash_cents": self.mixed_cash_cents,
            "mixed_card_cents": self.mixed_card_cents,
            "mixed_online_cents": self.mixed_online_cents,
            "tip_cents": self.tip_cents,
            "tip_paid": self.tip_paid,
            "items": [item.to_dict() for item in self.items],
            "version_id": self.version_id,
        }


class SaleItem(db.Model):
    """Ordered line item on a sale; item_index is its position on the ticket."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "item_index", name="uq_sale_items_sale_index"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_index = db.Column(db.Integer, nullable=False)

    kind = db.Column(db.String(16), nullable=False)
    catalog_id = db.Column(db.Integer, nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    subtotal_cents = db.Column(db.Integer, nullable=True)
    discount_cents = db.Column(db.Integer, nullable=True)

    professional_id = db.Column(db.Integer, db.ForeignKey("professionals.id"), nullable=True, index=True)
    commission_paid = db.Column(db.Boolean, nullable=False, default=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship("Sale", back_populates="items")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "item_index": self.item_index,
            "kind": self.kind,
            "catalog_id": self.catalog_id,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "professional_id": self.professional_id,
            "commission_paid": self.commission_paid,
        }


class Expense(db.Model):
    """
    Money leaving a location (commission payouts, payroll, fixed costs, ...).

    STRUCTURE:
    - category is fixed when the expense is recorded.
    - service/product/tip *_cents hold the typed commission breakdown. Legacy
      rows carry it only inside the free-text comment.
    - settlement_refs link a commission payment to the exact sale items and
      tips it settled. Legacy rows have none.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_location_spent", "location_id", "spent_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)
    spent_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    concept = db.Column(db.String(128), nullable=False)
    recipient = db.Column(db.String(128), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(32), nullable=False, default=CATEGORY_OTHER, index=True)

    service_commission_cents = db.Column(db.Integer, nullable=True)
    product_commission_cents = db.Column(db.Integer, nullable=True)
    tip_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    settlement_refs = db.relationship(
        "ExpenseSettlementRef",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseSettlementRef.id",
        lazy="selectin",
    )

    @property
    def has_breakdown(self) -> bool:
        return any(
            v is not None
            for v in (self.service_commission_cents, self.product_commission_cents, self.tip_cents)
        )

    @property
    def has_structured_settlement(self) -> bool:
        return bool(self.settlement_refs)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "spent_at": to_utc_z(self.spent_at),
            "concept": self.concept,
            "recipient": self.recipient,
            "amount_cents": self.amount_cents,
            "comment": self.comment,
            "category": self.category,
            "service_commission_cents": self.service_commission_cents,
            "product_commission_cents": self.product_commission_cents,
            "tip_cents": self.tip_cents,
            "settlement_refs": [ref.to_dict() for ref in self.settlement_refs],
        }


class ExpenseSettlementRef(db.Model):
    """
    Back-reference from a commission payment to what it settled.

    ITEM refs point at (sale_id, item_index); TIP refs at sale_id only.
    No foreign key on sale_id: the ref outlives a removed sale and is then
    skipped on reversal.
    """
    __tablename__ = "expense_settlement_refs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=False, index=True)
    ref_type = db.Column(db.String(8), nullable=False)
    sale_id = db.Column(db.Integer, nullable=False, index=True)
    item_index = db.Column(db.Integer, nullable=True)

    expense = db.relationship("Expense", back_populates="settlement_refs")

    def to_dict(self) -> dict:
        return {
            "ref_type": self.ref_type,
            "sale_id": self.sale_id,
            "item_index": self.item_index,
        }


class ManualIncome(db.Model):
    """Cash put into the drawer outside of a sale."""
    __tablename__ = "manual_incomes"
    __table_args__ = (
        db.Index("ix_manual_incomes_location_received", "location_id", "received_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    concept = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "received_at": to_utc_z(self.received_at),
            "amount_cents": self.amount_cents,
            "concept": self.concept,
        }


class CashCut(db.Model):
    """
    End-of-shift cash audit snapshot.

    IMMUTABLE: never updated; a later cut supersedes it.

    BASELINE for the next live-cash period, in order of preference:
    system_total_cents; legacy_calculated_total_cents when
    delivered_amount_cents is negative (legacy sentinel); base_float_cents.
    """
    __tablename__ = "cash_cuts"
    __table_args__ = (
        db.Index("ix_cash_cuts_location_cut", "location_id", "cut_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)
    cut_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    system_total_cents = db.Column(db.Integer, nullable=True)
    legacy_calculated_total_cents = db.Column(db.Integer, nullable=True)
    base_float_cents = db.Column(db.Integer, nullable=True)
    delivered_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    counted_total_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)
    received_by = db.Column(db.String(128), nullable=True)
    comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "cut_at": to_utc_z(self.cut_at),
            "system_total_cents": self.system_total_cents,
            "legacy_calculated_total_cents": self.legacy_calculated_total_cents,
            "base_float_cents": self.base_float_cents,
            "delivered_amount_cents": self.delivered_amount_cents,
            "counted_total_cents": self.counted_total_cents,
            "difference_cents": self.difference_cents,
            "received_by": self.received_by,
            "comment": self.comment,
        }
