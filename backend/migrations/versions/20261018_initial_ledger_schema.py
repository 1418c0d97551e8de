"""Initial ledger reconciliation schema

Revision ID: 20261018_initial_ledger
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False)


def upgrade():
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("default_float_cents", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_locations_code", "locations", ["code"], unique=False)

    op.create_table(
        "professionals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("default_commission_type", sa.String(length=16), nullable=True),
        sa.Column("default_commission_value", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_professionals_location_id", "professionals", ["location_id"], unique=False)
    op.create_index("ix_professionals_is_active", "professionals", ["is_active"], unique=False)

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("commission_type", sa.String(length=16), nullable=True),
        sa.Column("commission_value", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("purchase_cost_cents", sa.Integer(), nullable=True),
        sa.Column("commission_type", sa.String(length=16), nullable=True),
        sa.Column("commission_value", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "professional_commission_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("item_kind", sa.String(length=16), nullable=False),
        sa.Column("catalog_id", sa.Integer(), nullable=False),
        sa.Column("commission_type", sa.String(length=16), nullable=False),
        sa.Column("commission_value", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("professional_id", "item_kind", "catalog_id", name="uq_prof_commission_item"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "ix_professional_commission_rules_professional_id",
        "professional_commission_rules", ["professional_id"], unique=False,
    )

    op.create_table(
        "staff_users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("service_commission_type", sa.String(length=16), nullable=True),
        sa.Column("service_commission_value", sa.Integer(), nullable=True),
        sa.Column("product_commission_type", sa.String(length=16), nullable=True),
        sa.Column("product_commission_value", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_staff_users_role", "staff_users", ["role"], unique=False)
    op.create_index("ix_staff_users_location_id", "staff_users", ["location_id"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("real_paid_cents", sa.Integer(), nullable=True),
        sa.Column("payment_method", sa.String(length=16), nullable=False),
        sa.Column("payment_status", sa.String(length=16), nullable=False, server_default="PAID"),
        sa.Column("mixed_cash_cents", sa.Integer(), nullable=True),
        sa.Column("mixed_card_cents", sa.Integer(), nullable=True),
        sa.Column("mixed_online_cents", sa.Integer(), nullable=True),
        sa.Column("tip_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tip_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_location_id", "sales", ["location_id"], unique=False)
    op.create_index("ix_sales_sold_at", "sales", ["sold_at"], unique=False)
    op.create_index("ix_sales_payment_method", "sales", ["payment_method"], unique=False)
    op.create_index("ix_sales_location_sold", "sales", ["location_id", "sold_at"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("item_index", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("catalog_id", sa.Integer(), nullable=True),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("subtotal_cents", sa.Integer(), nullable=True),
        sa.Column("discount_cents", sa.Integer(), nullable=True),
        sa.Column("professional_id", sa.Integer(), nullable=True),
        sa.Column("commission_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sale_id", "item_index", name="uq_sale_items_sale_index"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"], unique=False)
    op.create_index("ix_sale_items_professional_id", "sale_items", ["professional_id"], unique=False)

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("spent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("concept", sa.String(length=128), nullable=False),
        sa.Column("recipient", sa.String(length=128), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="OTHER"),
        sa.Column("service_commission_cents", sa.Integer(), nullable=True),
        sa.Column("product_commission_cents", sa.Integer(), nullable=True),
        sa.Column("tip_cents", sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_expenses_location_id", "expenses", ["location_id"], unique=False)
    op.create_index("ix_expenses_spent_at", "expenses", ["spent_at"], unique=False)
    op.create_index("ix_expenses_category", "expenses", ["category"], unique=False)
    op.create_index("ix_expenses_location_spent", "expenses", ["location_id", "spent_at"], unique=False)

    op.create_table(
        "expense_settlement_refs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("expense_id", sa.Integer(), nullable=False),
        sa.Column("ref_type", sa.String(length=8), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("item_index", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["expense_id"], ["expenses.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_expense_settlement_refs_expense_id", "expense_settlement_refs", ["expense_id"], unique=False)
    op.create_index("ix_expense_settlement_refs_sale_id", "expense_settlement_refs", ["sale_id"], unique=False)

    op.create_table(
        "manual_incomes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("concept", sa.String(length=128), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_manual_incomes_location_id", "manual_incomes", ["location_id"], unique=False)
    op.create_index("ix_manual_incomes_received_at", "manual_incomes", ["received_at"], unique=False)
    op.create_index(
        "ix_manual_incomes_location_received", "manual_incomes", ["location_id", "received_at"], unique=False,
    )

    op.create_table(
        "cash_cuts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("cut_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("system_total_cents", sa.Integer(), nullable=True),
        sa.Column("legacy_calculated_total_cents", sa.Integer(), nullable=True),
        sa.Column("base_float_cents", sa.Integer(), nullable=True),
        sa.Column("delivered_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("counted_total_cents", sa.Integer(), nullable=True),
        sa.Column("difference_cents", sa.Integer(), nullable=True),
        sa.Column("received_by", sa.String(length=128), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_cuts_location_id", "cash_cuts", ["location_id"], unique=False)
    op.create_index("ix_cash_cuts_cut_at", "cash_cuts", ["cut_at"], unique=False)
    op.create_index("ix_cash_cuts_location_cut", "cash_cuts", ["location_id", "cut_at"], unique=False)

    op.create_table(
        "monthly_overrides",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("service_revenue_cents", sa.Integer(), nullable=True),
        sa.Column("service_commissions_cents", sa.Integer(), nullable=True),
        sa.Column("service_expense_cents", sa.Integer(), nullable=True),
        sa.Column("service_subtotal_cents", sa.Integer(), nullable=True),
        sa.Column("service_net_utility_cents", sa.Integer(), nullable=True),
        sa.Column("product_revenue_cents", sa.Integer(), nullable=True),
        sa.Column("reinvestment_cents", sa.Integer(), nullable=True),
        sa.Column("product_professional_commission_cents", sa.Integer(), nullable=True),
        sa.Column("product_subtotal_cents", sa.Integer(), nullable=True),
        sa.Column("product_net_utility_cents", sa.Integer(), nullable=True),
        sa.Column("admin_commissions", sa.JSON(), nullable=False),
        sa.Column("expense_categories", sa.JSON(), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("year", "month", "location_id", name="uq_monthly_override_period"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_monthly_overrides_location_id", "monthly_overrides", ["location_id"], unique=False)

    op.create_table(
        "admin_commission_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("admin_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("side", sa.String(length=16), nullable=False),
        sa.Column("commission_type", sa.String(length=16), nullable=False),
        sa.Column("commission_value", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["admin_id"], ["staff_users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("admin_id", "year", "month", "side", name="uq_admin_adjustment_period_side"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "ix_admin_commission_adjustments_admin_id", "admin_commission_adjustments", ["admin_id"], unique=False,
    )

    op.create_table(
        "reconciliation_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_reconciliation_events_event_type", "reconciliation_events", ["event_type"], unique=False)
    op.create_index("ix_reconciliation_events_location_id", "reconciliation_events", ["location_id"], unique=False)
    op.create_index("ix_reconciliation_events_occurred_at", "reconciliation_events", ["occurred_at"], unique=False)
    op.create_index(
        "ix_reconciliation_events_location_occurred",
        "reconciliation_events", ["location_id", "occurred_at"], unique=False,
    )


def downgrade():
    for table in (
        "reconciliation_events",
        "admin_commission_adjustments",
        "monthly_overrides",
        "cash_cuts",
        "manual_incomes",
        "expense_settlement_refs",
        "expenses",
        "sale_items",
        "sales",
        "staff_users",
        "professional_commission_rules",
        "products",
        "services",
        "professionals",
        "locations",
    ):
        op.drop_table(table)
