"""
Monthly finance report tests.

Covers:
- Payment ratio applied to item revenue
- Product side: reinvestment and professional product commission
- Service side: commission payouts, payroll and fixed costs
- Local admin commissions on subtotals
- Field-level override merge
- Annual summary
"""

from decimal import Decimal

import pytest

from conftest import dt, product_item, service_item
from salon_ledger.models import AdminCommissionAdjustment
from salon_ledger.models.catalog import COMMISSION_PERCENT
from salon_ledger.models.finance import ADMIN_SIDE_PRODUCT, ADMIN_SIDE_SERVICE
from salon_ledger.services import override_service, reporting_service
from salon_ledger.validation import ValidationError


@pytest.fixture
def january(make_sale, make_expense, prof_a, haircut, pomade):
    """One service sale, one product sale and one expense of each category."""
    make_sale(20000, dt(5), items=[service_item(haircut, prof_a)])
    make_sale(20000, dt(6), items=[product_item(pomade, prof_a, quantity=2)])
    make_expense(
        12000, dt(20), concept="Commission", recipient=str(prof_a.id),
        service_commission_cents=10000, product_commission_cents=2000, tip_cents=0,
    )
    make_expense(3000, dt(25), concept="Payroll", recipient="Staff")
    make_expense(5000, dt(26), concept="Rent", recipient="Fixed costs")
    make_expense(1000, dt(27), concept="Supplies", recipient="Vendor")


class TestAutomaticFigures:
    def test_partial_payment_scales_revenue(self, store, make_sale, prof_a, haircut):
        make_sale(20000, dt(5), items=[service_item(haircut, prof_a)], real_paid_cents=10000)

        report = reporting_service.monthly_report(store, 1, 2024)

        assert report.value("service_revenue") == Decimal("100.00")

    def test_product_and_service_sides(self, store, january):
        report = reporting_service.monthly_report(store, 1, 2024)

        assert report.value("product_revenue") == Decimal("200.00")
        assert report.value("reinvestment") == Decimal("80.00")
        assert report.value("product_professional_commission") == Decimal("20.00")
        assert report.value("product_subtotal") == Decimal("100.00")

        assert report.value("service_revenue") == Decimal("200.00")
        assert report.value("service_commissions") == Decimal("100.00")
        # 100 + 20 commissions + 30 payroll + 50 fixed - 20 already charged to products
        assert report.value("service_expense") == Decimal("180.00")
        assert report.value("service_subtotal") == Decimal("20.00")

    def test_expense_categories(self, store, january):
        report = reporting_service.monthly_report(store, 1, 2024)

        values = {key: fig.value for key, fig in report.expense_categories.items()}
        assert values == {
            "commissions": Decimal("120.00"),
            "payroll": Decimal("30.00"),
            "fixed_costs": Decimal("50.00"),
            "other": Decimal("10.00"),
        }

    def test_payroll_paid_to_fixed_costs_counts_once(self, store, make_expense):
        make_expense(4000, dt(10), concept="Payroll", recipient="Fixed costs")

        report = reporting_service.monthly_report(store, 1, 2024)

        assert report.expense_categories["payroll"].value == Decimal("40.00")
        assert report.expense_categories["fixed_costs"].value == Decimal("0.00")
        assert report.value("service_expense") == Decimal("40.00")

    def test_other_months_excluded(self, store, make_sale, prof_a, haircut):
        make_sale(20000, dt(31, 23, 59), items=[service_item(haircut, prof_a)])
        make_sale(20000, dt(1, 0, 0, month=2), items=[service_item(haircut, prof_a)])

        assert reporting_service.monthly_report(store, 1, 2024).value("service_revenue") == Decimal("200.00")

    def test_commissions_by_recipient_and_daily_income(self, store, january, prof_a):
        report = reporting_service.monthly_report(store, 1, 2024)

        assert set(report.commissions_by_recipient) == {"Alex"}
        assert [row.day.day for row in report.daily_income] == [5, 6]

    def test_invalid_month(self, store):
        with pytest.raises(ValidationError):
            reporting_service.monthly_report(store, 13, 2024)


class TestAdminCommissions:
    def test_percent_applies_to_subtotal_not_revenue(self, store, january, local_admin):
        report = reporting_service.monthly_report(store, 1, 2024)

        lines = [line for line in report.admin_commissions if line.admin_id == local_admin.id]
        assert [line.side for line in lines] == [ADMIN_SIDE_SERVICE]
        # 10% of the 20.00 service subtotal
        assert lines[0].figure.value == Decimal("2.00")
        assert lines[0].source == "base"
        assert report.value("service_net_utility") == Decimal("18.00")
        assert report.value("product_net_utility") == Decimal("100.00")

    def test_monthly_adjustment_replaces_base(self, store, db_session, january, local_admin):
        db_session.add_all([
            AdminCommissionAdjustment(admin_id=local_admin.id, year=2024, month=1, side=ADMIN_SIDE_SERVICE,
                                      commission_type=COMMISSION_PERCENT, commission_value=5000),
            AdminCommissionAdjustment(admin_id=local_admin.id, year=2024, month=1, side=ADMIN_SIDE_PRODUCT,
                                      commission_type=COMMISSION_PERCENT, commission_value=2000),
        ])
        db_session.commit()

        report = reporting_service.monthly_report(store, 1, 2024)

        assert report.admin_total(ADMIN_SIDE_SERVICE) == Decimal("10.00")
        assert report.admin_total(ADMIN_SIDE_PRODUCT) == Decimal("20.00")
        assert {line.source for line in report.admin_commissions} == {"adjustment"}
        assert report.value("product_net_utility") == Decimal("80.00")

        # Other months still use the base configuration
        february = reporting_service.monthly_report(store, 2, 2024)
        assert [line.source for line in february.admin_commissions] == ["base"]


class TestOverrideMerge:
    def test_overridden_field_shown_next_to_automatic(self, store, january):
        override_service.save_override(store, 2024, 1, {
            "fields": {"service_revenue": 99999},
            "note": "Closed books",
        })

        report = reporting_service.monthly_report(store, 1, 2024)
        figure = report.figures["service_revenue"]

        assert figure.value == Decimal("999.99")
        assert figure.automatic == Decimal("200.00")
        assert figure.is_overridden
        # Dependent figures keep their automatic values
        assert report.value("service_subtotal") == Decimal("20.00")
        assert report.override_note == "Closed books"

    def test_admin_and_category_overrides(self, store, january, local_admin):
        override_service.save_override(store, 2024, 1, {
            "admin_commissions": {str(local_admin.id): {"service": 500}},
            "expense_categories": {"payroll": 4500},
        })

        report = reporting_service.monthly_report(store, 1, 2024)

        line = next(line for line in report.admin_commissions if line.admin_id == local_admin.id)
        assert line.figure.automatic == Decimal("2.00")
        assert line.figure.value == Decimal("5.00")
        assert report.expense_categories["payroll"].value == Decimal("45.00")
        assert report.expense_categories["fixed_costs"].override is None

    def test_to_dict_uses_cents(self, store, january):
        override_service.save_override(store, 2024, 1, {"fields": {"reinvestment": 7000}})

        data = reporting_service.monthly_report(store, 1, 2024).to_dict()

        assert data["has_override"] is True
        assert data["figures"]["reinvestment"] == {
            "automatic_cents": 8000,
            "override_cents": 7000,
            "value_cents": 7000,
        }


class TestAnnualSummary:
    def test_totals_use_shown_values(self, store, make_sale, prof_a, haircut):
        make_sale(20000, dt(5), items=[service_item(haircut, prof_a)])
        make_sale(10000, dt(5, month=2), items=[service_item(haircut, prof_a, subtotal_cents=10000)])
        override_service.save_override(store, 2024, 2, {"fields": {"service_revenue": 5000}})

        summary = reporting_service.annual_summary(store, 2024)

        assert len(summary["months"]) == 12
        assert summary["months"][1]["has_override"] is True
        assert summary["months"][1]["values"]["service_revenue"] == 5000
        assert summary["totals"]["service_revenue"] == 25000
