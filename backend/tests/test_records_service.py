"""
Sale, expense and manual income recording tests.
"""

import pytest

from salon_ledger.models import Expense, Sale
from salon_ledger.models.ledger import (
    CATEGORY_COMMISSION,
    CATEGORY_FIXED_COST,
    CATEGORY_OTHER,
    CATEGORY_PAYROLL,
    ITEM_SERVICE,
    PAYMENT_CARD,
    PAYMENT_MIXED,
)
from salon_ledger.services import records_service
from salon_ledger.validation import ValidationError


class TestLegacyClassification:
    @pytest.mark.parametrize("concept,recipient,expected", [
        ("Commission week 3", "7", CATEGORY_COMMISSION),
        ("COMMISSION", "Payroll", CATEGORY_COMMISSION),
        ("Payroll", "Fixed costs", CATEGORY_PAYROLL),
        ("Rent", "Fixed costs", CATEGORY_FIXED_COST),
        ("payroll", "Staff", CATEGORY_OTHER),
        ("Towels", "Vendor", CATEGORY_OTHER),
        (None, None, CATEGORY_OTHER),
    ])
    def test_rules(self, concept, recipient, expected):
        assert records_service.classify_legacy_expense(concept, recipient) == expected


class TestRecordSale:
    def _payload(self, location, **overrides):
        payload = {
            "location_id": location.id,
            "sold_at": "2024-01-05T10:00:00Z",
            "total_cents": 20000,
            "payment_method": PAYMENT_CARD,
            "items": [{"kind": ITEM_SERVICE, "subtotal_cents": 20000}],
        }
        payload.update(overrides)
        return payload

    def test_records_sale_with_items(self, store, db_session, location):
        sale = records_service.record_sale(store, self._payload(location))

        assert sale.id is not None
        assert [item.item_index for item in sale.items] == [0]
        assert db_session.query(Sale).count() == 1

    def test_real_paid_equal_to_total_is_dropped(self, store, location):
        sale = records_service.record_sale(store, self._payload(location, real_paid_cents=20000))
        assert sale.real_paid_cents is None

    def test_real_paid_above_total_rejected(self, store, location):
        with pytest.raises(ValidationError):
            records_service.record_sale(store, self._payload(location, real_paid_cents=20001))

    def test_mixed_breakdown_rules(self, store, location):
        with pytest.raises(ValidationError):
            records_service.record_sale(store, self._payload(location, payment_method=PAYMENT_MIXED))
        with pytest.raises(ValidationError):
            records_service.record_sale(store, self._payload(location, mixed_cash_cents=100))

    def test_bad_item_rejected_without_write(self, store, db_session, location):
        payload = self._payload(location, items=[{"kind": "GIFT_CARD"}])

        with pytest.raises(ValidationError):
            records_service.record_sale(store, payload)
        assert db_session.query(Sale).count() == 0

    def test_decimal_amounts_rejected(self, store, location):
        with pytest.raises(ValidationError):
            records_service.record_sale(store, self._payload(location, total_cents=200.5))


class TestRecordExpense:
    def test_category_from_legacy_rules(self, store, location):
        expense = records_service.record_expense(store, {
            "location_id": location.id,
            "spent_at": "2024-01-05T18:00:00",
            "concept": "Payroll",
            "recipient": "Staff",
            "amount_cents": 50000,
        })
        assert expense.category == CATEGORY_PAYROLL

    def test_breakdown_must_add_up(self, store, db_session):
        with pytest.raises(ValidationError):
            records_service.record_expense(store, {
                "spent_at": "2024-01-05T18:00:00",
                "concept": "Commission",
                "recipient": "1",
                "amount_cents": 5000,
                "service_commission_cents": 3000,
                "tip_cents": 1000,
            })
        assert db_session.query(Expense).count() == 0

    def test_breakdown_only_on_commission_payments(self, store):
        with pytest.raises(ValidationError):
            records_service.record_expense(store, {
                "spent_at": "2024-01-05T18:00:00",
                "concept": "Rent",
                "recipient": "Landlord",
                "amount_cents": 5000,
                "service_commission_cents": 5000,
            })

    def test_unknown_category(self, store):
        with pytest.raises(ValidationError):
            records_service.record_expense(store, {
                "spent_at": "2024-01-05T18:00:00",
                "concept": "Rent",
                "recipient": "Landlord",
                "amount_cents": 5000,
                "category": "TAXES",
            })


class TestRecordManualIncome:
    def test_records_income(self, store, location):
        income = records_service.record_manual_income(store, {
            "location_id": location.id,
            "received_at": "2024-01-05T09:00:00",
            "amount_cents": 2000,
            "concept": "Float top-up",
        })
        assert income.id is not None

    def test_negative_amount_rejected(self, store):
        with pytest.raises(ValidationError):
            records_service.record_manual_income(store, {
                "received_at": "2024-01-05T09:00:00",
                "amount_cents": -1,
                "concept": "Refund",
            })
