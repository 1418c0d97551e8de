"""
Commission settlement and reversal tests.

Covers:
- Settling items and tips into one structured commission payout
- Exact, idempotent structured reversal
- Dangling settlement refs
- Heuristic same-day reversal for legacy payouts (over-reversal included)
- Atomicity of delete + reversal
"""

from decimal import Decimal

import pytest

from conftest import dt, product_item, service_item
from salon_ledger.models import Expense, ReconciliationEvent, Sale
from salon_ledger.models.ledger import CATEGORY_COMMISSION, REF_ITEM, REF_TIP
from salon_ledger.services import cash_service, reporting_service, settlement_service
from salon_ledger.services.ledger_service import EVENT_COMMISSION_REVERSED, EVENT_COMMISSION_SETTLED
from salon_ledger.store import TransactionAbortedError
from salon_ledger.validation import NotFoundError, ValidationError
from sqlalchemy.exc import OperationalError


def _flags(db_session, sale_id):
    db_session.expire_all()
    sale = db_session.get(Sale, sale_id)
    return [item.commission_paid for item in sale.items], sale.tip_paid


class TestSettleCommissions:
    def test_creates_structured_payout_and_marks_flags(self, store, db_session, location, make_sale,
                                                       prof_a, haircut, pomade):
        sale = make_sale(30000, dt(5), tip_cents=1500, items=[
            service_item(haircut, prof_a),
            product_item(pomade, prof_a),
        ])

        expense = settlement_service.settle_commissions(
            store, prof_a.id,
            item_refs=[{"sale_id": sale.id, "item_index": 0}, {"sale_id": sale.id, "item_index": 1}],
            tip_sale_ids=[sale.id],
            location_id=location.id,
            paid_at=dt(6),
        )

        assert expense.category == CATEGORY_COMMISSION
        assert expense.recipient == str(prof_a.id)
        assert expense.service_commission_cents == 10000
        assert expense.product_commission_cents == 1000
        assert expense.tip_cents == 1500
        assert expense.amount_cents == 12500
        assert sorted((r.ref_type, r.item_index) for r in expense.settlement_refs) == [
            (REF_ITEM, 0), (REF_ITEM, 1), (REF_TIP, None),
        ]
        assert _flags(db_session, sale.id) == ([True, True], True)
        assert db_session.query(ReconciliationEvent).filter_by(event_type=EVENT_COMMISSION_SETTLED).count() == 1

    def test_already_settled_item_rejects_whole_payout(self, store, db_session, make_sale, prof_a, haircut):
        sale = make_sale(40000, dt(5), items=[
            service_item(haircut, prof_a),
            service_item(haircut, prof_a, commission_paid=True),
        ])

        with pytest.raises(ValidationError):
            settlement_service.settle_commissions(store, prof_a.id, item_refs=[(sale.id, 0), (sale.id, 1)])

        assert _flags(db_session, sale.id) == ([False, True], False)
        assert db_session.query(Expense).count() == 0

    def test_item_of_another_professional_rejected(self, store, make_sale, prof_a, prof_b, haircut):
        sale = make_sale(20000, dt(5), items=[service_item(haircut, prof_b)])

        with pytest.raises(ValidationError):
            settlement_service.settle_commissions(store, prof_a.id, item_refs=[(sale.id, 0)])

    def test_missing_sale_is_not_found(self, store, prof_a):
        with pytest.raises(NotFoundError):
            settlement_service.settle_commissions(store, prof_a.id, item_refs=[(999, 0)])

    def test_nothing_to_settle(self, store, prof_a):
        with pytest.raises(ValidationError):
            settlement_service.settle_commissions(store, prof_a.id)

    def test_payout_booked_at_the_sales_location(self, store, location, make_cut, make_sale, prof_a, haircut):
        make_cut(dt(5, 8), system_total_cents=50000)
        sale = make_sale(20000, dt(5, 10), items=[service_item(haircut, prof_a)])

        expense = settlement_service.settle_commissions(store, prof_a.id, item_refs=[(sale.id, 0)], paid_at=dt(5, 20))

        assert expense.location_id == location.id
        assert cash_service.live_cash(store, location.id).amount == Decimal("600.00")
        report = reporting_service.monthly_report(store, 1, 2024, location.id)
        assert report.value("service_commissions") == Decimal("100.00")

    def test_sales_from_two_locations_rejected(self, store, db_session, other_location, make_sale, prof_a, haircut):
        here = make_sale(20000, dt(5), items=[service_item(haircut, prof_a)])
        there = make_sale(20000, dt(5), location_id=other_location.id, items=[service_item(haircut, prof_a)])

        with pytest.raises(ValidationError):
            settlement_service.settle_commissions(store, prof_a.id, item_refs=[(here.id, 0), (there.id, 0)])

        assert _flags(db_session, here.id) == ([False], False)
        assert db_session.query(Expense).count() == 0

    def test_location_not_matching_the_sales_rejected(self, store, db_session, other_location, make_sale,
                                                      prof_a, haircut):
        sale = make_sale(20000, dt(5), items=[service_item(haircut, prof_a)])

        with pytest.raises(ValidationError):
            settlement_service.settle_commissions(
                store, prof_a.id, item_refs=[(sale.id, 0)], location_id=other_location.id,
            )

        assert db_session.query(Expense).count() == 0


class TestStructuredReversal:
    def test_flips_exactly_the_referenced_items(self, store, db_session, make_sale, make_expense, prof_a, haircut):
        sale_1 = make_sale(40000, dt(5), tip_cents=500, tip_paid=True, items=[
            service_item(haircut, prof_a, commission_paid=True),
            service_item(haircut, prof_a, commission_paid=True),
        ])
        sale_2 = make_sale(20000, dt(5), tip_cents=500, tip_paid=True, items=[
            service_item(haircut, prof_a, commission_paid=True),
        ])
        expense = make_expense(
            10000, dt(5, 18), concept="Commission", recipient=str(prof_a.id),
            refs=[(REF_ITEM, sale_1.id, 1), (REF_TIP, sale_1.id, None)],
        )

        reversal = settlement_service.delete_expense(store, expense.id)

        assert reversal.mode == settlement_service.MODE_STRUCTURED
        assert len(reversal.affected) == 2
        assert _flags(db_session, sale_1.id) == ([True, False], False)
        assert _flags(db_session, sale_2.id) == ([True], True)
        assert db_session.get(Expense, expense.id) is None

    def test_reversal_is_idempotent(self, store, db_session, make_sale, make_expense, prof_a, haircut):
        sale = make_sale(20000, dt(5), items=[service_item(haircut, prof_a, commission_paid=True)])
        expense = make_expense(10000, dt(5, 18), concept="Commission", recipient=str(prof_a.id),
                               refs=[(REF_ITEM, sale.id, 0)])

        first = settlement_service.reverse_commission_payment(store, expense)
        second = settlement_service.reverse_commission_payment(store, expense)
        db_session.commit()

        assert len(first.affected) == 1
        assert second.affected == []
        assert _flags(db_session, sale.id) == ([False], False)

    def test_dangling_refs_are_skipped_and_recorded(self, store, db_session, make_sale, make_expense,
                                                    prof_a, haircut):
        sale = make_sale(20000, dt(5), items=[service_item(haircut, prof_a, commission_paid=True)])
        expense = make_expense(
            10000, dt(5, 18), concept="Commission", recipient=str(prof_a.id),
            refs=[(REF_ITEM, 4242, 0), (REF_ITEM, sale.id, 3), (REF_ITEM, sale.id, 0)],
        )

        reversal = settlement_service.delete_expense(store, expense.id)

        assert len(reversal.affected) == 1
        assert len(reversal.skipped) == 2
        assert _flags(db_session, sale.id) == ([False], False)
        event = db_session.query(ReconciliationEvent).filter_by(event_type=EVENT_COMMISSION_REVERSED).one()
        assert len(event.payload["reversal"]["skipped"]) == 2


class TestHeuristicReversal:
    def test_same_day_over_reversal_is_preserved(self, store, db_session, other_location, make_sale,
                                                 make_expense, prof_a, prof_b, haircut):
        # Two sales, same professional, same day; the legacy payout was for the first only
        sale_1 = make_sale(20000, dt(5, 10), tip_cents=500, tip_paid=True,
                           items=[service_item(haircut, prof_a, commission_paid=True)])
        sale_2 = make_sale(20000, dt(5, 15), location_id=other_location.id,
                           items=[service_item(haircut, prof_a, commission_paid=True),
                                  service_item(haircut, prof_b, commission_paid=True)])
        next_day = make_sale(20000, dt(6, 9), items=[service_item(haircut, prof_a, commission_paid=True)])
        legacy = make_expense(10000, dt(5, 18), concept="Commission", recipient=str(prof_a.id),
                              comment="Service Commission: $100.00")

        reversal = settlement_service.delete_expense(store, legacy.id)

        assert reversal.mode == settlement_service.MODE_HEURISTIC
        assert _flags(db_session, sale_1.id) == ([False], False)
        assert _flags(db_session, sale_2.id) == ([False, True], False)
        assert _flags(db_session, next_day.id) == ([True], False)

    def test_tip_untouched_when_professional_not_on_sale(self, store, db_session, make_sale, make_expense,
                                                         prof_a, prof_b, haircut):
        sale = make_sale(20000, dt(5, 10), tip_cents=500, tip_paid=True,
                         items=[service_item(haircut, prof_b, commission_paid=True)])
        legacy = make_expense(5000, dt(5, 18), concept="Commission", recipient=str(prof_a.id))

        settlement_service.delete_expense(store, legacy.id)

        assert _flags(db_session, sale.id) == ([True], True)


class TestDeleteExpense:
    def test_plain_expense_deleted_without_reversal(self, store, db_session, make_expense):
        expense = make_expense(30000, dt(5), concept="Rent", recipient="Fixed costs")

        assert settlement_service.delete_expense(store, expense.id) is None
        assert db_session.get(Expense, expense.id) is None

    def test_unknown_expense(self, store):
        with pytest.raises(NotFoundError):
            settlement_service.delete_expense(store, 12345)

    def test_delete_commission_expense_refuses_other_categories(self, store, make_expense):
        expense = make_expense(30000, dt(5), concept="Payroll", recipient="Staff")

        with pytest.raises(settlement_service.SettlementError):
            settlement_service.delete_commission_expense(store, expense.id)

    def test_failed_delete_leaves_flags_untouched(self, store, db_session, monkeypatch, make_sale,
                                                  make_expense, prof_a, haircut):
        sale = make_sale(20000, dt(5), items=[service_item(haircut, prof_a, commission_paid=True)])
        expense = make_expense(10000, dt(5, 18), concept="Commission", recipient=str(prof_a.id),
                               refs=[(REF_ITEM, sale.id, 0)])

        def _fail(record):
            raise OperationalError("DELETE", {}, Exception("disk I/O error"))

        monkeypatch.setattr(store, "delete", _fail)

        with pytest.raises(TransactionAbortedError):
            settlement_service.delete_expense(store, expense.id)

        assert _flags(db_session, sale.id) == ([True], False)
        assert db_session.get(Expense, expense.id) is not None
        assert db_session.query(ReconciliationEvent).count() == 0

    def test_settle_then_delete_restores_liability(self, store, db_session, make_sale, prof_a, haircut):
        sale = make_sale(20000, dt(5), items=[service_item(haircut, prof_a)])
        expense = settlement_service.settle_commissions(store, prof_a.id, item_refs=[(sale.id, 0)], paid_at=dt(5, 20))
        assert _flags(db_session, sale.id) == ([True], False)

        settlement_service.delete_expense(store, expense.id)

        assert _flags(db_session, sale.id) == ([False], False)
        assert Decimal(expense.amount_cents) == Decimal(10000)
