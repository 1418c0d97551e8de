"""
HTTP API tests through the Flask test client.

Covers status codes and JSON shapes for every blueprint; the numbers
themselves are covered by the service tests.
"""

from conftest import dt, service_item
from salon_ledger.models.catalog import COMMISSION_PERCENT
from salon_ledger.models.ledger import PAYMENT_CASH


class TestHealth:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestRecordRoutes:
    def test_record_sale(self, client, location):
        resp = client.post("/api/sales", json={
            "location_id": location.id,
            "sold_at": "2024-01-05T10:00:00Z",
            "total_cents": 15000,
            "payment_method": PAYMENT_CASH,
        })
        assert resp.status_code == 201
        assert resp.get_json()["total_cents"] == 15000

    def test_invalid_sale(self, client, location):
        resp = client.post("/api/sales", json={"location_id": location.id})
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_record_expense_and_income(self, client, location):
        resp = client.post("/api/expenses", json={
            "location_id": location.id,
            "spent_at": "2024-01-05T18:00:00",
            "concept": "Rent",
            "recipient": "Fixed costs",
            "amount_cents": 5000,
        })
        assert resp.status_code == 201
        assert resp.get_json()["category"] == "FIXED_COST"

        resp = client.post("/api/incomes", json={
            "location_id": location.id,
            "received_at": "2024-01-05T09:00:00",
            "amount_cents": 1000,
            "concept": "Float top-up",
        })
        assert resp.status_code == 201


class TestCashRoutes:
    def test_live_cash(self, client, location, make_cut, make_sale, make_expense):
        make_cut(dt(10, 10), system_total_cents=50000)
        make_sale(15000, dt(10, 14))
        make_expense(5000, dt(10, 16))

        resp = client.get(f"/api/cash/live?location_id={location.id}")

        assert resp.status_code == 200
        assert resp.get_json()["live_cash_cents"] == 60000

    def test_live_cash_bad_as_of(self, client, db_session):
        resp = client.get("/api/cash/live?as_of=yesterday")
        assert resp.status_code == 400

    def test_record_cut(self, client, location):
        resp = client.post("/api/cash/cuts", json={
            "location_id": location.id,
            "cut_at": "2024-01-10T20:00:00Z",
            "counted_total_cents": 0,
            "delivered_amount_cents": 0,
            "received_by": "Owner",
        })
        assert resp.status_code == 201
        assert resp.get_json()["difference_cents"] == 0


class TestCommissionRoutes:
    def test_summary(self, client, make_expense, prof_a):
        make_expense(4000, dt(5), concept="Commission", recipient=str(prof_a.id))

        resp = client.get("/api/commissions/summary?start=2024-01-01T00:00:00&end=2024-01-31T23:59:59")

        assert resp.status_code == 200
        assert resp.get_json()["recipients"]["Alex"]["service_commission_cents"] == 4000

    def test_summary_bad_range(self, client, db_session):
        resp = client.get("/api/commissions/summary?start=2024-02-01T00:00:00&end=2024-01-01T00:00:00")
        assert resp.status_code == 400

    def test_pending_settle_and_delete(self, client, make_sale, prof_a, haircut):
        sale = make_sale(20000, dt(5), items=[service_item(haircut, prof_a)])

        pending = client.get("/api/commissions/pending").get_json()["professionals"]
        assert [p["professional_id"] for p in pending] == [prof_a.id]

        resp = client.post("/api/commissions/settle", json={
            "professional_id": prof_a.id,
            "item_refs": [{"sale_id": sale.id, "item_index": 0}],
            "paid_at": "2024-01-06T12:00:00Z",
        })
        assert resp.status_code == 201
        expense_id = resp.get_json()["id"]
        assert client.get("/api/commissions/pending").get_json()["professionals"] == []

        resp = client.delete(f"/api/expenses/{expense_id}")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["reversal"]["mode"] == "structured"
        assert len(client.get("/api/commissions/pending").get_json()["professionals"]) == 1

    def test_settle_requires_professional(self, client, db_session):
        resp = client.post("/api/commissions/settle", json={"item_refs": []})
        assert resp.status_code == 400

    def test_settle_unknown_sale(self, client, prof_a):
        resp = client.post("/api/commissions/settle", json={
            "professional_id": prof_a.id,
            "item_refs": [{"sale_id": 999, "item_index": 0}],
        })
        assert resp.status_code == 404

    def test_delete_unknown_expense(self, client, db_session):
        assert client.delete("/api/expenses/999").status_code == 404


class TestFinanceRoutes:
    def test_monthly_report(self, client, make_sale, prof_a, haircut):
        make_sale(20000, dt(5), items=[service_item(haircut, prof_a)])

        resp = client.get("/api/finance/2024/1")

        assert resp.status_code == 200
        assert resp.get_json()["figures"]["service_revenue"]["value_cents"] == 20000

    def test_invalid_month(self, client, db_session):
        assert client.get("/api/finance/2024/13").status_code == 400

    def test_annual_summary(self, client, db_session):
        resp = client.get("/api/finance/2024/summary")
        assert resp.status_code == 200
        assert len(resp.get_json()["months"]) == 12

    def test_override_lifecycle(self, client, db_session):
        assert client.get("/api/finance/2024/1/override").status_code == 404

        resp = client.put("/api/finance/2024/1/override", json={"fields": {"service_revenue": 100}})
        assert resp.status_code == 200
        assert resp.get_json()["fields"]["service_revenue"] == 100

        assert client.get("/api/finance/2024/1/override").status_code == 200
        assert client.get("/api/finance/2024/1").get_json()["has_override"] is True

        assert client.delete("/api/finance/2024/1/override").status_code == 200
        assert client.delete("/api/finance/2024/1/override").status_code == 404

    def test_empty_override_rejected(self, client, db_session):
        resp = client.put("/api/finance/2024/1/override", json={"fields": {}})
        assert resp.status_code == 400

    def test_admin_adjustment(self, client, local_admin):
        resp = client.put(f"/api/finance/2024/1/admin-adjustments/{local_admin.id}", json={
            "service": {"commission_type": COMMISSION_PERCENT, "commission_value": 1500},
        })
        assert resp.status_code == 200
        assert resp.get_json()["adjustments"][0]["commission_value"] == 1500

        resp = client.put("/api/finance/2024/1/admin-adjustments/999", json={"service": None})
        assert resp.status_code == 404


class TestLedgerRoutes:
    def test_events_filtered_by_type(self, client, db_session):
        client.put("/api/finance/2024/1/override", json={"fields": {"service_revenue": 100}})
        client.delete("/api/finance/2024/1/override")

        resp = client.get("/api/ledger/events?event_type=OVERRIDE_SAVED")

        assert resp.status_code == 200
        events = resp.get_json()["events"]
        assert [e["event_type"] for e in events] == ["OVERRIDE_SAVED"]
