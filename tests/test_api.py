from datetime import date, time

import pytest
from fastapi.testclient import TestClient

from farmstand.api.dependencies import get_clock, get_notifier, get_publisher
from farmstand.database import get_db
from farmstand.main import app


@pytest.fixture
def client(db, publisher, notifier, clock):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_publisher] = lambda: publisher
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def order_payload(product, quantity):
    return {
        "customer": {"name": "Ann Grower", "email": "ann@example.com", "phone": "555-0100"},
        "items": [{
            "product_id": product.id,
            "product_name": product.name,
            "unit_price": product.price,
            "quantity": quantity,
        }],
        "fulfillment_type": "pickup",
        "payment_method": "cash_on_pickup",
        "pickup_date": "2026-06-11",
        "pickup_time": "10:00",
    }


class TestOrdersApi:
    def test_submit_order(self, client, make_product):
        response = client.post("/orders", json=order_payload(make_product(stock=5), 2), headers={"X-User-Id": "user-1"})

        assert response.status_code == 201
        body = response.json()
        assert body["success"]
        assert body["order"]["user_id"] == "user-1"
        assert body["order"]["status"] == "pending"

    def test_submit_conflict(self, client, make_product):
        response = client.post("/orders", json=order_payload(make_product(stock=1), 2))

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error_code"] == "inventory_conflict"
        assert detail["inventory_conflicts"][0]["available"] == 1

    def test_request_validation(self, client, make_product):
        payload = order_payload(make_product(), 1)
        payload["items"] = []
        assert client.post("/orders", json=payload).status_code == 422

    def test_get_order(self, client, make_order, make_product):
        order_id = make_order([(make_product(), 1)])
        assert client.get(f"/orders/{order_id}").json()["id"] == order_id
        assert client.get("/orders/missing").status_code == 404

    def test_list_and_filter(self, client, make_order, make_product):
        product = make_product()
        ready = make_order([(product, 1)], status="ready")
        make_order([(product, 1)])

        assert len(client.get("/orders").json()) == 2
        assert [o["id"] for o in client.get("/orders", params={"status": "ready"}).json()] == [ready]

    def test_customer_orders(self, client, make_order, make_product):
        make_order([(make_product(), 1)])
        assert len(client.get("/orders/customer/ann@example.com").json()) == 1

    def test_stats(self, client, make_order, make_product):
        make_order([(make_product(), 1)])
        assert client.get("/orders/stats").json()["daily"]["orders_placed"] == 1

    def test_status_update(self, client, make_order, make_product):
        order_id = make_order([(make_product(), 1)])

        ok = client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"})
        refused = client.patch(f"/orders/{order_id}/status", json={"status": "pending"})

        assert ok.status_code == 200
        assert ok.json()["previous_status"] == "pending"
        assert refused.status_code == 422
        assert refused.json()["detail"]["error_code"] == "invalid_transition"

    def test_bulk_status(self, client, make_order, make_product):
        product = make_product()
        a = make_order([(product, 1)])
        c = make_order([(product, 1)], status="completed")

        body = client.post("/orders/bulk-status", json={"order_ids": [a, c], "status": "confirmed"}).json()

        assert body["updated_count"] == 1
        assert body["failed_orders"] == [c]


class TestPickupApi:
    def test_reschedule_requires_identity(self, client, make_order, make_product):
        order_id = make_order([(make_product(), 1)], status="ready")
        payload = {"new_pickup_date": "2026-06-12", "new_pickup_time": "14:30"}

        anonymous = client.post(f"/orders/{order_id}/reschedule", json=payload)
        owner = client.post(f"/orders/{order_id}/reschedule", json=payload, headers={"X-User-Id": "user-1"})

        assert anonymous.status_code == 401
        assert owner.status_code == 200
        assert owner.json()["new_pickup_time"] == "14:30:00"
        assert client.get(f"/orders/{order_id}/reschedule-status").json()["was_rescheduled"]

    def test_policy_violation(self, client, make_order, make_product):
        order_id = make_order([(make_product(), 1)], status="ready")
        response = client.post(
            f"/orders/{order_id}/reschedule",
            json={"new_pickup_date": "2026-06-12", "new_pickup_time": "21:00"},
            headers={"X-User-Id": "user-1"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "outside_business_hours"

    def test_slots(self, client):
        body = client.get("/pickup/slots", params={"date": "2026-06-12"}).json()
        assert body["success"]
        assert body["slots"][0]["start"] == "08:00:00"


class TestStockAndNoShowApi:
    def test_restore_stock_once(self, client, make_order, make_product):
        order_id = make_order([(make_product(stock=3), 1)], status="cancelled")

        first = client.post(f"/orders/{order_id}/restore-stock")
        second = client.post(f"/orders/{order_id}/restore-stock")

        assert first.status_code == 200
        assert second.status_code == 409
        assert client.get(f"/orders/{order_id}/restore-stock").json()["already_restored"]

    def test_batch(self, client, make_order, make_product):
        order_id = make_order([(make_product(), 1)], status="cancelled")
        body = client.post("/stock/restore-batch", json={"order_ids": [order_id, "missing"]}).json()
        assert [r["success"] for r in body] == [True, False]

    def test_emergency_restore(self, client, make_product):
        product = make_product(stock=0)
        response = client.post(
            f"/products/{product.id}/emergency-restore",
            json={"quantity": 5, "operator_id": "admin-7", "reason": "Recount"},
        )
        assert response.status_code == 200
        assert response.json()["restored_items"][0]["new_stock_level"] == 5

    def test_no_show(self, client, make_order, make_product):
        order_id = make_order([(make_product(), 1)], status="ready", pickup_date=date(2026, 6, 10), pickup_time=time(11, 0))

        assert client.get(f"/orders/{order_id}/no-show").json()["is_no_show"]
        body = client.post("/no-show/process").json()
        assert [p["order_id"] for p in body["processed_orders"]] == [order_id]


class TestOperationalApi:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["service"] == "farmstand-orders"

    def test_metrics(self, client):
        assert client.get("/metrics").status_code == 200
