from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from farmstand.models import Order as OrderRow, Product, StockRestorationLog
from farmstand.schemas.order import OrderFilters


def stock_of(db, product_id):
    db.expire_all()
    return db.get(Product, product_id).stock_quantity


def checkout(*lines, fulfillment_type="pickup", payment_method="cash_on_pickup", **extra):
    request = {
        "customer": {"name": "Ann Grower", "email": "ann@example.com", "phone": "555-0100"},
        "items": [
            {"product_id": p.id, "product_name": p.name, "unit_price": p.price, "quantity": q}
            for p, q in lines
        ],
        "fulfillment_type": fulfillment_type,
        "payment_method": payment_method,
    }
    if fulfillment_type == "pickup":
        request.update(pickup_date="2026-06-11", pickup_time="10:00")
    else:
        request.update(delivery_address="12 Orchard Lane, Springfield")
    request.update(extra)
    return request


class TestSubmitOrder:
    def test_creates_order_and_decrements_stock(self, db, order_service, make_product, publisher, notifier):
        tomatoes = make_product("Tomatoes", stock=10, price=4.5)
        eggs = make_product("Eggs", stock=5, price=6.0)

        result = order_service.submit_order(checkout((tomatoes, 2), (eggs, 1)))

        assert result.success
        order = result.order
        assert order.status == "pending"
        assert order.subtotal == 15.0
        assert order.tax == 1.28
        assert order.total == 16.28
        assert order.user_id == "user-1"
        assert [line.quantity for line in order.items] == [2, 1]
        assert stock_of(db, tomatoes.id) == 8
        assert stock_of(db, eggs.id) == 4
        assert publisher.events("new-order")[0][0] == "orders.user.user-1"
        assert notifier.of_type("order_confirmed")

    def test_conflict_reports_every_short_item_and_changes_nothing(self, db, order_service, make_product):
        corn = make_product("Corn", stock=100)
        honey = make_product("Honey", stock=1)
        jam = make_product("Jam", stock=20)

        result = order_service.submit_order(checkout((corn, 150), (honey, 2), (jam, 3)))

        assert not result.success
        assert result.error_code == "inventory_conflict"
        conflicts = {c.product_id: c for c in result.inventory_conflicts}
        assert set(conflicts) == {corn.id, honey.id}
        assert (conflicts[corn.id].requested, conflicts[corn.id].available) == (150, 100)
        assert stock_of(db, corn.id) == 100
        assert stock_of(db, jam.id) == 20
        assert db.query(OrderRow).count() == 0

    def test_requested_quantities_are_summed_per_product(self, db, order_service, make_product):
        apples = make_product("Apples", stock=5)

        result = order_service.submit_order(checkout((apples, 3), (apples, 3)))

        assert result.error_code == "inventory_conflict"
        assert result.inventory_conflicts[0].requested == 6
        assert stock_of(db, apples.id) == 5

    def test_unavailable_product_has_no_stock(self, order_service, make_product):
        kale = make_product("Kale", stock=10, is_available=False)
        result = order_service.submit_order(checkout((kale, 1)))
        assert result.inventory_conflicts[0].available == 0

    def test_missing_product_is_a_conflict(self, order_service, make_product):
        ghost = Product(id="no-such-product", name="Ghost", price=1.0)
        result = order_service.submit_order(checkout((ghost, 1)))
        assert result.error_code == "inventory_conflict"
        assert result.inventory_conflicts[0].available == 0

    def test_pre_order_bounds(self, db, order_service, make_product):
        pies = make_product("Pies", stock=50, is_pre_order=True, min_pre_order_quantity=2, max_pre_order_quantity=6)

        result = order_service.submit_order(checkout((pies, 1)))

        assert result.error_code == "validation_error"
        assert stock_of(db, pies.id) == 50

    def test_conflicts_are_reported_alongside_pre_order_violations(self, db, order_service, make_product):
        pies = make_product("Pies", stock=50, is_pre_order=True, min_pre_order_quantity=2)
        honey = make_product("Honey", stock=1)

        result = order_service.submit_order(checkout((pies, 1), (honey, 3)))

        assert result.error_code == "inventory_conflict"
        assert [c.product_id for c in result.inventory_conflicts] == [honey.id]
        assert stock_of(db, pies.id) == 50

    def test_invalid_request_is_rejected_before_io(self, db, order_service, make_product, publisher):
        beans = make_product("Beans", stock=5)
        request = checkout((beans, 1))
        request["customer"]["email"] = "not-an-email"

        result = order_service.submit_order(request)

        assert not result.success
        assert result.error_code == "validation_error"
        assert publisher.sent == []
        assert stock_of(db, beans.id) == 5

    def test_pickup_requires_slot(self, order_service, make_product):
        beans = make_product("Beans", stock=5)
        request = checkout((beans, 1))
        del request["pickup_time"]
        assert order_service.submit_order(request).error_code == "validation_error"

    def test_delivery_order(self, order_service, make_product):
        beans = make_product("Beans", stock=5)
        result = order_service.submit_order(checkout((beans, 1), fulfillment_type="delivery", payment_method="online"))
        assert result.success
        assert result.order.customer.address == "12 Orchard Lane, Springfield"
        assert result.order.payment_status == "paid"
        assert result.order.pickup_date is None

    def test_side_effect_failures_do_not_fail_submission(self, order_service, make_product, publisher, notifier):
        publisher.fail = True
        notifier.raise_error = True
        beans = make_product("Beans", stock=5)

        result = order_service.submit_order(checkout((beans, 1)))

        assert result.success
        assert len(result.warnings) == 2


class TestReads:
    def test_get_order(self, order_service, make_order, make_product):
        order_id = make_order([(make_product(), 2)])
        order = order_service.get_order(order_id)
        assert order.id == order_id
        assert order.items[0].quantity == 2

    def test_get_missing_order(self, order_service):
        assert order_service.get_order("missing") is None

    def test_malformed_order_reads_as_none(self, db, order_service, make_order, make_product):
        order_id = make_order([(make_product(), 1)])
        db.query(OrderRow).filter(OrderRow.id == order_id).update({OrderRow.payment_status: "owed"})
        db.commit()
        assert order_service.get_order(order_id) is None

    def test_listing_skips_malformed_orders(self, db, order_service, make_order, make_product):
        product = make_product()
        good = make_order([(product, 1)])
        bad = make_order([(product, 1)])
        db.query(OrderRow).filter(OrderRow.id == bad).update({OrderRow.payment_method: "barter"})
        db.commit()
        assert [o.id for o in order_service.get_all_orders()] == [good]

    def test_customer_orders(self, order_service, make_order, make_product, clock):
        product = make_product()
        older = make_order([(product, 1)], created_at=clock() - timedelta(days=1))
        newer = make_order([(product, 1)])
        make_order([(product, 1)], customer_email="bob@example.com")

        assert [o.id for o in order_service.get_customer_orders("ann@example.com")] == [newer, older]
        assert order_service.get_customer_orders("") == []

    def test_filters(self, order_service, make_order, make_product, clock):
        product = make_product()
        ready = make_order([(product, 1)], status="ready")
        delivery = make_order([(product, 1)], fulfillment_type="delivery")
        old = make_order([(product, 1)], created_at=clock() - timedelta(days=10))

        assert [o.id for o in order_service.get_all_orders(OrderFilters(status="ready"))] == [ready]
        assert [o.id for o in order_service.get_all_orders(OrderFilters(fulfillment_type="delivery"))] == [delivery]
        recent = order_service.get_all_orders(OrderFilters(date_from=clock() - timedelta(days=1)))
        assert old not in [o.id for o in recent]
        assert [o.id for o in order_service.get_all_orders(OrderFilters(search=ready[:8].upper()))] == [ready]
        assert len(order_service.get_all_orders(OrderFilters(search="ANN GROWER"))) == 3

    def test_stats(self, order_service, make_order, make_product, clock):
        product = make_product(price=10.0)
        make_order([(product, 1)])
        make_order([(product, 1)], status="completed")
        # Monday of the same week
        make_order([(product, 1)], created_at=datetime(2026, 6, 8, 9, 0))
        make_order([(product, 1)], created_at=datetime(2026, 6, 1, 9, 0))

        stats = order_service.get_order_stats()

        assert stats.daily.orders_placed == 2
        assert stats.daily.orders_completed == 1
        assert stats.daily.revenue == 10.85
        assert stats.daily.pending == 1
        assert stats.weekly.orders_placed == 3
        assert stats.total_active == 3


class TestUpdateOrderStatus:
    def test_valid_transition(self, order_service, make_order, make_product, publisher):
        order_id = make_order([(make_product(), 1)])

        result = order_service.update_order_status(order_id, "confirmed")

        assert result.success
        assert result.previous_status == "pending"
        assert result.order.status == "confirmed"
        channel, _, payload = publisher.events("order-status-updated")[0]
        assert channel == "orders.user.user-1"
        assert payload["user_id"] == "user-1"

    def test_invalid_transition_changes_nothing(self, order_service, make_order, make_product, publisher):
        order_id = make_order([(make_product(), 1)], status="completed")

        result = order_service.update_order_status(order_id, "pending")

        assert result.error_code == "invalid_transition"
        assert order_service.get_order(order_id).status == "completed"
        assert publisher.sent == []

    def test_unknown_status(self, order_service, make_order, make_product):
        order_id = make_order([(make_product(), 1)])
        assert order_service.update_order_status(order_id, "shipped").error_code == "validation_error"

    def test_missing_order(self, order_service):
        assert order_service.update_order_status("missing", "confirmed").error_code == "order_not_found"

    def test_concurrent_change_is_detected(self, db, order_service, make_order, make_product, monkeypatch):
        order_id = make_order([(make_product(), 1)])
        repository = order_service.repository
        original = repository.update_status

        def race(order_id_, expected, new, at):
            # another writer moves the order first
            original(order_id_, expected, "cancelled", at)
            return original(order_id_, expected, new, at)

        monkeypatch.setattr(repository, "update_status", race)
        result = order_service.update_order_status(order_id, "confirmed")

        assert result.error_code == "concurrent_update"
        assert order_service.get_order(order_id).status == "cancelled"

    def test_store_failure_on_read_is_a_result(self, order_service, make_order, make_product, monkeypatch):
        order_id = make_order([(make_product(), 1)])
        repository = order_service.repository
        original = repository.get_by_id

        def broken(order_id_):
            raise OperationalError("SELECT orders", {}, Exception("connection reset"))

        monkeypatch.setattr(repository, "get_by_id", broken)
        result = order_service.update_order_status(order_id, "confirmed")
        monkeypatch.setattr(repository, "get_by_id", original)

        assert result.error_code == "dependency_failure"
        assert "connection reset" in result.error
        assert order_service.update_order_status(order_id, "confirmed").success

    def test_ready_pickup_notifies(self, order_service, make_order, make_product, notifier):
        order_id = make_order([(make_product(), 1)], status="processing")
        order_service.update_order_status(order_id, "ready")
        assert [r.channels for r in notifier.of_type("pickup_ready")] == [["push", "sms"]]

    def test_ready_delivery_does_not_notify(self, order_service, make_order, make_product, notifier):
        order_id = make_order([(make_product(), 1)], status="processing", fulfillment_type="delivery")
        order_service.update_order_status(order_id, "ready")
        assert notifier.of_type("pickup_ready") == []


class TestCancellationCascade:
    def test_restores_stock_logs_and_notifies_once(self, db, order_service, make_order, make_product, notifier):
        p1 = make_product("Tomatoes", stock=10)
        p2 = make_product("Eggs", stock=5)
        order_id = make_order([(p1, 3), (p2, 2)], status="confirmed")

        result = order_service.update_order_status(order_id, "cancelled")

        assert result.success
        assert result.stock_restoration.success
        assert stock_of(db, p1.id) == 13
        assert stock_of(db, p2.id) == 7
        assert db.query(StockRestorationLog).filter_by(order_id=order_id).count() == 2
        assert len(notifier.of_type("order_cancelled")) == 1

    def test_committed_even_when_notification_fails(self, db, order_service, make_order, make_product, notifier):
        notifier.raise_error = True
        p1 = make_product(stock=10)
        order_id = make_order([(p1, 3)], status="confirmed")

        result = order_service.update_order_status(order_id, "cancelled")

        assert result.success
        assert any("order_cancelled" in w for w in result.warnings)
        assert order_service.get_order(order_id).status == "cancelled"
        assert stock_of(db, p1.id) == 13

    def test_restoration_failure_is_a_warning(self, db, order_service, make_order, make_product):
        p1 = make_product(stock=10)
        order_id = make_order([(p1, 3)], status="confirmed")
        db.delete(p1)
        db.commit()

        result = order_service.update_order_status(order_id, "cancelled")

        assert result.success
        assert not result.stock_restoration.success
        assert any("Stock restoration failed" in w for w in result.warnings)

    def test_notify_customer_false_skips_notification(self, order_service, make_order, make_product, notifier):
        order_id = make_order([(make_product(), 1)], status="ready")
        order_service.update_order_status(order_id, "cancelled", notify_customer=False)
        assert notifier.of_type("order_cancelled") == []

    def test_restoration_reason_is_logged(self, db, order_service, make_order, make_product):
        order_id = make_order([(make_product(), 1)], status="ready")
        order_service.update_order_status(order_id, "cancelled", restoration_reason="no_show_timeout")
        log = db.query(StockRestorationLog).filter_by(order_id=order_id).one()
        assert log.reason == "no_show_timeout"


class TestBulkUpdate:
    def test_partial_failure(self, order_service, make_order, make_product):
        product = make_product()
        a = make_order([(product, 1)])
        b = make_order([(product, 1)])
        c = make_order([(product, 1)], status="completed")

        result = order_service.bulk_update_order_status([a, b, c], "confirmed")

        assert result.success
        assert result.updated_count == 2
        assert result.failed_orders == [c]
        assert "invalid" in result.errors[c].lower()
        assert {o.id for o in result.updated_orders} == {a, b}

    def test_all_failed(self, order_service):
        result = order_service.bulk_update_order_status(["x", "y"], "confirmed")
        assert not result.success
        assert result.updated_count == 0
        assert result.failed_orders == ["x", "y"]

    def test_unexpected_error_does_not_stop_batch(self, order_service, make_order, make_product, monkeypatch):
        product = make_product()
        a = make_order([(product, 1)])
        b = make_order([(product, 1)])
        original = order_service._update_status

        def flaky(order_id, *args):
            if order_id == a:
                raise RuntimeError("boom")
            return original(order_id, *args)

        monkeypatch.setattr(order_service, "_update_status", flaky)
        result = order_service.bulk_update_order_status([a, b], "confirmed")

        assert result.updated_count == 1
        assert result.failed_orders == [a]
        assert result.errors[a] == "boom"
