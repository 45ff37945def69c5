import os

# Must be set before farmstand.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid
from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from farmstand.database import Base, build_engine, init_db
from farmstand.models import Order, OrderItem, Product
from farmstand.schemas.notification import NotificationResult
from farmstand.services.auth import CurrentUser, StaticAuthContext
from farmstand.services.no_show_service import NoShowHandlingService
from farmstand.services.order_service import OrderService
from farmstand.services.pickup_rescheduling_service import PickupReschedulingService
from farmstand.services.pricing import calculate_subtotal, calculate_tax, line_total, round_money
from farmstand.services.stock_restoration_service import StockRestorationService

# Wednesday noon
NOW = datetime(2026, 6, 10, 12, 0, 0)


class FixedClock:
    """Deterministic clock; call it like datetime.now"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakePublisher:
    """Records broadcasts instead of talking to RabbitMQ"""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, channel, event, payload):
        if self.fail:
            return False
        self.sent.append((channel, event, payload))
        return True

    def events(self, event=None):
        return [s for s in self.sent if event is None or s[1] == event]


class FakeNotifier:
    """Records notification requests; can be told to fail or raise"""

    def __init__(self):
        self.requests = []
        self.fail = False
        self.raise_error = False

    def send_notification(self, request):
        if self.raise_error:
            raise ConnectionError("notification service down")
        self.requests.append(request)
        if self.fail:
            return NotificationResult(success=False, failed_channels=list(request.channels))
        return NotificationResult(success=True, sent_channels=list(request.channels))

    def of_type(self, type_):
        return [r for r in self.requests if r.type == type_]


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def user():
    return CurrentUser(id="user-1", email="ann@example.com")


@pytest.fixture
def auth(user):
    return StaticAuthContext(user)


@pytest.fixture
def stock_service(db, publisher, clock):
    return StockRestorationService(db, publisher, clock=clock)


@pytest.fixture
def order_service(db, publisher, notifier, auth, clock, stock_service):
    return OrderService(db, publisher, notifier, auth=auth, clock=clock, stock_restoration=stock_service)


@pytest.fixture
def reschedule_service(db, publisher, notifier, auth, clock):
    return PickupReschedulingService(db, publisher, notifier, auth, clock=clock)


@pytest.fixture
def no_show_service(db, order_service, notifier, clock):
    return NoShowHandlingService(db, order_service, notifier, clock=clock)


@pytest.fixture
def make_product(db):
    def _make(name="Heirloom Tomatoes", stock=10, price=4.5, **kwargs):
        product = Product(id=str(uuid.uuid4()), name=name, price=price, stock_quantity=stock, **kwargs)
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture
def make_order(db, clock, user):
    """Insert an order row directly (no stock movement)"""
    def _make(
        lines=(),
        status="pending",
        fulfillment_type="pickup",
        pickup_date=date(2026, 6, 11),
        pickup_time=time(10, 0),
        user_id="default",
        payment_method="cash_on_pickup",
        customer_email="ann@example.com",
        created_at=None,
    ):
        created = created_at or clock()
        items = [
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                unit_price=product.price,
                quantity=quantity,
                total_price=line_total(product.price, quantity),
                created_at=created,
            )
            for product, quantity in lines
        ]
        subtotal = calculate_subtotal(items)
        tax = calculate_tax(subtotal, 0.085)
        order = Order(
            id=str(uuid.uuid4()),
            user_id=user.id if user_id == "default" else user_id,
            status=status,
            subtotal=subtotal,
            tax_amount=tax,
            total_amount=round_money(subtotal + tax),
            customer_name="Ann Grower",
            customer_email=customer_email,
            customer_phone="555-0100",
            fulfillment_type=fulfillment_type,
            pickup_date=pickup_date if fulfillment_type == "pickup" else None,
            pickup_time=pickup_time if fulfillment_type == "pickup" else None,
            delivery_address="12 Orchard Lane, Springfield" if fulfillment_type == "delivery" else None,
            payment_method=payment_method,
            payment_status="paid" if payment_method == "online" else "pending",
            created_at=created,
            updated_at=created,
        )
        order.items = items
        db.add(order)
        db.commit()
        return order.id
    return _make
