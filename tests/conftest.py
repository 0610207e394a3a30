import os
import threading
from decimal import Decimal

# configure before anything from checkout is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from checkout.data import models  # noqa: F401
from checkout.data.database import Base
from checkout.repos.inventory_repo import AuditLog
from checkout.services.cart_service import CartService
from checkout.services.checkout_service import CheckoutService
from checkout.services.inventory_service import InventoryService
from checkout.services.lock_service import LockService
from checkout.services.order_service import OrderService
from checkout.services.shipping_client import ShippingQuote

DEFAULT_SHIPPING = Decimal("5.00")
STORE_POSTAL_CODE = "01001-000"


class FakeProductClient:
    def __init__(self, prices: dict | None = None):
        self.prices = {k: Decimal(str(v)) for k, v in (prices or {}).items()}

    def fetch_product(self, product_id: str):
        if product_id not in self.prices:
            return None
        return {"id": product_id, "name": f"Product {product_id}", "price": self.prices[product_id]}


class FakeShippingClient:
    def __init__(self, quotes=None, error: Exception | None = None):
        self.quotes = quotes or []
        self.error = error
        self.calls = []

    def calculate(self, from_postal_code, to_postal_code, package, carriers=None):
        self.calls.append((from_postal_code, to_postal_code, package))
        if self.error:
            raise self.error
        return list(self.quotes)


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def dispatch(self, recipient, template_id, payload):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.sent.append((recipient, template_id, payload))


class FailingAuditLog(AuditLog):
    def record(self, entries):
        raise RuntimeError("audit sink down")


class FakeRedis:
    """The two redis calls LockService makes, kept in a dict."""

    def __init__(self):
        self.store = {}
        self._lock = threading.Lock()

    def set(self, name, value, nx=False, ex=None):
        with self._lock:
            if nx and name in self.store:
                return None
            self.store[name] = value
            return True

    def eval(self, script, numkeys, key, token):
        with self._lock:
            if self.store.get(key) == token:
                del self.store[key]
                return 1
            return 0


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'checkout.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def audit_log(session_factory):
    return AuditLog(session_factory)


@pytest.fixture
def inventory(db, audit_log):
    return InventoryService(db, audit_log, default_threshold=10)


@pytest.fixture
def carts(db):
    return CartService(db)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def products():
    return FakeProductClient({"P": "10.00", "Q": "7.50", "R": "3.20"})


@pytest.fixture
def shipping():
    return FakeShippingClient(quotes=[])


@pytest.fixture
def lock_service():
    return LockService(client=FakeRedis())


@pytest.fixture
def make_checkout(session_factory, audit_log, products, shipping, notifier, lock_service):
    """Builds a CheckoutService on its own session, like one request would."""
    sessions = []

    def _make(session=None):
        if session is None:
            session = session_factory()
            sessions.append(session)
        return CheckoutService(
            cart_service=CartService(session),
            inventory=InventoryService(session, audit_log, default_threshold=10),
            orders=OrderService(session, notifier=notifier),
            product_client=products,
            shipping_client=shipping,
            notifier=notifier,
            lock_service=lock_service,
            default_shipping_cost=DEFAULT_SHIPPING,
            store_postal_code=STORE_POSTAL_CODE,
        )

    yield _make
    for s in sessions:
        s.close()


@pytest.fixture
def checkout(make_checkout, db):
    return make_checkout(db)


def stock(inventory: InventoryService, product_id: str, quantity: int):
    return inventory.adjust_stock(product_id, quantity, reason="restock", reference="test", actor="tester")


def quote(carrier: str, price: str, days: int = 3) -> ShippingQuote:
    return ShippingQuote(carrier_name=carrier, price=Decimal(price), estimated_days=days)
