"""Pytest fixtures for storefront tests."""

import itertools
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from storefront.data.database import Database
from storefront.data.models import CartItemModel, CartModel, ProductModel, UserModel
from storefront.services.order_service import OrderService
from storefront.utils import settings

VALID_ADDRESS = {
    "street": "Av. Providencia 1234",
    "city": "Santiago",
    "state": "RM",
    "zip_code": "7500000",
    "country": "Chile",
    "phone": "+56911112222",
}


class FakeNotifier:
    """Records notifications instead of queueing Celery tasks."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def _record(self, kind, order, user):
        if self.fail:
            raise RuntimeError("broker unavailable")
        self.sent.append((kind, order.id, user.email if user else None))
        return True

    def notify_order_created(self, order, user):
        return self._record("created", order, user)

    def notify_order_shipped(self, order, user):
        return self._record("shipped", order, user)

    def notify_order_delivered(self, order, user):
        return self._record("delivered", order, user)

    def notify_order_cancelled(self, order, user):
        return self._record("cancelled", order, user)

    def notify_payment_confirmed(self, order, user):
        return self._record("payment_confirmed", order, user)

    def kinds(self):
        return [kind for kind, _, _ in self.sent]


class FakeLock:
    def __init__(self):
        self.held = {}
        self.released = []

    def acquire_checkout_lock(self, cart_id, owner, ttl):
        if cart_id in self.held:
            return False
        self.held[cart_id] = owner
        return True

    def release_checkout_lock(self, cart_id, owner):
        if self.held.get(cart_id) == owner:
            del self.held[cart_id]
            self.released.append(cart_id)
            return True
        return False


def memory_database() -> Database:
    return Database(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture(autouse=True)
def no_smtp(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", None)


@pytest.fixture
def database():
    db = memory_database()
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    s = database.session()
    yield s
    s.close()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def lock():
    return FakeLock()


@pytest.fixture
def order_service(session, notifier, lock):
    return OrderService(session, notifier=notifier, lock_service=lock)


@pytest.fixture
def make_user(session):
    counter = itertools.count(1)

    def _make(name="Ana", role="user"):
        n = next(counter)
        user = UserModel(name=name, email=f"{name.lower()}{n}@example.com", role=role)
        session.add(user)
        session.flush()
        session.add(CartModel(user_id=user.id))
        session.commit()
        return user

    return _make


@pytest.fixture
def make_product(session):
    counter = itertools.count(1)

    def _make(title="Kombucha", price="10000", stock=5, status=True):
        product = ProductModel(
            title=title,
            description=f"{title} description",
            code=f"{next(counter):012d}",
            price=Decimal(price),
            stock=stock,
            status=status,
            category="fermentos",
            thumbnails=[f"{title.lower()}.png"],
        )
        session.add(product)
        session.commit()
        return product

    return _make


@pytest.fixture
def add_to_cart(session):
    def _add(user, product_id, quantity):
        cart = session.execute(select(CartModel).where(CartModel.user_id == user.id)).scalar_one()
        session.add(CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity))
        session.commit()
        return cart

    return _add


@pytest.fixture
def stock_of(session):
    def _stock(product_id):
        session.expire_all()
        return session.get(ProductModel, product_id).stock

    return _stock


@pytest.fixture
def cart_lines(session):
    def _lines(user):
        session.expire_all()
        cart = session.execute(select(CartModel).where(CartModel.user_id == user.id)).scalar_one()
        return {i.product_id: i.quantity for i in cart.items}

    return _lines
