from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from storefront.data.models import OrderModel
from storefront.domain.errors import InsufficientStockError, NotFoundError, OrderNumberConflictError
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo

from tests.conftest import VALID_ADDRESS

OCTOBER = datetime(2026, 10, 18, tzinfo=timezone.utc)


def _order(user_id, number=None):
    return OrderModel(
        order_number=number,
        user_id=user_id,
        subtotal=Decimal("10000"),
        total=Decimal("16900"),
        shipping_address=VALID_ADDRESS,
        payment_method="paypal",
    )


class TestProductRepoAdjustStock:
    def test_decrement_and_version(self, session, make_product):
        product = make_product(stock=5)
        repo = ProductRepo(session)

        updated = repo.adjust_stock(product.id, -3)

        assert updated.stock == 2
        assert updated.version == 2

    def test_increment(self, session, make_product):
        product = make_product(stock=0)

        assert ProductRepo(session).adjust_stock(product.id, 4).stock == 4

    def test_never_below_zero(self, session, make_product):
        product = make_product(title="Kefir", stock=2)
        repo = ProductRepo(session)

        with pytest.raises(InsufficientStockError) as exc:
            repo.adjust_stock(product.id, -3)

        assert exc.value.available == 2
        assert exc.value.requested == 3
        assert "Kefir" in str(exc.value)
        assert repo.get_for_update(product.id).stock == 2

    def test_unknown_product(self, session):
        with pytest.raises(NotFoundError):
            ProductRepo(session).adjust_stock(999, 1)

    def test_second_session_sees_committed_decrement(self, tmp_path):
        from storefront.data.database import Database

        db = Database(f"sqlite:///{tmp_path / 'race.db'}")
        db.init()
        first, second = db.session(), db.session()
        try:
            from storefront.data.models import ProductModel

            first.add(ProductModel(title="Miso", code="000000000001", price=Decimal("3000"),
                                   stock=1, category="fermentos", thumbnails=[]))
            first.commit()
            product_id = first.query(ProductModel).one().id

            #drugi klient ma juz produkt w pamieci ze stanem 1
            stale = second.get(ProductModel, product_id)
            assert stale.stock == 1
            second.rollback()

            ProductRepo(first).adjust_stock(product_id, -1)
            first.commit()

            with pytest.raises(InsufficientStockError):
                ProductRepo(second).adjust_stock(product_id, -1)
            second.rollback()
        finally:
            first.close()
            second.close()
            db.dispose()


class TestOrderRepoNumbers:
    def test_first_number_of_month(self, session):
        assert OrderRepo(session).next_order_number(OCTOBER) == "ORD26100001"

    def test_sequence_continues(self, session, make_user):
        user = make_user()
        repo = OrderRepo(session)
        repo.create(_order(user.id, "ORD26100041"))
        repo.create(_order(user.id, "ORD26090099"))

        assert repo.next_order_number(OCTOBER) == "ORD26100042"

    def test_fallback_numbers_are_ignored_by_sequence(self, session, make_user):
        user = make_user()
        repo = OrderRepo(session)
        repo.create(_order(user.id, "ORD26100003"))
        repo.create(_order(user.id, "ORD1792300000000123"))

        assert repo.next_order_number(OCTOBER) == "ORD26100004"

    def test_exhausted_month_uses_fallback(self, session, make_user):
        user = make_user()
        repo = OrderRepo(session)
        repo.create(_order(user.id, "ORD26109999"))

        number = repo.next_order_number(OCTOBER)

        assert number.startswith("ORD")
        assert number != "ORD261010000"
        assert len(number) == len("ORD") + 13 + 3

    def test_create_assigns_number(self, session, make_user):
        user = make_user()

        order = OrderRepo(session).create(_order(user.id))

        assert order.id is not None
        assert order.order_number.startswith("ORD")

    def test_duplicate_number_is_a_conflict(self, session, make_user):
        user = make_user()
        repo = OrderRepo(session)
        repo.create(_order(user.id, "ORD26100001"))

        with pytest.raises(OrderNumberConflictError):
            repo.create(_order(user.id, "ORD26100001"))
        session.rollback()

    def test_other_integrity_errors_pass_through(self, session, make_user):
        user = make_user()
        broken = _order(user.id, "ORD26100001")
        broken.total = Decimal("-1")

        with pytest.raises(IntegrityError) as exc:
            OrderRepo(session).create(broken)
        session.rollback()

        assert "check_order_total_non_negative" in str(exc.value.orig)


class TestCartRepo:
    def test_remove_lines_keeps_other_products(self, session, make_user, make_product, add_to_cart):
        user = make_user()
        a, b = make_product(title="A"), make_product(title="B")
        cart = add_to_cart(user, a.id, 1)
        add_to_cart(user, b.id, 2)

        refreshed = CartRepo(session).remove_lines(cart.id, [a.id])

        assert [(i.product_id, i.quantity) for i in refreshed.items] == [(b.id, 2)]
        assert refreshed.items[0].product.title == "B"

    def test_missing_cart(self, session):
        with pytest.raises(NotFoundError):
            CartRepo(session).get_with_products(77)
