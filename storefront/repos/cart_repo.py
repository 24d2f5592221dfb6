# storefront/repos/cart_repo.py
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import NotFoundError
from storefront.repos.base import EntityStore


class CartRepo:
    def __init__(self, db: Session):
        self.db = db
        self.store = EntityStore(db, CartModel)

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.store.get(cart_id)

    def get_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_with_products(self, cart_id: int) -> CartModel:
        """Koszyk z zaladowanymi pozycjami i produktami kazdej pozycji."""
        cart = self.db.execute(
            select(CartModel)
            .where(CartModel.id == cart_id)
            .options(selectinload(CartModel.items).selectinload(CartItemModel.product))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if cart is None:
            raise NotFoundError("Cart", cart_id)
        return cart

    def create_cart(self, cart: CartModel) -> CartModel:
        return self.store.add(cart)

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def remove_lines(self, cart_id: int, product_ids: Iterable[int]) -> CartModel:
        """Usuwa pozycje danych produktow, w tej samej transakcji co wywolujacy."""
        product_ids = list(product_ids)
        if product_ids:
            self.db.execute(
                delete(CartItemModel)
                .where(
                    CartItemModel.cart_id == cart_id,
                    CartItemModel.product_id.in_(product_ids),
                )
                .execution_options(synchronize_session=False)
            )
        return self.get_with_products(cart_id)
