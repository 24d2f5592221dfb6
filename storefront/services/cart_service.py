from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import BusinessError, NotFoundError
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Proste use case dla domeny cart
    commands (add, remove) modyfikuja stan
    query (get) tylko odczyt
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.product_repo = ProductRepo(db)

    def _user_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_by_user(user_id)
        if not cart:
            raise NotFoundError("Cart for user", user_id)
        return cart

    @staticmethod
    def _to_dict(cart: CartModel) -> Dict[str, Any]:
        items = []
        total = Decimal("0.00")
        for i in cart.items:
            price = i.product.price if i.product else None
            if price is not None:
                total += price * i.quantity
            items.append(
                {
                    "product_id": i.product_id,
                    "title": i.product.title if i.product else None,
                    "quantity": i.quantity,
                    "price": price,
                }
            )

        #dict przeksztalcany w jsona
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": items,
            "total": total,
        }

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self._user_cart(user_id)
        return self._to_dict(self.repo.get_with_products(cart.id))

    #commands
    def add_product(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise BusinessError("Quantity must be greater than 0")

        cart = self._user_cart(user_id)

        product = self.product_repo.get_by_id(product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        if not product.status:
            raise BusinessError(f"Product {product.title} is not available")

        try:
            existing_item = self.repo.get_cart_item(cart.id, product_id)
            new_quantity = quantity + (existing_item.quantity if existing_item else 0)

            if new_quantity > settings.MAX_PRODUCT_QUANTITY:
                raise BusinessError(
                    f"Maximum quantity per product is {settings.MAX_PRODUCT_QUANTITY}"
                )

            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart {cart.id}, quantity "
                    f"{existing_item.quantity} -> {new_quantity}"
                )
                existing_item.quantity = new_quantity
                self.repo.add_cart_item(existing_item)
            else:
                logger.info(f"Adding product {product_id} to cart {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
                )

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return self.get_cart(user_id)

    def remove_product(self, user_id: int, product_id: int) -> Dict[str, Any]:
        cart = self._user_cart(user_id)

        logger.info(f"Removing product {product_id} from cart {cart.id}")
        try:
            self.repo.remove_lines(cart.id, [product_id])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return self.get_cart(user_id)
