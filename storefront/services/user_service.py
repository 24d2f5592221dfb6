from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.user import UserModel
from storefront.domain.errors import BusinessError, NotFoundError
from storefront.domain.schemas import UserCreate, UserRead
from storefront.repos.cart_repo import CartRepo
from storefront.repos.user_repo import UserRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepo(db)
        self.cart_repo = CartRepo(db)

    def register_user(self, payload: UserCreate) -> UserRead:
        #uzytkownik i jego koszyk w jednej transakcji
        if self.repo.get_by_email(payload.email):
            raise BusinessError(f"Email {payload.email} is already registered")

        try:
            user = self.repo.create_user(
                UserModel(name=payload.name, email=payload.email, role=payload.role.value)
            )
            cart = self.cart_repo.create_cart(CartModel(user_id=user.id))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Registered user {user.id} with cart {cart.id}")
        return UserRead(id=user.id, name=user.name, email=user.email, role=user.role, cart_id=cart.id)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        cart_id = user.cart.id if user.cart else None
        return UserRead(id=user.id, name=user.name, email=user.email, role=user.role, cart_id=cart_id)
