from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel
from storefront.repos.base import EntityStore


class UserRepo:
    def __init__(self, db: Session):
        self.db = db
        self.store = EntityStore(db, UserModel)

    def get_user(self, user_id: int) -> UserModel | None:
        return self.store.get(user_id)

    def get_by_email(self, email: str) -> UserModel | None:
        return self.db.execute(
            select(UserModel).where(UserModel.email == email)
        ).scalar_one_or_none()

    def create_user(self, user: UserModel) -> UserModel:
        return self.store.add(user)
