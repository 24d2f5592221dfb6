# storefront/api/deps.py
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.enums import UserRole
from storefront.domain.errors import AppError
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService


@dataclass(frozen=True)
class AuthContext:
    """Kontekst z zewnetrznej warstwy auth (gateway ustawia naglowki)."""

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def get_auth(
    x_user_id: int = Header(..., gt=0),
    x_user_role: UserRole = Header(UserRole.USER),
) -> AuthContext:
    return AuthContext(user_id=x_user_id, role=x_user_role.value)


def require_admin(auth: AuthContext = Depends(get_auth)) -> AuthContext:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return auth


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db=db, lock_service=LockService())


def http_error(e: AppError | PermissionError) -> HTTPException:
    if isinstance(e, AppError):
        return HTTPException(status_code=e.status_code, detail=e.to_detail())
    return HTTPException(status_code=403, detail=str(e))
