from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import http_error
from storefront.data.database import get_db
from storefront.domain.errors import AppError
from storefront.domain.schemas import UserCreate, UserRead
from storefront.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserRead, status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.register_user(payload)
    except AppError as e:
        raise http_error(e)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.get_user(user_id)
    except AppError as e:
        raise http_error(e)
