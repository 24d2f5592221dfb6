#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import AuthContext, get_auth, http_error
from storefront.data.database import get_db
from storefront.domain.errors import AppError
from storefront.domain.schemas import CartOut, ItemIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


@router.get("/me", response_model=CartOut)
def get_cart(auth: AuthContext = Depends(get_auth), db: Session = Depends(get_db)):
    svc = CartService(db)
    try:
        return svc.get_cart(auth.user_id)
    except AppError as e:
        raise http_error(e)


@router.post("/me/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    auth: AuthContext = Depends(get_auth),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        return svc.add_product(
            user_id=auth.user_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
        )
    except AppError as e:
        raise http_error(e)


@router.delete("/me/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    auth: AuthContext = Depends(get_auth),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        return svc.remove_product(auth.user_id, product_id)
    except AppError as e:
        raise http_error(e)
