from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import AuthContext, http_error, require_admin
from storefront.data.database import get_db
from storefront.domain.errors import AppError
from storefront.domain.schemas import ProductCreate, ProductOut, StockAdjustIn
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


@router.post("/", response_model=ProductOut, status_code=201)
def create_product(
    payload: ProductCreate,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = ProductService(db)
    try:
        return svc.create_product(payload)
    except AppError as e:
        raise http_error(e)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    svc = ProductService(db)
    try:
        return svc.get_product(product_id)
    except AppError as e:
        raise http_error(e)


@router.patch("/{product_id}/stock", response_model=ProductOut)
def adjust_stock(
    product_id: int,
    payload: StockAdjustIn,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = ProductService(db)
    try:
        return svc.adjust_stock(product_id, payload.delta)
    except AppError as e:
        raise http_error(e)
