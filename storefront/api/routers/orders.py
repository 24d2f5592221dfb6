# storefront/api/routers/orders.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import AuthContext, get_auth, get_order_service, http_error, require_admin
from storefront.domain.errors import AppError
from storefront.domain.schemas import (
    CancelOrderIn,
    OrderCreate,
    OrderCreatedOut,
    OrderOut,
    OrderPageOut,
    OrderStatsOut,
    OrderStatusUpdate,
    PaymentConfirmIn,
    TrackingUpdate,
    UnavailableProductOut,
)
from storefront.repos.order_repo import OrderFilters
from storefront.services.order_service import OrderService
from storefront.utils import settings

router = APIRouter(prefix="/orders", tags=["orders"])


def _page_out(page) -> OrderPageOut:
    return OrderPageOut(
        orders=[OrderOut.from_model(o) for o in page.items],
        pagination=page.pagination(),
    )


@router.post("/", response_model=OrderCreatedOut, status_code=201)
def create_order(
    payload: OrderCreate,
    auth: AuthContext = Depends(get_auth),
    svc: OrderService = Depends(get_order_service),
):
    """
    Tworzy zamowienie z koszyka zalogowanego uzytkownika.
    Niedostepne produkty zostaja w koszyku i wracaja w unavailable_products.
    """
    try:
        result = svc.create_order_from_cart(
            user_id=auth.user_id,
            shipping_address=payload.shipping_address,
            payment_method=payload.payment_method,
            notes=payload.notes,
        )
    except (PermissionError, AppError) as e:
        raise http_error(e)

    return OrderCreatedOut(
        order=OrderOut.from_model(result.order),
        unavailable_products=[UnavailableProductOut(**u.to_dict()) for u in result.unavailable_products],
    )


@router.get("/me", response_model=OrderPageOut)
def get_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[str] = None,
    auth: AuthContext = Depends(get_auth),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return _page_out(svc.list_user_orders(auth.user_id, page, limit, status))
    except AppError as e:
        raise http_error(e)


@router.get("/", response_model=OrderPageOut)
def get_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    payment_status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    auth: AuthContext = Depends(require_admin),
    svc: OrderService = Depends(get_order_service),
):
    filters = OrderFilters(
        status=status,
        user_id=user_id,
        payment_status=payment_status,
        start_date=start_date,
        end_date=end_date,
    )
    try:
        return _page_out(svc.list_orders(filters, page, limit))
    except AppError as e:
        raise http_error(e)


@router.get("/stats", response_model=OrderStatsOut)
def get_order_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    auth: AuthContext = Depends(require_admin),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order_stats(start_date, end_date)
    except AppError as e:
        raise http_error(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    auth: AuthContext = Depends(get_auth),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return OrderOut.from_model(svc.get_order(order_id, auth.user_id, auth.role))
    except (PermissionError, AppError) as e:
        raise http_error(e)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    auth: AuthContext = Depends(require_admin),
    svc: OrderService = Depends(get_order_service),
):
    try:
        order = svc.update_order_status(order_id, payload.status, payload.notes, auth.user_id)
    except AppError as e:
        raise http_error(e)
    return OrderOut.from_model(order)


@router.post("/{order_id}/confirm-payment", response_model=OrderOut)
def confirm_payment(
    order_id: int,
    payload: PaymentConfirmIn,
    auth: AuthContext = Depends(require_admin),
    svc: OrderService = Depends(get_order_service),
):
    try:
        order = svc.confirm_payment(order_id, payload.transaction_id, payload.payment_details)
    except AppError as e:
        raise http_error(e)
    return OrderOut.from_model(order)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: CancelOrderIn,
    auth: AuthContext = Depends(get_auth),
    svc: OrderService = Depends(get_order_service),
):
    try:
        #wlasciciel albo admin
        svc.get_order(order_id, auth.user_id, auth.role)
        order = svc.cancel_order(order_id, payload.reason, auth.user_id)
    except (PermissionError, AppError) as e:
        raise http_error(e)
    return OrderOut.from_model(order)


@router.post("/{order_id}/tracking", response_model=OrderOut)
def update_tracking(
    order_id: int,
    payload: TrackingUpdate,
    auth: AuthContext = Depends(require_admin),
    svc: OrderService = Depends(get_order_service),
):
    try:
        order = svc.update_tracking(
            order_id,
            company=payload.company,
            tracking_number=payload.tracking_number,
            estimated_delivery=payload.estimated_delivery,
        )
    except AppError as e:
        raise http_error(e)
    return OrderOut.from_model(order)
