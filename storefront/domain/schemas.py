# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional
from decimal import Decimal
from datetime import datetime

from storefront.domain.enums import OrderStatus, PaymentMethod, UserRole


# ---------------------------------------------------------------- users

class UserCreate(BaseModel):
    """Schema dla rejestracji uzytkownika."""

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    role: UserRole = UserRole.USER


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: str
    cart_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------- products

class ProductCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    thumbnails: List[str] = []


class StockAdjustIn(BaseModel):
    delta: int


class ProductOut(BaseModel):
    id: int
    title: str
    description: str
    code: str
    price: Decimal
    stock: int
    status: bool
    category: str
    thumbnails: List[str]

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------- carts

class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi byc > 0)")
    quantity: int = Field(..., gt=0, description="Ilosc produktu (musi byc > 0)")


class CartItemOut(BaseModel):
    product_id: int
    title: Optional[str] = None
    quantity: int
    price: Optional[Decimal] = None


class CartOut(BaseModel):
    cart_id: int
    user_id: int
    items: List[CartItemOut]
    total: Decimal


# ---------------------------------------------------------------- orders

class ShippingAddress(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    additional_info: Optional[str] = None


class OrderCreate(BaseModel):
    """Schema dla tworzenia zamowienia z koszyka zalogowanego uzytkownika."""

    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    notes: str = Field("", max_length=1000)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: str = ""


class PaymentConfirmIn(BaseModel):
    transaction_id: str = Field(..., min_length=1)
    payment_details: Optional[Dict[str, Any]] = None


class CancelOrderIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class TrackingUpdate(BaseModel):
    company: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class ProductSnapshotOut(BaseModel):
    title: str
    price: Decimal
    code: Optional[str] = None
    thumbnails: List[str] = []


class OrderItemOut(BaseModel):
    product_id: int
    product_snapshot: ProductSnapshotOut
    quantity: int
    price: Decimal
    subtotal: Decimal


class StatusHistoryOut(BaseModel):
    status: str
    date: datetime
    notes: str
    updated_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentOut(BaseModel):
    method: str
    status: str
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_details: Optional[Dict[str, Any]] = None


class TrackingOut(BaseModel):
    company: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class CancellationOut(BaseModel):
    reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[int] = None
    refund_status: Optional[str] = None


class OrderOut(BaseModel):
    """Schema dla zamowienia (response)."""

    id: int
    order_number: str
    user_id: int
    items: List[OrderItemOut]
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    shipping_address: Dict[str, Any]
    status: OrderStatus
    status_history: List[StatusHistoryOut]
    payment: PaymentOut
    tracking: TrackingOut
    cancellation: Optional[CancellationOut] = None
    notes: str
    created_at: datetime

    @classmethod
    def from_model(cls, order) -> "OrderOut":
        cancellation = None
        if order.cancelled_at is not None:
            cancellation = CancellationOut(
                reason=order.cancellation_reason,
                cancelled_at=order.cancelled_at,
                cancelled_by=order.cancelled_by,
                refund_status=order.refund_status,
            )

        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            items=[
                OrderItemOut(
                    product_id=i.product_id,
                    product_snapshot=ProductSnapshotOut(
                        title=i.title,
                        price=i.snapshot_price,
                        code=i.code,
                        thumbnails=i.thumbnails or [],
                    ),
                    quantity=i.quantity,
                    price=i.unit_price,
                    subtotal=i.subtotal,
                )
                for i in order.items
            ],
            subtotal=order.subtotal,
            discount=order.discount,
            shipping=order.shipping,
            tax=order.tax,
            total=order.total,
            shipping_address=order.shipping_address,
            status=order.status,
            status_history=[StatusHistoryOut.model_validate(h) for h in order.status_history],
            payment=PaymentOut(
                method=order.payment_method,
                status=order.payment_status,
                transaction_id=order.payment_transaction_id,
                paid_at=order.paid_at,
                payment_details=order.payment_details,
            ),
            tracking=TrackingOut(
                company=order.tracking_company,
                tracking_number=order.tracking_number,
                estimated_delivery=order.estimated_delivery,
                shipped_at=order.shipped_at,
                delivered_at=order.delivered_at,
            ),
            cancellation=cancellation,
            notes=order.notes or "",
            created_at=order.created_at,
        )


class UnavailableProductOut(BaseModel):
    product_id: int
    title: Optional[str] = None
    reason: str
    requested: Optional[int] = None
    available: Optional[int] = None


class OrderCreatedOut(BaseModel):
    order: OrderOut
    unavailable_products: List[UnavailableProductOut]


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class OrderPageOut(BaseModel):
    orders: List[OrderOut]
    pagination: PaginationOut


class OrderStatsOut(BaseModel):
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    by_status: Dict[str, int]
