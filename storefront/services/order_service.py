# storefront/services/order_service.py
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

from storefront.data.database import apply_transaction_timeout
from storefront.data.models.cart import CartModel
from storefront.data.models.order import OrderItemModel, OrderModel, OrderStatusHistoryModel
from storefront.data.models.product import ProductModel
from storefront.domain.enums import (
    NON_REVENUE_STATUSES,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    UnavailableReason,
    UserRole,
    can_transition,
    is_cancellable,
)
from storefront.domain.errors import (
    AppError,
    BusinessError,
    InsufficientStockError,
    NotFoundError,
    OrderError,
)
from storefront.domain.pricing import calculate_totals
from storefront.domain.schemas import ShippingAddress
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderFilters, OrderLoadOptions, OrderRepo, Page
from storefront.repos.product_repo import ProductRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.utils import settings
from storefront.utils.retry import order_number_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    #sqlite zwraca naive datetime, postgres aware
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass
class UnavailableProduct:
    product_id: int
    reason: UnavailableReason
    title: str | None = None
    requested: int | None = None
    available: int | None = None

    def describe(self) -> str:
        name = self.title or f"Product {self.product_id}"
        if self.reason == UnavailableReason.NOT_FOUND:
            return f"{name}: product no longer exists"
        if self.reason == UnavailableReason.INACTIVE:
            return f"{name}: product is not available"
        return f"{name}: insufficient stock (requested {self.requested}, available {self.available})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "reason": self.reason.value,
            "requested": self.requested,
            "available": self.available,
        }


@dataclass
class OrderCreationResult:
    order: OrderModel
    unavailable_products: List[UnavailableProduct] = field(default_factory=list)


class OrderService:
    """
    Serwis odpowiedzialny za domene zamowien.

    Tworzenie i anulowanie zamowienia to jedna transakcja obejmujaca
    zamowienie, stany magazynowe produktow i koszyk - albo wszystko, albo nic.
    Powiadomienia ida dopiero po commit i nigdy nie cofaja zamowienia.
    """

    def __init__(
        self,
        db: Session,
        notifier: NotificationService | None = None,
        lock_service: LockService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.product_repo = ProductRepo(db)
        self.user_repo = UserRepo(db)
        self.notifier = notifier or NotificationService()
        self.lock_service = lock_service

    # =====================================================
    # COMMANDS
    # =====================================================
    def create_order_from_cart(
        self,
        user_id: int,
        shipping_address: ShippingAddress | Dict[str, Any],
        payment_method: PaymentMethod | str,
        notes: str = "",
    ) -> OrderCreationResult:
        """
        Use Case: Tworzenie zamowienia z koszyka.

        1. Waliduje adres i metode platnosci
        2. Blokuje checkout koszyka (redis, jesli skonfigurowany)
        3. W jednej transakcji: rezerwuje stan, zapisuje zamowienie, czysci koszyk
        4. Po commit wysyla powiadomienie (best effort)
        """
        address = self._validate_address(shipping_address)
        method = self._validate_payment_method(payment_method)

        user = self.user_repo.get_user(user_id)
        if not user:
            raise NotFoundError("User", user_id)

        cart = self.cart_repo.get_by_user(user_id)
        if not cart:
            raise NotFoundError("Cart")
        cart_id = cart.id

        logger.info(f"Creating order for user {user_id} from cart {cart_id}")

        owner = f"user:{user_id}:{uuid.uuid4().hex}"
        self._acquire_checkout(cart_id, owner)
        try:
            result = self._create_order_transaction(user_id, cart_id, address, method, notes or "")
        finally:
            self._release_checkout(cart_id, owner)

        self._notify(self.notifier.notify_order_created, result.order)
        return result

    @order_number_retry()
    def _create_order_transaction(
        self,
        user_id: int,
        cart_id: int,
        address: ShippingAddress,
        method: PaymentMethod,
        notes: str,
    ) -> OrderCreationResult:
        try:
            apply_transaction_timeout(self.db)

            cart = self.cart_repo.get_with_products(cart_id)

            if not cart.items:
                raise BusinessError("Cart is empty")

            total_items = cart.total_quantity
            if total_items > settings.MAX_CART_ITEMS:
                raise BusinessError(f"Cart exceeds the limit of {settings.MAX_CART_ITEMS} items")

            items, unavailable = self._reserve_items(cart)

            if not items:
                raise BusinessError(
                    "None of the products in the cart are available: "
                    + "; ".join(u.describe() for u in unavailable),
                    details=[u.to_dict() for u in unavailable],
                )

            totals = calculate_totals(i.subtotal for i in items)

            if totals.total < settings.MIN_ORDER_AMOUNT:
                raise BusinessError(
                    f"Order total {totals.total} is below the minimum order amount "
                    f"{settings.MIN_ORDER_AMOUNT}"
                )

            order = OrderModel(
                user_id=user_id,
                items=items,
                subtotal=totals.subtotal,
                discount=totals.discount,
                shipping=totals.shipping,
                tax=totals.tax,
                total=totals.total,
                shipping_address=address.model_dump(),
                status=OrderStatus.PENDING.value,
                payment_method=method.value,
                payment_status=PaymentStatus.PENDING.value,
                notes=notes,
            )
            self._append_status(order, OrderStatus.PENDING, "Order created", user_id)

            self.repo.create(order)

            #pozycje niedostepne zostaja w koszyku do ponownej proby
            self.cart_repo.remove_lines(cart.id, [i.product_id for i in items])

            self.db.commit()

        except Exception as e:
            self.db.rollback()
            self._log_abort("Order creation", user_id, e)
            raise

        if unavailable:
            logger.warning(
                f"Order {order.order_number} created without unavailable products: "
                f"{[u.product_id for u in unavailable]}"
            )
        logger.info(f"Order {order.order_number} created for user {user_id}, total {order.total}")

        return OrderCreationResult(
            order=self.repo.get_order(order.id),
            unavailable_products=unavailable,
        )

    def _reserve_items(self, cart: CartModel) -> Tuple[List[OrderItemModel], List[UnavailableProduct]]:
        reserved: Dict[int, ProductModel] = {}
        unavailable: Dict[int, UnavailableProduct] = {}
        lines = list(cart.items)

        #blokady wierszy zawsze rosnaco po product_id, inaczej dwa checkouty moga sie zakleszczyc
        for index, line in sorted(enumerate(lines), key=lambda pair: pair[1].product_id):
            #swiezy odczyt w transakcji, zeby zobaczyc aktualny stan magazynu
            product = self.product_repo.get_for_update(line.product_id)

            if product is None:
                unavailable[index] = UnavailableProduct(line.product_id, UnavailableReason.NOT_FOUND)
                continue

            if not product.status:
                unavailable[index] = UnavailableProduct(
                    product.id, UnavailableReason.INACTIVE, title=product.title
                )
                continue

            if line.quantity > product.stock:
                unavailable[index] = UnavailableProduct(
                    product.id,
                    UnavailableReason.INSUFFICIENT_STOCK,
                    title=product.title,
                    requested=line.quantity,
                    available=product.stock,
                )
                continue

            try:
                reserved[index] = self.product_repo.adjust_stock(product.id, -line.quantity)
            except InsufficientStockError as e:
                #ktos inny wykupil towar miedzy odczytem a zapisem
                unavailable[index] = UnavailableProduct(
                    line.product_id,
                    UnavailableReason.INSUFFICIENT_STOCK,
                    title=product.title,
                    requested=e.requested,
                    available=e.available,
                )

        #pozycje zamowienia w kolejnosci koszyka
        items = [
            self._snapshot(reserved[index], lines[index].quantity, position=position)
            for position, index in enumerate(sorted(reserved))
        ]
        return items, [unavailable[index] for index in sorted(unavailable)]

    @staticmethod
    def _snapshot(product: ProductModel, quantity: int, position: int) -> OrderItemModel:
        price = Decimal(product.price)
        return OrderItemModel(
            position=position,
            product_id=product.id,
            title=product.title,
            snapshot_price=price,
            code=product.code,
            thumbnails=list(product.thumbnails or []),
            quantity=quantity,
            unit_price=price,
            subtotal=price * quantity,
        )

    def update_order_status(
        self,
        order_id: int,
        new_status: OrderStatus | str,
        notes: str = "",
        actor_id: int | None = None,
    ) -> OrderModel:
        """
        Use Case: Zmiana statusu zamowienia (admin).
        Anulowanie idzie przez cancel_order, zeby przywrocic stany magazynowe.
        """
        new_status = self._parse_status(new_status)

        if new_status == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, notes or "Cancelled by administrator", actor_id)

        try:
            order = self._get_or_404(order_id)
            current = OrderStatus(order.status)

            if not can_transition(current, new_status):
                raise OrderError(
                    f"Cannot change order {order.order_number} from {current.value} to {new_status.value}"
                )

            if new_status == OrderStatus.REFUNDED:
                if order.refund_status != RefundStatus.PENDING.value:
                    raise OrderError(f"Order {order.order_number} has no pending refund")
                order.refund_status = RefundStatus.PROCESSED.value
                order.payment_status = PaymentStatus.REFUNDED.value

            self._append_status(order, new_status, notes, actor_id)
            self.repo.save(order)
            self.db.commit()

        except Exception as e:
            self.db.rollback()
            self._log_abort("Status update", order_id, e)
            raise

        logger.info(f"Order {order_id} status changed {current.value} -> {new_status.value}")

        if new_status == OrderStatus.SHIPPED:
            self._notify(self.notifier.notify_order_shipped, order)
        elif new_status == OrderStatus.DELIVERED:
            self._notify(self.notifier.notify_order_delivered, order)

        return self.repo.get_order(order_id)

    def confirm_payment(
        self,
        order_id: int,
        transaction_id: str,
        payment_details: Dict[str, Any] | None = None,
    ) -> OrderModel:
        if not transaction_id:
            raise BusinessError("Transaction id is required")

        try:
            order = self._get_or_404(order_id)

            if order.payment_status == PaymentStatus.APPROVED.value:
                raise OrderError(f"Payment for order {order.order_number} is already confirmed")
            if order.status != OrderStatus.PENDING.value:
                raise OrderError(
                    f"Cannot confirm payment for order {order.order_number} in status {order.status}"
                )

            order.payment_status = PaymentStatus.APPROVED.value
            order.paid_at = _utcnow()
            order.payment_transaction_id = transaction_id
            if payment_details:
                order.payment_details = payment_details

            self._append_status(order, OrderStatus.PROCESSING, "Payment confirmed", None)
            self.repo.save(order)
            self.db.commit()

        except Exception as e:
            self.db.rollback()
            self._log_abort("Payment confirmation", order_id, e)
            raise

        logger.info(f"Payment {transaction_id} confirmed for order {order_id}")
        self._notify(self.notifier.notify_payment_confirmed, order)

        return self.repo.get_order(order_id)

    def cancel_order(self, order_id: int, reason: str, actor_id: int | None = None) -> OrderModel:
        """
        Use Case: Anulowanie zamowienia.
        Status + przywrocenie stanow wszystkich pozycji w jednej transakcji.
        """
        if not reason or not reason.strip():
            raise BusinessError("Cancellation reason is required")

        try:
            apply_transaction_timeout(self.db)

            #blokada wiersza zamowienia - dwa rownolegle anulowania nie przywroca stanu dwa razy
            order = self.repo.store.get_fresh(order_id, for_update=True)
            if not order:
                raise NotFoundError("Order", order_id)

            current = OrderStatus(order.status)
            if not is_cancellable(current):
                raise OrderError(
                    f"Order {order.order_number} cannot be cancelled in status {current.value}"
                )

            now = _utcnow()
            order.cancellation_reason = reason
            order.cancelled_at = now
            order.cancelled_by = actor_id
            order.refund_status = (
                RefundStatus.PENDING.value
                if order.payment_status == PaymentStatus.APPROVED.value
                else None
            )
            self._append_status(order, OrderStatus.CANCELLED, f"Order cancelled: {reason}", actor_id)

            for item in sorted(order.items, key=lambda i: i.product_id):
                try:
                    self.product_repo.adjust_stock(item.product_id, item.quantity)
                except NotFoundError:
                    logger.warning(
                        f"Product {item.product_id} no longer exists, stock not restored "
                        f"for order {order.order_number}"
                    )

            self.repo.save(order)
            self.db.commit()

        except Exception as e:
            self.db.rollback()
            self._log_abort("Order cancellation", order_id, e)
            raise

        logger.info(f"Order {order_id} cancelled by {actor_id}: {reason}")
        self._notify(self.notifier.notify_order_cancelled, order)

        return self.repo.get_order(order_id)

    def update_tracking(
        self,
        order_id: int,
        company: str | None = None,
        tracking_number: str | None = None,
        estimated_delivery: datetime | None = None,
    ) -> OrderModel:
        try:
            order = self._get_or_404(order_id)
            order.tracking_company = company or order.tracking_company
            order.tracking_number = tracking_number or order.tracking_number
            order.estimated_delivery = estimated_delivery or order.estimated_delivery
            self.repo.save(order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Tracking updated for order {order_id}")
        return self.repo.get_order(order_id)

    # =====================================================
    # QUERIES
    # =====================================================
    def get_order(self, order_id: int, user_id: int | None = None, role: str | None = None) -> OrderModel:
        """
        Use Case: Pobranie zamowienia (Query), wlasciciel albo admin.
        """
        order = self.repo.get_order(order_id, OrderLoadOptions(include_user=True))

        if not order:
            raise NotFoundError("Order", order_id)

        if role != UserRole.ADMIN.value and order.user_id != user_id:
            raise PermissionError("Access to this order is denied")

        return order

    def list_user_orders(
        self,
        user_id: int,
        page: int = 1,
        limit: int = settings.DEFAULT_PAGE_SIZE,
        status: str | None = None,
    ) -> Page:
        page, limit = self._page_bounds(page, limit)
        if status:
            status = self._parse_status(status).value
        return self.repo.find_by_user(user_id, page, limit, status)

    def list_orders(self, filters: OrderFilters, page: int = 1, limit: int = 20) -> Page:
        page, limit = self._page_bounds(page, limit)
        if filters.status:
            self._parse_status(filters.status)
        if filters.payment_status and filters.payment_status not in {s.value for s in PaymentStatus}:
            raise BusinessError(f"Invalid payment status: {filters.payment_status}")
        start_date, end_date = self._date_range(filters.start_date, filters.end_date)
        filters = replace(filters, start_date=start_date, end_date=end_date)
        return self.repo.find_all(filters, page, limit)

    def get_order_stats(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Dict[str, Any]:
        start_date, end_date = self._date_range(start_date, end_date)

        by_status = {s.value: 0 for s in OrderStatus}
        non_revenue = {s.value for s in NON_REVENUE_STATUSES}
        total_orders = 0
        revenue_orders = 0
        revenue = Decimal("0.00")

        for status, count, amount in self.repo.totals_by_status(start_date, end_date):
            by_status[status] = count
            total_orders += count
            if status not in non_revenue:
                revenue_orders += count
                revenue += amount

        average = (
            (revenue / revenue_orders).quantize(Decimal("0.01"))
            if revenue_orders
            else Decimal("0.00")
        )

        return {
            "total_orders": total_orders,
            "total_revenue": revenue.quantize(Decimal("0.01")),
            "average_order_value": average,
            "by_status": by_status,
        }

    # =====================================================
    # HELPERS
    # =====================================================
    def _get_or_404(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    @staticmethod
    def _validate_address(shipping_address) -> ShippingAddress:
        if isinstance(shipping_address, ShippingAddress):
            return shipping_address
        try:
            return ShippingAddress.model_validate(shipping_address or {})
        except ValidationError as e:
            missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise BusinessError(
                f"Invalid shipping address, missing or empty fields: {', '.join(missing)}",
                details=missing,
            ) from e

    @staticmethod
    def _validate_payment_method(payment_method) -> PaymentMethod:
        try:
            return PaymentMethod(payment_method)
        except ValueError:
            raise BusinessError(f"Invalid payment method: {payment_method}") from None

    @staticmethod
    def _parse_status(status) -> OrderStatus:
        try:
            return OrderStatus(status)
        except ValueError:
            raise BusinessError(f"Invalid order status: {status}") from None

    @staticmethod
    def _date_range(start_date: datetime | None, end_date: datetime | None) -> Tuple[datetime | None, datetime | None]:
        #query string moze przyniesc jedna granice z offsetem, a druga bez
        start_date = _as_aware(start_date).astimezone(timezone.utc) if start_date else None
        end_date = _as_aware(end_date).astimezone(timezone.utc) if end_date else None
        if start_date and end_date and start_date > end_date:
            raise BusinessError("start_date must not be after end_date")
        return start_date, end_date

    @staticmethod
    def _page_bounds(page: int, limit: int) -> Tuple[int, int]:
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or settings.DEFAULT_PAGE_SIZE), 1), settings.MAX_PAGE_SIZE)
        return page, limit

    @staticmethod
    def _append_status(order: OrderModel, status: OrderStatus, notes: str, actor_id: int | None) -> None:
        now = _utcnow()
        if order.status_history:
            #historia rosnaca w czasie
            now = max(now, _as_aware(order.status_history[-1].date))

        order.status = status.value
        order.status_history.append(
            OrderStatusHistoryModel(status=status.value, date=now, notes=notes or "", updated_by=actor_id)
        )

        if status == OrderStatus.SHIPPED and not order.shipped_at:
            order.shipped_at = now
        if status == OrderStatus.DELIVERED and not order.delivered_at:
            order.delivered_at = now

    def _acquire_checkout(self, cart_id: int, owner: str) -> None:
        if self.lock_service is None:
            return
        locked = self.lock_service.acquire_checkout_lock(
            cart_id=cart_id,
            owner=owner,
            ttl=settings.CHECKOUT_LOCK_TTL_SECONDS,
        )
        if not locked:
            raise BusinessError("A checkout for this cart is already in progress")

    def _release_checkout(self, cart_id: int, owner: str) -> None:
        if self.lock_service is None:
            return
        try:
            self.lock_service.release_checkout_lock(cart_id, owner)
        except Exception as e:
            #lock i tak wygasnie po TTL
            logger.warning(f"Failed to release checkout lock for cart {cart_id}: {e}")

    def _notify(self, send, order: OrderModel) -> None:
        try:
            user = self.user_repo.get_user(order.user_id)
            if not send(order, user):
                logger.warning(f"Notification {send.__name__} for order {order.order_number} not sent")
        except Exception as e:
            logger.warning(f"Notification {getattr(send, '__name__', send)} for order {order.id} failed: {e}")

    @staticmethod
    def _log_abort(operation: str, ref: Any, error: Exception) -> None:
        if isinstance(error, (AppError, PermissionError)):
            logger.warning(f"{operation} for {ref} rejected: {error}")
        else:
            logger.error(f"{operation} for {ref} aborted, transaction rolled back: {error}")
