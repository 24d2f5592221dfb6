# storefront/repos/order_repo.py
import math
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel
from storefront.domain.errors import OrderNumberConflictError
from storefront.repos.base import EntityStore
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderLoadOptions:
    """Co doladowac razem z zamowieniem (zamiast stringowych sciezek populate)."""

    include_items: bool = True
    include_history: bool = True
    include_user: bool = False

    def to_loader_options(self) -> list:
        options = []
        if self.include_items:
            options.append(selectinload(OrderModel.items))
        if self.include_history:
            options.append(selectinload(OrderModel.status_history))
        if self.include_user:
            options.append(selectinload(OrderModel.user))
        return options


@dataclass(frozen=True)
class OrderFilters:
    status: str | None = None
    user_id: int | None = None
    payment_status: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


@dataclass
class Page:
    items: List[OrderModel]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
            "has_next": self.page < self.pages,
            "has_prev": self.page > 1,
        }


def fallback_order_number() -> str:
    #czas + losowy sufiks, unikalny globalnie, bez ciaglosci sekwencji
    millis = int(time.time() * 1000)
    return f"{settings.ORDER_NUMBER_PREFIX}{millis}{random.randint(0, 999):03d}"


def _is_order_number_conflict(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "order_number" in message and ("unique" in message or "duplicate" in message)


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db
        self.store = EntityStore(db, OrderModel)

    def get_order(self, order_id: int, options: OrderLoadOptions = OrderLoadOptions()) -> OrderModel | None:
        return self.store.get(order_id, options=options.to_loader_options())

    def get_by_number(self, order_number: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.order_number == order_number)
        ).scalar_one_or_none()

    def next_order_number(self, now: datetime | None = None) -> str:
        """
        PREFIX + RR + MM + 4-cyfrowa sekwencja w obrebie miesiaca, np. ORD26100007.
        Przy jakimkolwiek bledzie generowania - numer awaryjny z czasu.
        """
        now = now or datetime.now(timezone.utc)
        prefix = f"{settings.ORDER_NUMBER_PREFIX}{now:%y%m}"

        try:
            last = self.db.execute(
                select(OrderModel.order_number)
                .where(OrderModel.order_number.like(f"{prefix}%"))
                .where(func.length(OrderModel.order_number) == len(prefix) + 4)
                .order_by(OrderModel.order_number.desc())
                .limit(1)
            ).scalar_one_or_none()

            sequence = int(last[-4:]) + 1 if last else 1
            if sequence > 9999:
                raise ValueError(f"Order sequence exhausted for {prefix}")

            return f"{prefix}{sequence:04d}"

        except (SQLAlchemyError, ValueError) as e:
            number = fallback_order_number()
            logger.warning(f"Order number generation failed ({e}), using fallback {number}")
            return number

    def create(self, order: OrderModel) -> OrderModel:
        """Nadaje numer i zapisuje zamowienie (flush, bez commit)."""
        if not order.order_number:
            order.order_number = self.next_order_number()

        self.db.add(order)
        try:
            self.db.flush()
        except IntegrityError as e:
            #tylko kolizja numeru jest do ponowienia, inne naruszenia ida dalej bez zmian
            if not _is_order_number_conflict(e):
                raise
            raise OrderNumberConflictError(
                f"Order number {order.order_number} already taken"
            ) from e

        logger.info(f"Order {order.order_number} persisted with id {order.id}")
        return order

    def save(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def _apply_filters(self, stmt, filters: OrderFilters):
        if filters.status:
            stmt = stmt.where(OrderModel.status == filters.status)
        if filters.user_id is not None:
            stmt = stmt.where(OrderModel.user_id == filters.user_id)
        if filters.payment_status:
            stmt = stmt.where(OrderModel.payment_status == filters.payment_status)
        if filters.start_date is not None:
            stmt = stmt.where(OrderModel.created_at >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(OrderModel.created_at <= filters.end_date)
        return stmt

    def find_all(
        self,
        filters: OrderFilters,
        page: int,
        limit: int,
        options: OrderLoadOptions = OrderLoadOptions(include_history=False),
    ) -> Page:
        total = self.db.execute(
            self._apply_filters(select(func.count(OrderModel.id)), filters)
        ).scalar_one()

        stmt = (
            self._apply_filters(select(OrderModel), filters)
            .options(*options.to_loader_options())
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        orders = list(self.db.execute(stmt).scalars().all())

        return Page(items=orders, page=page, limit=limit, total=total)

    def find_by_user(self, user_id: int, page: int, limit: int, status: str | None = None) -> Page:
        return self.find_all(OrderFilters(user_id=user_id, status=status), page, limit)

    def totals_by_status(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> List[Tuple[str, int, Decimal]]:
        stmt = select(
            OrderModel.status,
            func.count(OrderModel.id),
            func.coalesce(func.sum(OrderModel.total), 0),
        ).group_by(OrderModel.status)
        stmt = self._apply_filters(stmt, OrderFilters(start_date=start_date, end_date=end_date))

        return [
            (status, count, Decimal(str(revenue)))
            for status, count, revenue in self.db.execute(stmt).all()
        ]
