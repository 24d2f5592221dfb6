from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    #pola pieniezne, zawsze liczone na serwerze
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)

    shipping_address = Column(JSON, nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)

    # payment
    payment_method = Column(String(30), nullable=False)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_transaction_id = Column(String(100))
    paid_at = Column(DateTime(timezone=True))
    payment_details = Column(JSON)

    # tracking
    tracking_company = Column(String(100))
    tracking_number = Column(String(100))
    estimated_delivery = Column(DateTime(timezone=True))
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))

    notes = Column(Text, nullable=False, default="")
    admin_notes = Column(Text)

    # cancellation
    cancellation_reason = Column(Text)
    cancelled_at = Column(DateTime(timezone=True))
    cancelled_by = Column(Integer, ForeignKey("users.id"))
    refund_status = Column(String(20))

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    user = relationship("UserModel", foreign_keys=[user_id])
    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
    )
    status_history = relationship(
        "OrderStatusHistoryModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistoryModel.id",
    )

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="check_order_subtotal_non_negative"),
        CheckConstraint("total >= 0", name="check_order_total_non_negative"),
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
    )

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}')>"


class OrderItemModel(Base):
    """Pozycja zamowienia, snapshot produktu zamrozony w chwili zakupu."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    #bez FK - produkt moze zostac usuniety, zamowienie zostaje
    product_id = Column(Integer, nullable=False, index=True)

    # snapshot
    title = Column(String(200), nullable=False)
    snapshot_price = Column(Numeric(12, 2), nullable=False)
    code = Column(String(32))
    thumbnails = Column(JSON, nullable=False, default=list)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_order_item_quantity_positive"),
    )


class OrderStatusHistoryModel(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String(20), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, default=_now)
    notes = Column(Text, nullable=False, default="")
    updated_by = Column(Integer)

    order = relationship("OrderModel", back_populates="status_history")
