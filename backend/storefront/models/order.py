import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from storefront.db import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAYMENT_PENDING = "payment_pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# statuses in which the customer may still submit proof / open the payment page
PAYABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PAYMENT_PENDING})

# recorded instead of a URL when the customer marks the order paid without a file
PROOF_PENDING_REVIEW = "pending_review"


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    status = Column(String(32), nullable=False, default=OrderStatus.PENDING.value)
    subtotal_kobo = Column(Integer, nullable=False, default=0)
    shipping_fee_kobo = Column(Integer, nullable=False, default=0)
    total_kobo = Column(Integer, nullable=False, default=0)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)
    payment_method = Column(String(32), nullable=False, default="bank_transfer")
    notes = Column(Text, nullable=True)
    proof_of_payment_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )

    @property
    def item_count(self) -> int:
        return len(self.lines)

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status}>"


class OrderLine(Base):
    __tablename__ = "order_lines"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    product_name = Column(String(256), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price_kobo = Column(Integer, nullable=False)  # copied at order time, never a live price
    selected_length = Column(String(32), nullable=True)
    selected_color = Column(String(64), nullable=True)

    order = relationship("Order", back_populates="lines")

    @property
    def line_total_kobo(self) -> int:
        return self.unit_price_kobo * self.quantity
