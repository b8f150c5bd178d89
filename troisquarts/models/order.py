"""
Order aggregate: one ``Order`` row and its ``OrderItem`` snapshots.
Item name and price are copied at checkout time and never follow later menu edits.
"""
import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from .base import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryMode(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMode(str, enum.Enum):
    CARD = "card"
    CASH = "cash"
    TICKETS = "tickets"


class Order(Base):
    __tablename__ = "order"

    id = Column(String(36), primary_key=True)
    number = Column(String(32), nullable=False, unique=True)  # ORD-YYYYMMDD-NNNN
    status = Column(String(32), nullable=False, default=OrderStatus.PENDING.value)
    created_at = Column(DateTime, nullable=False)

    delivery_mode = Column(String(16), nullable=False)
    delivery_address = Column(String(255), nullable=True)
    delivery_zip = Column(String(10), nullable=True)
    delivery_instructions = Column(Text, nullable=True)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    payment_mode = Column(String(16), nullable=False)

    client_first_name = Column(String(100), nullable=False)
    client_last_name = Column(String(100), nullable=False)
    client_phone = Column(String(20), nullable=False)
    client_email = Column(String(255), nullable=False)

    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    coupon_id = Column(String(36), ForeignKey("coupon.id"), nullable=True)
    coupon = relationship("Coupon")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )


class OrderItem(Base):
    __tablename__ = "order_item"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("order.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(36), nullable=False)
    product_name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
