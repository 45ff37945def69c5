"""
SQLAlchemy Order and OrderItem models
"""
import uuid

from sqlalchemy import (
    Column, Integer, String, Float, Date, Time, DateTime, Text, ForeignKey, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from farmstand.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """Order database model"""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=True, index=True)
    status = Column(String(20), nullable=False, default='pending', index=True)

    subtotal = Column(Float, nullable=False)
    tax_amount = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False)

    # Customer information (kept for history even if the user is deleted)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(20), nullable=False)

    # Fulfillment
    fulfillment_type = Column(String(20), nullable=False, default='pickup')
    pickup_date = Column(Date, nullable=True, index=True)
    pickup_time = Column(Time, nullable=True)
    delivery_address = Column(Text, nullable=True)

    # Payment
    payment_method = Column(String(20), nullable=False, default='cash_on_pickup')
    payment_status = Column(String(20), nullable=False, default='pending')

    special_instructions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)  # Staff notes

    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    # Constraints
    __table_args__ = (
        CheckConstraint('subtotal >= 0', name='check_subtotal_non_negative'),
        CheckConstraint('total_amount >= 0', name='check_total_non_negative'),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'processing', 'ready', 'completed', 'cancelled')",
            name='check_status_valid'
        ),
        CheckConstraint("fulfillment_type IN ('pickup', 'delivery')", name='check_fulfillment_type_valid'),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, status='{self.status}', total={self.total_amount})>"


class OrderItem(Base):
    """Order line item; price and quantity are locked at submission"""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)  # Denormalized for history
    unit_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_item_quantity_positive'),
        CheckConstraint('unit_price >= 0', name='check_item_price_non_negative'),
    )

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"
