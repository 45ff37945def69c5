"""
Append-only audit tables for restoration, rescheduling and no-show handling
"""
from sqlalchemy import Column, Integer, String, Boolean, Float, Date, Time, DateTime, Text, JSON
from sqlalchemy.sql import func

from farmstand.database import Base


class StockRestorationLog(Base):
    """One row per (order, product) restoration event"""

    __tablename__ = "stock_restoration_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), nullable=True, index=True)  # NULL for emergency restorations
    product_id = Column(String(36), nullable=False, index=True)
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    quantity_restored = Column(Integer, nullable=False)
    restoration_type = Column(String(30), nullable=False)  # order_cancellation, emergency
    reason = Column(Text, nullable=True)
    operator_id = Column(String(36), nullable=True)
    status = Column(String(20), nullable=False, default='completed')
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<StockRestorationLog(order_id={self.order_id}, product_id={self.product_id}, "
            f"{self.previous_stock} -> {self.new_stock})>"
        )


class PickupRescheduleLog(Base):
    """One row per reschedule attempt that reached the store"""

    __tablename__ = "pickup_reschedule_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    requested_by = Column(String(20), nullable=False)  # customer, staff, admin
    original_pickup_date = Column(Date, nullable=True)
    original_pickup_time = Column(Time, nullable=True)
    new_pickup_date = Column(Date, nullable=False)
    new_pickup_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='completed')  # completed, failed
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)


class NoShowLog(Base):
    """Per-order record of an automated no-show action"""

    __tablename__ = "no_show_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    pickup_date = Column(Date, nullable=True)
    pickup_time = Column(Time, nullable=True)
    action_taken = Column(String(20), nullable=False)  # cancelled, flagged, notified
    stock_restored = Column(Boolean, nullable=False, default=False)
    notification_sent = Column(Boolean, nullable=False, default=False)
    order_total = Column(Float, nullable=True)
    payment_method = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class NoShowProcessingLog(Base):
    """Per-run summary of a no-show sweep"""

    __tablename__ = "no_show_processing_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    processed_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    config_used = Column(JSON, nullable=True)
    processed_orders = Column(JSON, nullable=True)
    errors = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
