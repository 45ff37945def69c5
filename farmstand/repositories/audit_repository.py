"""
Audit log repositories (append-only)
"""
from datetime import date, datetime, time
from typing import Optional
from sqlalchemy import desc
from sqlalchemy.orm import Session

from farmstand.models.audit import (
    StockRestorationLog,
    PickupRescheduleLog,
    NoShowLog,
    NoShowProcessingLog
)


class StockRestorationLogRepository:
    """Repository for stock restoration audit rows"""

    def __init__(self, db: Session):
        self.db = db

    def has_completed_for_order(self, order_id: str) -> bool:
        """Check if any completed restoration exists for an order"""
        return self.db.query(StockRestorationLog).filter(
            StockRestorationLog.order_id == order_id,
            StockRestorationLog.status == 'completed'
        ).first() is not None

    def has_completed_for_item(self, order_id: str, product_id: str) -> bool:
        """Check if a (order, product) pair was already restored"""
        return self.db.query(StockRestorationLog).filter(
            StockRestorationLog.order_id == order_id,
            StockRestorationLog.product_id == product_id,
            StockRestorationLog.status == 'completed'
        ).first() is not None

    def add(self, log_data: dict) -> StockRestorationLog:
        """Stage a log row in the current transaction (caller commits)"""
        log = StockRestorationLog(**log_data)
        self.db.add(log)
        self.db.flush()
        return log


class PickupRescheduleLogRepository:
    """Repository for pickup reschedule audit rows"""

    def __init__(self, db: Session):
        self.db = db

    def latest_since(self, order_id: str, since: datetime) -> Optional[PickupRescheduleLog]:
        """Most recent completed reschedule for an order at or after since"""
        return self.db.query(PickupRescheduleLog).filter(
            PickupRescheduleLog.order_id == order_id,
            PickupRescheduleLog.status == 'completed',
            PickupRescheduleLog.created_at >= since
        ).order_by(desc(PickupRescheduleLog.created_at)).first()

    def exists_for_slot(self, order_id: str, new_date: date, new_time: time) -> bool:
        """Check if a completed reschedule already targets this slot"""
        return self.db.query(PickupRescheduleLog).filter(
            PickupRescheduleLog.order_id == order_id,
            PickupRescheduleLog.status == 'completed',
            PickupRescheduleLog.new_pickup_date == new_date,
            PickupRescheduleLog.new_pickup_time == new_time
        ).first() is not None

    def count_since(self, order_id: str, since: datetime) -> int:
        """Count completed reschedules for an order at or after since"""
        return self.db.query(PickupRescheduleLog).filter(
            PickupRescheduleLog.order_id == order_id,
            PickupRescheduleLog.status == 'completed',
            PickupRescheduleLog.created_at >= since
        ).count()

    def add(self, log_data: dict, commit: bool = True) -> PickupRescheduleLog:
        log = PickupRescheduleLog(**log_data)
        self.db.add(log)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        return log


class NoShowLogRepository:
    """Repository for no-show audit rows"""

    def __init__(self, db: Session):
        self.db = db

    def add_event(self, log_data: dict) -> NoShowLog:
        log = NoShowLog(**log_data)
        self.db.add(log)
        self.db.commit()
        return log

    def add_summary(self, log_data: dict) -> NoShowProcessingLog:
        log = NoShowProcessingLog(**log_data)
        self.db.add(log)
        self.db.commit()
        return log
