"""
Pydantic schemas for pickup rescheduling
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import date, datetime, time

from farmstand.config import Settings, settings as default_settings
from farmstand.schemas.common import OperationResult
from farmstand.schemas.order import Order
from farmstand.utils.timeutil import parse_time


class RescheduleBody(BaseModel):
    """Client payload for moving a pickup slot.

    Date and time stay strings here: parsing them is the first policy check.
    """
    new_pickup_date: str = Field(..., description="YYYY-MM-DD")
    new_pickup_time: str = Field(..., description="HH:MM")
    reason: Optional[str] = Field(None, max_length=500)
    requested_by: Literal['customer', 'staff', 'admin'] = 'customer'
    customer_notification: bool = True


class RescheduleRequest(RescheduleBody):
    """A request to move an order's pickup slot"""
    order_id: str = Field(..., min_length=1)


class RescheduleConfig(BaseModel):
    """Policy knobs for rescheduling and slot enumeration"""
    business_hours_start: time = time(8, 0)
    business_hours_end: time = time(20, 0)
    max_advance_days: int = Field(10, ge=0)
    daily_limit: int = Field(3, ge=1)
    slot_minutes: int = Field(30, gt=0)
    slot_capacity: int = Field(1, ge=1)
    reschedulable_statuses: List[str] = Field(
        default_factory=lambda: ['confirmed', 'processing', 'ready']
    )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "RescheduleConfig":
        config = config or default_settings
        return cls(
            business_hours_start=parse_time(config.BUSINESS_HOURS_START),
            business_hours_end=parse_time(config.BUSINESS_HOURS_END),
            max_advance_days=config.MAX_ADVANCE_DAYS,
            daily_limit=config.DAILY_RESCHEDULE_LIMIT,
            slot_minutes=config.SLOT_MINUTES,
            slot_capacity=config.SLOT_CAPACITY,
        )


class RescheduleResult(OperationResult):
    """Outcome of reschedule_pickup"""
    order: Optional[Order] = None
    previous_pickup_date: Optional[date] = None
    previous_pickup_time: Optional[time] = None
    new_pickup_date: Optional[date] = None
    new_pickup_time: Optional[time] = None
    notification_sent: bool = False


class TimeSlot(BaseModel):
    start: time
    available: bool
    booked: int = 0


class TimeSlotsResult(BaseModel):
    success: bool
    slot_date: Optional[date] = None
    slots: List[TimeSlot] = Field(default_factory=list)
    error: Optional[str] = None


class RescheduleCheck(BaseModel):
    """Whether an order was moved within a trailing window"""
    was_rescheduled: bool
    last_reschedule_time: Optional[datetime] = None
