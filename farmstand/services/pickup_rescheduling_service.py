"""
Pickup Rescheduling Service - moves pickup slots under the farmstand policy
"""
import logging
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmstand.errors import (
    AuthenticationError,
    ConcurrentUpdateError,
    DependencyFailure,
    DuplicateSlotError,
    FarmstandError,
    NotEligibleError,
    OrderNotFoundError,
    RescheduleRejected,
    ValidationError,
)
from farmstand.models.order import Order as OrderRow
from farmstand.publishers.event_publisher import user_channel
from farmstand.repositories.audit_repository import PickupRescheduleLogRepository
from farmstand.repositories.mappers import to_order_entity
from farmstand.repositories.order_repository import OrderRepository
from farmstand.schemas.notification import NotificationRequest
from farmstand.schemas.reschedule import (
    RescheduleCheck,
    RescheduleConfig,
    RescheduleRequest,
    RescheduleResult,
    TimeSlot,
    TimeSlotsResult,
)
from farmstand.services.auth import AuthContext, CurrentUser
from farmstand.services.order_status import ACTIVE_STATUSES
from farmstand.services.side_effects import broadcast, notify
from farmstand.utils.timeutil import Clock, format_slot, parse_date, parse_time, system_clock

logger = logging.getLogger(__name__)


class PickupReschedulingService:
    """Validates and applies pickup slot changes"""

    def __init__(self, db: Session, publisher, notifier, auth: AuthContext, clock: Optional[Clock] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.logs = PickupRescheduleLogRepository(db)
        self.publisher = publisher
        self.notifier = notifier
        self.auth = auth
        self.clock = clock or system_clock

    def reschedule_pickup(
        self,
        request: Union[RescheduleRequest, dict],
        config: Optional[RescheduleConfig] = None
    ) -> RescheduleResult:
        """
        Move an order's pickup to a new date and time

        Policy checks run in a fixed order and the first failure is returned
        with its own error code. Nothing is persisted when a check fails.

        Returns:
            RescheduleResult with the updated order on success
        """
        config = config or RescheduleConfig.from_settings()
        try:
            if not isinstance(request, RescheduleRequest):
                request = RescheduleRequest.model_validate(request)
        except PydanticValidationError as e:
            return RescheduleResult.from_error(ValidationError(f"Invalid reschedule request: {e.errors()[0]['msg']}"))

        try:
            user = self._require_user()
            row = self._load_eligible(request, user, config)
            new_date, new_time = self._validate_slot(request, config)
        except FarmstandError as e:
            logger.info("Reschedule of order %s refused: %s", request.order_id, e.message)
            return RescheduleResult.from_error(e)

        previous_date, previous_time = row.pickup_date, row.pickup_time
        log_data = {
            "order_id": row.id,
            "user_id": user.id,
            "requested_by": request.requested_by,
            "original_pickup_date": previous_date,
            "original_pickup_time": previous_time,
            "new_pickup_date": new_date,
            "new_pickup_time": new_time,
            "reason": request.reason,
        }

        try:
            now = self.clock()
            if not self.orders.update_pickup_slot(row.id, row.status, new_date, new_time, now, commit=False):
                raise ConcurrentUpdateError(row.id, row.status)
            self.logs.add({**log_data, "status": "completed", "created_at": now}, commit=False)
            self.db.commit()
        except ConcurrentUpdateError as e:
            self.db.rollback()
            return RescheduleResult.from_error(e)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Reschedule of order %s failed in the store", request.order_id, exc_info=True)
            self._record_failure(log_data, str(e))
            return RescheduleResult.from_error(DependencyFailure(f"Failed to reschedule pickup: {e}"))

        order = to_order_entity(self.orders.get_by_id(row.id))
        logger.info(
            "Order %s pickup moved from %s to %s",
            order.id, format_slot(previous_date, previous_time), format_slot(new_date, new_time)
        )

        warnings: List[str] = []
        notification_sent = False
        if request.customer_notification:
            notification_sent = notify(self.notifier, NotificationRequest.for_order(
                order,
                "pickup_rescheduled",
                ["push", "email"],
                custom_message=(
                    f"Your pickup has been moved from {format_slot(previous_date, previous_time)} "
                    f"to {format_slot(new_date, new_time)}"
                ),
            ), warnings)

        broadcast(self.publisher, user_channel(order.user_id), "pickup-rescheduled", {
            "user_id": order.user_id,
            "order_id": order.id,
            "previous_pickup_date": previous_date.isoformat() if previous_date else None,
            "previous_pickup_time": previous_time.strftime("%H:%M") if previous_time else None,
            "new_pickup_date": new_date.isoformat(),
            "new_pickup_time": new_time.strftime("%H:%M"),
            "requested_by": request.requested_by,
            "timestamp": now.isoformat(),
            "action": "pickup_rescheduled",
        }, warnings)

        return RescheduleResult(
            success=True,
            order=order,
            previous_pickup_date=previous_date,
            previous_pickup_time=previous_time,
            new_pickup_date=new_date,
            new_pickup_time=new_time,
            notification_sent=notification_sent,
            message=f"Pickup rescheduled to {format_slot(new_date, new_time)}",
            warnings=warnings,
        )

    def get_available_time_slots(
        self,
        date_str: str,
        config: Optional[RescheduleConfig] = None
    ) -> TimeSlotsResult:
        """List the day's pickup slots with their booking counts"""
        config = config or RescheduleConfig.from_settings()
        try:
            day = parse_date(date_str)
        except (TypeError, ValueError):
            return TimeSlotsResult(success=False, error=f"Invalid date: {date_str!r}")

        booked = Counter(
            o.pickup_time.replace(second=0, microsecond=0)
            for o in self.orders.get_pickups_on(day, ACTIVE_STATUSES)
            if o.pickup_time is not None
        )
        now = self.clock()

        slots = []
        for start in _slot_starts(config):
            count = booked.get(start, 0)
            in_past = datetime.combine(day, start) <= now
            slots.append(TimeSlot(start=start, booked=count, available=count < config.slot_capacity and not in_past))
        return TimeSlotsResult(success=True, slot_date=day, slots=slots)

    def was_recently_rescheduled(self, order_id: str, within_minutes: int = 60) -> RescheduleCheck:
        since = self.clock() - timedelta(minutes=within_minutes)
        latest = self.logs.latest_since(order_id, since)
        return RescheduleCheck(
            was_rescheduled=latest is not None,
            last_reschedule_time=latest.created_at if latest else None,
        )

    def _require_user(self) -> CurrentUser:
        user = self.auth.get_current_user()
        if user is None:
            raise AuthenticationError("Authentication required to reschedule a pickup")
        return user

    def _load_eligible(self, request: RescheduleRequest, user: CurrentUser, config: RescheduleConfig) -> OrderRow:
        row = self.orders.get_by_id(request.order_id)
        if row is None:
            raise OrderNotFoundError(request.order_id)
        if request.requested_by == 'customer' and row.user_id != user.id:
            raise NotEligibleError("Customers can only reschedule their own orders")
        if row.fulfillment_type != 'pickup':
            raise NotEligibleError("Only pickup orders can be rescheduled")
        if row.status not in config.reschedulable_statuses:
            raise NotEligibleError(f"Orders with status '{row.status}' cannot be rescheduled")
        return row

    def _validate_slot(self, request: RescheduleRequest, config: RescheduleConfig):
        try:
            new_date = parse_date(request.new_pickup_date)
            new_time = parse_time(request.new_pickup_time)
        except ValueError:
            raise RescheduleRejected(
                "invalid_datetime",
                f"Invalid pickup date/time: {request.new_pickup_date} {request.new_pickup_time}"
            )

        now = self.clock()
        if datetime.combine(new_date, new_time) <= now:
            raise RescheduleRejected("past_datetime", "New pickup time must be in the future")

        if not (config.business_hours_start <= new_time < config.business_hours_end):
            raise RescheduleRejected(
                "outside_business_hours",
                f"Pickup must be between {config.business_hours_start.strftime('%H:%M')} "
                f"and {config.business_hours_end.strftime('%H:%M')}"
            )

        if new_date > now.date() + timedelta(days=config.max_advance_days):
            raise RescheduleRejected(
                "beyond_advance_window",
                f"Pickup cannot be more than {config.max_advance_days} days in advance"
            )

        if self.logs.exists_for_slot(request.order_id, new_date, new_time):
            raise DuplicateSlotError("Order was already rescheduled to this slot")

        today_start = datetime.combine(now.date(), time.min)
        if self.logs.count_since(request.order_id, today_start) >= config.daily_limit:
            raise RescheduleRejected(
                "daily_limit_exceeded",
                f"Maximum of {config.daily_limit} reschedules per day reached"
            )

        return new_date, new_time

    def _record_failure(self, log_data: dict, reason: str) -> None:
        try:
            self.logs.add({**log_data, "status": "failed", "rejection_reason": reason, "created_at": self.clock()})
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Could not record failed reschedule of order %s", log_data["order_id"])


def _slot_starts(config: RescheduleConfig) -> List[time]:
    day = date.min
    current = datetime.combine(day, config.business_hours_start)
    end = datetime.combine(day, config.business_hours_end)
    step = timedelta(minutes=config.slot_minutes)
    starts = []
    while current + step <= end:
        starts.append(current.time())
        current += step
    return starts
