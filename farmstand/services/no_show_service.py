"""
No-Show Handling Service - cancels ready pickups nobody came for
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmstand.errors import FarmstandError
from farmstand.metrics import NO_SHOW_ORDERS
from farmstand.repositories.audit_repository import NoShowLogRepository, PickupRescheduleLogRepository
from farmstand.repositories.mappers import to_order_entity
from farmstand.repositories.order_repository import OrderRepository
from farmstand.schemas.no_show import (
    NoShowCheck,
    NoShowConfig,
    NoShowError,
    NoShowHandlingResult,
    ProcessedNoShow,
)
from farmstand.schemas.notification import NotificationRequest
from farmstand.schemas.order import Order
from farmstand.services.order_service import OrderService
from farmstand.services.order_status import CANCELLED, READY
from farmstand.services.side_effects import notify
from farmstand.utils.bulk import process_all
from farmstand.utils.timeutil import Clock, format_slot, system_clock

logger = logging.getLogger(__name__)

NO_SHOW_RESTORATION_REASON = "no_show_timeout"


class NoShowProcessingError(FarmstandError):
    code = "no_show_failed"


class NoShowHandlingService:
    """Finds overdue ready pickups and cancels, flags or notifies them"""

    def __init__(self, db: Session, order_service: OrderService, notifier, clock: Optional[Clock] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.reschedules = PickupRescheduleLogRepository(db)
        self.logs = NoShowLogRepository(db)
        self.order_service = order_service
        self.notifier = notifier
        self.clock = clock or system_clock

    def process_no_show_orders(self, config: Optional[NoShowConfig] = None) -> NoShowHandlingResult:
        """
        Run one no-show sweep

        An order qualifies when it is a ready pickup whose slot ended more
        than the grace period ago. Orders rescheduled within the lookback
        window are skipped. A failing order is reported in ``errors`` and
        never stops the sweep.
        """
        config = config or NoShowConfig.from_settings()
        now = self.clock()
        cutoff = now - timedelta(minutes=config.grace_period_minutes)
        lookback_start = now - timedelta(minutes=config.reschedule_lookback_minutes)

        try:
            rows = self.orders.get_ready_pickups()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("No-show sweep could not load candidates", exc_info=True)
            return NoShowHandlingResult(
                success=False,
                errors=[NoShowError(order_id="system", error=str(e))],
                message="No-show processing failed",
            )

        candidates = process_all(rows, to_order_entity, key=lambda r: r.id, context="no-show candidates")
        overdue = [o for o in candidates.successes if o.pickup_datetime < cutoff]

        skipped: List[str] = []
        due: List[Order] = []
        for order in overdue:
            if self.reschedules.latest_since(order.id, lookback_start) is not None:
                logger.info("Order %s was rescheduled recently, skipping no-show handling", order.id)
                skipped.append(order.id)
            else:
                due.append(order)

        outcome = process_all(
            due,
            lambda order: self._handle(order, config),
            key=lambda order: order.id,
            context="no-show sweep",
        )
        errors = [NoShowError(order_id=key, error=msg) for key, msg in candidates.errors + outcome.errors]

        for processed in outcome.successes:
            NO_SHOW_ORDERS.labels(action=processed.action).inc()

        warnings: List[str] = []
        self._record_summary(config, outcome.successes, skipped, errors, warnings)

        if not overdue and not errors:
            message = "No no-show orders found"
        else:
            message = f"Processed {len(outcome.successes)} no-show orders, {len(errors)} errors"
        logger.info("No-show sweep finished: %s, %d skipped", message, len(skipped))

        return NoShowHandlingResult(
            success=True,
            processed_orders=outcome.successes,
            skipped_orders=skipped,
            errors=errors,
            message=message,
            warnings=warnings,
        )

    def is_order_no_show(self, order_id: str, grace_period_minutes: int = 30) -> NoShowCheck:
        """Check a single order against the grace period; read-only"""
        row = self.orders.get_by_id(order_id)
        if row is None or row.status != READY or row.fulfillment_type != 'pickup':
            return NoShowCheck(is_no_show=False)
        if row.pickup_date is None or row.pickup_time is None:
            return NoShowCheck(is_no_show=False)

        now = self.clock()
        pickup_at = datetime.combine(row.pickup_date, row.pickup_time)
        minutes_overdue = int((now - pickup_at).total_seconds() // 60)
        return NoShowCheck(
            is_no_show=pickup_at < now - timedelta(minutes=grace_period_minutes),
            minutes_overdue=max(minutes_overdue, 0),
            pickup_window=format_slot(row.pickup_date, row.pickup_time),
        )

    def _handle(self, order: Order, config: NoShowConfig) -> ProcessedNoShow:
        logger.info("Processing no-show order %s (%s)", order.id, order.customer.name)
        action = 'flagged'
        stock_restored = False
        notification_sent = False

        if config.enable_auto_cancel:
            result = self.order_service.update_order_status(
                order.id,
                CANCELLED,
                notify_customer=False,
                restoration_reason=NO_SHOW_RESTORATION_REASON,
            )
            if not result.success:
                raise NoShowProcessingError(f"Failed to cancel no-show order: {result.error}")
            action = 'cancelled'
            stock_restored = bool(result.stock_restoration and result.stock_restoration.success)
            if result.order is not None:
                order = result.order

        if config.notify_customer:
            notification_sent = notify(self.notifier, NotificationRequest.for_order(
                order,
                "order_cancelled" if action == 'cancelled' else "pickup_ready",
                ["sms", "email"],
                custom_message=_no_show_message(order, cancelled=action == 'cancelled'),
            ), [])
            if notification_sent and action == 'flagged':
                action = 'notified'

        try:
            self.logs.add_event({
                "order_id": order.id,
                "customer_name": order.customer.name,
                "customer_email": order.customer.email,
                "pickup_date": order.pickup_date,
                "pickup_time": order.pickup_time,
                "action_taken": action,
                "stock_restored": stock_restored,
                "notification_sent": notification_sent,
                "order_total": order.total,
                "payment_method": order.payment_method,
                "created_at": self.clock(),
            })
        except SQLAlchemyError:
            self.db.rollback()
            raise

        return ProcessedNoShow(
            order_id=order.id,
            customer_name=order.customer.name,
            action=action,
            stock_restored=stock_restored,
            notification_sent=notification_sent,
        )

    def _record_summary(self, config, processed, skipped, errors, warnings: List[str]) -> None:
        try:
            self.logs.add_summary({
                "processed_count": len(processed),
                "skipped_count": len(skipped),
                "error_count": len(errors),
                "config_used": config.model_dump(),
                "processed_orders": [p.model_dump() for p in processed],
                "errors": [e.model_dump() for e in errors],
                "created_at": self.clock(),
            })
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Failed to record no-show sweep summary: %s", e)
            warnings.append(f"Sweep summary not recorded: {e}")


def _no_show_message(order: Order, cancelled: bool) -> str:
    if not cancelled:
        return (
            f"We missed you at your {format_slot(order.pickup_date, order.pickup_time)} pickup. "
            "Please contact us to collect your order."
        )
    message = "Your order was automatically cancelled because it was not picked up."
    if order.payment_method == 'online':
        message += " Your payment will be refunded."
    return message


class NoShowMonitor:
    """Background loop running a no-show sweep every check interval.

    Each tick opens its own session through ``service_factory`` and runs the
    blocking sweep in a worker thread.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        service_factory: Callable[[Session], NoShowHandlingService],
        config: Optional[NoShowConfig] = None,
    ):
        self.session_factory = session_factory
        self.service_factory = service_factory
        self.config = config or NoShowConfig.from_settings()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.info("No-show monitor already running")
            return
        logger.info("Starting no-show monitor (every %d minutes)", self.config.check_interval_minutes)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("No-show monitor stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.config.check_interval_minutes * 60)
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.error("No-show sweep failed", exc_info=True)

    def run_once(self) -> NoShowHandlingResult:
        db = self.session_factory()
        try:
            return self.service_factory(db).process_no_show_orders(self.config)
        finally:
            db.close()


_monitor: Optional[NoShowMonitor] = None


def start_no_show_monitoring(
    session_factory: Callable[[], Session],
    service_factory: Callable[[Session], NoShowHandlingService],
    config: Optional[NoShowConfig] = None,
) -> NoShowMonitor:
    """Start the process-wide monitor (must be called inside a running event loop)"""
    global _monitor
    if _monitor is None or not _monitor.running:
        _monitor = NoShowMonitor(session_factory, service_factory, config)
        _monitor.start()
    return _monitor


async def stop_no_show_monitoring() -> None:
    global _monitor
    if _monitor is not None:
        await _monitor.stop()
        _monitor = None
