"""
Order Service - Business Logic Layer
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmstand.config import Settings, settings as default_settings
from farmstand.errors import (
    ConcurrentUpdateError,
    DependencyFailure,
    FarmstandError,
    InventoryConflictError,
    OrderNotFoundError,
    ValidationError,
)
from farmstand.metrics import ORDERS_SUBMITTED, STATUS_TRANSITIONS
from farmstand.models.order import Order as OrderRow
from farmstand.publishers.event_publisher import user_channel
from farmstand.repositories.mappers import to_order_entity
from farmstand.repositories.order_repository import OrderRepository
from farmstand.schemas.notification import NotificationRequest
from farmstand.schemas.order import (
    BulkStatusUpdateResult,
    CreateOrderRequest,
    Order,
    OrderFilters,
    OrderStats,
    OrderSubmissionResult,
    PeriodStats,
    StatusUpdateResult,
)
from farmstand.services.auth import AuthContext, StaticAuthContext
from farmstand.services.order_status import (
    ACTIVE_STATUSES, CANCELLED, COMPLETED, PENDING, READY, validate_transition
)
from farmstand.services.pricing import (
    calculate_subtotal, calculate_tax, check_order_calculations, line_total, round_money
)
from farmstand.services.side_effects import broadcast, notify
from farmstand.services.stock_restoration_service import StockRestorationService
from farmstand.utils.bulk import process_all
from farmstand.utils.timeutil import Clock, system_clock

logger = logging.getLogger(__name__)


class OrderService:
    """Service layer for order submission, reads and the status state machine"""

    def __init__(
        self,
        db: Session,
        publisher,
        notifier,
        auth: Optional[AuthContext] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
        stock_restoration: Optional[StockRestorationService] = None,
    ):
        self.db = db
        self.repository = OrderRepository(db)
        self.publisher = publisher
        self.notifier = notifier
        self.auth = auth or StaticAuthContext()
        self.clock = clock or system_clock
        self.settings = config or default_settings
        self.stock_restoration = stock_restoration or StockRestorationService(db, publisher, clock=self.clock)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_order(self, request: Union[CreateOrderRequest, dict]) -> OrderSubmissionResult:
        """
        Submit a new order

        Steps:
        1. Validate the request (no I/O on failure)
        2. Calculate subtotal, tax and total
        3. Atomically check stock for every item, decrement it and insert the order
        4. Broadcast the new order and send a confirmation (both fail-soft)

        Returns:
            Success with the order, or failure with every inventory conflict
        """
        try:
            if not isinstance(request, CreateOrderRequest):
                request = CreateOrderRequest.model_validate(request)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "request"
            ORDERS_SUBMITTED.labels(outcome="invalid").inc()
            return OrderSubmissionResult.from_error(
                ValidationError(f"Invalid order request ({field}): {first['msg']}")
            )

        subtotal = calculate_subtotal(request.items)
        tax = calculate_tax(subtotal, self.settings.TAX_RATE)
        total = round_money(subtotal + tax)

        user = self.auth.get_current_user()
        now = self.clock()
        order_data = {
            "id": str(uuid.uuid4()),
            "user_id": user.id if user else None,
            "status": PENDING,
            "subtotal": subtotal,
            "tax_amount": tax,
            "total_amount": total,
            "customer_name": request.customer.name,
            "customer_email": str(request.customer.email),
            "customer_phone": request.customer.phone,
            "fulfillment_type": request.fulfillment_type,
            "pickup_date": request.pickup_date,
            "pickup_time": request.pickup_time,
            "delivery_address": request.delivery_address if request.fulfillment_type == 'delivery' else None,
            "payment_method": request.payment_method,
            # Online payments are captured at checkout
            "payment_status": 'paid' if request.payment_method == 'online' else 'pending',
            "special_instructions": request.special_instructions,
            "created_at": now,
            "updated_at": now,
        }
        items_data = [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "total_price": line_total(item.unit_price, item.quantity),
                "created_at": now,
            }
            for item in request.items
        ]

        try:
            row = self.repository.submit_order_atomic(order_data, items_data)
        except InventoryConflictError as e:
            ORDERS_SUBMITTED.labels(outcome="inventory_conflict").inc()
            logger.info("Order rejected, %d inventory conflicts", len(e.conflicts))
            return OrderSubmissionResult(
                success=False,
                error="Some items are no longer available in the requested quantity",
                error_code=e.code,
                inventory_conflicts=e.conflicts,
            )
        except FarmstandError as e:
            ORDERS_SUBMITTED.labels(outcome="failed").inc()
            return OrderSubmissionResult.from_error(e)

        ORDERS_SUBMITTED.labels(outcome="created").inc()
        order = self._entity(row)
        logger.info("Order %s created (total %.2f)", order.id, order.total)

        warnings: List[str] = []
        broadcast(self.publisher, user_channel(order.user_id), "new-order", {
            "user_id": order.user_id,
            "order_id": order.id,
            "status": order.status,
            "total": order.total,
            "fulfillment_type": order.fulfillment_type,
            "timestamp": now.isoformat(),
            "action": "order_created",
        }, warnings)
        notify(self.notifier, NotificationRequest.for_order(order, "order_confirmed", ["email"]), warnings)

        return OrderSubmissionResult(
            success=True,
            order=order,
            message=f"Order {order.id} submitted",
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Optional[Order]:
        """Get order by ID; None if missing or stored in an invalid shape"""
        row = self.repository.get_by_id(order_id)
        if row is None:
            return None
        try:
            return self._entity(row)
        except PydanticValidationError as e:
            logger.warning("Order %s has invalid stored data: %s", order_id, e)
            return None

    def get_customer_orders(self, email: str) -> List[Order]:
        """Get orders by customer email, newest first"""
        if not email:
            logger.warning("get_customer_orders called without an email")
            return []
        return self._entities(self.repository.get_by_customer_email(email))

    def get_all_orders(self, filters: Optional[OrderFilters] = None) -> List[Order]:
        """Get all orders with optional admin filters, newest first"""
        return self._entities(self.repository.get_all(filters))

    def get_order_stats(self) -> OrderStats:
        """Daily and weekly order counters (weeks start on Monday)"""
        now = self.clock()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today_start - timedelta(days=today_start.weekday())

        rows = self.repository.get_all()
        return OrderStats(
            daily=_period_stats(rows, today_start),
            weekly=_period_stats(rows, week_start),
            total_active=sum(1 for r in rows if r.status in ACTIVE_STATUSES),
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def update_order_status(
        self,
        order_id: str,
        new_status: str,
        *,
        notify_customer: bool = True,
        restoration_reason: str = "order_cancelled",
    ) -> StatusUpdateResult:
        """
        Move an order to a new status and fan out side effects

        The transition is validated against a fresh read and written with a
        conditional update, so a concurrent writer makes this call fail with
        a conflict instead of being overwritten. Notifications, stock
        restoration and broadcasts never undo the status change; their
        failures are reported in ``warnings``.
        """
        return self._update_status(order_id, new_status, notify_customer, restoration_reason, "status_updated")

    def bulk_update_order_status(self, order_ids: List[str], new_status: str) -> BulkStatusUpdateResult:
        """Apply one status to many orders; a failing order never blocks the others"""
        outcome = process_all(
            order_ids,
            lambda oid: (oid, self._update_status(oid, new_status, True, "order_cancelled", "bulk_status_updated")),
            context="bulk status update",
        )

        errors = dict(outcome.errors)
        updated: List[Order] = []
        for order_id, result in outcome.successes:
            if result.success:
                updated.append(result.order)
            else:
                errors[order_id] = result.error

        failed = [oid for oid in order_ids if oid in errors]
        return BulkStatusUpdateResult(
            success=bool(updated),
            updated_count=len(updated),
            failed_orders=failed,
            errors=errors,
            updated_orders=updated,
            message=f"Updated {len(updated)} orders to {new_status}, {len(failed)} failed",
        )

    def _update_status(
        self,
        order_id: str,
        new_status: str,
        notify_customer: bool,
        restoration_reason: str,
        action: str,
    ) -> StatusUpdateResult:
        previous = None
        try:
            row = self.repository.get_by_id(order_id)
            if row is None:
                raise OrderNotFoundError(order_id)
            previous = row.status
            validate_transition(previous, new_status)
            if not self.repository.update_status(order_id, previous, new_status, self.clock()):
                raise ConcurrentUpdateError(order_id, previous)
        except FarmstandError as e:
            logger.info("Status update refused for order %s: %s", order_id, e.message)
            return StatusUpdateResult.from_error(e, previous_status=previous)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Status update for order %s failed", order_id, exc_info=True)
            return StatusUpdateResult.from_error(DependencyFailure(str(e)), previous_status=previous)

        STATUS_TRANSITIONS.labels(from_status=previous, to_status=new_status).inc()
        order = self._entity(self.repository.get_by_id(order_id))
        logger.info("Order %s: %s -> %s", order_id, previous, new_status)

        warnings: List[str] = []
        restoration = None

        if new_status == READY and order.fulfillment_type == 'pickup':
            notify(self.notifier, NotificationRequest.for_order(order, "pickup_ready", ["push", "sms"]), warnings)

        if new_status == CANCELLED:
            restoration = self._restore_stock(order_id, restoration_reason, warnings)
            if notify_customer:
                notify(
                    self.notifier,
                    NotificationRequest.for_order(order, "order_cancelled", ["email", "sms"]),
                    warnings,
                )

        broadcast(self.publisher, user_channel(order.user_id), "order-status-updated", {
            "user_id": order.user_id,
            "order_id": order_id,
            "status": new_status,
            "previous_status": previous,
            "timestamp": self.clock().isoformat(),
            "action": action,
        }, warnings)

        return StatusUpdateResult(
            success=True,
            order=order,
            previous_status=previous,
            message=f"Order status updated to {new_status}",
            warnings=warnings,
            stock_restoration=restoration,
        )

    def _restore_stock(self, order_id: str, reason: str, warnings: List[str]):
        try:
            restoration = self.stock_restoration.restore_order_stock(order_id, reason=reason)
        except Exception as e:
            logger.warning("Stock restoration for cancelled order %s raised: %s", order_id, e)
            warnings.append(f"Stock restoration failed: {e}")
            return None
        if not restoration.success:
            warnings.append(f"Stock restoration failed: {restoration.error}")
        warnings.extend(restoration.warnings)
        return restoration

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _entity(self, row: OrderRow) -> Order:
        order = to_order_entity(row)
        check_order_calculations(order)
        return order

    def _entities(self, rows: List[OrderRow]) -> List[Order]:
        outcome = process_all(rows, self._entity, key=lambda r: r.id, context="order listing")
        return outcome.successes


def _period_stats(rows: List[OrderRow], since: datetime) -> PeriodStats:
    placed = [r for r in rows if r.created_at >= since]
    # Completion time is approximated by the last status change
    completed = [r for r in rows if r.status == COMPLETED and r.updated_at >= since]
    return PeriodStats(
        orders_placed=len(placed),
        orders_completed=len(completed),
        revenue=round_money(sum(r.total_amount for r in completed)),
        pending=sum(1 for r in placed if r.status in ACTIVE_STATUSES),
    )
