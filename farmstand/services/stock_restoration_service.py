"""
Stock Restoration Service - returns inventory for cancelled orders
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmstand.errors import (
    AlreadyRestoredError,
    DependencyFailure,
    FarmstandError,
    InvalidQuantityError,
    NotEligibleError,
    OrderNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from farmstand.metrics import STOCK_UNITS_RESTORED
from farmstand.models.order import Order
from farmstand.publishers.event_publisher import INVENTORY_CHANNEL
from farmstand.repositories.audit_repository import StockRestorationLogRepository
from farmstand.repositories.order_repository import OrderRepository
from farmstand.repositories.product_repository import ProductRepository
from farmstand.schemas.stock import (
    FailedItem,
    RestorationCheck,
    RestoredItem,
    StockRestorationResult,
)
from farmstand.services.side_effects import broadcast
from farmstand.utils.bulk import process_all
from farmstand.utils.timeutil import Clock, system_clock

logger = logging.getLogger(__name__)

RESTORABLE_STATUSES = ('cancelled',)


class StockRestorationService:
    """Reverses inventory commitments exactly once per order.

    All increments for one order run in a single transaction: either every
    line item is returned to stock with its log row, or nothing is.
    """

    def __init__(self, db: Session, publisher, clock: Optional[Clock] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.products = ProductRepository(db)
        self.logs = StockRestorationLogRepository(db)
        self.publisher = publisher
        self.clock = clock or system_clock

    def restore_order_stock(self, order_id: str, reason: str = "order_cancelled") -> StockRestorationResult:
        """
        Return every line item of a cancelled order to stock

        Eligibility and idempotence are checked before anything is mutated.
        If any item fails, the whole restoration is rolled back and the
        failed item is reported.
        """
        try:
            order = self._load_restorable(order_id)
        except FarmstandError as e:
            logger.info("Stock restoration refused for order %s: %s", order_id, e.message)
            return StockRestorationResult.from_error(e, order_id=order_id)

        items = [(item.product_id, item.product_name, item.quantity) for item in order.items]
        logger.info("Starting stock restoration for order %s, reason: %s", order_id, reason)

        restored: List[RestoredItem] = []
        for product_id, product_name, quantity in items:
            try:
                restored.append(self._apply_increment(
                    product_id,
                    quantity,
                    order_id=order_id,
                    restoration_type="order_cancellation",
                    reason=reason,
                    product_name=product_name,
                ))
            except (FarmstandError, SQLAlchemyError) as e:
                self.db.rollback()
                error = e if isinstance(e, FarmstandError) else DependencyFailure(str(e))
                logger.error(
                    "Stock restoration for order %s rolled back at product %s: %s",
                    order_id, product_id, error.message
                )
                return StockRestorationResult(
                    success=False,
                    order_id=order_id,
                    error=f"Stock restoration rolled back: {error.message}",
                    error_code=error.code,
                    failed_items=[FailedItem(
                        product_id=product_id,
                        product_name=product_name,
                        quantity=quantity,
                        error=error.message,
                    )],
                    message=f"No stock was restored for order {order_id}",
                )

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Commit of stock restoration for order %s failed", order_id, exc_info=True)
            return StockRestorationResult.from_error(
                DependencyFailure(f"Failed to commit stock restoration: {e}"), order_id=order_id
            )

        warnings: List[str] = []
        for item in restored:
            self._after_restore(item, "order_cancellation", warnings)

        message = f"Stock restored for {len(restored)} items from order {order_id}"
        logger.info(message)
        return StockRestorationResult(
            success=True,
            order_id=order_id,
            restored_items=restored,
            message=message,
            warnings=warnings,
        )

    def restore_product_stock(self, product_id: str, quantity: int, order_id: str) -> RestoredItem:
        """
        Return quantity units of one product for one order

        Raises:
            InvalidQuantityError: If quantity is not positive
            AlreadyRestoredError: If this (order, product) pair was already restored
            ProductNotFoundError: If the product does not exist
        """
        try:
            item = self._apply_increment(
                product_id,
                quantity,
                order_id=order_id,
                restoration_type="order_cancellation",
                reason="order_cancelled",
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self._after_restore(item, "order_cancellation", [])
        return item

    def emergency_stock_restoration(
        self,
        product_id: str,
        quantity: int,
        operator_id: str,
        reason: str
    ) -> StockRestorationResult:
        """Admin override: add stock without an order, always logged as emergency"""
        try:
            if not reason or not reason.strip():
                raise ValidationError("A reason is required for emergency stock restoration")
            if not operator_id:
                raise ValidationError("An operator is required for emergency stock restoration")
            logger.warning(
                "Emergency stock restoration: %s units for product %s by %s", quantity, product_id, operator_id
            )
            item = self._apply_increment(
                product_id,
                quantity,
                order_id=None,
                restoration_type="emergency",
                reason=reason.strip(),
                operator_id=operator_id,
            )
            self.db.commit()
        except FarmstandError as e:
            self.db.rollback()
            return StockRestorationResult.from_error(
                e,
                failed_items=[FailedItem(product_id=product_id, quantity=_as_int(quantity), error=e.message)],
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Emergency stock restoration failed", exc_info=True)
            return StockRestorationResult.from_error(DependencyFailure(str(e)))

        warnings: List[str] = []
        self._after_restore(item, "emergency", warnings)
        return StockRestorationResult(
            success=True,
            restored_items=[item],
            message=f"Emergency restoration completed: {quantity} units restored",
            warnings=warnings,
        )

    def restore_batch_order_stock(self, order_ids: List[str]) -> List[StockRestorationResult]:
        """Restore several orders independently; one result per id, in input order"""
        indexed = list(enumerate(order_ids))
        outcome = process_all(
            indexed,
            lambda pair: (pair[0], self.restore_order_stock(pair[1])),
            key=lambda pair: pair[1],
            context="batch stock restoration",
        )
        results: List[Optional[StockRestorationResult]] = [None] * len(order_ids)
        for index, result in outcome.successes:
            results[index] = result

        errors = dict(outcome.errors)
        for index, order_id in indexed:
            if results[index] is None:
                results[index] = StockRestorationResult.from_error(
                    DependencyFailure(errors.get(order_id, "Unknown error")), order_id=order_id
                )
        return results

    def verify_restoration_needed(self, order_id: str) -> RestorationCheck:
        """Report whether an order still owes stock back to inventory"""
        if self.logs.has_completed_for_order(order_id):
            return RestorationCheck(needed=False, already_restored=True, reason="Stock already restored")

        order = self.orders.get_by_id(order_id)
        if order is None:
            return RestorationCheck(needed=False, reason="Order not found")

        needed = order.status in RESTORABLE_STATUSES
        return RestorationCheck(
            needed=needed,
            reason=f"Order status: {order.status}" if needed else "Order not cancelled",
        )

    def _load_restorable(self, order_id: str) -> Order:
        order = self.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status not in RESTORABLE_STATUSES:
            raise NotEligibleError(
                f"Order {order_id} has status '{order.status}'; only cancelled orders can be restored"
            )
        if self.logs.has_completed_for_order(order_id):
            raise AlreadyRestoredError(order_id)
        return order

    def _apply_increment(
        self,
        product_id: str,
        quantity: int,
        *,
        order_id: Optional[str],
        restoration_type: str,
        reason: Optional[str],
        operator_id: Optional[str] = None,
        product_name: Optional[str] = None,
    ) -> RestoredItem:
        """Lock, increment and log one product inside the open transaction (no commit)"""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantityError(quantity)
        product = self.products.lock(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        # Checked under the product lock so a concurrent restorer sees our committed log
        if order_id and self.logs.has_completed_for_item(order_id, product_id):
            raise AlreadyRestoredError(order_id, product_id)

        previous = self.products.increment_stock(product, quantity)
        self.logs.add({
            "order_id": order_id,
            "product_id": product_id,
            "previous_stock": previous,
            "new_stock": product.stock_quantity,
            "quantity_restored": quantity,
            "restoration_type": restoration_type,
            "reason": reason,
            "operator_id": operator_id,
            "status": "completed",
            "created_at": self.clock(),
        })
        return RestoredItem(
            product_id=product_id,
            product_name=product_name or product.name,
            quantity_restored=quantity,
            previous_stock=previous,
            new_stock_level=product.stock_quantity,
        )

    def _after_restore(self, item: RestoredItem, restoration_type: str, warnings: List[str]) -> None:
        STOCK_UNITS_RESTORED.labels(restoration_type=restoration_type).inc(item.quantity_restored)
        broadcast(self.publisher, INVENTORY_CHANNEL, "stock-restored", {
            "product_id": item.product_id,
            "quantity_restored": item.quantity_restored,
            "new_stock_level": item.new_stock_level,
            "timestamp": self.clock().isoformat(),
            "action": "stock_restoration",
        }, warnings)


def _as_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
