"""
Order Repository - Data Access Layer
"""
import logging
from collections import OrderedDict
from datetime import date, datetime, time
from typing import Iterable, List, Optional

from sqlalchemy import desc, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmstand.errors import DependencyFailure, InventoryConflictError, ValidationError
from farmstand.models.order import Order, OrderItem
from farmstand.repositories.product_repository import (
    ProductRepository, available_quantity, pre_order_violation
)
from farmstand.schemas.order import InventoryConflict, OrderFilters

logger = logging.getLogger(__name__)


class OrderRepository:
    """Repository for Order reads and conditional writes"""

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)

    def _query(self):
        # populate_existing: always overwrite identity-map state with a fresh read
        return self.db.query(Order).populate_existing()

    def get_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID (fresh read)"""
        return self._query().filter(Order.id == order_id).first()

    def get_by_customer_email(self, email: str) -> List[Order]:
        """Get orders by customer email"""
        return self._query().filter(
            Order.customer_email == email
        ).order_by(desc(Order.created_at)).all()

    def get_all(self, filters: Optional[OrderFilters] = None) -> List[Order]:
        """Get orders matching optional admin filters, newest first"""
        query = self._query()
        if filters:
            if filters.status:
                query = query.filter(Order.status == filters.status)
            if filters.fulfillment_type:
                query = query.filter(Order.fulfillment_type == filters.fulfillment_type)
            if filters.date_from:
                query = query.filter(Order.created_at >= filters.date_from)
            if filters.date_to:
                query = query.filter(Order.created_at <= filters.date_to)
            if filters.search:
                term = f"%{filters.search.lower()}%"
                query = query.filter(or_(
                    func.lower(Order.customer_name).like(term),
                    func.lower(Order.customer_email).like(term),
                    func.lower(Order.id).like(term),
                ))
        return query.order_by(desc(Order.created_at)).all()

    def get_ready_pickups(self) -> List[Order]:
        """Orders waiting on the shelf with a scheduled pickup slot"""
        return self._query().filter(
            Order.status == 'ready',
            Order.fulfillment_type == 'pickup',
            Order.pickup_date.isnot(None),
            Order.pickup_time.isnot(None),
        ).all()

    def get_pickups_on(self, day: date, statuses: Iterable[str]) -> List[Order]:
        """Pickup orders scheduled on a given day in one of statuses"""
        return self._query().filter(
            Order.fulfillment_type == 'pickup',
            Order.pickup_date == day,
            Order.status.in_(tuple(statuses)),
        ).all()

    def submit_order_atomic(self, order_data: dict, items_data: List[dict]) -> Order:
        """
        Check stock, decrement it, and insert the order with its items in one transaction

        Every product row is locked before any check so concurrent checkouts
        serialize on the rows they share. All conflicts are collected before
        giving up, so the caller sees every short item at once.

        Raises:
            InventoryConflictError: If any requested quantity exceeds availability
            ValidationError: If a pre-order quantity is outside its bounds
            DependencyFailure: On database errors
        """
        requested: "OrderedDict[str, int]" = OrderedDict()
        names = {}
        for item in items_data:
            requested[item['product_id']] = requested.get(item['product_id'], 0) + item['quantity']
            names.setdefault(item['product_id'], item['product_name'])

        try:
            products = self.products.lock_many(requested.keys())

            conflicts = []
            for product_id, quantity in requested.items():
                product = products.get(product_id)
                available = available_quantity(product)
                if quantity > available:
                    conflicts.append(InventoryConflict(
                        product_id=product_id,
                        product_name=product.name if product else names[product_id],
                        requested=quantity,
                        available=available,
                    ))

            if conflicts:
                raise InventoryConflictError(conflicts)

            for product_id, quantity in requested.items():
                violation = pre_order_violation(products[product_id], quantity)
                if violation:
                    raise ValidationError(violation)

            for product_id, quantity in requested.items():
                self.products.decrement_stock(products[product_id], quantity)

            order = Order(**order_data)
            order.items = [OrderItem(**item) for item in items_data]
            self.db.add(order)
            self.db.commit()
        except (InventoryConflictError, ValidationError):
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Atomic order submission failed", exc_info=True)
            raise DependencyFailure(f"Failed to submit order: {e}") from e

        self.db.refresh(order)
        return order

    def update_status(self, order_id: str, expected_status: str, new_status: str, updated_at: datetime) -> bool:
        """
        Conditionally update order status

        Returns:
            True if the row still had expected_status and was updated
        """
        rows = self.db.query(Order).filter(
            Order.id == order_id,
            Order.status == expected_status
        ).update(
            {Order.status: new_status, Order.updated_at: updated_at},
            synchronize_session=False
        )
        self.db.commit()
        return rows == 1

    def update_pickup_slot(
        self,
        order_id: str,
        expected_status: str,
        new_date: date,
        new_time: time,
        updated_at: datetime,
        commit: bool = True
    ) -> bool:
        """Conditionally move an order's pickup slot; same contract as update_status"""
        rows = self.db.query(Order).filter(
            Order.id == order_id,
            Order.status == expected_status
        ).update(
            {Order.pickup_date: new_date, Order.pickup_time: new_time, Order.updated_at: updated_at},
            synchronize_session=False
        )
        if commit:
            self.db.commit()
        return rows == 1
