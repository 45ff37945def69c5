"""
Product Repository - Inventory ledger access
"""
from typing import Dict, Iterable, Optional
from sqlalchemy.orm import Session

from farmstand.models.product import Product


class ProductRepository:
    """Repository for product stock reads and locked writes.

    Stock is never cached: every read goes to the store, and writers lock
    the row (SELECT ... FOR UPDATE) inside the caller's transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def lock(self, product_id: str) -> Optional[Product]:
        """Fetch a product row locked for update"""
        return self.db.query(Product).populate_existing().filter(
            Product.id == product_id
        ).with_for_update().first()

    def lock_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        """Fetch and lock several product rows, keyed by id"""
        ids = sorted(set(product_ids))  # stable lock order avoids deadlocks
        products = self.db.query(Product).populate_existing().filter(
            Product.id.in_(ids)
        ).order_by(Product.id).with_for_update().all()
        return {p.id: p for p in products}

    def increment_stock(self, product: Product, quantity: int) -> int:
        """
        Add quantity to a locked product's stock (no commit)

        Returns:
            Previous stock level
        """
        previous = product.stock_quantity
        product.stock_quantity = previous + quantity
        self.db.flush()
        return previous

    def decrement_stock(self, product: Product, quantity: int) -> int:
        """
        Subtract quantity from a locked product's stock (no commit)

        Raises:
            ValueError: If resulting stock would be negative
        """
        previous = product.stock_quantity
        new_stock = previous - quantity
        if new_stock < 0:
            raise ValueError(f"Insufficient stock. Current: {previous}, requested change: -{quantity}")
        product.stock_quantity = new_stock
        self.db.flush()
        return previous


def available_quantity(product: Optional[Product]) -> int:
    """Units a checkout may claim for this product"""
    if product is None or not product.is_available:
        return 0
    return product.stock_quantity


def pre_order_violation(product: Product, quantity: int) -> Optional[str]:
    """Describe why quantity falls outside a pre-order product's bounds, if it does"""
    if not product.is_pre_order:
        return None
    if product.min_pre_order_quantity is not None and quantity < product.min_pre_order_quantity:
        return f"Minimum pre-order quantity for {product.name} is {product.min_pre_order_quantity}"
    if product.max_pre_order_quantity is not None and quantity > product.max_pre_order_quantity:
        return f"Maximum pre-order quantity for {product.name} is {product.max_pre_order_quantity}"
    return None
