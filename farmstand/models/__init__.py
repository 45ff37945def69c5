"""
Models package
"""
from farmstand.models.order import Order, OrderItem
from farmstand.models.product import Product
from farmstand.models.audit import (
    StockRestorationLog,
    PickupRescheduleLog,
    NoShowLog,
    NoShowProcessingLog
)

__all__ = [
    "Order",
    "OrderItem",
    "Product",
    "StockRestorationLog",
    "PickupRescheduleLog",
    "NoShowLog",
    "NoShowProcessingLog"
]
