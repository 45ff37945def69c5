"""
Repositories package
"""
from farmstand.repositories.order_repository import OrderRepository
from farmstand.repositories.product_repository import ProductRepository
from farmstand.repositories.audit_repository import (
    StockRestorationLogRepository,
    PickupRescheduleLogRepository,
    NoShowLogRepository
)
from farmstand.repositories.mappers import to_order_entity

__all__ = [
    "OrderRepository",
    "ProductRepository",
    "StockRestorationLogRepository",
    "PickupRescheduleLogRepository",
    "NoShowLogRepository",
    "to_order_entity"
]
