"""
Schemas package
"""
from farmstand.schemas.common import OperationResult
from farmstand.schemas.order import (
    CreateOrderRequest,
    Order,
    OrderFilters,
    OrderStats,
    OrderSubmissionResult,
    StatusUpdateResult,
    BulkStatusUpdateResult
)
from farmstand.schemas.stock import StockRestorationResult, RestorationCheck
from farmstand.schemas.reschedule import RescheduleConfig, RescheduleRequest, RescheduleResult, TimeSlotsResult
from farmstand.schemas.no_show import NoShowConfig, NoShowHandlingResult, NoShowCheck
from farmstand.schemas.notification import NotificationRequest, NotificationResult

__all__ = [
    "OperationResult",
    "CreateOrderRequest",
    "Order",
    "OrderFilters",
    "OrderStats",
    "OrderSubmissionResult",
    "StatusUpdateResult",
    "BulkStatusUpdateResult",
    "StockRestorationResult",
    "RestorationCheck",
    "RescheduleConfig",
    "RescheduleRequest",
    "RescheduleResult",
    "TimeSlotsResult",
    "NoShowConfig",
    "NoShowHandlingResult",
    "NoShowCheck",
    "NotificationRequest",
    "NotificationResult"
]
