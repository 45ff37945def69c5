"""
Services package
"""
from farmstand.services.order_service import OrderService
from farmstand.services.stock_restoration_service import StockRestorationService
from farmstand.services.pickup_rescheduling_service import PickupReschedulingService
from farmstand.services.no_show_service import NoShowHandlingService, NoShowMonitor
from farmstand.services.notification_client import NotificationDispatcher

__all__ = [
    "OrderService",
    "StockRestorationService",
    "PickupReschedulingService",
    "NoShowHandlingService",
    "NoShowMonitor",
    "NotificationDispatcher"
]
