"""
FastAPI dependencies: collaborators, services and result-to-HTTP mapping
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from farmstand.database import get_db
from farmstand.publishers.event_publisher import EventPublisher
from farmstand.schemas.common import OperationResult
from farmstand.services.auth import AuthContext, auth_from_headers
from farmstand.services.no_show_service import NoShowHandlingService
from farmstand.services.notification_client import NotificationDispatcher
from farmstand.services.order_service import OrderService
from farmstand.services.pickup_rescheduling_service import PickupReschedulingService
from farmstand.services.stock_restoration_service import StockRestorationService
from farmstand.utils.timeutil import Clock, system_clock

# Error codes that do not map to 400
STATUS_BY_CODE = {
    "authentication_required": status.HTTP_401_UNAUTHORIZED,
    "not_found": status.HTTP_404_NOT_FOUND,
    "order_not_found": status.HTTP_404_NOT_FOUND,
    "product_not_found": status.HTTP_404_NOT_FOUND,
    "not_eligible": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_transition": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "conflict": status.HTTP_409_CONFLICT,
    "inventory_conflict": status.HTTP_409_CONFLICT,
    "already_restored": status.HTTP_409_CONFLICT,
    "duplicate_slot": status.HTTP_409_CONFLICT,
    "concurrent_update": status.HTTP_409_CONFLICT,
    "daily_limit_exceeded": status.HTTP_409_CONFLICT,
    "dependency_failure": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    """Return a successful result unchanged, raise HTTPException otherwise"""
    if result.success:
        return result
    raise HTTPException(
        status_code=STATUS_BY_CODE.get(result.error_code, status.HTTP_400_BAD_REQUEST),
        detail=result.model_dump(mode="json", exclude_none=True),
    )


def get_publisher() -> EventPublisher:
    return EventPublisher()


def get_notifier() -> NotificationDispatcher:
    return NotificationDispatcher()


def get_clock() -> Clock:
    return system_clock


def get_auth(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> AuthContext:
    """Identity forwarded by the API gateway"""
    return auth_from_headers(x_user_id, x_user_email)


def get_stock_restoration_service(
    db: Session = Depends(get_db),
    publisher=Depends(get_publisher),
    clock: Clock = Depends(get_clock),
) -> StockRestorationService:
    return StockRestorationService(db, publisher, clock=clock)


def get_order_service(
    db: Session = Depends(get_db),
    publisher=Depends(get_publisher),
    notifier=Depends(get_notifier),
    auth: AuthContext = Depends(get_auth),
    clock: Clock = Depends(get_clock),
) -> OrderService:
    return OrderService(db, publisher, notifier, auth=auth, clock=clock)


def get_rescheduling_service(
    db: Session = Depends(get_db),
    publisher=Depends(get_publisher),
    notifier=Depends(get_notifier),
    auth: AuthContext = Depends(get_auth),
    clock: Clock = Depends(get_clock),
) -> PickupReschedulingService:
    return PickupReschedulingService(db, publisher, notifier, auth, clock=clock)


def get_no_show_service(
    db: Session = Depends(get_db),
    order_service: OrderService = Depends(get_order_service),
    notifier=Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> NoShowHandlingService:
    return NoShowHandlingService(db, order_service, notifier, clock=clock)
