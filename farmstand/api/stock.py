"""
Stock restoration endpoints (staff/admin)
"""
from fastapi import APIRouter, Depends
from typing import List

from farmstand.api.dependencies import get_stock_restoration_service, raise_for_result
from farmstand.schemas.stock import (
    BatchRestorationRequest,
    EmergencyRestorationRequest,
    RestorationCheck,
    StockRestorationResult,
)
from farmstand.services.stock_restoration_service import StockRestorationService

router = APIRouter(tags=["stock"])


@router.post("/orders/{order_id}/restore-stock", response_model=StockRestorationResult)
def restore_order_stock(
    order_id: str,
    service: StockRestorationService = Depends(get_stock_restoration_service)
):
    """Return a cancelled order's items to stock (at most once)"""
    return raise_for_result(service.restore_order_stock(order_id))


@router.get("/orders/{order_id}/restore-stock", response_model=RestorationCheck)
def restoration_needed(
    order_id: str,
    service: StockRestorationService = Depends(get_stock_restoration_service)
):
    return service.verify_restoration_needed(order_id)


@router.post("/stock/restore-batch", response_model=List[StockRestorationResult])
def restore_batch(
    request: BatchRestorationRequest,
    service: StockRestorationService = Depends(get_stock_restoration_service)
):
    """One result per order ID, in request order"""
    return service.restore_batch_order_stock(request.order_ids)


@router.post("/products/{product_id}/emergency-restore", response_model=StockRestorationResult)
def emergency_restore(
    product_id: str,
    request: EmergencyRestorationRequest,
    service: StockRestorationService = Depends(get_stock_restoration_service)
):
    return raise_for_result(service.emergency_stock_restoration(
        product_id, request.quantity, request.operator_id, request.reason
    ))
