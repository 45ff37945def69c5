"""
No-show endpoints
"""
from fastapi import APIRouter, Depends, Query

from farmstand.api.dependencies import get_no_show_service
from farmstand.schemas.no_show import NoShowCheck, NoShowConfig, NoShowHandlingResult
from farmstand.services.no_show_service import NoShowHandlingService

router = APIRouter(tags=["no-show"])


@router.get("/orders/{order_id}/no-show", response_model=NoShowCheck)
def check_no_show(
    order_id: str,
    grace_period_minutes: int = Query(30, ge=0),
    service: NoShowHandlingService = Depends(get_no_show_service)
):
    return service.is_order_no_show(order_id, grace_period_minutes)


@router.post("/no-show/process", response_model=NoShowHandlingResult, summary="Run a no-show sweep")
def process_no_shows(
    service: NoShowHandlingService = Depends(get_no_show_service)
):
    """Run one sweep now with the configured thresholds"""
    return service.process_no_show_orders(NoShowConfig.from_settings())
