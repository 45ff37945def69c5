"""
Pickup rescheduling endpoints
"""
from fastapi import APIRouter, Depends, Query

from farmstand.api.dependencies import get_rescheduling_service, raise_for_result
from farmstand.schemas.reschedule import (
    RescheduleBody,
    RescheduleCheck,
    RescheduleRequest,
    RescheduleResult,
    TimeSlotsResult,
)
from farmstand.services.pickup_rescheduling_service import PickupReschedulingService

router = APIRouter(tags=["pickup"])


@router.post("/orders/{order_id}/reschedule", response_model=RescheduleResult, summary="Reschedule pickup")
def reschedule_pickup(
    order_id: str,
    body: RescheduleBody,
    service: PickupReschedulingService = Depends(get_rescheduling_service)
):
    """
    Move an order's pickup slot

    Requires the X-User-Id header. Policy violations come back with a
    specific ``error_code`` (past_datetime, outside_business_hours, ...).
    """
    request = RescheduleRequest(order_id=order_id, **body.model_dump())
    return raise_for_result(service.reschedule_pickup(request))


@router.get("/orders/{order_id}/reschedule-status", response_model=RescheduleCheck)
def reschedule_status(
    order_id: str,
    within_minutes: int = Query(60, ge=1),
    service: PickupReschedulingService = Depends(get_rescheduling_service)
):
    return service.was_recently_rescheduled(order_id, within_minutes)


@router.get("/pickup/slots", response_model=TimeSlotsResult, summary="Available pickup slots")
def available_slots(
    date: str = Query(..., description="YYYY-MM-DD"),
    service: PickupReschedulingService = Depends(get_rescheduling_service)
):
    return service.get_available_time_slots(date)
