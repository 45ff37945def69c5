"""
Order API endpoints
"""
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional

from farmstand.api.dependencies import get_order_service, raise_for_result
from farmstand.schemas.order import (
    BulkStatusUpdateRequest,
    BulkStatusUpdateResult,
    CreateOrderRequest,
    FulfillmentType,
    Order,
    OrderFilters,
    OrderStats,
    OrderStatus,
    OrderSubmissionResult,
    StatusUpdateRequest,
    StatusUpdateResult,
)
from farmstand.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderSubmissionResult, status_code=status.HTTP_201_CREATED, summary="Submit order")
def submit_order(
    order_data: CreateOrderRequest,
    service: OrderService = Depends(get_order_service)
):
    """
    Submit a new order

    Stock for every item is checked and decremented in one transaction.
    If any item is short, nothing is written and the response (409) lists
    every inventory conflict.
    """
    return raise_for_result(service.submit_order(order_data))


@router.get("", response_model=List[Order], summary="Get all orders")
def get_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    fulfillment_type: Optional[FulfillmentType] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None, description="Matches customer name, email or order ID"),
    service: OrderService = Depends(get_order_service)
):
    """Admin listing, newest first"""
    return service.get_all_orders(OrderFilters(
        status=status_filter,
        fulfillment_type=fulfillment_type,
        date_from=date_from,
        date_to=date_to,
        search=search,
    ))


@router.get("/stats", response_model=OrderStats, summary="Order statistics")
def get_order_stats(service: OrderService = Depends(get_order_service)):
    return service.get_order_stats()


@router.get("/customer/{email}", response_model=List[Order], summary="Get orders by customer")
def get_orders_by_customer(
    email: str,
    service: OrderService = Depends(get_order_service)
):
    """
    Get all orders for a specific customer

    - **email**: Customer email address
    """
    return service.get_customer_orders(email)


@router.post("/bulk-status", response_model=BulkStatusUpdateResult, summary="Bulk status update")
def bulk_update_order_status(
    request: BulkStatusUpdateRequest,
    service: OrderService = Depends(get_order_service)
):
    """Per-order failures are reported in the body, never as an error response"""
    return service.bulk_update_order_status(request.order_ids, request.status)


@router.get("/{order_id}", response_model=Order, summary="Get order by ID")
def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service)
):
    order = service.get_order(order_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id={order_id} not found"
        )
    return order


@router.patch("/{order_id}/status", response_model=StatusUpdateResult, summary="Update order status")
def update_order_status(
    order_id: str,
    status_data: StatusUpdateRequest,
    service: OrderService = Depends(get_order_service)
):
    """
    Update order status

    - **order_id**: Order ID
    - **status**: New status; must be reachable from the current one

    Cancelling an order returns its stock to inventory.
    """
    return raise_for_result(service.update_order_status(order_id, status_data.status))
