"""
Pydantic schemas for orders: requests, the canonical Order entity, and results
"""
from pydantic import BaseModel, Field, EmailStr, model_validator
from typing import Dict, List, Literal, Optional
from datetime import date, datetime, time

from farmstand.schemas.common import OperationResult
from farmstand.schemas.stock import StockRestorationResult

OrderStatus = Literal['pending', 'confirmed', 'processing', 'ready', 'completed', 'cancelled']
FulfillmentType = Literal['pickup', 'delivery']
PaymentMethod = Literal['online', 'cash_on_pickup']
PaymentStatus = Literal['pending', 'paid', 'refunded']


class CustomerInfo(BaseModel):
    """Customer contact details supplied at checkout"""
    name: str = Field(..., min_length=2, max_length=100, description="Customer name")
    email: EmailStr = Field(..., description="Customer email address")
    phone: str = Field(..., min_length=7, max_length=20, description="Customer phone number")


class OrderItemCreate(BaseModel):
    """Line item as requested by the client"""
    product_id: str = Field(..., min_length=1, description="Product ID")
    product_name: str = Field(..., min_length=1, max_length=200)
    unit_price: float = Field(..., ge=0, description="Unit price at time of checkout")
    quantity: int = Field(..., gt=0, le=1000, description="Quantity to order")


class CreateOrderRequest(BaseModel):
    """Schema for submitting a new order"""
    customer: CustomerInfo
    items: List[OrderItemCreate] = Field(..., min_length=1, description="At least one line item")
    fulfillment_type: FulfillmentType
    payment_method: PaymentMethod
    pickup_date: Optional[date] = Field(None, description="Pickup (or delivery) date")
    pickup_time: Optional[time] = Field(None, description="Pickup (or delivery) time")
    delivery_address: Optional[str] = Field(None, min_length=10, max_length=500)
    special_instructions: Optional[str] = Field(None, max_length=500)

    @model_validator(mode='after')
    def check_fulfillment_details(self):
        if self.fulfillment_type == 'delivery' and not self.delivery_address:
            raise ValueError('Delivery address is required for delivery orders')
        if self.fulfillment_type == 'pickup' and (self.pickup_date is None or self.pickup_time is None):
            raise ValueError('Pickup date and time are required for pickup orders')
        return self


class OrderLine(BaseModel):
    """Line item of a placed order"""
    product_id: str
    product_name: str
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    subtotal: float = Field(..., ge=0)


class CustomerContact(BaseModel):
    """Stored customer details of a placed order"""
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str
    address: Optional[str] = None


class Order(BaseModel):
    """Canonical in-memory order entity"""
    id: str
    user_id: Optional[str] = None
    customer: CustomerContact
    items: List[OrderLine] = Field(default_factory=list)
    subtotal: float = Field(..., ge=0)
    tax: float = Field(..., ge=0)
    total: float = Field(..., ge=0)
    fulfillment_type: FulfillmentType
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    pickup_date: Optional[date] = None
    pickup_time: Optional[time] = None
    special_instructions: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def pickup_datetime(self) -> Optional[datetime]:
        if self.pickup_date is None or self.pickup_time is None:
            return None
        return datetime.combine(self.pickup_date, self.pickup_time)


class InventoryConflict(BaseModel):
    """Requested quantity that live stock cannot cover"""
    product_id: str
    product_name: Optional[str] = None
    requested: int
    available: int


class OrderSubmissionResult(OperationResult):
    """Discriminated outcome of submit_order"""
    order: Optional[Order] = None
    inventory_conflicts: List[InventoryConflict] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    """Schema for updating order status"""
    status: OrderStatus = Field(..., description="Order status")


class BulkStatusUpdateRequest(BaseModel):
    """Schema for updating several orders at once"""
    order_ids: List[str] = Field(..., min_length=1)
    status: OrderStatus


class StatusUpdateResult(OperationResult):
    """Outcome of a single status transition"""
    order: Optional[Order] = None
    previous_status: Optional[str] = None
    stock_restoration: Optional[StockRestorationResult] = None


class BulkStatusUpdateResult(OperationResult):
    """Outcome of bulk_update_order_status"""
    updated_count: int = 0
    failed_orders: List[str] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
    updated_orders: List[Order] = Field(default_factory=list)


class OrderFilters(BaseModel):
    """Admin listing filters"""
    status: Optional[OrderStatus] = None
    fulfillment_type: Optional[FulfillmentType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search: Optional[str] = None


class PeriodStats(BaseModel):
    orders_placed: int = 0
    orders_completed: int = 0
    revenue: float = 0.0
    pending: int = 0


class OrderStats(BaseModel):
    """Dashboard counters"""
    daily: PeriodStats
    weekly: PeriodStats
    total_active: int = 0
