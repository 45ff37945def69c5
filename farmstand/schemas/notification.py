"""
Pydantic schemas for customer notifications
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

from farmstand.schemas.order import Order

NotificationType = Literal['order_confirmed', 'pickup_ready', 'order_cancelled', 'pickup_rescheduled']
Channel = Literal['push', 'sms', 'email']


class NotificationRequest(BaseModel):
    """Payload handed to the notification dispatcher"""
    user_id: Optional[str] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    type: NotificationType
    channels: List[Channel] = Field(default_factory=lambda: ['email'])
    order: Optional[Order] = None
    custom_message: Optional[str] = None

    @classmethod
    def for_order(cls, order: Order, type: str, channels: List[str], custom_message: Optional[str] = None):
        return cls(
            user_id=order.user_id,
            customer_name=order.customer.name,
            customer_email=order.customer.email,
            customer_phone=order.customer.phone,
            type=type,
            channels=channels,
            order=order,
            custom_message=custom_message,
        )


class NotificationResult(BaseModel):
    success: bool
    sent_channels: List[str] = Field(default_factory=list)
    failed_channels: List[str] = Field(default_factory=list)
