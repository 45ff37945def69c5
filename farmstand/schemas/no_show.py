"""
Pydantic schemas for no-show handling
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

from farmstand.config import Settings, settings as default_settings


class NoShowConfig(BaseModel):
    """Thresholds for the no-show sweep; never hardcoded in the detector"""
    grace_period_minutes: int = Field(30, ge=0)
    check_interval_minutes: int = Field(15, gt=0)
    enable_auto_cancel: bool = True
    notify_customer: bool = True
    reschedule_lookback_minutes: int = Field(120, ge=0)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "NoShowConfig":
        config = config or default_settings
        return cls(
            grace_period_minutes=config.NO_SHOW_GRACE_PERIOD_MINUTES,
            check_interval_minutes=config.NO_SHOW_CHECK_INTERVAL_MINUTES,
            enable_auto_cancel=config.NO_SHOW_AUTO_CANCEL,
            notify_customer=config.NO_SHOW_NOTIFY_CUSTOMER,
            reschedule_lookback_minutes=config.NO_SHOW_RESCHEDULE_LOOKBACK_MINUTES,
        )


class ProcessedNoShow(BaseModel):
    order_id: str
    customer_name: str
    action: Literal['cancelled', 'flagged', 'notified']
    stock_restored: bool = False
    notification_sent: bool = False


class NoShowError(BaseModel):
    order_id: str
    error: str


class NoShowHandlingResult(BaseModel):
    """Outcome of one sweep"""
    success: bool
    processed_orders: List[ProcessedNoShow] = Field(default_factory=list)
    skipped_orders: List[str] = Field(default_factory=list)
    errors: List[NoShowError] = Field(default_factory=list)
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class NoShowCheck(BaseModel):
    """On-demand eligibility check for a single order"""
    is_no_show: bool
    minutes_overdue: Optional[int] = None
    pickup_window: Optional[str] = None
