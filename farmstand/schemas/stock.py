"""
Pydantic schemas for stock restoration
"""
from pydantic import BaseModel, Field
from typing import List, Optional

from farmstand.schemas.common import OperationResult


class RestoredItem(BaseModel):
    """A single applied stock increment"""
    product_id: str
    product_name: Optional[str] = None
    quantity_restored: int
    previous_stock: int
    new_stock_level: int


class FailedItem(BaseModel):
    """A line item whose restoration could not be applied"""
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    error: str


class StockRestorationResult(OperationResult):
    """Outcome of restoring stock for one order (or one emergency delta)"""
    order_id: Optional[str] = None
    restored_items: List[RestoredItem] = Field(default_factory=list)
    failed_items: List[FailedItem] = Field(default_factory=list)


class RestorationCheck(BaseModel):
    """Whether an order still needs its stock returned"""
    needed: bool
    already_restored: bool = False
    reason: str


class EmergencyRestorationRequest(BaseModel):
    """Schema for an admin stock override"""
    quantity: int = Field(..., description="Units to add back to stock")
    operator_id: str = Field(..., min_length=1, description="Admin performing the override")
    reason: str = Field(..., description="Mandatory justification for the audit log")


class BatchRestorationRequest(BaseModel):
    """Schema for restoring several cancelled orders at once"""
    order_ids: List[str] = Field(..., min_length=1)
