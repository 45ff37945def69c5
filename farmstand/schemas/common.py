"""
Shared result envelope
"""
from pydantic import BaseModel, Field
from typing import List, Optional

from farmstand.errors import FarmstandError


class OperationResult(BaseModel):
    """Base for every public operation result.

    ``warnings`` collects fail-soft side-effect failures (notification,
    broadcast, audit writes) that did not affect the primary outcome.
    """
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_error(cls, exc: FarmstandError, **extra):
        return cls(success=False, error=exc.message, error_code=exc.code, **extra)
