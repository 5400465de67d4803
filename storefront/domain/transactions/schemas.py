"""Transaction domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field


class RejectPaymentRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
