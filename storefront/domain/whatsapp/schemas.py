"""WhatsApp domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class PackageCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    priceMonth: float = Field(ge=0)
    priceYear: float = Field(ge=0)
    maxSession: int = Field(ge=1)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Package name is required")
        return v


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    priceMonth: Optional[float] = Field(default=None, ge=0)
    priceYear: Optional[float] = Field(default=None, ge=0)
    maxSession: Optional[int] = Field(default=None, ge=1)
