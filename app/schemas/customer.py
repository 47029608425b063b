from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, ConfigDict, model_validator


class CustomerCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    phone: str = Field(..., min_length=5, max_length=30)
    name: str | None = None
    email: str | None = None
    points: Decimal = Field(default=Decimal("0"), ge=0)


class CustomerUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    phone: str | None = Field(default=None, min_length=5, max_length=30)
    name: str | None = None
    email: str | None = None


class PointsUpdate(BaseModel):
    """delta: приращение (может быть отрицательным), value: абсолютное значение."""

    model_config = ConfigDict(extra="forbid")

    delta: Decimal | None = None
    value: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def one_of(self):
        if (self.delta is None) == (self.value is None):
            raise ValueError("exactly one of delta or value is required")
        return self


class CustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone: str
    name: str | None
    email: str | None
    points: Decimal
    tier: str
    created_at: datetime
    updated_at: datetime


class CustomerLookupOut(BaseModel):
    exists: bool
    customer: CustomerOut | None = None


class TierOut(BaseModel):
    phone: str
    tier: str
