from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class TierItem(BaseModel):
    name: str = Field(min_length=1, max_length=40)
    min_points: Decimal = Field(ge=0)


class ThresholdsIn(BaseModel):
    # порядок = ранг, от низшего тира к высшему
    tiers: list[TierItem]


class ThresholdsOut(BaseModel):
    version: int
    tiers: list[TierItem]


class ReclassifyOut(BaseModel):
    status: str
    message: str
    updated_count: int
    failed: list[str] = []
    cancelled: bool = False
    thresholds: ThresholdsOut
    counts: dict[str, int]
