from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.tier_rules import TierThresholds
from app.schemas.loyalty import ReclassifyOut, ThresholdsIn, ThresholdsOut
from app.services.loyalty import LoyaltyService

router = APIRouter(prefix="/loyalty", tags=["loyalty"])


def get_loyalty(request: Request) -> LoyaltyService:
    return request.app.state.loyalty


def _thresholds_out(t: TierThresholds) -> ThresholdsOut:
    return ThresholdsOut(version=t.version, tiers=t.as_dicts())


@router.get("/thresholds", response_model=ThresholdsOut)
def read_thresholds(loyalty: LoyaltyService = Depends(get_loyalty)) -> ThresholdsOut:
    return _thresholds_out(loyalty.get_thresholds())


@router.put("/thresholds", response_model=ThresholdsOut)
def update_thresholds(payload: ThresholdsIn, loyalty: LoyaltyService = Depends(get_loyalty)) -> ThresholdsOut:
    # только смена конфига, пересчёт тиров через POST /loyalty/reclassify
    snapshot = loyalty.update_thresholds([t.model_dump() for t in payload.tiers])
    return _thresholds_out(snapshot)


@router.post("/reclassify", response_model=ReclassifyOut)
def reclassify_all(loyalty: LoyaltyService = Depends(get_loyalty)) -> ReclassifyOut:
    result = loyalty.reclassify_all()
    thresholds = loyalty.get_thresholds()

    status = "partial" if result.failed else "success"
    message = "All customer tiers updated using current thresholds"
    if result.failed:
        message = f"Tiers updated, {len(result.failed)} customers failed"

    return ReclassifyOut(
        status=status,
        message=message,
        updated_count=result.updated_count,
        failed=result.failed,
        cancelled=result.cancelled,
        thresholds=_thresholds_out(thresholds),
        counts=result.tier_counts,
    )
