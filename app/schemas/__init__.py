from app.schemas.customer import (
    CustomerCreate,
    CustomerLookupOut,
    CustomerOut,
    CustomerUpdate,
    PointsUpdate,
    TierOut,
)
from app.schemas.loyalty import ReclassifyOut, ThresholdsIn, ThresholdsOut, TierItem
__all__ = [
    "CustomerCreate",
    "CustomerLookupOut",
    "CustomerOut",
    "CustomerUpdate",
    "PointsUpdate",
    "TierOut",
    "ReclassifyOut",
    "ThresholdsIn",
    "ThresholdsOut",
    "TierItem",
]
