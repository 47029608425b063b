# app/models/__init__.py
from app.models.customer import Customer
from app.models.tier_thresholds import TierThresholdSet

__all__ = ["Customer", "TierThresholdSet"]
