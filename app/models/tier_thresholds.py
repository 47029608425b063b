from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Integer, DateTime, Text

from app.core.database import Base


class TierThresholdSet(Base):
    """История конфигураций порогов; активна последняя запись."""

    __tablename__ = "tier_threshold_sets"

    id = Column(Integer, primary_key=True)

    # Хранится как JSON строка: [{"name":"Bronze","min_points":"0"}, {"name":"Silver","min_points":"500"}, ...]
    tiers_json = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
