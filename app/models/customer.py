from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Integer, Numeric, String, DateTime

from app.core.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)

    # основной ключ поиска, хранится нормализованным
    phone = Column(String(20), unique=True, index=True, nullable=False)

    name = Column(String, nullable=True)
    email = Column(String, nullable=True)

    points = Column(Numeric(14, 2), default=0, nullable=False)

    # пишется только через classify (PointsLedger / TierUpdateEngine)
    tier = Column(String(40), default="Bronze", nullable=False, index=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # UPDATE ... WHERE version = :old, конкурентная запись даёт StaleDataError
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Customer phone={self.phone} points={self.points} tier={self.tier}>"
