from __future__ import annotations

import logging
from decimal import Decimal

from app.core.errors import InvalidValueError
from app.core.tier_rules import q2, to_decimal
from app.models.customer import Customer
from app.services.tier import TierUpdateEngine

logger = logging.getLogger(__name__)


class PointsLedger:
    """
    Начисление / установка баллов с пересчётом тира.
    Тир считается тем же update_customer, что и массовый пересчёт.
    """

    def __init__(self, engine: TierUpdateEngine):
        self._engine = engine

    def apply_delta(self, phone: str, delta) -> Customer:
        d = q2(to_decimal(delta, what="delta"))

        def mutate(customer: Customer) -> None:
            current = Decimal(str(customer.points or 0))
            new_points = q2(current + d)
            if new_points < 0:
                raise InvalidValueError(
                    "resulting points would be negative",
                    phone=customer.phone,
                    points=str(current),
                    delta=str(d),
                )
            customer.points = new_points

        customer, _ = self._engine.update_customer(phone, mutate)
        logger.info(f"Points {d:+} for {customer.phone}: now {customer.points}, tier={customer.tier}")
        return customer

    def set_points(self, phone: str, value) -> Customer:
        v = q2(to_decimal(value))
        if v < 0:
            raise InvalidValueError("points must be non-negative", phone=phone, points=str(v))

        def mutate(customer: Customer) -> None:
            customer.points = v

        customer, _ = self._engine.update_customer(phone, mutate)
        logger.info(f"Points set for {customer.phone}: {customer.points}, tier={customer.tier}")
        return customer
