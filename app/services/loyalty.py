from __future__ import annotations

import threading
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import InvalidValueError, NotFoundError, PersistenceError
from app.core.locks import KeyedLocks
from app.core.tier_rules import TierThresholds
from app.models.customer import Customer
from app.services.customers import get_customer_by_phone, update_customer_profile
from app.services.ledger import PointsLedger
from app.services.thresholds import ThresholdStore
from app.services.tier import ReclassifyResult, TierUpdateEngine, count_by_tier


class LoyaltyService:
    """Точка входа для API: тиры, баллы, пороги, статистика."""

    def __init__(
        self,
        session_factory: sessionmaker,
        thresholds: ThresholdStore | None = None,
        locks: KeyedLocks | None = None,
        retries: int | None = None,
    ):
        self.session_factory = session_factory
        self.thresholds = thresholds or ThresholdStore(session_factory)
        self.engine = TierUpdateEngine(session_factory, self.thresholds, locks or KeyedLocks(), retries)
        self.ledger = PointsLedger(self.engine)

    def get_tier(self, phone: str) -> str:
        try:
            with self.session_factory() as db:
                return get_customer_by_phone(db, phone).tier
        except SQLAlchemyError as e:
            raise PersistenceError("customer store unavailable", phone=phone) from e

    def update_points(self, phone: str, delta=None, value=None) -> Customer:
        # ровно одно из двух: приращение или абсолютное значение
        if (delta is None) == (value is None):
            raise InvalidValueError("exactly one of delta or value is required", phone=phone)
        if value is not None:
            return self.ledger.set_points(phone, value)
        return self.ledger.apply_delta(phone, delta)

    def get_thresholds(self) -> TierThresholds:
        return self.thresholds.get()

    def update_thresholds(self, items: Iterable) -> TierThresholds:
        return self.thresholds.set(items)

    def reclassify_all(self, cancel: threading.Event | None = None) -> ReclassifyResult:
        return self.engine.reclassify_all(cancel=cancel)

    def count_by_tier(self) -> dict[str, int]:
        try:
            with self.session_factory() as db:
                return count_by_tier(db, self.thresholds.current())
        except SQLAlchemyError as e:
            raise PersistenceError("customer store unavailable") from e

    def update_profile(
        self,
        customer_id: int,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Customer:
        """
        Смена имени/почты/телефона под той же блокировкой по телефону,
        что и запись баллов, чтобы не перетереть параллельное начисление.
        """
        while True:
            try:
                with self.session_factory() as db:
                    current = db.get(Customer, customer_id)
            except SQLAlchemyError as e:
                raise PersistenceError("customer store unavailable", id=customer_id) from e
            if current is None:
                raise NotFoundError("Customer not found", id=customer_id)
            old_phone = current.phone

            with self.engine.locks.hold(old_phone):
                with self.session_factory() as db:
                    try:
                        customer = db.get(Customer, customer_id)
                        if customer is None:
                            raise NotFoundError("Customer not found", id=customer_id)
                        if customer.phone != old_phone:
                            # телефон сменили, пока ждали блокировку
                            continue
                        return update_customer_profile(db, customer_id, name=name, email=email, phone=phone)
                    except StaleDataError as e:
                        raise PersistenceError("write conflict", id=customer_id) from e
                    except SQLAlchemyError as e:
                        raise PersistenceError("customer store unavailable", id=customer_id) from e
