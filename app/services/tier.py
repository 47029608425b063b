from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.errors import LoyaltyError, NotFoundError, PersistenceError
from app.core.locks import KeyedLocks
from app.core.tier_rules import TierThresholds, classify, validate_thresholds
from app.models.customer import Customer
from app.services.customers import (
    find_customer_by_stored_phone,
    get_customer_by_phone,
    list_customer_phones,
    normalize_phone,
    save_customer,
)
from app.services.thresholds import ThresholdStore

logger = logging.getLogger(__name__)


@dataclass
class ReclassifyResult:
    updated_count: int
    tier_counts: dict[str, int]
    failed: list[str] = field(default_factory=list)
    cancelled: bool = False
    thresholds_version: int = 0


def apply_tier(customer: Customer, thresholds: TierThresholds) -> bool:
    """Единственное место, где пишется Customer.tier. Возвращает True, если тир сменился."""
    new_tier = classify(customer.points or 0, thresholds)
    if customer.tier == new_tier:
        return False
    customer.tier = new_tier
    return True


def count_by_tier(db: Session, thresholds: TierThresholds | None = None) -> dict[str, int]:
    """
    Распределение клиентов по сохранённому полю tier (без переклассификации).
    Настроенные тиры идут по рангу (с нулями), затем тиры, которых нет в конфиге.
    """
    rows = db.execute(
        select(Customer.tier, func.count(Customer.id)).group_by(Customer.tier)
    ).all()
    raw = {tier: int(n) for tier, n in rows}

    if thresholds is None:
        return dict(sorted(raw.items()))

    counts = {name: raw.pop(name, 0) for name in thresholds.names}
    for tier in sorted(raw):
        counts[tier] = raw[tier]
    return counts


class TierUpdateEngine:
    def __init__(
        self,
        session_factory: sessionmaker,
        thresholds: ThresholdStore,
        locks: KeyedLocks | None = None,
        retries: int | None = None,
    ):
        self._session_factory = session_factory
        self._thresholds = thresholds
        self._locks = locks or KeyedLocks()
        self._retries = max(1, int(retries or settings.POINTS_WRITE_RETRIES))

    @property
    def locks(self) -> KeyedLocks:
        return self._locks

    @staticmethod
    def _load(db: Session, phone: str, exact: bool) -> Customer:
        if not exact:
            return get_customer_by_phone(db, phone)
        customer = find_customer_by_stored_phone(db, phone)
        if customer is None:
            raise NotFoundError("Customer not found", phone=phone)
        return customer

    def update_customer(
        self,
        phone: str,
        mutate: Callable[[Customer], None] | None = None,
        thresholds: TierThresholds | None = None,
        exact: bool = False,
    ) -> tuple[Customer, bool]:
        """
        Атомарный шаг read → (mutate) → classify → write для одного клиента.

        Внутри процесса держим блокировку по телефону, между процессами
        проверяем версию строки; при конфликте читаем заново и повторяем.
        exact=True: phone взят из БД и ищется как есть, без нормализации.
        Возвращает (клиент, сменился_ли_тир).
        """
        key = phone if exact else (normalize_phone(phone) or phone)

        with self._locks.hold(key):
            for attempt in range(1, self._retries + 1):
                snapshot = thresholds or self._thresholds.get()
                with self._session_factory() as db:
                    try:
                        customer = self._load(db, key, exact)
                    except SQLAlchemyError as e:
                        raise PersistenceError("customer store unavailable", phone=key) from e

                    if mutate is not None:
                        mutate(customer)
                    changed = apply_tier(customer, snapshot)

                    if not db.is_modified(customer):
                        return customer, False

                    try:
                        save_customer(db, customer)
                    except StaleDataError:
                        logger.warning(f"Version conflict for {key}, attempt {attempt}/{self._retries}")
                        continue

                    if changed:
                        logger.debug(f"Tier of {key} -> {customer.tier} (thresholds v{snapshot.version})")
                    return customer, changed

        raise PersistenceError("write conflict", phone=key, attempts=self._retries)

    def reclassify_customer(self, phone: str) -> Customer:
        customer, _ = self.update_customer(phone)
        return customer

    def reclassify_all(self, cancel: threading.Event | None = None) -> ReclassifyResult:
        # конфиг проверяется до первой записи, при ошибке ничего не трогаем
        current = self._thresholds.get()
        thresholds = validate_thresholds(current.tiers, version=current.version)

        try:
            with self._session_factory() as db:
                phones = list_customer_phones(db)
        except SQLAlchemyError as e:
            raise PersistenceError("customer store unavailable") from e

        updated = 0
        failed: list[str] = []
        cancelled = False

        for phone in phones:
            if cancel is not None and cancel.is_set():
                cancelled = True
                logger.warning(f"Reclassification cancelled after {updated} updates")
                break
            try:
                _, changed = self.update_customer(phone, thresholds=thresholds, exact=True)
            except NotFoundError:
                # удалён во время прохода
                continue
            except LoyaltyError as e:
                logger.error(f"Reclassification failed for {phone}: {e}")
                failed.append(phone)
                continue
            if changed:
                updated += 1

        try:
            with self._session_factory() as db:
                counts = count_by_tier(db, thresholds)
        except SQLAlchemyError as e:
            raise PersistenceError("customer store unavailable") from e

        logger.info(
            f"Reclassified {len(phones)} customers against v{thresholds.version}: "
            f"updated={updated} failed={len(failed)} counts={counts}"
        )
        return ReclassifyResult(
            updated_count=updated,
            tier_counts=counts,
            failed=failed,
            cancelled=cancelled,
            thresholds_version=thresholds.version,
        )
