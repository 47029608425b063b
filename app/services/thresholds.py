from __future__ import annotations

import json
import logging
import threading
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.errors import ConfigurationError, PersistenceError
from app.core.tier_rules import TierThresholds, validate_thresholds
from app.models.tier_thresholds import TierThresholdSet

logger = logging.getLogger(__name__)


def _dump(thresholds: TierThresholds) -> str:
    return json.dumps(
        [{"name": t.name, "min_points": str(t.min_points)} for t in thresholds.tiers],
        ensure_ascii=False,
    )


class ThresholdStore:
    """
    Владелец активной конфигурации порогов.

    Снимок TierThresholds неизменяемый и подменяется целиком, так что
    классификация никогда не видит наполовину записанный конфиг.
    set() не запускает переклассификацию, это отдельный шаг (TierUpdateEngine).
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._current: TierThresholds | None = None

    def _refresh(self) -> TierThresholds | None:
        # другой воркер мог сохранить новую версию: сверяемся с последней строкой
        try:
            with self._session_factory() as db:
                newest = db.scalar(select(func.max(TierThresholdSet.id)))
        except SQLAlchemyError as e:
            raise PersistenceError("could not load tier thresholds") from e

        snapshot = self._current
        if newest is not None and (snapshot is None or snapshot.version != int(newest)):
            snapshot = self.load() or snapshot
        return snapshot

    def current(self) -> TierThresholds | None:
        return self._refresh()

    def get(self) -> TierThresholds:
        snapshot = self._refresh()
        if snapshot is None:
            raise ConfigurationError("tier thresholds are not configured")
        return snapshot

    def set(self, items: Iterable) -> TierThresholds:
        # валидация до любой записи: при ошибке прежний конфиг остаётся
        candidate = validate_thresholds(items)

        with self._lock:
            row = TierThresholdSet(tiers_json=_dump(candidate))
            with self._session_factory() as db:
                db.add(row)
                try:
                    db.commit()
                except SQLAlchemyError as e:
                    db.rollback()
                    raise PersistenceError("could not store tier thresholds") from e
                version = int(row.id)

            snapshot = TierThresholds(tiers=candidate.tiers, version=version)
            self._current = snapshot

        logger.info(f"Tier thresholds updated to v{version}: {_dump(snapshot)}")
        return snapshot

    def load(self) -> TierThresholds | None:
        """Перечитать последнюю сохранённую конфигурацию из БД."""
        try:
            with self._session_factory() as db:
                row = db.scalar(select(TierThresholdSet).order_by(TierThresholdSet.id.desc()).limit(1))
        except SQLAlchemyError as e:
            raise PersistenceError("could not load tier thresholds") from e

        if row is None:
            return None

        try:
            items = json.loads(row.tiers_json)
        except ValueError:
            raise ConfigurationError("stored tier thresholds are corrupted", version=row.id) from None
        snapshot = validate_thresholds(items, version=int(row.id))

        with self._lock:
            self._current = snapshot
        return snapshot

    def load_or_seed(self, defaults: Iterable) -> TierThresholds:
        snapshot = self.load()
        if snapshot is not None:
            logger.info(f"Tier thresholds loaded: v{snapshot.version}")
            return snapshot
        logger.info("No tier thresholds stored, seeding defaults")
        return self.set(defaults)
