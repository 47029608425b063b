"""Tests for bulk reclassification and tier counting."""

import threading
from decimal import Decimal

import pytest
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConfigurationError, PersistenceError
from app.core.tier_rules import classify
from app.services import tier as tier_module

POINTS = [0, 499, 500, 1999, 2000]
PHONES = [f"7700000000{i}" for i in range(len(POINTS))]


@pytest.fixture
def stale_population(insert_raw):
    # все записаны как Bronze, без классификации
    for phone, pts in zip(PHONES, POINTS):
        insert_raw(phone, pts, tier="Bronze")
    return PHONES


class TestReclassifyAll:
    def test_scenario(self, loyalty, stale_population, read_customer):
        result = loyalty.reclassify_all()

        tiers = [read_customer(p).tier for p in stale_population]
        assert tiers == ["Bronze", "Bronze", "Silver", "Silver", "Gold"]
        assert result.updated_count == 3
        assert result.tier_counts == {"Bronze": 2, "Silver": 2, "Gold": 1}
        assert result.failed == []
        assert result.cancelled is False
        assert result.thresholds_version == loyalty.get_thresholds().version

    def test_second_run_updates_nothing(self, loyalty, stale_population):
        loyalty.reclassify_all()
        again = loyalty.reclassify_all()
        assert again.updated_count == 0
        assert again.tier_counts == {"Bronze": 2, "Silver": 2, "Gold": 1}

    def test_unset_thresholds_fail_without_mutation(self, bare_loyalty, stale_population, read_customer):
        with pytest.raises(ConfigurationError):
            bare_loyalty.reclassify_all()
        assert {read_customer(p).tier for p in stale_population} == {"Bronze"}

    def test_counts_lag_until_reclassified(self, loyalty, add_customer):
        for phone, pts in zip(PHONES, POINTS):
            add_customer(phone, points=pts)
        assert loyalty.count_by_tier() == {"Bronze": 2, "Silver": 2, "Gold": 1}

        loyalty.update_thresholds([
            {"name": "Bronze", "min_points": 0},
            {"name": "Silver", "min_points": 400},
            {"name": "Gold", "min_points": 1500},
        ])
        # пороги сменились, сохранённые тиры ещё старые
        assert loyalty.count_by_tier() == {"Bronze": 2, "Silver": 2, "Gold": 1}

        result = loyalty.reclassify_all()
        assert result.updated_count == 2
        assert result.tier_counts == {"Bronze": 1, "Silver": 2, "Gold": 2}

    def test_removed_tier_is_still_counted(self, loyalty, add_customer):
        add_customer(PHONES[0], points=3000)
        loyalty.update_thresholds([
            {"name": "Bronze", "min_points": 0},
            {"name": "Silver", "min_points": 500},
        ])
        assert loyalty.count_by_tier() == {"Bronze": 0, "Silver": 0, "Gold": 1}
        assert loyalty.reclassify_all().tier_counts == {"Bronze": 0, "Silver": 1}

    def test_cancel_before_start(self, loyalty, stale_population, read_customer):
        cancel = threading.Event()
        cancel.set()

        result = loyalty.reclassify_all(cancel=cancel)

        assert result.cancelled is True
        assert result.updated_count == 0
        assert {read_customer(p).tier for p in stale_population} == {"Bronze"}

    def test_persistence_failure_is_partial(self, loyalty, stale_population, read_customer, monkeypatch):
        real_save = tier_module.save_customer
        broken = stale_population[2]

        def flaky_save(db, customer):
            if customer.phone == broken:
                raise PersistenceError("customer store unavailable", phone=customer.phone)
            return real_save(db, customer)

        monkeypatch.setattr(tier_module, "save_customer", flaky_save)

        result = loyalty.reclassify_all()

        assert result.failed == [broken]
        assert result.updated_count == 2
        assert read_customer(broken).tier == "Bronze"
        assert read_customer(stale_population[4]).tier == "Gold"

    def test_stored_phone_is_used_as_is(self, loyalty, insert_raw, read_customer):
        # запись из старой базы: номер сохранён с префиксом 8
        legacy = "87001234567"
        insert_raw(legacy, 600, tier="Silver")
        loyalty.update_thresholds([
            {"name": "Bronze", "min_points": 0},
            {"name": "Silver", "min_points": 1000},
            {"name": "Gold", "min_points": 2000},
        ])

        result = loyalty.reclassify_all()

        assert result.updated_count == 1
        assert result.failed == []
        assert read_customer(legacy).tier == "Bronze"

    def test_runs_alongside_points_update(self, loyalty, stale_population, read_customer):
        target = stale_population[1]
        barrier = threading.Barrier(2)
        errors = []

        def sweep():
            try:
                barrier.wait()
                loyalty.reclassify_all()
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        def earn():
            try:
                barrier.wait()
                loyalty.ledger.apply_delta(target, 1)
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=sweep), threading.Thread(target=earn)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        stored = read_customer(target)
        assert stored.points == Decimal("500")
        thresholds = loyalty.get_thresholds()
        for phone in stale_population:
            c = read_customer(phone)
            assert c.tier == classify(c.points, thresholds)


class TestVersionConflicts:
    def test_conflict_is_retried(self, loyalty, stale_population, read_customer, monkeypatch):
        real_save = tier_module.save_customer
        calls = {"n": 0}

        def conflicting_once(db, customer):
            calls["n"] += 1
            if calls["n"] == 1:
                db.rollback()
                raise StaleDataError("version mismatch")
            return real_save(db, customer)

        monkeypatch.setattr(tier_module, "save_customer", conflicting_once)

        customer = loyalty.engine.reclassify_customer(stale_population[4])

        assert customer.tier == "Gold"
        assert read_customer(stale_population[4]).tier == "Gold"
        assert calls["n"] == 2

    def test_conflict_exhausts_retries(self, loyalty, stale_population, monkeypatch):
        def always_conflicting(db, customer):
            db.rollback()
            raise StaleDataError("version mismatch")

        monkeypatch.setattr(tier_module, "save_customer", always_conflicting)

        with pytest.raises(PersistenceError, match="write conflict"):
            loyalty.engine.reclassify_customer(stale_population[4])


class TestCountByTier:
    def test_empty_population(self, loyalty):
        assert loyalty.count_by_tier() == {"Bronze": 0, "Silver": 0, "Gold": 0}

    def test_without_thresholds(self, bare_loyalty, insert_raw):
        insert_raw(PHONES[0], 10, tier="Silver")
        insert_raw(PHONES[1], 10, tier="Bronze")
        assert bare_loyalty.count_by_tier() == {"Bronze": 1, "Silver": 1}
