from decimal import Decimal

import pytest

import app.models  # noqa: F401
from app.core.database import Base, make_session_factory
from app.models.customer import Customer
from app.services.customers import create_customer
from app.services.loyalty import LoyaltyService

THREE_TIERS = [
    {"name": "Bronze", "min_points": 0},
    {"name": "Silver", "min_points": 500},
    {"name": "Gold", "min_points": 2000},
]


@pytest.fixture
def session_factory(tmp_path):
    factory = make_session_factory(f"sqlite:///{tmp_path / 'loyalty_test.db'}")
    engine = factory.kw["bind"]
    Base.metadata.create_all(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def bare_loyalty(session_factory):
    """Сервис без настроенных порогов."""
    return LoyaltyService(session_factory)


@pytest.fixture
def loyalty(bare_loyalty):
    bare_loyalty.update_thresholds(THREE_TIERS)
    return bare_loyalty


@pytest.fixture
def add_customer(loyalty):
    def _add(phone, points=0, name=None):
        with loyalty.session_factory() as db:
            return create_customer(db, loyalty.get_thresholds(), phone=phone, name=name, points=points)

    return _add


@pytest.fixture
def insert_raw(session_factory):
    """Вставка клиента в обход классификатора (имитация устаревшего тира)."""

    def _insert(phone, points, tier="Bronze"):
        with session_factory() as db:
            c = Customer(phone=phone, points=Decimal(str(points)), tier=tier)
            db.add(c)
            db.commit()
            return c

    return _insert


@pytest.fixture
def read_customer(session_factory):
    def _read(phone):
        with session_factory() as db:
            return db.query(Customer).filter(Customer.phone == phone).one()

    return _read


@pytest.fixture
def three_tiers():
    return [dict(t) for t in THREE_TIERS]
