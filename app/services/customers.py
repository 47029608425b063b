from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import InvalidValueError, NotFoundError, PersistenceError
from app.core.tier_rules import TierThresholds, classify, q2, to_decimal
from app.models.customer import Customer

logger = logging.getLogger(__name__)


def normalize_phone(raw: str) -> str:
    """
    Приводит номер к виду 7XXXXXXXXXX. Больше 11 цифр не обрезаем, а считаем
    номер некорректным (пустая строка), иначе хвост вида 8XXXXXXXXXX
    при повторной нормализации превращается в другой номер.
    """
    s = (raw or "").strip()
    s = s.replace(" ", "").replace("-", "").replace("(", "").replace(")", "")
    if s.startswith("+"):
        s = s[1:]
    digits = "".join(ch for ch in s if ch.isdigit())
    if len(digits) > 11:
        return ""
    if digits.startswith("8") and len(digits) == 11:
        digits = "7" + digits[1:]
    if len(digits) == 10:
        digits = "7" + digits
    return digits


def find_customer_by_phone(db: Session, phone: str) -> Customer | None:
    p = normalize_phone(phone)
    if not p:
        return None
    return db.scalar(select(Customer).where(Customer.phone == p))


def find_customer_by_stored_phone(db: Session, phone: str) -> Customer | None:
    """Поиск по значению из БД как есть, без повторной нормализации."""
    return db.scalar(select(Customer).where(Customer.phone == phone))


def get_customer_by_phone(db: Session, phone: str) -> Customer:
    customer = find_customer_by_phone(db, phone)
    if customer is None:
        raise NotFoundError("Customer not found", phone=phone)
    return customer


def list_all_customers(db: Session) -> list[Customer]:
    return list(db.scalars(select(Customer).order_by(Customer.id.asc())).all())


def list_customer_phones(db: Session) -> list[str]:
    return list(db.scalars(select(Customer.phone).order_by(Customer.id.asc())).all())


def count_customers(db: Session) -> int:
    return int(db.scalar(select(func.count(Customer.id))) or 0)


def search_customers(db: Session, query: str) -> list[Customer]:
    q = (query or "").strip()
    if not q:
        return []
    like = f"%{q}%"
    conds = [Customer.name.ilike(like), Customer.email.ilike(like)]
    # частичный поиск по цифрам номера, без нормализации префикса
    digits = "".join(ch for ch in q if ch.isdigit())
    if digits:
        conds.append(Customer.phone.contains(digits))
    return list(db.scalars(select(Customer).where(or_(*conds)).order_by(Customer.id.asc())).all())


def save_customer(db: Session, customer: Customer) -> Customer:
    """Insert-or-update + commit. Ошибки БД → PersistenceError (конфликт версий пробрасывается как есть)."""
    db.add(customer)
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        raise InvalidValueError("Phone already exists", phone=customer.phone) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("customer store unavailable", phone=customer.phone) from e
    return customer


def create_customer(
    db: Session,
    thresholds: TierThresholds,
    phone: str,
    name: str | None = None,
    email: str | None = None,
    points=0,
) -> Customer:
    p = normalize_phone(phone)
    if not p:
        raise InvalidValueError("Invalid phone", phone=phone)
    if find_customer_by_phone(db, p) is not None:
        raise InvalidValueError("Phone already exists", phone=p)

    pts = q2(to_decimal(points if points is not None else 0))
    if pts < 0:
        raise InvalidValueError("points must be non-negative", phone=p)

    customer = Customer(
        phone=p,
        name=name,
        email=email,
        points=pts,
        tier=classify(pts, thresholds),
    )
    save_customer(db, customer)
    logger.info(f"Customer created: {p} tier={customer.tier}")
    return customer


def update_customer_profile(
    db: Session,
    customer_id: int,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", id=customer_id)

    if name is not None:
        customer.name = name
    if email is not None:
        customer.email = email
    if phone is not None:
        p = normalize_phone(phone)
        if not p:
            raise InvalidValueError("Invalid phone", phone=phone)
        if p != customer.phone:
            other = find_customer_by_stored_phone(db, p)
            if other is not None:
                raise InvalidValueError("Phone already exists", phone=p)
            customer.phone = p

    return save_customer(db, customer)


def delete_customer(db: Session, phone: str) -> None:
    customer = get_customer_by_phone(db, phone)
    db.delete(customer)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("customer store unavailable", phone=phone) from e
    logger.info(f"Customer deleted: {customer.phone}")
