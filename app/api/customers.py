from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.loyalty import get_loyalty
from app.core.database import get_db
from app.schemas.customer import (
    CustomerCreate,
    CustomerLookupOut,
    CustomerOut,
    CustomerUpdate,
    PointsUpdate,
    TierOut,
)
from app.services import customers as store
from app.services.loyalty import LoyaltyService

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/", response_model=list[CustomerOut])
def list_customers(db: Session = Depends(get_db)) -> list[CustomerOut]:
    return [CustomerOut.model_validate(c) for c in store.list_all_customers(db)]


@router.post("", response_model=CustomerOut)
def create_customer(
    payload: CustomerCreate,
    db: Session = Depends(get_db),
    loyalty: LoyaltyService = Depends(get_loyalty),
) -> CustomerOut:
    customer = store.create_customer(
        db,
        loyalty.get_thresholds(),
        phone=payload.phone,
        name=payload.name,
        email=payload.email,
        points=payload.points,
    )
    return CustomerOut.model_validate(customer)


@router.get("/count")
def count_customers(db: Session = Depends(get_db)) -> int:
    return store.count_customers(db)


@router.get("/search", response_model=list[CustomerOut])
def search_customers(query: str = Query(...), db: Session = Depends(get_db)) -> list[CustomerOut]:
    return [CustomerOut.model_validate(c) for c in store.search_customers(db, query)]


@router.get("/count-by-tier")
def count_by_tier(loyalty: LoyaltyService = Depends(get_loyalty)) -> dict[str, int]:
    return loyalty.count_by_tier()


@router.get("/by-phone/{phone}", response_model=CustomerLookupOut)
def lookup_customer(phone: str, db: Session = Depends(get_db)) -> CustomerLookupOut:
    customer = store.find_customer_by_phone(db, phone)
    return CustomerLookupOut(
        exists=customer is not None,
        customer=CustomerOut.model_validate(customer) if customer is not None else None,
    )


@router.put("/id/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    loyalty: LoyaltyService = Depends(get_loyalty),
) -> CustomerOut:
    customer = loyalty.update_profile(
        customer_id,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
    )
    return CustomerOut.model_validate(customer)


@router.get("/{phone}", response_model=CustomerOut)
def get_customer(phone: str, db: Session = Depends(get_db)) -> CustomerOut:
    return CustomerOut.model_validate(store.get_customer_by_phone(db, phone))


@router.get("/{phone}/tier", response_model=TierOut)
def get_tier(phone: str, loyalty: LoyaltyService = Depends(get_loyalty)) -> TierOut:
    return TierOut(phone=store.normalize_phone(phone), tier=loyalty.get_tier(phone))


@router.patch("/{phone}/points", response_model=CustomerOut)
def update_points(
    phone: str,
    payload: PointsUpdate,
    loyalty: LoyaltyService = Depends(get_loyalty),
) -> CustomerOut:
    customer = loyalty.update_points(phone, delta=payload.delta, value=payload.value)
    return CustomerOut.model_validate(customer)


@router.delete("/{phone}")
def delete_customer(phone: str, db: Session = Depends(get_db)) -> dict:
    store.delete_customer(db, phone)
    return {"status": "ok", "message": "Customer deleted successfully"}
