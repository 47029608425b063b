from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI обслуживает запросы из пула потоков
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


def make_session_factory(url: str) -> sessionmaker:
    return sessionmaker(
        bind=make_engine(url),
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


SessionLocal = make_session_factory(settings.DATABASE_URL)
engine = SessionLocal.kw["bind"]

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
