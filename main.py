# main.py
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from app.core.config import settings
from app.core.database import engine, Base, SessionLocal
from app.core.errors import LoyaltyError
from app.core.logger import setup_logging
from app.services.loyalty import LoyaltyService

from app.api.customers import router as customers_router
from app.api.loyalty import router as loyalty_router

# ✅ чтобы SQLAlchemy увидел модели
import app.models  # noqa: F401

logger = logging.getLogger("app.main")


def create_app(loyalty: LoyaltyService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(api: FastAPI):
        if loyalty is None:
            # DB init + пороги из БД (или дефолты из .env при первом старте)
            Base.metadata.create_all(bind=engine)
            service = LoyaltyService(SessionLocal)
            service.thresholds.load_or_seed(settings.default_tiers())
            api.state.loyalty = service
        yield

    api = FastAPI(title="Loyalty Tier Service", lifespan=lifespan)
    if loyalty is not None:
        api.state.loyalty = loyalty

    @api.exception_handler(LoyaltyError)
    async def loyalty_error_handler(request: Request, exc: LoyaltyError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)

    api.include_router(customers_router, prefix="/api")
    api.include_router(loyalty_router, prefix="/api")

    @api.get("/health")
    def health():
        return {"status": "ok"}

    return api


setup_logging()
app = create_app()
