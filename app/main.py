import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# IMPORTANT:
# This imports ALL models so SQLAlchemy registers tables + FKs correctly
import app.models  # noqa: F401

from app.core.config import settings
from app.core.logging import setup_logging

# Routers
from app.routers.promo_codes import router as promo_codes_router
from app.routers.checkout import router as checkout_router

from app.routers.admin_promo_codes import router as admin_promo_codes_router
from app.routers.admin_pricing_rules import router as admin_pricing_rules_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Discounts")

# CORS for the Next.js storefront / admin dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # store unreachable / query failure: log it, tell the client nothing specific
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Storefront
app.include_router(promo_codes_router)
app.include_router(checkout_router)

# Admin
app.include_router(admin_promo_codes_router)
app.include_router(admin_pricing_rules_router)
