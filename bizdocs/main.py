"""
bizdocs API application.

Mounts the v1 routers under /api/v1 and renders every error as an
RFC 7807 problem document. API docs are served only when DOCS_ENABLED.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from bizdocs import __version__
from bizdocs.api.v1.router import api_router
from bizdocs.config import settings
from bizdocs.database import init_db
from bizdocs.exceptions import APIException, create_exception_handlers
from bizdocs.services.email_service import get_email_service
# Registers every table on Base.metadata before init_db()
from bizdocs.models import (  # noqa: F401
    Company, User, Customer, Vendor, Product, Quote, Invoice, PurchaseOrder, Sale, Expense
)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Driver only: the full URL carries credentials
    driver = settings.DATABASE_URL.split("://", 1)[0]
    logger.info(f"Starting bizdocs {__version__} ({settings.ENVIRONMENT}, {driver})")
    try:
        await init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {type(e).__name__}")
        raise
    yield
    logger.info("bizdocs API stopped")


app = FastAPI(
    title="bizdocs API",
    description="Multi-tenant quotes, invoices, purchase orders, sales and expenses",
    version=__version__,
    docs_url="/docs" if settings.DOCS_ENABLED else None,
    redoc_url="/redoc" if settings.DOCS_ENABLED else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

handlers = create_exception_handlers(settings.DEBUG)
for exception_class, key in (
    (APIException, "api"),
    (StarletteHTTPException, "http"),
    (RequestValidationError, "validation"),
    (Exception, "generic"),
):
    app.add_exception_handler(exception_class, handlers[key])

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    info = {"name": "bizdocs API", "version": __version__, "health": "/health"}
    if settings.DOCS_ENABLED:
        info["docs"] = "/docs"
    return info


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "email": get_email_service().describe(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("bizdocs.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
