"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from approvals.core.config import settings
from approvals.core.middleware import RequestContextFilter, setup_middleware
from approvals.core.exceptions import ApprovalsError, UnavailableError

from approvals.api.auth import router as auth_router
from approvals.api.roles import router as roles_router
from approvals.api.approval_matrix import router as matrix_router
from approvals.api.documents import router as documents_router
from approvals.api.admin import router as admin_router
from approvals.services.cache_service import cache_service

# Configure logging
_log_handler = logging.StreamHandler()
_log_handler.addFilter(RequestContextFilter())
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
    handlers=[_log_handler],
)
logger = logging.getLogger("approvals")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s", settings.APP_NAME)
    if cache_service.enabled:
        if cache_service.health_check():
            logger.info("Permission cache connected")
        else:
            logger.warning("Permission cache unreachable; serving permissions from the database")

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="SBCLC Approvals API",
    description="Role permissions and document approval workflow",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(ApprovalsError)
async def approvals_exception_handler(request: Request, exc: ApprovalsError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError):
    logger.error("Database unavailable: %s", exc)
    err = UnavailableError("Database unavailable, try again later")
    return JSONResponse(
        status_code=err.status_code,
        content={"detail": err.message, "kind": err.kind},
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(matrix_router, prefix="/api")
app.include_router(documents_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
