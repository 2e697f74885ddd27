"""
Fleet core FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleetcore import __version__
from fleetcore.api import (
    admin_router,
    audit_router,
    auth_router,
    companies_router,
    users_router,
    work_orders_router,
)
from fleetcore.config.settings import get_settings
from fleetcore.database import close_db
from fleetcore.exceptions import FleetCoreError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Fleet core %s starting (%s)...", __version__, settings.environment)
    logger.info("API Documentation: http://localhost:8000/docs")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title="Fleet Maintenance Core",
    description="Multi-tenant fleet maintenance backend: permissions, invariants, audit and provisioning",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
# WARNING: allow_origins=["*"] with allow_credentials=True is insecure for production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FleetCoreError)
async def fleet_error_handler(request: Request, exc: FleetCoreError):
    """Translate domain errors into their HTTP status and error body."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.error_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Auth first (no authentication required for register/login)
app.include_router(auth_router)
app.include_router(companies_router)
app.include_router(work_orders_router)
app.include_router(users_router)
app.include_router(audit_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
