"""
FastAPI application with New Relic APM, CORS, rate limiting, lifespan, and all routers.
"""
import logging
import os

# New Relic must be initialized BEFORE any other imports that it instruments.
if os.getenv("NEW_RELIC_LICENSE_KEY"):
    import newrelic.agent
    newrelic.agent.initialize("newrelic.ini")

import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.database import get_db
from stableride.errors import DomainError
from stableride.middleware.rate_limit import RateLimitMiddleware
from stableride.redis_client import get_redis, close_redis
from stableride.routers import (
    auth, admin_auth, quotes, bookings, enhancements, payments, drivers, public,
    admin_service_areas, admin_integrations, admin_policies, admin_business_hours,
    admin_financial, admin_bookings, admin_users, admin_customers,
)

settings = get_settings()
logger = logging.getLogger(__name__)

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s [%s]", settings.app_name, settings.env)
    await get_redis()          # warm up connection pool
    yield
    await close_redis()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Ride booking and payment platform",
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware)

# CORS (outermost)
origins = settings.cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_timing(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.debug(
        "%s %s -> %s in %.1fms",
        request.method, request.url.path, response.status_code, (time.perf_counter() - started) * 1000,
    )
    return response


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Global error handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Health check (no auth)
@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}


@app.get("/api/health/detailed", tags=["Health"])
async def health_detailed(db: AsyncSession = Depends(get_db)):
    checks = {}
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        logger.error("Database health check failed: %s", exc)
        checks["database"] = "error"
    try:
        redis = await get_redis()
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:
        logger.error("Redis health check failed: %s", exc)
        checks["redis"] = "error"

    healthy = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if healthy else "degraded", "checks": checks, "env": settings.env},
    )


# Register routers
app.include_router(auth.router)
app.include_router(quotes.router)
app.include_router(bookings.router)
app.include_router(enhancements.router)
app.include_router(payments.router)
app.include_router(drivers.router)
app.include_router(public.router)
app.include_router(admin_auth.router)
app.include_router(admin_service_areas.router)
app.include_router(admin_integrations.router)
app.include_router(admin_policies.router)
app.include_router(admin_business_hours.router)
app.include_router(admin_financial.router)
app.include_router(admin_bookings.router)
app.include_router(admin_users.router)
app.include_router(admin_customers.router)
