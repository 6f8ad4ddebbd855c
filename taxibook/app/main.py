"""
Taxibook matching API.

Route recommendations, driver route pricing and fare negotiation.
Run with: uvicorn taxibook.app.main:app
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from taxibook.app.core.config import settings
from taxibook.app.core.jwt import create_session_token
from taxibook.app.core.redis_client import ping_redis, close_redis
from taxibook.app.core.observability import ObservabilityMiddleware, configure_logging
from taxibook.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from taxibook.app.api.v1.router import router as api_v1_router
from taxibook.app.db.session import create_tables
from taxibook.app.models.enums import UserRole

# Registers the tables on Base before create_tables runs
from taxibook.app.models import driver, driver_pricing, negotiation  # noqa: F401

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    yield
    await close_redis()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Driver recommendations, route pricing and fare negotiation for taxi bookings",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus cache reachability; a down cache does not make the service unhealthy."""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "cache": "up" if await ping_redis() else "down",
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"{settings.app_name} is running",
        "docs": "/docs",
        "health": "/health",
    }


@app.post("/auth/test-token", tags=["Authentication"])
async def generate_test_token(
    user_id: str,
    role: UserRole = UserRole.CUSTOMER,
    driver_id: Optional[str] = None,
    name: str = "test_user",
):
    """
    Mint a session token for local testing.

    Sign-in lives outside this service, so this is the only way to get a
    token here. Disabled (404) unless DEBUG is on.
    """
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")

    token = create_session_token(user_id, role.value, driver_id=driver_id, display_name=name)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user_id": user_id,
        "role": role.value,
    }
