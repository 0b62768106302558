"""
Délices Marketplace API

Multi-role food delivery backend: clients order, restaurateurs prepare,
couriers deliver and admins run the platform. Providers are mocked in
development and real (Stripe, Google Maps, Twilio, SendGrid, OpenAI)
elsewhere.

Routers live in marketplace.api; GET /health reports on the database,
Redis and every provider.

Socket.IO is mounted in front of FastAPI, so serve `asgi_app`:

    uvicorn marketplace.main:asgi_app --port 8001
"""

import asyncio
import sys
import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, literal
import redis
import socketio

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from marketplace.api import ROUTERS
from marketplace.core.config import get_settings, setup_logging
from marketplace.core.security import TokenConfigError
from marketplace.database import get_db, init_db, engine
from marketplace.schemas import HealthResponse
from marketplace.services.geo import get_geo_service
from marketplace.services.notifications import get_notification_service
from marketplace.services.payment import get_payment_service
from marketplace.services.ai import get_assistant_service
from marketplace.services.realtime import sio

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

PROVIDERS = {
    "Payment": get_payment_service,
    "Geo": get_geo_service,
    "Notification": get_notification_service,
    "Assistant": get_assistant_service,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    banner = "=" * 60
    logger.info(banner)
    logger.info(f"🚀 {settings.app_name} v{settings.app_version} ({settings.env_mode.value})")
    logger.info(banner)

    await init_db()
    logger.info("✅ Database ready")

    for label, factory in PROVIDERS.items():
        logger.info(f"✅ {label} provider: {factory().provider_name}")

    missing = settings.missing_secrets()
    if missing:
        logger.warning(f"⚠️ Not configured: {', '.join(missing)}")

    logger.info(f"{banner}\n✅ Marketplace ready\n{banner}")

    yield

    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description=(
        "Food delivery marketplace for clients, restaurateurs, couriers and admins. "
        "Real-time order and delivery updates are pushed over Socket.IO."
    ),
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in ROUTERS:
    app.include_router(router)

# Socket.IO answers /socket.io, everything else falls through to FastAPI
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


# =============================================================================
# ROOT & HEALTH
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


def _ping_redis() -> None:
    client = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
    try:
        client.ping()
    finally:
        client.close()


async def _provider_status(factory) -> str:
    return "healthy" if await factory().health_check() else "unhealthy"


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Database, Redis and provider status; 'degraded' when any is down."""
    checks = {}

    try:
        await db.execute(select(literal(1)))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {e}"
        logger.error(f"Database health check failed: {e}")

    try:
        await asyncio.to_thread(_ping_redis)
        checks["redis"] = "healthy"
    except redis.RedisError as e:
        checks["redis"] = f"unhealthy: {e}"
        logger.error(f"Redis health check failed: {e}")

    checks["payment_service"] = await _provider_status(get_payment_service)
    checks["geo_service"] = await _provider_status(get_geo_service)
    checks["notification_service"] = await _provider_status(get_notification_service)

    healthy = all(value == "healthy" for value in checks.values())
    return HealthResponse(
        status="operational" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        **checks,
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================
# Every error leaves as {"success": false, "error": ...}

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies, unknown enum values and missing fields are 400s."""
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Validation failed",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(TokenConfigError)
async def token_config_handler(request: Request, exc: TokenConfigError) -> JSONResponse:
    logger.error(f"Token signing unavailable: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "JWT_SECRET is not configured"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
