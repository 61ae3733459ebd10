"""
FastAPI application entry point.

Run with:
    uvicorn alertwatch.app.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ── Core infrastructure ──
from alertwatch.app.core.config import settings
from alertwatch.app.core.logging_config import setup_logging, get_logger
from alertwatch.app.core.errors import register_error_handlers
from alertwatch.app.core.middleware import RequestLoggingMiddleware

# ── Aggregation + routers ──
from alertwatch.app.aggregation.aggregator import DisasterAggregator
from alertwatch.app.api.v1.disasters import router as disaster_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """One shared HTTP client for every feed adapter, closed on shutdown."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    if not settings.OPENWEATHERMAP_API_KEY:
        logger.warning("OPENWEATHERMAP_API_KEY not set — local severe-weather feed disabled")

    async with httpx.AsyncClient(
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        follow_redirects=True,
    ) as client:
        app.state.aggregator = DisasterAggregator.from_settings(client, settings)
        yield

    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Multi-source disaster feed. Normalises earthquakes (USGS), "
        "government weather alerts (NOAA) and severe local weather "
        "(OpenWeatherMap) into one event list with type, alert-tier and "
        "radius filtering."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (order matters — outermost first) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Failed-Sources", "X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(disaster_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "sources": ["USGS", "NOAA", "OpenWeatherMap"],
        "docs": "/docs",
    }


@app.get("/health/live", tags=["health"])
async def liveness():
    """Liveness probe — is the process alive?"""
    return {"status": "alive"}


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "alertwatch.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_config=None,
    )
