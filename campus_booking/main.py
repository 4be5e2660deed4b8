"""
Campus Booking API - Main Application Entry Point

Department-restricted event booking with:
- Per-event serialized booking decisions (no overselling, no lost promotions)
- Short holds with lazy and background expiry
- FIFO waitlist promoted whenever a seat frees up
- Redis-cached availability reads
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campus_booking.core.config import get_settings
from campus_booking.core.logging import setup_logging, get_logger
from campus_booking.core.metrics import metrics_endpoint
from campus_booking.api.router import api_router
from campus_booking.api.errors import register_exception_handlers
from campus_booking.api.middleware import RequestLoggingMiddleware
from campus_booking.services.cache_service import get_redis, close_redis, get_cache_stats
from campus_booking.services.engine_factory import build_engine
from campus_booking.services.expiry_sweeper import ExpirySweeper

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        storage_backend=settings.STORAGE_BACKEND,
    )

    app.state.engine = build_engine(settings)

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    sweeper = None
    if settings.SWEEPER_ENABLED:
        sweeper = ExpirySweeper(app.state.engine, interval=settings.SWEEP_INTERVAL_SECONDS)
        sweeper.start()

    yield

    if sweeper is not None:
        await sweeper.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Campus event booking with holds, overbooking and FIFO waitlists",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "storage_backend": settings.STORAGE_BACKEND,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
