"""
Main FastAPI application for the Loterias Caixa results API.
"""
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator

from loterias.core.config import Settings, settings
from loterias.core.logging import configure_logging, get_logger
from loterias.core.middleware import CorrelationIdMiddleware
from loterias.core.scheduler import SyncScheduler
from loterias.api.dependencies import get_orchestrator, get_sync_scheduler
from loterias.api.routes import resultados, sync
from loterias.services.games import LOTTERY_GAMES
from loterias.services.query_service import ResultsQueryService
from loterias.services.store import JsonDocumentStore, WindowStore
from loterias.services.sync.adapters.caixa_api_adapter import CaixaApiAdapter
from loterias.services.sync.orchestrator import SyncOrchestrator
from loterias.services.sync.snapshot import LatestSnapshotService

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """
    Get the rate limit key for a request.

    Uses IP address, with fallback to X-Forwarded-For for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    storage_uri=settings.REDIS_URL if settings.RATE_LIMIT_STORAGE == "redis" else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED
)


def build_services(config: Settings) -> dict:
    """Wire adapter, stores and services from one settings object."""
    adapter = CaixaApiAdapter(
        base_url=config.CAIXA_API_BASE,
        timeout=config.FETCH_TIMEOUT,
        max_connections=config.FETCH_CONCURRENCY
    )
    store = WindowStore(config.DB_PATH)
    orchestrator = SyncOrchestrator(
        store=store,
        adapter=adapter,
        window_size=config.CONTESTS_TO_STORE,
        max_concurrency=config.FETCH_CONCURRENCY,
        pass_timeout=config.SYNC_PASS_TIMEOUT
    )
    snapshot_service = LatestSnapshotService(JsonDocumentStore(config.SNAPSHOT_PATH), adapter)

    return {
        "adapter": adapter,
        "store": store,
        "orchestrator": orchestrator,
        "snapshot_service": snapshot_service,
        "query_service": ResultsQueryService(store),
    }


async def _initial_sync(app: FastAPI) -> None:
    """Bootstrap the store (first run only) and take a first snapshot."""
    try:
        if settings.BOOTSTRAP_ON_STARTUP:
            await app.state.orchestrator.bootstrap()
        if settings.SNAPSHOT_ENABLED:
            await app.state.snapshot_service.refresh()
    except Exception as e:
        logger.exception(f"Initial synchronization failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # The bootstrap can take minutes; serve requests (500 until the store exists) meanwhile
    initial_task = asyncio.create_task(_initial_sync(app))

    scheduler: Optional[SyncScheduler] = None
    if settings.SCHEDULER_ENABLED:
        scheduler = SyncScheduler(
            orchestrator=app.state.orchestrator,
            snapshot_service=app.state.snapshot_service if settings.SNAPSHOT_ENABLED else None,
            hour=settings.SYNC_CRON_HOUR,
            minute=settings.SYNC_CRON_MINUTE,
            timezone=settings.SCHEDULER_TIMEZONE,
            misfire_grace_time=settings.MISFIRE_GRACE_TIME
        )
        await scheduler.start()
    app.state.scheduler = scheduler

    logger.info("Application started")

    yield

    if scheduler is not None:
        await scheduler.stop()
    if not initial_task.done():
        initial_task.cancel()
    await app.state.adapter.close()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Caixa lottery results, synchronized daily and served from a local store",
    lifespan=lifespan
)
for _name, _service in build_services(settings).items():
    setattr(app.state, _name, _service)
app.state.scheduler = None

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(CorrelationIdMiddleware)

# Prometheus metrics must be set up before any routes are added
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(resultados.router, prefix="/api")
app.include_router(sync.router, prefix="/api")


@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "games": list(LOTTERY_GAMES),
        "endpoints": {
            "resultados": "/api/resultados",
            "resultados_por_jogo": "/api/resultados/{game_name}",
            "ultimos": "/api/ultimos",
            "sync_status": "/api/sync/status",
            "sync_run": "/api/sync/run",
            "metrics": "/metrics",
            "docs": "/docs",
            "health": "/health"
        }
    }


@app.get("/health")
@limiter.limit("120/minute")  # Higher limit for health checks
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


@app.get("/api/health")
@limiter.limit("60/minute")
async def api_health(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    scheduler: Optional[SyncScheduler] = Depends(get_sync_scheduler)
):
    """Detailed health check with component-level status."""

    store_ok = orchestrator.store.exists()
    components = {
        "store": {
            "status": "healthy" if store_ok else "unhealthy",
            "path": str(orchestrator.store.path),
            "detail": None if store_ok else "store not initialized yet",
        },
        "scheduler": {
            "status": "healthy" if scheduler and scheduler.running else "disabled",
        },
        "sync": {
            "running": orchestrator.is_running,
            "last_sync": orchestrator.last_results.get("sync"),
        },
    }

    return JSONResponse(
        status_code=200 if store_ok else 503,
        content={
            "status": "healthy" if store_ok else "unhealthy",
            "version": settings.APP_VERSION,
            "components": components,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "loterias.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
