import asyncio
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from matchmaker.middleware.error_handlers import ExceptionHandlerMiddleware, PerformanceMiddleware
from matchmaker.routers import matches, matchmaking
from matchmaker.utils.config import load_settings
from matchmaker.utils.logging_config import configure_for_environment, get_logger

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: wire the pipeline and start the triggers"""
    from matchmaker.services.db import init_indexes, store
    from matchmaker.services.enqueuer import watch_document_creations
    from matchmaker.services.graph import MatchmakingPipeline
    from matchmaker.services.model_client import MatchingClient
    from matchmaker.services.scheduler import MatchScheduler

    logger.info("Matchmaker API starting up...")
    settings = load_settings()

    try:
        await init_indexes(store)
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")

    pipeline = MatchmakingPipeline(store, MatchingClient(settings.llm), settings.matchmaking)
    app.state.pipeline = pipeline

    scheduler = None
    if settings.matchmaking.schedule_enabled:
        scheduler = MatchScheduler(
            pipeline.run,
            interval_hours=settings.matchmaking.interval_hours,
            timezone=settings.matchmaking.timezone,
            retries=settings.matchmaking.retries,
        )
        scheduler.start()
        logger.info("Matchmaking scheduler started")

    watcher = None
    if settings.matchmaking.watch_inserts:
        watcher = asyncio.create_task(watch_document_creations(store), name="match-job-watcher")
        logger.info("Document creation watcher started")

    logger.info("Matchmaker API startup completed")

    yield

    logger.info("Matchmaker API shutting down...")
    if scheduler is not None:
        await scheduler.stop()
    if watcher is not None:
        watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass
    logger.info("Matchmaker API shutdown completed")


app = FastAPI(title="Matchmaker API", version="1.0.0", lifespan=lifespan)

# Exception handler should be the outermost middleware (added last)
app.add_middleware(PerformanceMiddleware, slow_request_threshold=2.0)
app.add_middleware(ExceptionHandlerMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


app.include_router(matchmaking.router)
app.include_router(matches.router)

logger.info("Matchmaker API initialized successfully")
