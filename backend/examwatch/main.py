from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging
import time

from examwatch.core.config import settings
from examwatch.core.database import create_db_and_tables
from examwatch.core.cache import cache
from examwatch.api.v1.api import api_router
from examwatch.api.realtime import router as realtime_router
from examwatch.middleware.performance import PerformanceMiddleware
from examwatch.realtime.registry import ConnectionRegistry
from examwatch.realtime.event_router import EventRouter


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ExamWatch API",
    description="Live exam-session integrity monitoring",
    version="1.0.0",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    PerformanceMiddleware,
    slow_request_threshold=settings.slow_request_threshold
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": getattr(request.state, 'request_id', 'unknown')
        }
    )


@app.on_event("startup")
async def startup_event():
    """Application startup tasks"""
    logger.info("Starting ExamWatch API...")

    await create_db_and_tables()
    logger.info("Database initialized")

    if settings.cache_enabled:
        cache_health = await cache.ahealth_check()
        if cache_health:
            logger.info("Cache connection established")
        else:
            logger.warning("Cache connection failed - running without cache")

    app.state.registry = ConnectionRegistry()
    app.state.event_router = EventRouter(app.state.registry)
    logger.info("Exam channel registry ready")

    logger.info("ExamWatch API startup completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown tasks"""
    logger.info("Shutting down ExamWatch API...")

    registry = getattr(app.state, "registry", None)
    if registry is not None:
        await registry.close_all()

    try:
        await cache.aclose()
        logger.info("Cache connections closed")
    except Exception as e:
        logger.error(f"Error closing cache connections: {e}")

    logger.info("ExamWatch API shutdown completed")


app.include_router(api_router, prefix="/api/v1")
app.include_router(realtime_router)


@app.get("/health")
async def health_check():
    """Comprehensive health check endpoint"""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "version": "1.0.0",
        "services": {}
    }

    if settings.cache_enabled:
        cache_health = await cache.ahealth_check()
        health_status["services"]["cache"] = "healthy" if cache_health else "unhealthy"
    else:
        health_status["services"]["cache"] = "disabled"

    try:
        from examwatch.core.database import AsyncSessionLocal
        from sqlalchemy import text
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["services"]["database"] = "healthy"
    except Exception as e:
        health_status["services"]["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"

    registry = getattr(app.state, "registry", None)
    health_status["realtime"] = {
        "exams": len(registry.exam_ids()) if registry else 0,
        "connections": registry.total_connections() if registry else 0
    }

    try:
        import psutil
        health_status["system"] = {
            "cpu_percent": psutil.cpu_percent(),
            "memory_percent": psutil.virtual_memory().percent,
            "disk_percent": psutil.disk_usage('/').percent
        }
    except Exception as e:
        health_status["system"] = f"error: {str(e)}"

    return health_status


@app.get("/")
async def read_root():
    return {
        "message": "Welcome to the ExamWatch API!",
        "version": "1.0.0",
        "channel": "/ws?examId=<exam id>"
    }
