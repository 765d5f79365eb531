"""
treinai/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes, rate limiting and static uploads
- No business logic should be written here
- Manages application lifecycle (startup/shutdown)
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.middleware import SlowAPIMiddleware

from treinai.api import (
    admin,
    ads,
    assistants,
    auth,
    billing,
    chats,
    exercises,
    locals,
    professionals,
    profile,
    support,
    workouts,
)
from treinai.core.config import settings, validate_settings
from treinai.core.errors import add_exception_handlers
from treinai.core.logging import setup_logging, get_logger
from treinai.core.rate_limit import limiter
from treinai.db.indexes import create_indexes
from treinai.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from treinai.services.ai_service import close_ai_service
from treinai.services.upload_service import upload_root
from utils.constants import UPLOADS_ROUTE

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting TreinAI API...")

    try:
        validate_settings()
        logger.info("Configuration validated")

        await connect_to_mongo()
        await create_indexes()

        if not await check_database_health():
            logger.warning("Database health check failed during startup")

        logger.info(
            "TreinAI API started",
            extra={"environment": settings.ENVIRONMENT, "debug": settings.DEBUG}
        )

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield

    logger.info("Shutting down TreinAI API...")

    try:
        await close_ai_service()
        await close_mongo_connection()
        logger.info("TreinAI API shut down")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="TreinAI API",
    description="AI-assisted training, nutrition and coaching backend",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

app.state.limiter = limiter

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log slow requests (AI calls can legitimately take a few seconds)
    if process_time > 15.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


add_exception_handlers(app)


# Register API routes
for module, tag in (
    (auth, "Auth"),
    (profile, "Profile"),
    (workouts, "Workouts"),
    (exercises, "Exercises"),
    (assistants, "AI"),
    (professionals, "Professionals"),
    (chats, "Chats"),
    (support, "Support"),
    (admin, "Admin"),
    (ads, "Ads"),
    (locals, "Locals"),
    (billing, "Billing"),
):
    app.include_router(module.router, prefix=settings.API_PREFIX, tags=[tag])

app.mount(UPLOADS_ROUTE, StaticFiles(directory=str(upload_root())), name="uploads")


@app.get("/", tags=["Health"])
@limiter.exempt
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "TreinAI API",
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
@limiter.exempt
async def health_check():
    """
    Health check endpoint.
    Checks database connectivity.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {}
    }

    db_healthy = await check_database_health()
    health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
    if not db_healthy:
        health_status["status"] = "degraded"

    health_status["checks"]["ai"] = "configured" if settings.OPENAI_API_KEY else "not_configured"
    health_status["checks"]["payments"] = "configured" if settings.STRIPE_SECRET_KEY else "not_configured"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
@limiter.exempt
async def readiness_check():
    if await check_database_health():
        return {"status": "ready"}
    return JSONResponse(
        status_code=503,
        content={"status": "not_ready", "reason": "database_unavailable"}
    )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
@limiter.exempt
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "treinai.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
