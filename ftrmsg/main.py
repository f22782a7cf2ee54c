from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from ftrmsg.core.config import settings
from ftrmsg.core.database import db_manager
from ftrmsg.core.logging import setup_logging
from ftrmsg.core.redis_client import redis_client
from ftrmsg.api.v1.router import api_router


# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Scheduler and provider callers get a bare {"error": ...} body
PLAIN_ERROR_PREFIXES = ("/v1/delivery", "/v1/maintenance", "/v1/webhooks")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    # Startup
    try:
        await redis_client.connect()
        logger.info("Delivery Service startup completed")
    except Exception as e:
        # The job event log is best effort; delivery still works without Redis
        logger.warning(f"Redis unavailable at startup: {e}")

    yield

    # Shutdown
    try:
        await redis_client.disconnect()
        await db_manager.close_connections()
        logger.info("Delivery Service shutdown completed")
    except Exception as e:
        logger.error(f"Delivery Service shutdown failed: {e}")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    **Time-locked message delivery**

    ## Scheduler endpoints (require `x-cron-secret`)

    - `POST /v1/delivery/run` delivers one batch of due messages
    - `GET /v1/delivery/status` shows the batch lock and due backlog
    - `POST /v1/maintenance/cleanup-logs` applies delivery log retention
    - `POST /v1/maintenance/reconcile` repairs message status drift

    ## User endpoints (require a Bearer JWT)

    - `POST /v1/messages/` schedules a message
    - `POST /v1/messages/videos` uploads a video (Pro)
    - `POST /v1/checkout/` starts the Pro upgrade

    ## Provider callbacks

    - `POST /v1/webhooks/stripe` (verified `Stripe-Signature`)
    """,
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/v1")


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "running",
        "docs_url": "/docs",
        "health_check": "/v1/health"
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    if request.url.path.startswith(PLAIN_ERROR_PREFIXES):
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "details": str(exc) if settings.DEBUG else "An unexpected error occurred"
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """HTTP exception handler."""
    if request.url.path.startswith(PLAIN_ERROR_PREFIXES):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code
        },
        headers=exc.headers
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ftrmsg.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
