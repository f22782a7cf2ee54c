from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from ftrmsg.core.config import settings
from ftrmsg.core.database import get_async_session
from ftrmsg.core.logging import SERVICE_NAME
from ftrmsg.core.redis_client import redis_client
from ftrmsg.repositories.batch_lock_repository import BatchLockRepository

router = APIRouter()

# A lock older than this outlived any run the invoker allows
STALE_LOCK_SECONDS = 15 * 60


def _service_info() -> dict:
    return {
        "service": SERVICE_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/")
async def health_check():
    """Liveness only; touches no dependency."""
    return {"status": "healthy", **_service_info()}


@router.get("/detailed")
async def detailed_health_check(session: AsyncSession = Depends(get_async_session)):
    """
    Database and Redis reachability plus the batch lock.

    Database failure makes the service unhealthy (503). Redis only carries
    the job event log, so its failure is reported as degraded. A stale batch
    lock is reported but does not change the status; it needs an operator.
    """
    now = datetime.now(timezone.utc)
    checks = {}
    status = "healthy"

    try:
        await session.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}
        status = "unhealthy"

    if status == "healthy":
        try:
            lock = await BatchLockRepository(session).get_current()
            if lock is None:
                checks["batch_lock"] = {"held": False}
            else:
                age = (now - lock.locked_at).total_seconds() if lock.locked_at else None
                checks["batch_lock"] = {
                    "held": True,
                    "locked_at": lock.locked_at.isoformat() if lock.locked_at else None,
                    "stale": age is not None and age > STALE_LOCK_SECONDS,
                }
        except Exception as e:
            checks["batch_lock"] = {"error": str(e)}

    try:
        await redis_client.ping()
        checks["redis"] = {"status": "healthy"}
    except Exception as e:
        checks["redis"] = {"status": "degraded", "error": str(e)}
        if status == "healthy":
            status = "degraded"

    return JSONResponse(
        status_code=503 if status == "unhealthy" else 200,
        content={"status": status, **_service_info(), "checks": checks, "timestamp": now.isoformat()},
    )
