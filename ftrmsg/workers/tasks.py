import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Dict

from .celery_app import celery_app
from ftrmsg.core.database import AsyncSessionLocal, engine
from ftrmsg.core.logging import get_logger
from ftrmsg.core.redis_client import redis_client
from ftrmsg.services.delivery_service import DeliveryService
from ftrmsg.services.retention_service import RetentionService
from ftrmsg.services.reconciliation_service import ReconciliationService

logger = get_logger(__name__)


def _run_async(factory: Callable[[], Awaitable[Any]]) -> Any:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(factory())

    # Already inside a loop (eager task under an async caller): own loop, own thread
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(lambda: asyncio.run(factory())).result()


async def _with_session(work: Callable[[Any], Awaitable[Any]]) -> Any:
    # Each task runs on a fresh event loop, so pooled connections must not outlive it
    try:
        async with AsyncSessionLocal() as session:
            return await work(session)
    finally:
        await redis_client.disconnect()
        await engine.dispose()


async def _deliver(session) -> Dict[str, Any]:
    result = await DeliveryService(session).run_batch()
    return result.to_response()


async def _cleanup(session) -> Dict[str, Any]:
    deleted = await RetentionService(session).cleanup_delivery_logs()
    return {"deleted": deleted}


async def _reconcile(session) -> Dict[str, Any]:
    repaired = await ReconciliationService(session).reconcile()
    return {"repaired": repaired}


@celery_app.task(name="ftrmsg.workers.tasks.run_delivery_batch")
def run_delivery_batch():
    """Deliver one batch of due messages (same path as POST /v1/delivery/run)."""
    result = _run_async(lambda: _with_session(_deliver))
    logger.info("Scheduled delivery batch finished", **result)
    return result


@celery_app.task(name="ftrmsg.workers.tasks.cleanup_delivery_logs")
def cleanup_delivery_logs():
    """Apply delivery log retention."""
    result = _run_async(lambda: _with_session(_cleanup))
    logger.info("Scheduled delivery log cleanup finished", **result)
    return result


@celery_app.task(name="ftrmsg.workers.tasks.reconcile_message_status")
def reconcile_message_status():
    """Repair message status drift against the delivery ledger."""
    result = _run_async(lambda: _with_session(_reconcile))
    logger.info("Scheduled status reconciliation finished", **result)
    return result
