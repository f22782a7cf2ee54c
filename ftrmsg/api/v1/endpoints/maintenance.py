from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ftrmsg.api.deps import get_retention_service, get_reconciliation_service
from ftrmsg.core.cron_auth import verify_cron_secret
from ftrmsg.core.logging import get_logger
from ftrmsg.schemas.delivery import CleanupResponse, ReconcileResponse
from ftrmsg.services.retention_service import RetentionService
from ftrmsg.services.reconciliation_service import ReconciliationService

router = APIRouter(dependencies=[Depends(verify_cron_secret)])
logger = get_logger(__name__)


@router.post("/cleanup-logs", response_model=CleanupResponse)
async def cleanup_delivery_logs(service: RetentionService = Depends(get_retention_service)):
    """Delete delivery attempts older than the retention window."""
    try:
        deleted = await service.cleanup_delivery_logs()
    except Exception as e:
        logger.error(f"Cleanup logs error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )
    return CleanupResponse(deleted=deleted)


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_message_status(service: ReconciliationService = Depends(get_reconciliation_service)):
    """Rewrite message status wherever the delivery ledger shows a delivered attempt."""
    try:
        repaired = await service.reconcile()
    except Exception as e:
        logger.error(f"Reconciliation error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )
    return ReconcileResponse(repaired=repaired)
