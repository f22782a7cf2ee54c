from typing import Union
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ftrmsg.api.deps import get_delivery_service
from ftrmsg.core.cron_auth import verify_cron_secret
from ftrmsg.core.logging import get_logger
from ftrmsg.schemas.common import ErrorResponse
from ftrmsg.schemas.delivery import BatchRunResponse, BatchSkippedResponse, DeliveryStatusResponse
from ftrmsg.services.delivery_service import DeliveryService

router = APIRouter(dependencies=[Depends(verify_cron_secret)])
logger = get_logger(__name__)


@router.post(
    "/run",
    responses={
        200: {"model": Union[BatchRunResponse, BatchSkippedResponse]},
        500: {"model": ErrorResponse, "description": "Run failed"},
    },
)
async def run_delivery_batch(service: DeliveryService = Depends(get_delivery_service)):
    """
    Deliver one batch of due messages.

    **Security Requirements:**
    - x-cron-secret: <shared scheduler secret>

    Returns `{processed, delivered, failed, stoppedEarly}` for a normal or
    partial run, or `{skipped: true, reason: "concurrent execution"}` when
    another run holds the batch lock.
    """
    try:
        result = await service.run_batch()
    except Exception as e:
        logger.error(f"Process delivery error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.to_response())


@router.get("/status", response_model=DeliveryStatusResponse)
async def get_delivery_status(service: DeliveryService = Depends(get_delivery_service)):
    """Current lock holder and the size of the due backlog."""
    try:
        return await service.get_status()
    except Exception as e:
        logger.error(f"Error getting delivery status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get delivery status"
        )
