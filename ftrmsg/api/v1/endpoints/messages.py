from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from typing import List
from uuid import UUID

from ftrmsg.api.deps import get_message_service
from ftrmsg.core.auth import get_current_profile
from ftrmsg.core.errors import (
    BlobStoreError,
    FreeTierExhausted,
    QuotaExceeded,
    SagaFailed,
    TierRestriction,
    ValidationError,
)
from ftrmsg.core.logging import get_logger
from ftrmsg.models.profile import Profile
from ftrmsg.schemas.message import MessageCreate, MessageResponse, VideoUploadResponse
from ftrmsg.services.message_service import MessageService

router = APIRouter()
logger = get_logger(__name__)


def _client_error(e: Exception) -> HTTPException:
    if isinstance(e, (FreeTierExhausted, TierRestriction, QuotaExceeded)):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    request: MessageCreate,
    current_profile: Profile = Depends(get_current_profile),
    service: MessageService = Depends(get_message_service)
):
    """
    Schedule a message for delivery.

    - **message_text**: up to 4000 characters
    - **scheduled_date**: a date after today
    - **delivery_email**: recipient address
    - **video_storage_path**: optional path from `POST /messages/videos` (Pro only)
    """
    try:
        return await service.create_message(current_profile.id, request)
    except (ValidationError, FreeTierExhausted, TierRestriction) as e:
        raise _client_error(e)
    except SagaFailed as e:
        if isinstance(e.cause, FreeTierExhausted):
            raise _client_error(e.cause)
        logger.error(
            f"Message creation rolled back: {e}",
            needs_reconciliation=e.needs_reconciliation
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create message. Please try again."
        )


@router.get("/", response_model=List[MessageResponse])
async def list_messages(
    current_profile: Profile = Depends(get_current_profile),
    service: MessageService = Depends(get_message_service)
):
    """List the authenticated user's messages."""
    return await service.list_messages(current_profile.id)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_message(
    message_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    service: MessageService = Depends(get_message_service)
):
    """Cancel a pending message and release its video storage."""
    try:
        await service.cancel_message(current_profile.id, message_id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/videos", response_model=VideoUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    file: UploadFile = File(...),
    current_profile: Profile = Depends(get_current_profile),
    service: MessageService = Depends(get_message_service)
):
    """Upload a video to attach to a message (Pro only)."""
    content = await file.read()
    try:
        path = await service.upload_video(
            current_profile, file.filename or "", content, file.content_type or ""
        )
    except (ValidationError, TierRestriction, QuotaExceeded) as e:
        raise _client_error(e)
    except BlobStoreError as e:
        logger.error(f"Video upload failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to upload video. Please try again."
        )
    return VideoUploadResponse(video_storage_path=path, video_size_bytes=len(content))
