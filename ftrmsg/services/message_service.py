import uuid
from datetime import date, datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.errors import (
    FreeTierExhausted,
    QuotaExceeded,
    QuotaUpdateError,
    TierRestriction,
    ValidationError,
)
from ftrmsg.core.saga import Saga
from ftrmsg.models.message import Message, STATUS_PENDING
from ftrmsg.models.profile import Profile
from ftrmsg.schemas.message import MessageCreate
from .base_service import BaseService
from .blob_store import SupabaseBlobStore, get_blob_store

FREE_MESSAGE_USED = "You have already used your free message. Upgrade to Pro for unlimited messages."
FREE_MESSAGE_RACE = "Your free message has already been used. Upgrade to Pro for unlimited messages."
VIDEO_REQUIRES_PRO = "Video attachments are only available for Pro users."

ALLOWED_VIDEO_EXTENSIONS = {"mp4", "mov", "webm", "m4v"}


class MessageService(BaseService):
    """Message composition, cancellation and video upload for one owner."""

    def __init__(
        self,
        session: AsyncSession,
        blob_store: Optional[SupabaseBlobStore] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        super().__init__(session)
        self.blob_store = blob_store or get_blob_store()
        self.today = today or (lambda: datetime.now(timezone.utc).date())

    async def create_message(self, owner_id: UUID, data: MessageCreate) -> Message:
        """
        Create a pending message, consuming the free message or storage quota.

        Each side effect is a saga step; a failed step undoes the earlier ones
        in reverse (delete the blob, then the message).

        Raises:
            ValidationError, FreeTierExhausted, TierRestriction: rejected up front
            SagaFailed: a step failed after the message was written
        """
        profile = await self.profile_repo.get_by_id(owner_id)
        if profile is None:
            raise ValidationError("You must be logged in to send a message")

        if data.scheduled_date <= self.today():
            raise ValidationError("Please select a future date")

        if profile.is_free:
            if profile.free_message_used:
                raise FreeTierExhausted(FREE_MESSAGE_USED)
            if data.video_storage_path:
                raise TierRestriction(VIDEO_REQUIRES_PRO)

        if data.video_storage_path and not data.video_storage_path.startswith(f"{owner_id}/"):
            raise ValidationError("Video does not belong to this account")

        message_id = uuid.uuid4()
        saga = Saga("create_message", {"owner_id": str(owner_id), "message_id": str(message_id)})

        async def insert_message():
            return await self.write(lambda: self.message_repo.create({
                "id": message_id,
                "user_id": owner_id,
                "message_text": data.message_text,
                "scheduled_date": data.scheduled_date,
                "delivery_email": data.delivery_email,
                "video_storage_path": data.video_storage_path,
                "video_size_bytes": data.video_size_bytes or 0,
                "video_duration_seconds": data.video_duration_seconds or 0,
                "status": STATUS_PENDING,
            }))

        async def delete_message():
            await self.write(lambda: self.message_repo.delete(message_id))

        saga.step("insert_message", insert_message, delete_message)

        if data.video_storage_path:
            path = data.video_storage_path

            async def keep_video():
                return path

            async def delete_video():
                await self.blob_store.delete(path)

            # Uploaded before this request; only its undo belongs here
            saga.step("attach_video", keep_video, delete_video, failure_event="COMPENSATING_DELETE_FAILED")

        if profile.is_free:
            async def consume_free_message():
                won = await self.write(lambda: self.profile_repo.mark_free_message_used(owner_id))
                if not won:
                    raise FreeTierExhausted(FREE_MESSAGE_RACE)

            saga.step("consume_free_message", consume_free_message)

        if data.video_storage_path and data.video_size_bytes:
            async def apply_quota():
                try:
                    await self.write(
                        lambda: self.profile_repo.apply_storage_delta(owner_id, data.video_size_bytes)
                    )
                except Exception as e:
                    raise QuotaUpdateError(f"Failed to update storage quota: {e}") from e

            saga.step("apply_storage_delta", apply_quota)

        results = await saga.run()
        message = results["insert_message"]
        self.logger.info(
            "Message created",
            message_id=str(message_id),
            owner_id=str(owner_id),
            scheduled_date=data.scheduled_date.isoformat(),
            has_video=bool(data.video_storage_path)
        )
        return message

    async def cancel_message(self, owner_id: UUID, message_id: UUID) -> None:
        """
        Delete a pending message owned by the caller and release its storage.

        Raises:
            ValidationError: not found, not owned, or no longer pending
        """
        message = await self.message_repo.get_for_owner(message_id, owner_id)
        if message is None or message.status != STATUS_PENDING:
            raise ValidationError("Message not found or cannot be cancelled")

        deleted = await self.write(lambda: self.message_repo.delete(message_id))
        if not deleted:
            raise ValidationError("Message not found or cannot be cancelled")

        if message.video_storage_path:
            try:
                await self.blob_store.delete(message.video_storage_path)
            except Exception as e:
                self.logger.error(
                    "Video delete failed after cancel, object is orphaned",
                    alert="COMPENSATING_DELETE_FAILED",
                    message_id=str(message_id),
                    video_storage_path=message.video_storage_path,
                    error=str(e)
                )

            if message.video_size_bytes:
                await self.write(
                    lambda: self.profile_repo.apply_storage_delta(owner_id, -message.video_size_bytes)
                )

        self.logger.info("Message cancelled", message_id=str(message_id), owner_id=str(owner_id))

    async def list_messages(self, owner_id: UUID) -> List[Message]:
        return await self.message_repo.list_for_owner(owner_id)

    async def upload_video(
        self, owner: Profile, filename: str, content: bytes, content_type: str
    ) -> str:
        """
        Store a video under `<owner_id>/<uuid>.<ext>` and return its path.

        Quota is charged later, when the message referencing it is created.
        """
        if not owner.is_pro:
            raise TierRestriction("Video uploads are only available for Pro users")

        if not content_type or not content_type.startswith("video/"):
            raise ValidationError("Please upload a video file")

        size = len(content)
        if size == 0:
            raise ValidationError("Video file is empty")
        if size > owner.remaining_storage_bytes:
            raise QuotaExceeded("Not enough storage remaining for this video")

        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if extension not in ALLOWED_VIDEO_EXTENSIONS:
            extension = "mp4"

        path = f"{owner.id}/{uuid.uuid4()}.{extension}"
        await self.blob_store.upload(path, content, content_type)
        self.logger.info("Video stored", owner_id=str(owner.id), path=path, size_bytes=size)
        return path
