"""
Unit tests for message composition, cancellation and video upload.
"""
import pytest
import pytest_asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.dialects import postgresql

from ftrmsg.core.errors import (
    FreeTierExhausted,
    QuotaExceeded,
    QuotaUpdateError,
    SagaFailed,
    TierRestriction,
    ValidationError,
)
from ftrmsg.repositories.profile_repository import ProfileRepository
from ftrmsg.schemas.message import MessageCreate, MessageResponse
from ftrmsg.services.message_service import MessageService
from conftest import TODAY


def message_data(**overrides):
    values = dict(
        message_text="  Open this on your birthday  ",
        scheduled_date=TODAY + timedelta(days=365),
        delivery_email="me@example.com",
    )
    values.update(overrides)
    return MessageCreate(**values)


class TestMessageService:
    """Test cases for MessageService."""

    @pytest_asyncio.fixture
    async def message_service(self, mock_session, mock_message_repo, mock_profile_repo, mock_blob_store):
        service = MessageService(mock_session, blob_store=mock_blob_store, today=lambda: TODAY)
        service.message_repo = mock_message_repo
        service.profile_repo = mock_profile_repo
        mock_message_repo.create.side_effect = lambda data: MagicMock(**data)
        return service

    @pytest.mark.asyncio
    async def test_free_user_creates_first_message(
        self, message_service, free_profile, mock_profile_repo, mock_message_repo
    ):
        mock_profile_repo.get_by_id.return_value = free_profile

        message = await message_service.create_message(free_profile.id, message_data())

        assert message.status == "pending"
        assert message.message_text == "Open this on your birthday"
        mock_profile_repo.mark_free_message_used.assert_awaited_once_with(free_profile.id)
        mock_profile_repo.apply_storage_delta.assert_not_called()

    @pytest.mark.asyncio
    async def test_free_user_second_message_rejected(
        self, message_service, free_profile, mock_profile_repo, mock_message_repo
    ):
        free_profile.free_message_used = True
        mock_profile_repo.get_by_id.return_value = free_profile

        with pytest.raises(FreeTierExhausted):
            await message_service.create_message(free_profile.id, message_data())

        mock_message_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_free_message_race_lost_undoes_insert(
        self, message_service, free_profile, mock_profile_repo, mock_message_repo
    ):
        """A concurrent request consumed the flag first: the new message is removed."""
        mock_profile_repo.get_by_id.return_value = free_profile
        mock_profile_repo.mark_free_message_used.return_value = False

        with pytest.raises(SagaFailed) as exc_info:
            await message_service.create_message(free_profile.id, message_data())

        assert isinstance(exc_info.value.cause, FreeTierExhausted)
        assert exc_info.value.step == "consume_free_message"
        mock_message_repo.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_free_user_cannot_attach_video(self, message_service, free_profile, mock_profile_repo):
        mock_profile_repo.get_by_id.return_value = free_profile

        with pytest.raises(TierRestriction):
            await message_service.create_message(
                free_profile.id,
                message_data(video_storage_path=f"{free_profile.id}/clip.mp4", video_size_bytes=10)
            )

    @pytest.mark.asyncio
    async def test_past_date_rejected(self, message_service, pro_profile, mock_profile_repo):
        mock_profile_repo.get_by_id.return_value = pro_profile

        with pytest.raises(ValidationError, match="future date"):
            await message_service.create_message(pro_profile.id, message_data(scheduled_date=TODAY))

    @pytest.mark.asyncio
    async def test_unknown_owner_rejected(self, message_service, mock_profile_repo):
        mock_profile_repo.get_by_id.return_value = None

        with pytest.raises(ValidationError):
            await message_service.create_message(uuid4(), message_data())

    @pytest.mark.asyncio
    async def test_foreign_video_path_rejected(self, message_service, pro_profile, mock_profile_repo):
        mock_profile_repo.get_by_id.return_value = pro_profile

        with pytest.raises(ValidationError, match="does not belong"):
            await message_service.create_message(
                pro_profile.id, message_data(video_storage_path=f"{uuid4()}/clip.mp4", video_size_bytes=10)
            )

    @pytest.mark.asyncio
    async def test_pro_video_message_charges_quota(
        self, message_service, pro_profile, mock_profile_repo, mock_blob_store
    ):
        mock_profile_repo.get_by_id.return_value = pro_profile
        path = f"{pro_profile.id}/clip.mp4"

        message = await message_service.create_message(
            pro_profile.id, message_data(video_storage_path=path, video_size_bytes=5000)
        )

        assert message.video_storage_path == path
        mock_profile_repo.apply_storage_delta.assert_awaited_once_with(pro_profile.id, 5000)
        mock_profile_repo.mark_free_message_used.assert_not_called()
        mock_blob_store.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_quota_failure_compensates_in_reverse_order(
        self, message_service, pro_profile, mock_profile_repo, mock_message_repo, mock_blob_store
    ):
        """Blob deleted first, then the message row."""
        mock_profile_repo.get_by_id.return_value = pro_profile
        mock_profile_repo.apply_storage_delta.side_effect = Exception("deadlock detected")
        undone = []
        mock_blob_store.delete.side_effect = lambda path: undone.append(("blob", path))
        mock_message_repo.delete.side_effect = lambda message_id: undone.append(("message", message_id))
        path = f"{pro_profile.id}/clip.mp4"

        with pytest.raises(SagaFailed) as exc_info:
            await message_service.create_message(
                pro_profile.id, message_data(video_storage_path=path, video_size_bytes=5000)
            )

        assert isinstance(exc_info.value.cause, QuotaUpdateError)
        assert [kind for kind, _ in undone] == ["blob", "message"]
        assert undone[0][1] == path
        assert exc_info.value.compensation_failures == []

    @pytest.mark.asyncio
    async def test_failed_compensation_is_reported_and_rest_still_run(
        self, message_service, pro_profile, mock_profile_repo, mock_message_repo, mock_blob_store
    ):
        mock_profile_repo.get_by_id.return_value = pro_profile
        mock_profile_repo.apply_storage_delta.side_effect = Exception("deadlock detected")
        mock_blob_store.delete.side_effect = Exception("storage unavailable")

        with pytest.raises(SagaFailed) as exc_info:
            await message_service.create_message(
                pro_profile.id,
                message_data(video_storage_path=f"{pro_profile.id}/clip.mp4", video_size_bytes=5000)
            )

        failures = exc_info.value.compensation_failures
        assert len(failures) == 1
        assert failures[0].step == "attach_video"
        assert exc_info.value.needs_reconciliation
        mock_message_repo.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancel_releases_storage(
        self, message_service, pro_profile, message_factory, mock_message_repo, mock_profile_repo, mock_blob_store
    ):
        message = message_factory(
            user_id=pro_profile.id, video_storage_path=f"{pro_profile.id}/clip.mp4", video_size_bytes=5000
        )
        mock_message_repo.get_for_owner.return_value = message

        await message_service.cancel_message(pro_profile.id, message.id)

        mock_message_repo.delete.assert_awaited_once_with(message.id)
        mock_blob_store.delete.assert_awaited_once_with(message.video_storage_path)
        mock_profile_repo.apply_storage_delta.assert_awaited_once_with(pro_profile.id, -5000)

    @pytest.mark.asyncio
    async def test_cancel_blob_failure_still_releases_storage(
        self, message_service, pro_profile, message_factory, mock_message_repo, mock_profile_repo, mock_blob_store
    ):
        message = message_factory(
            user_id=pro_profile.id, video_storage_path=f"{pro_profile.id}/clip.mp4", video_size_bytes=5000
        )
        mock_message_repo.get_for_owner.return_value = message
        mock_blob_store.delete.side_effect = Exception("storage unavailable")

        await message_service.cancel_message(pro_profile.id, message.id)

        mock_profile_repo.apply_storage_delta.assert_awaited_once_with(pro_profile.id, -5000)

    @pytest.mark.asyncio
    async def test_cancel_delivered_message_rejected(
        self, message_service, message_factory, mock_message_repo
    ):
        mock_message_repo.get_for_owner.return_value = message_factory(status="delivered")

        with pytest.raises(ValidationError):
            await message_service.cancel_message(uuid4(), uuid4())

        mock_message_repo.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_video(self, message_service, pro_profile, mock_blob_store):
        path = await message_service.upload_video(pro_profile, "Holiday.MOV", b"\x00" * 1024, "video/quicktime")

        assert path.startswith(f"{pro_profile.id}/")
        assert path.endswith(".mov")
        mock_blob_store.upload.assert_awaited_once_with(path, b"\x00" * 1024, "video/quicktime")

    @pytest.mark.asyncio
    async def test_upload_video_requires_pro(self, message_service, free_profile):
        with pytest.raises(TierRestriction):
            await message_service.upload_video(free_profile, "a.mp4", b"\x00", "video/mp4")

    @pytest.mark.asyncio
    async def test_upload_video_rejects_non_video(self, message_service, pro_profile):
        with pytest.raises(ValidationError):
            await message_service.upload_video(pro_profile, "a.png", b"\x00", "image/png")

    @pytest.mark.asyncio
    async def test_upload_video_over_quota(self, message_service, pro_profile, mock_blob_store):
        pro_profile.storage_used_bytes = pro_profile.storage_limit_bytes - 10

        with pytest.raises(QuotaExceeded):
            await message_service.upload_video(pro_profile, "a.mp4", b"\x00" * 11, "video/mp4")

        mock_blob_store.upload.assert_not_called()


class TestProfileRepositoryQuota:
    """The storage counter update must be a single clamped statement."""

    @pytest.mark.asyncio
    async def test_storage_delta_is_single_clamped_update(self):
        session = AsyncMock()
        session.execute = AsyncMock(return_value=MagicMock(rowcount=1))
        repo = ProfileRepository(session)

        assert await repo.apply_storage_delta(uuid4(), -5000) is True

        statement = session.execute.await_args.args[0]
        sql = str(statement.compile(dialect=postgresql.dialect())).lower()
        assert sql.startswith("update profiles")
        assert "greatest" in sql
        assert "storage_used_bytes +" in sql
        session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_free_message_flag_is_conditional(self):
        session = AsyncMock()
        session.execute = AsyncMock(return_value=MagicMock(rowcount=0))
        repo = ProfileRepository(session)

        assert await repo.mark_free_message_used(uuid4()) is False

        sql = str(session.execute.await_args.args[0].compile(dialect=postgresql.dialect())).lower()
        assert "free_message_used is false" in sql


class TestMessageSchemas:
    """Test cases for the message request and response schemas."""

    def test_create_strips_text_and_email(self):
        data = MessageCreate(
            message_text="  Hello  ",
            scheduled_date=TODAY + timedelta(days=30),
            delivery_email=" me@example.com ",
        )

        assert data.message_text == "Hello"
        assert data.delivery_email == "me@example.com"

    def test_create_rejects_blank_text(self):
        with pytest.raises(SchemaValidationError, match="Please enter a message"):
            MessageCreate(
                message_text="   ",
                scheduled_date=TODAY + timedelta(days=30),
                delivery_email="me@example.com",
            )

    def test_create_rejects_overlong_text(self):
        with pytest.raises(SchemaValidationError, match="characters or less"):
            MessageCreate(
                message_text="x" * 4001,
                scheduled_date=TODAY + timedelta(days=30),
                delivery_email="me@example.com",
            )

    def test_response_reads_model_attributes(self, sample_message):
        response = MessageResponse.model_validate(sample_message)

        assert response.id == sample_message.id
        assert response.status == "pending"
        assert response.video_storage_path is None
