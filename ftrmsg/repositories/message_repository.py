from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_, exists

from ftrmsg.models.message import Message, STATUS_PENDING, STATUS_DELIVERED, STATUS_FAILED
from ftrmsg.models.delivery_attempt import DeliveryAttempt, ATTEMPT_DELIVERED
from .base_repository import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Repository for Message operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Message, session)

    def _due_condition(self, as_of: date, retry_failed: bool, max_attempts: int):
        pending_due = and_(Message.scheduled_date <= as_of, Message.status == STATUS_PENDING)
        if not retry_failed:
            return pending_due

        attempts = (
            select(func.count(DeliveryAttempt.id))
            .where(DeliveryAttempt.message_id == Message.id)
            .correlate(Message)
            .scalar_subquery()
        )
        failed_retryable = and_(
            Message.scheduled_date <= as_of,
            Message.status == STATUS_FAILED,
            attempts < max_attempts,
        )
        return pending_due | failed_retryable

    async def select_due(
        self,
        as_of: date,
        limit: int,
        retry_failed: bool = False,
        max_attempts: int = 3
    ) -> List[Message]:
        """
        Messages whose scheduled date is on or before `as_of` and still pending.

        With `retry_failed`, failed messages under the attempt ceiling are
        included as well.
        """
        try:
            query = (
                select(Message)
                .where(self._due_condition(as_of, retry_failed, max_attempts))
                .order_by(Message.scheduled_date.asc(), Message.created_at.asc())
                .limit(limit)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            self.logger.error(f"Error selecting due messages as of {as_of}: {e}")
            raise

    async def count_due(self, as_of: date, retry_failed: bool = False, max_attempts: int = 3) -> int:
        try:
            query = select(func.count(Message.id)).where(
                self._due_condition(as_of, retry_failed, max_attempts)
            )
            result = await self.session.execute(query)
            return result.scalar() or 0
        except Exception as e:
            self.logger.error(f"Error counting due messages as of {as_of}: {e}")
            raise

    async def get_for_owner(self, message_id: UUID, user_id: UUID) -> Optional[Message]:
        try:
            query = select(Message).where(Message.id == message_id, Message.user_id == user_id)
            result = await self.session.execute(query)
            return result.scalars().first()
        except Exception as e:
            self.logger.error(f"Error getting message {message_id} for owner {user_id}: {e}")
            raise

    async def list_for_owner(self, user_id: UUID, limit: int = 100) -> List[Message]:
        try:
            query = (
                select(Message)
                .where(Message.user_id == user_id)
                .order_by(Message.scheduled_date.asc())
                .limit(limit)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            self.logger.error(f"Error listing messages for owner {user_id}: {e}")
            raise

    async def update_status(self, message_id: UUID, status: str) -> bool:
        try:
            result = await self.session.execute(
                update(Message)
                .where(Message.id == message_id)
                .values(status=status, updated_at=func.now())
            )
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error updating message {message_id} status to {status}: {e}")
            raise

    async def mark_delivered(self, message_id: UUID, delivered_at: datetime) -> bool:
        try:
            result = await self.session.execute(
                update(Message)
                .where(Message.id == message_id)
                .values(status=STATUS_DELIVERED, delivered_at=delivered_at, updated_at=func.now())
            )
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error marking message {message_id} delivered: {e}")
            raise

    async def find_status_drift(self, limit: int = 500) -> List[Message]:
        """Messages not marked delivered although a delivered attempt exists."""
        try:
            delivered_attempt = exists().where(
                DeliveryAttempt.message_id == Message.id,
                DeliveryAttempt.status == ATTEMPT_DELIVERED,
            )
            query = (
                select(Message)
                .where(Message.status != STATUS_DELIVERED, delivered_attempt)
                .limit(limit)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            self.logger.error(f"Error finding message status drift: {e}")
            raise
