from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func

from ftrmsg.models.delivery_attempt import (
    DeliveryAttempt,
    ATTEMPT_PENDING,
    ATTEMPT_DELIVERED,
    ATTEMPT_FAILED,
)
from .base_repository import BaseRepository


class DeliveryAttemptRepository(BaseRepository[DeliveryAttempt]):
    """Repository for the delivery_logs idempotency ledger."""

    def __init__(self, session: AsyncSession):
        super().__init__(DeliveryAttempt, session)

    async def has_delivered(self, message_id: UUID) -> bool:
        try:
            query = (
                select(DeliveryAttempt.id)
                .where(
                    DeliveryAttempt.message_id == message_id,
                    DeliveryAttempt.status == ATTEMPT_DELIVERED,
                )
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalar() is not None
        except Exception as e:
            self.logger.error(f"Error checking delivered attempt for {message_id}: {e}")
            raise

    async def count_for_message(self, message_id: UUID) -> int:
        try:
            query = select(func.count(DeliveryAttempt.id)).where(
                DeliveryAttempt.message_id == message_id
            )
            result = await self.session.execute(query)
            return result.scalar() or 0
        except Exception as e:
            self.logger.error(f"Error counting attempts for {message_id}: {e}")
            raise

    async def insert_pending(self, message_id: UUID, attempt_number: int) -> DeliveryAttempt:
        """Insert a pending attempt; the unique (message_id, attempt_number) key rejects duplicates."""
        return await self.create({
            "message_id": message_id,
            "attempt_number": attempt_number,
            "status": ATTEMPT_PENDING,
        })

    async def complete(self, message_id: UUID, attempt_number: int, provider_id: Optional[str]) -> bool:
        try:
            result = await self.session.execute(
                update(DeliveryAttempt)
                .where(
                    DeliveryAttempt.message_id == message_id,
                    DeliveryAttempt.attempt_number == attempt_number,
                )
                .values(status=ATTEMPT_DELIVERED, email_provider_id=provider_id)
            )
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error completing attempt {attempt_number} for {message_id}: {e}")
            raise

    async def fail(self, message_id: UUID, attempt_number: int, error_message: str) -> bool:
        try:
            result = await self.session.execute(
                update(DeliveryAttempt)
                .where(
                    DeliveryAttempt.message_id == message_id,
                    DeliveryAttempt.attempt_number == attempt_number,
                )
                .values(status=ATTEMPT_FAILED, error_message=error_message)
            )
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error failing attempt {attempt_number} for {message_id}: {e}")
            raise

    async def delete_older_than(self, cutoff: datetime) -> int:
        try:
            result = await self.session.execute(
                delete(DeliveryAttempt).where(DeliveryAttempt.created_at < cutoff)
            )
            return result.rowcount or 0
        except Exception as e:
            self.logger.error(f"Error deleting delivery logs older than {cutoff}: {e}")
            raise
