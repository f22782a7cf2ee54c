from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update, func

from ftrmsg.models.payment import Payment, PAYMENT_COMPLETED, PAYMENT_FAILED
from .base_repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """Repository for Payment operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Payment, session)

    async def get_by_checkout_session_id(self, session_id: str) -> Optional[Payment]:
        return await self.get_by_field("stripe_checkout_session_id", session_id)

    async def mark_completed(self, payment_id: UUID, payment_intent_id: Optional[str] = None) -> bool:
        values = {"status": PAYMENT_COMPLETED, "updated_at": func.now()}
        if payment_intent_id:
            values["stripe_payment_intent_id"] = payment_intent_id
        try:
            result = await self.session.execute(
                update(Payment).where(Payment.id == payment_id).values(**values)
            )
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error marking payment {payment_id} completed: {e}")
            raise

    async def mark_failed(self, payment_id: UUID, error_message: str) -> bool:
        try:
            result = await self.session.execute(
                update(Payment)
                .where(Payment.id == payment_id)
                .values(status=PAYMENT_FAILED, error_message=error_message, updated_at=func.now())
            )
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error marking payment {payment_id} failed: {e}")
            raise
