"""
Idempotency ledger over the delivery_logs table.

The ledger, not Message.status, decides whether a message was delivered.
`is_delivered` must be consulted before every send, and `begin_attempt`
must be written before the send so a crash mid-send leaves a trace.
"""
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.errors import LedgerWriteError
from ftrmsg.core.logging import get_logger
from ftrmsg.repositories.delivery_attempt_repository import DeliveryAttemptRepository

logger = get_logger(__name__)


class DeliveryLedger:

    def __init__(self, session: AsyncSession):
        self.session = session
        self.attempt_repo = DeliveryAttemptRepository(session)

    async def is_delivered(self, message_id: UUID) -> bool:
        try:
            return await self.attempt_repo.has_delivered(message_id)
        except Exception:
            await self.session.rollback()
            raise

    async def begin_attempt(self, message_id: UUID) -> int:
        """Record a pending attempt numbered one past the existing count."""
        try:
            attempt_number = await self.attempt_repo.count_for_message(message_id) + 1
            await self.attempt_repo.insert_pending(message_id, attempt_number)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            raise LedgerWriteError(f"Failed to create delivery log: {e}") from e

        logger.debug("Delivery attempt started", message_id=str(message_id), attempt=attempt_number)
        return attempt_number

    async def complete_attempt(
        self, message_id: UUID, attempt_number: int, provider_message_id: Optional[str]
    ) -> None:
        await self._write(
            "complete",
            message_id,
            attempt_number,
            self.attempt_repo.complete(message_id, attempt_number, provider_message_id),
        )

    async def fail_attempt(self, message_id: UUID, attempt_number: int, error_detail: str) -> None:
        await self._write(
            "fail",
            message_id,
            attempt_number,
            self.attempt_repo.fail(message_id, attempt_number, error_detail),
        )

    async def _write(self, operation: str, message_id: UUID, attempt_number: int, statement) -> None:
        try:
            matched = await statement
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Delivery ledger write failed",
                alert="DELIVERY_LEDGER_WRITE_FAILED",
                message_id=str(message_id),
                attempt=attempt_number,
                operation=operation,
                error=str(e)
            )
            raise LedgerWriteError(f"Failed to {operation} attempt {attempt_number}: {e}") from e

        if not matched:
            logger.warning(
                "Delivery ledger write matched no attempt row",
                message_id=str(message_id),
                attempt=attempt_number,
                operation=operation
            )
