from abc import ABC
from typing import Any, Awaitable, Callable
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.logging import get_logger
from ftrmsg.core.redis_client import redis_client
from ftrmsg.repositories import (
    ProfileRepository,
    MessageRepository,
    DeliveryAttemptRepository,
    PaymentRepository,
)


class BaseService(ABC):
    """Base service class with common functionality."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = get_logger(self.__class__.__name__)

        # Initialize repositories
        self.profile_repo = ProfileRepository(session)
        self.message_repo = MessageRepository(session)
        self.attempt_repo = DeliveryAttemptRepository(session)
        self.payment_repo = PaymentRepository(session)

        # Redis client for the job event log
        self.redis = redis_client

    async def commit(self):
        """Commit the current transaction."""
        try:
            await self.session.commit()
        except Exception as e:
            self.logger.error(f"Error committing transaction: {e}")
            await self.session.rollback()
            raise

    async def rollback(self):
        """Rollback the current transaction."""
        try:
            await self.session.rollback()
        except Exception as e:
            self.logger.error(f"Error rolling back transaction: {e}")
            raise

    async def write(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run one write and commit it on its own; roll back if it fails."""
        try:
            result = await operation()
            await self.commit()
            return result
        except Exception:
            await self.rollback()
            raise
