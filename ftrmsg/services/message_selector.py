from datetime import date
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.config import settings
from ftrmsg.core.errors import SelectionError
from ftrmsg.models.message import Message
from ftrmsg.repositories.message_repository import MessageRepository

POLICY_TERMINAL = "terminal"
POLICY_RETRY = "retry"


class MessageSelector:
    """Read-only query for one bounded page of due messages."""

    def __init__(
        self,
        session: AsyncSession,
        policy: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ):
        self.message_repo = MessageRepository(session)
        self.policy = policy or settings.FAILED_MESSAGE_POLICY
        if self.policy not in (POLICY_TERMINAL, POLICY_RETRY):
            raise ValueError(f"Unknown failed message policy: {self.policy}")
        self.max_attempts = max_attempts or settings.DELIVERY_MAX_ATTEMPTS

    @property
    def retry_failed(self) -> bool:
        return self.policy == POLICY_RETRY

    async def select_due(self, batch_size: int, as_of: date) -> List[Message]:
        """
        Due messages scheduled on or before `as_of`, at most `batch_size`.

        Raises:
            SelectionError: the query itself failed
        """
        try:
            return await self.message_repo.select_due(
                as_of=as_of,
                limit=batch_size,
                retry_failed=self.retry_failed,
                max_attempts=self.max_attempts,
            )
        except Exception as e:
            raise SelectionError(f"Failed to query messages: {e}") from e

    async def count_due(self, as_of: date) -> int:
        try:
            return await self.message_repo.count_due(
                as_of=as_of,
                retry_failed=self.retry_failed,
                max_attempts=self.max_attempts,
            )
        except Exception as e:
            raise SelectionError(f"Failed to count messages: {e}") from e
