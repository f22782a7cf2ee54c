"""
Exclusive lease over the single-row batch lock table.

At most one delivery run holds the lease. Acquisition is one
create-if-absent statement, so two concurrent callers can never both win.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.errors import LockReleaseError
from ftrmsg.core.logging import get_logger
from ftrmsg.models.batch_lock import BatchLock
from ftrmsg.repositories.batch_lock_repository import BatchLockRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class LockHandle:
    lock_id: UUID
    acquired_at: datetime


class BatchMutex:

    def __init__(
        self,
        session: AsyncSession,
        fallback_session_factory: Optional[Callable[[], AsyncSession]] = None,
    ):
        self.session = session
        self.lock_repo = BatchLockRepository(session)
        # Used for the second release attempt when the run's own session is unusable
        self.fallback_session_factory = fallback_session_factory

    async def acquire(self) -> Optional[LockHandle]:
        """
        Try to take the lease.

        Returns:
            LockHandle when acquired, None when another run already holds it
        """
        try:
            lock_id = await self.lock_repo.try_insert()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        if lock_id is None:
            logger.info("Batch lock already held, skipping run")
            return None

        handle = LockHandle(lock_id=lock_id, acquired_at=datetime.now(timezone.utc))
        logger.info("Batch lock acquired", lock_id=str(lock_id))
        return handle

    async def release(self, handle: LockHandle) -> None:
        """
        Delete the lock row. Releasing a lock that is already gone is a no-op.

        Raises:
            LockReleaseError: both the normal and the fallback release failed
        """
        try:
            await self._delete(self.session, handle.lock_id)
            logger.info("Batch lock released", lock_id=str(handle.lock_id))
            return
        except Exception as e:
            first_error = e
            logger.warning(
                "Batch lock release failed, retrying on a fresh session",
                lock_id=str(handle.lock_id),
                error=str(e)
            )

        if self.fallback_session_factory is not None:
            try:
                async with self.fallback_session_factory() as session:
                    await self._delete(session, handle.lock_id)
                logger.info("Batch lock released on fallback session", lock_id=str(handle.lock_id))
                return
            except Exception as e:
                first_error = e

        logger.critical(
            "Batch lock is stuck and must be deleted manually",
            alert="BATCH_LOCK_RELEASE_FAILED",
            lock_id=str(handle.lock_id),
            timestamp=datetime.now(timezone.utc).isoformat(),
            error=str(first_error)
        )
        raise LockReleaseError(f"Failed to release batch lock {handle.lock_id}: {first_error}") from first_error

    async def current(self) -> Optional[BatchLock]:
        """The lock row if a run is in progress (or a lock is stuck)."""
        return await self.lock_repo.get_current()

    @staticmethod
    async def _delete(session: AsyncSession, lock_id: UUID) -> None:
        try:
            await BatchLockRepository(session).delete_by_id(lock_id)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
