from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.dialects.postgresql import insert

from ftrmsg.models.batch_lock import BatchLock, SINGLETON_KEY
from .base_repository import BaseRepository


class BatchLockRepository(BaseRepository[BatchLock]):
    """Repository for the single-row batch lock table."""

    def __init__(self, session: AsyncSession):
        super().__init__(BatchLock, session)

    async def try_insert(self) -> Optional[UUID]:
        """
        Insert the singleton lock row if absent.

        Returns the new row id, or None when a row already exists.
        """
        try:
            stmt = (
                insert(BatchLock)
                .values(singleton=SINGLETON_KEY)
                .on_conflict_do_nothing(index_elements=["singleton"])
                .returning(BatchLock.id)
            )
            result = await self.session.execute(stmt)
            return result.scalar()
        except Exception as e:
            self.logger.error(f"Error inserting batch lock: {e}")
            raise

    async def delete_by_id(self, lock_id: UUID) -> bool:
        try:
            result = await self.session.execute(delete(BatchLock).where(BatchLock.id == lock_id))
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error deleting batch lock {lock_id}: {e}")
            raise

    async def get_current(self) -> Optional[BatchLock]:
        try:
            result = await self.session.execute(
                select(BatchLock).where(BatchLock.singleton == SINGLETON_KEY)
            )
            return result.scalars().first()
        except Exception as e:
            self.logger.error(f"Error reading batch lock: {e}")
            raise
