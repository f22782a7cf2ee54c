from typing import Generic, TypeVar, Type, Optional, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
import logging

from ftrmsg.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Row access for one table.

    Repositories never commit. The calling service owns the transaction and
    decides when a write is committed or rolled back.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session
        self.logger = logging.getLogger(self.__class__.__module__)

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    async def get_by_id(self, record_id: Any) -> Optional[ModelType]:
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == record_id))
            return result.scalars().first()
        except Exception as e:
            self.logger.error(f"Error reading {self.table_name} row {record_id}: {e}")
            raise

    async def get_by_field(self, field: str, value: Any) -> Optional[ModelType]:
        """First row whose `field` equals `value`."""
        column = getattr(self.model, field, None)
        if column is None:
            raise ValueError(f"{self.table_name} has no column {field}")
        try:
            result = await self.session.execute(select(self.model).where(column == value))
            return result.scalars().first()
        except Exception as e:
            self.logger.error(f"Error reading {self.table_name} by {field}: {e}")
            raise

    async def create(self, values: Dict[str, Any]) -> ModelType:
        """Insert a row and flush so server defaults and the id are populated."""
        record = self.model(**values)
        try:
            self.session.add(record)
            await self.session.flush()
            await self.session.refresh(record)
        except Exception as e:
            self.logger.error(f"Error inserting into {self.table_name}: {e}")
            raise
        return record

    async def delete(self, record_id: Any) -> bool:
        try:
            result = await self.session.execute(delete(self.model).where(self.model.id == record_id))
        except Exception as e:
            self.logger.error(f"Error deleting {self.table_name} row {record_id}: {e}")
            raise
        return result.rowcount > 0
