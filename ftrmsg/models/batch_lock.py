from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, CheckConstraint, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped
import uuid

from .base import Base

SINGLETON_KEY = 1


class BatchLock(Base):
    """
    Singleton row marking an active delivery run.

    The unique `singleton` column (always 1) is what makes acquisition an
    atomic create-if-absent: a second insert conflicts instead of racing.
    """

    __tablename__ = "delivery_batch_locks"
    __table_args__ = (
        UniqueConstraint("singleton", name="uq_delivery_batch_locks_singleton"),
        CheckConstraint(f"singleton = {SINGLETON_KEY}", name="ck_delivery_batch_locks_singleton"),
    )

    id: Mapped[uuid.UUID] = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    singleton: Mapped[int] = Column(Integer, nullable=False, default=SINGLETON_KEY, server_default=str(SINGLETON_KEY))
    locked_at: Mapped[datetime] = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<BatchLock(id={self.id}, locked_at={self.locked_at})>"
