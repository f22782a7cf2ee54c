from datetime import datetime
from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import Mapped, declared_attr

from ftrmsg.core.database import Base


class CreatedAtMixin:
    """Server-assigned creation time; the only timestamp on append-only tables."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class TimestampMixin(CreatedAtMixin):
    """Adds a server-maintained last-modified time."""

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class BaseModel(Base, TimestampMixin):
    """Mutable entity rows (profiles, messages, payments)."""

    __abstract__ = True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={getattr(self, 'id', None)})>"
