from sqlalchemy import Column, String, BigInteger, Boolean, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped
from typing import List, Optional
import uuid

from .base import BaseModel

TIER_FREE = "free"
TIER_PRO = "pro"


class Profile(BaseModel):
    """Message owner; carries tier flags and the storage quota counters."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("tier IN ('free', 'pro')", name="ck_profiles_tier"),
        CheckConstraint("storage_used_bytes >= 0", name="ck_profiles_storage_used_nonneg"),
    )

    id: Mapped[uuid.UUID] = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = Column(String(255), nullable=False)
    tier: Mapped[str] = Column(String(10), nullable=False, default=TIER_FREE, server_default=TIER_FREE)
    storage_used_bytes: Mapped[int] = Column(BigInteger, nullable=False, default=0, server_default="0")
    storage_limit_bytes: Mapped[int] = Column(BigInteger, nullable=False, default=0, server_default="0")
    free_message_used: Mapped[bool] = Column(Boolean, nullable=False, default=False, server_default="false")
    stripe_customer_id: Mapped[Optional[str]] = Column(String(255), nullable=True)

    # Relationships
    messages: Mapped[List["Message"]] = relationship(
        "Message",
        back_populates="owner",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, tier='{self.tier}')>"

    @property
    def is_pro(self) -> bool:
        return self.tier == TIER_PRO

    @property
    def is_free(self) -> bool:
        return not self.tier or self.tier == TIER_FREE

    @property
    def remaining_storage_bytes(self) -> int:
        return max(0, (self.storage_limit_bytes or 0) - (self.storage_used_bytes or 0))
