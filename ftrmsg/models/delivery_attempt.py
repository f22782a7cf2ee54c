from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped
from typing import Optional
import uuid

from .base import Base

ATTEMPT_PENDING = "pending"
ATTEMPT_DELIVERED = "delivered"
ATTEMPT_SENT = "sent"
ATTEMPT_BOUNCED = "bounced"
ATTEMPT_FAILED = "failed"


class DeliveryAttempt(Base):
    """Append-only idempotency ledger entry (no updated_at, rows are swept by age)."""

    __tablename__ = "delivery_logs"
    __table_args__ = (
        UniqueConstraint("message_id", "attempt_number", name="uq_delivery_logs_message_attempt"),
        CheckConstraint(
            "status IN ('pending', 'delivered', 'sent', 'bounced', 'failed')",
            name="ck_delivery_logs_status"
        ),
    )

    id: Mapped[uuid.UUID] = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    message_id: Mapped[uuid.UUID] = Column(
        UUID(as_uuid=True),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    attempt_number: Mapped[int] = Column(Integer, nullable=False, default=1)
    status: Mapped[str] = Column(String(20), nullable=False, index=True)
    email_provider_id: Mapped[Optional[str]] = Column(String(255), nullable=True)
    error_message: Mapped[Optional[str]] = Column(Text, nullable=True)
    created_at: Mapped[datetime] = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Relationships
    message: Mapped["Message"] = relationship("Message", back_populates="attempts")

    def __repr__(self) -> str:
        return f"<DeliveryAttempt(message_id={self.message_id}, attempt={self.attempt_number}, status='{self.status}')>"
