from datetime import date, datetime
from sqlalchemy import Column, String, Text, BigInteger, Integer, Date, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped
from typing import List, Optional
import uuid

from .base import BaseModel

MAX_MESSAGE_LENGTH = 4000

STATUS_PENDING = "pending"
STATUS_DELIVERED = "delivered"
STATUS_FAILED = "failed"


class Message(BaseModel):
    """A time-locked message waiting for its scheduled delivery date."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(f"char_length(message_text) <= {MAX_MESSAGE_LENGTH}", name="ck_messages_text_length"),
        CheckConstraint("status IN ('pending', 'delivered', 'failed')", name="ck_messages_status"),
        Index(
            "idx_messages_pending_delivery",
            "scheduled_date",
            "status",
            postgresql_where="status = 'pending'",
        ),
    )

    id: Mapped[uuid.UUID] = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = Column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    message_text: Mapped[str] = Column(Text, nullable=False, default="")
    video_storage_path: Mapped[Optional[str]] = Column(Text, nullable=True)
    video_size_bytes: Mapped[int] = Column(BigInteger, nullable=False, default=0, server_default="0")
    video_duration_seconds: Mapped[int] = Column(Integer, nullable=False, default=0, server_default="0")
    delivery_email: Mapped[str] = Column(String(320), nullable=False)
    scheduled_date: Mapped[date] = Column(Date, nullable=False)
    status: Mapped[str] = Column(String(20), nullable=False, default=STATUS_PENDING, server_default=STATUS_PENDING)
    delivery_token: Mapped[uuid.UUID] = Column(UUID(as_uuid=True), nullable=False, default=uuid.uuid4, index=True)
    delivered_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    owner: Mapped["Profile"] = relationship("Profile", back_populates="messages")
    attempts: Mapped[List["DeliveryAttempt"]] = relationship(
        "DeliveryAttempt",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="DeliveryAttempt.attempt_number"
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, scheduled_date={self.scheduled_date}, status='{self.status}')>"
