from sqlalchemy import Column, String, Integer, BigInteger, Text, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped
from typing import Optional
import uuid

from .base import BaseModel

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

PRODUCT_PRO_UPGRADE = "pro_upgrade"


class Payment(BaseModel):
    """Payment intent record keyed by the provider's checkout-session id."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'refunded')",
            name="ck_payments_status"
        ),
        CheckConstraint(
            "product_type IN ('pro_upgrade', 'storage_addon')",
            name="ck_payments_product_type"
        ),
    )

    id: Mapped[uuid.UUID] = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[Optional[uuid.UUID]] = Column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    stripe_payment_intent_id: Mapped[Optional[str]] = Column(String(255), nullable=True, unique=True)
    stripe_checkout_session_id: Mapped[str] = Column(String(255), nullable=False, unique=True, index=True)
    amount_cents: Mapped[int] = Column(Integer, nullable=False)
    currency: Mapped[str] = Column(String(3), nullable=False, default="usd")
    product_type: Mapped[str] = Column(String(30), nullable=False, default=PRODUCT_PRO_UPGRADE)
    storage_bytes_added: Mapped[int] = Column(BigInteger, nullable=False, default=0, server_default="0")
    status: Mapped[str] = Column(String(20), nullable=False, default=PAYMENT_PENDING, index=True)
    error_message: Mapped[Optional[str]] = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, session='{self.stripe_checkout_session_id}', status='{self.status}')>"

    @property
    def is_completed(self) -> bool:
        return self.status == PAYMENT_COMPLETED
