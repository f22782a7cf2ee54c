import re
from datetime import date, datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ftrmsg.models.message import MAX_MESSAGE_LENGTH

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class MessageCreate(BaseModel):
    """Schema for composing a new time-locked message."""

    message_text: str = Field(..., description="Message body")
    scheduled_date: date = Field(..., description="Delivery date (must be in the future)")
    delivery_email: str = Field(..., max_length=320, description="Recipient address")
    video_storage_path: Optional[str] = Field(None, description="Path returned by the video upload")
    video_size_bytes: int = Field(default=0, ge=0)
    video_duration_seconds: int = Field(default=0, ge=0)

    @field_validator("message_text")
    @classmethod
    def validate_message_text(cls, v):
        """Validate message text."""
        text = v.strip()
        if not text:
            raise ValueError('Please enter a message')
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValueError(f'Message must be {MAX_MESSAGE_LENGTH} characters or less')
        return text

    @field_validator("delivery_email")
    @classmethod
    def validate_delivery_email(cls, v):
        """Validate recipient email."""
        email = v.strip()
        if not email:
            raise ValueError('Please enter an email address')
        if not EMAIL_PATTERN.match(email):
            raise ValueError('Please enter a valid email address')
        return email


class MessageResponse(BaseModel):
    """Message as shown to its owner."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    message_text: str
    scheduled_date: date
    delivery_email: str
    status: str
    video_storage_path: Optional[str] = None
    video_size_bytes: int = 0
    video_duration_seconds: int = 0
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class VideoUploadResponse(BaseModel):
    video_storage_path: str
    video_size_bytes: int
