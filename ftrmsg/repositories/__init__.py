from .base_repository import BaseRepository
from .profile_repository import ProfileRepository
from .message_repository import MessageRepository
from .delivery_attempt_repository import DeliveryAttemptRepository
from .batch_lock_repository import BatchLockRepository
from .payment_repository import PaymentRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
    "MessageRepository",
    "DeliveryAttemptRepository",
    "BatchLockRepository",
    "PaymentRepository",
]
