from .profile import Profile
from .message import Message
from .delivery_attempt import DeliveryAttempt
from .batch_lock import BatchLock
from .payment import Payment

__all__ = [
    "Profile",
    "Message",
    "DeliveryAttempt",
    "BatchLock",
    "Payment",
]
