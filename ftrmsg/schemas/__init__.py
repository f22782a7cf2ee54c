from .common import ErrorResponse
from .delivery import (
    BatchRunResponse,
    BatchSkippedResponse,
    DeliveryStatusResponse,
    CleanupResponse,
    ReconcileResponse,
)
from .message import MessageCreate, MessageResponse, VideoUploadResponse
from .payment import CheckoutRequest, CheckoutResponse, WebhookAck

__all__ = [
    "ErrorResponse",
    "BatchRunResponse",
    "BatchSkippedResponse",
    "DeliveryStatusResponse",
    "CleanupResponse",
    "ReconcileResponse",
    "MessageCreate",
    "MessageResponse",
    "VideoUploadResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "WebhookAck",
]
