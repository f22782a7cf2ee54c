from .base_service import BaseService
from .batch_mutex import BatchMutex, LockHandle
from .delivery_ledger import DeliveryLedger
from .message_selector import MessageSelector
from .delivery_composer import ComposedEmail, compose
from .email_transport import ResendTransport, SendResult
from .blob_store import SupabaseBlobStore
from .delivery_service import DeliveryService, BatchResult, BatchSkipped
from .message_service import MessageService
from .stripe_client import StripeClient
from .checkout_service import CheckoutService
from .payment_webhook_service import PaymentWebhookService
from .retention_service import RetentionService
from .reconciliation_service import ReconciliationService

__all__ = [
    "BaseService",
    "BatchMutex",
    "LockHandle",
    "DeliveryLedger",
    "MessageSelector",
    "ComposedEmail",
    "compose",
    "ResendTransport",
    "SendResult",
    "SupabaseBlobStore",
    "DeliveryService",
    "BatchResult",
    "BatchSkipped",
    "MessageService",
    "StripeClient",
    "CheckoutService",
    "PaymentWebhookService",
    "RetentionService",
    "ReconciliationService",
]
