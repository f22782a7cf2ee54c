"""
Local failure taxonomy.

Per-message errors (ValidationError, TransportError) are caught by the
orchestrator and turned into ledger/status writes. Run-level errors
(SelectionError) abort the run but never skip the lock release.
"""
from typing import List, Optional


class DeliveryError(Exception):
    """Base class for every error raised by this service."""


class ValidationError(DeliveryError):
    """A message cannot be composed into a sendable email."""


class TransportError(DeliveryError):
    """The email provider rejected or failed a send."""


class LedgerWriteError(DeliveryError):
    """Attempt bookkeeping or the message status mirror could not be written."""


class SelectionError(DeliveryError):
    """Due messages could not be queried."""


class LockReleaseError(DeliveryError):
    """The batch lock row could not be deleted."""


class SignatureVerificationError(DeliveryError):
    """An inbound provider event failed signature verification."""


class BlobStoreError(DeliveryError):
    """The blob store rejected an upload, delete or signing request."""


class PaymentProviderError(DeliveryError):
    """The payment provider rejected an API call."""


class FreeTierExhausted(DeliveryError):
    """The owner's single free message has already been used."""


class TierRestriction(DeliveryError):
    """The owner's tier does not allow the requested operation."""


class QuotaExceeded(DeliveryError):
    """The upload would exceed the owner's storage limit."""


class SagaFailed(DeliveryError):
    """A forward step failed; compensations ran in reverse."""

    def __init__(self, message: str, step: str, cause: Exception, compensation_failures: Optional[List] = None):
        super().__init__(message)
        self.step = step
        self.cause = cause
        self.compensation_failures = compensation_failures or []

    @property
    def needs_reconciliation(self) -> bool:
        return bool(self.compensation_failures)


class QuotaUpdateError(DeliveryError):
    """The storage counter delta could not be applied."""


class PaymentRecordError(DeliveryError):
    """A payment confirmation could not be recorded; the provider should retry."""
