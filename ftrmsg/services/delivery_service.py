"""
Batch orchestrator: one scheduled delivery run.

Idle -> lock acquired -> selecting -> processing -> released. Messages are
sent strictly one after another with a fixed pause between sends, and the
run stops taking new messages once its deadline has passed. The lock is
released in a `finally` on every path.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.config import settings
from ftrmsg.core.database import AsyncSessionLocal
from ftrmsg.core.errors import LedgerWriteError, LockReleaseError
from ftrmsg.core.job_logger import log_job_event
from ftrmsg.models.message import Message, STATUS_DELIVERED, STATUS_FAILED
from .base_service import BaseService
from .batch_mutex import BatchMutex, LockHandle
from .blob_store import SupabaseBlobStore, get_blob_store
from .delivery_composer import compose
from .delivery_ledger import DeliveryLedger
from .email_transport import ResendTransport, get_email_transport
from .message_selector import MessageSelector

JOB_NAME = "delivery_batch"
CONCURRENT_EXECUTION = "concurrent execution"


class Delivered:
    def __init__(self, provider_message_id: Optional[str] = None):
        self.provider_message_id = provider_message_id

    def __repr__(self) -> str:
        return f"Delivered({self.provider_message_id!r})"


class Failed:
    def __init__(self, reason: str):
        self.reason = reason

    def __repr__(self) -> str:
        return f"Failed({self.reason!r})"


class Skipped:
    def __repr__(self) -> str:
        return "Skipped()"


DeliveryOutcome = Union[Delivered, Failed, Skipped]


@dataclass
class BatchResult:
    processed: int = 0
    delivered: int = 0
    failed: int = 0
    stopped_early: bool = False
    skipped: int = 0

    def record(self, outcome: DeliveryOutcome) -> None:
        if isinstance(outcome, Delivered):
            self.delivered += 1
        elif isinstance(outcome, Failed):
            self.failed += 1
        else:
            self.skipped += 1

    def to_response(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "delivered": self.delivered,
            "failed": self.failed,
            "stoppedEarly": self.stopped_early,
        }


@dataclass(frozen=True)
class DueMessage:
    """
    Column values of one selected message, copied out of the session.

    A rollback expires every row the session loaded; these copies stay readable.
    """

    id: uuid.UUID
    delivery_email: Optional[str]
    message_text: Optional[str]
    video_storage_path: Optional[str]
    status: str
    delivered_at: Optional[datetime]

    @classmethod
    def of(cls, message: Message) -> "DueMessage":
        return cls(
            id=message.id,
            delivery_email=message.delivery_email,
            message_text=message.message_text,
            video_storage_path=message.video_storage_path,
            status=message.status,
            delivered_at=message.delivered_at,
        )


@dataclass
class BatchSkipped:
    reason: str = CONCURRENT_EXECUTION

    def to_response(self) -> Dict[str, Any]:
        return {"skipped": True, "reason": self.reason}


class DeliveryService(BaseService):
    """Runs delivery batches and reports delivery status."""

    def __init__(
        self,
        session: AsyncSession,
        transport: Optional[ResendTransport] = None,
        blob_store: Optional[SupabaseBlobStore] = None,
        mutex: Optional[BatchMutex] = None,
        selector: Optional[MessageSelector] = None,
        ledger: Optional[DeliveryLedger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        today: Optional[Callable[[], date]] = None,
    ):
        super().__init__(session)
        self.transport = transport or get_email_transport()
        self.blob_store = blob_store or get_blob_store()
        self.mutex = mutex or BatchMutex(session, fallback_session_factory=AsyncSessionLocal)
        self.selector = selector or MessageSelector(session)
        self.ledger = ledger or DeliveryLedger(session)
        self.sleep = sleep
        self.clock = clock
        self.today = today or (lambda: datetime.now(timezone.utc).date())

        self.batch_size = settings.DELIVERY_BATCH_SIZE
        self.timeout_seconds = settings.DELIVERY_TIMEOUT_SECONDS
        self.rate_limit_seconds = settings.DELIVERY_RATE_LIMIT_SECONDS
        self.from_email = settings.FROM_EMAIL

    async def run_batch(self) -> Union[BatchResult, BatchSkipped]:
        """
        Execute one delivery run.

        Returns:
            BatchResult for a normal (possibly partial) run, BatchSkipped when
            another run holds the lock

        Raises:
            SelectionError and any other run-level failure, after the lock
            has been released
        """
        run_id = uuid.uuid4().hex
        handle = await self.mutex.acquire()
        if handle is None:
            await log_job_event(JOB_NAME, "run_skipped", run_id, {"reason": CONCURRENT_EXECUTION})
            return BatchSkipped()

        log = self.logger.with_context(run_id=run_id, lock_id=str(handle.lock_id))
        await log_job_event(JOB_NAME, "run_started", run_id)

        try:
            as_of = self.today()
            messages = await self.selector.select_due(self.batch_size, as_of)
            log.info("Selected due messages", count=len(messages), as_of=as_of.isoformat())

            if not messages:
                result = BatchResult()
            else:
                result = await self.process_batch(messages)
        except Exception as e:
            log.error("Delivery run failed", error=str(e), exc_info=True)
            await log_job_event(JOB_NAME, "run_failed", run_id, {"error": str(e)})
            raise
        finally:
            await self._release(handle)

        log.info(
            "Delivery run completed",
            processed=result.processed,
            delivered=result.delivered,
            failed=result.failed,
            skipped=result.skipped,
            stopped_early=result.stopped_early
        )
        await log_job_event(JOB_NAME, "run_completed", run_id, result.to_response())
        return result

    async def process_batch(self, messages: List[Message]) -> BatchResult:
        """Deliver messages in order, pausing between sends, until done or out of time."""
        result = BatchResult()
        due = [DueMessage.of(message) for message in messages]
        start = self.clock()

        for index, message in enumerate(due):
            elapsed = self.clock() - start
            if elapsed > self.timeout_seconds:
                result.stopped_early = True
                self.logger.warning(
                    "Delivery deadline reached, leaving remaining messages pending",
                    elapsed_seconds=round(elapsed, 3),
                    remaining=len(due) - index
                )
                break

            result.processed += 1
            outcome = await self.process_message(message)
            result.record(outcome)

            if index < len(due) - 1:
                await self.sleep(self.rate_limit_seconds)

        return result

    async def process_message(self, message: DueMessage) -> DeliveryOutcome:
        """Deliver one message. Per-message errors become a Failed outcome, never an exception."""
        try:
            if await self.ledger.is_delivered(message.id):
                self.logger.info("Message already delivered, skipping", message_id=str(message.id))
                await self._repair_status(message)
                return Skipped()
            attempt_number = await self.ledger.begin_attempt(message.id)
        except Exception as e:
            return await self._record_failure(message, None, e)

        try:
            video_url = await self._resolve_video_url(message)
            email = compose(message, video_url)
            sent = await self.transport.send(
                message.delivery_email, email.subject, email.html, self.from_email
            )
        except Exception as e:
            return await self._record_failure(message, attempt_number, e)

        await self._record_success(message, attempt_number, sent.provider_message_id)
        return Delivered(sent.provider_message_id)

    async def get_status(self) -> Dict[str, Any]:
        lock = await self.mutex.current()
        return {
            "lock_held": lock is not None,
            "locked_at": lock.locked_at.isoformat() if lock is not None and lock.locked_at else None,
            "due_pending": await self.selector.count_due(self.today()),
            "batch_size": self.batch_size,
            "timeout_seconds": self.timeout_seconds,
        }

    async def _resolve_video_url(self, message: DueMessage) -> Optional[str]:
        if not message.video_storage_path:
            return None
        try:
            return await self.blob_store.create_signed_url(
                message.video_storage_path, settings.SIGNED_URL_TTL_SECONDS
            )
        except Exception as e:
            self.logger.warning(
                "Signed video URL unavailable, sending without video",
                message_id=str(message.id),
                error=str(e)
            )
            return None

    async def _record_success(self, message: DueMessage, attempt_number: int, provider_id: Optional[str]) -> None:
        try:
            await self.ledger.complete_attempt(message.id, attempt_number, provider_id)
        except LedgerWriteError:
            # Already logged; the status write below still blocks a resend
            pass

        delivered_at = datetime.now(timezone.utc)
        try:
            await self.write(lambda: self.message_repo.mark_delivered(message.id, delivered_at))
        except Exception as e:
            self.logger.error(
                "Message delivered but status update failed",
                alert="MESSAGE_STATUS_UPDATE_FAILED",
                message_id=str(message.id),
                error=str(e)
            )
            return
        self.logger.info(
            "Message delivered",
            message_id=str(message.id),
            attempt=attempt_number,
            provider_message_id=provider_id
        )

    async def _record_failure(
        self, message: DueMessage, attempt_number: Optional[int], error: Exception
    ) -> Failed:
        reason = str(error) or error.__class__.__name__
        self.logger.warning(
            "Message delivery failed",
            message_id=str(message.id),
            attempt=attempt_number,
            error_type=error.__class__.__name__,
            error=reason
        )

        if attempt_number is not None:
            try:
                await self.ledger.fail_attempt(message.id, attempt_number, reason)
            except LedgerWriteError:
                # Logged by the ledger
                pass

        try:
            await self.write(lambda: self.message_repo.update_status(message.id, STATUS_FAILED))
        except Exception as e:
            self.logger.error(
                "Failed to mark message failed",
                alert="MESSAGE_STATUS_UPDATE_FAILED",
                message_id=str(message.id),
                error=str(e)
            )
        return Failed(reason)

    async def _repair_status(self, message: DueMessage) -> None:
        """Bring the status mirror back in line with the ledger."""
        if message.status == STATUS_DELIVERED:
            return
        try:
            await self.write(
                lambda: self.message_repo.mark_delivered(
                    message.id, message.delivered_at or datetime.now(timezone.utc)
                )
            )
            self.logger.info("Repaired message status from ledger", message_id=str(message.id))
        except Exception as e:
            self.logger.error(
                "Status read repair failed",
                alert="MESSAGE_STATUS_UPDATE_FAILED",
                message_id=str(message.id),
                error=str(e)
            )

    async def _release(self, handle: LockHandle) -> None:
        try:
            await self.mutex.release(handle)
        except LockReleaseError:
            # Logged as critical by the mutex; the run's own result still stands
            pass
