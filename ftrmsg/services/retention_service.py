import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.config import settings
from ftrmsg.core.job_logger import log_job_event
from .base_service import BaseService

JOB_NAME = "delivery_log_retention"


class RetentionService(BaseService):
    """Deletes delivery attempts older than the retention window."""

    def __init__(self, session: AsyncSession, retention_days: Optional[int] = None):
        super().__init__(session)
        self.retention_days = retention_days or settings.DELIVERY_LOG_RETENTION_DAYS

    async def cleanup_delivery_logs(self, now: Optional[datetime] = None) -> int:
        run_id = uuid.uuid4().hex
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=self.retention_days)
        try:
            deleted = await self.write(lambda: self.attempt_repo.delete_older_than(cutoff))
        except Exception as e:
            self.logger.error("Delivery log cleanup failed", cutoff=cutoff.isoformat(), error=str(e))
            await log_job_event(JOB_NAME, "run_failed", run_id, {"error": str(e)})
            raise

        self.logger.info("Delivery logs cleaned up", deleted=deleted, cutoff=cutoff.isoformat())
        await log_job_event(JOB_NAME, "run_completed", run_id, {"deleted": deleted})
        return deleted
