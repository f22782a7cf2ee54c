"""
Audit for the Message.status mirror.

The delivery ledger is authoritative. A message with a delivered attempt
whose own status says otherwise is rewritten to delivered.
"""
import uuid
from datetime import datetime, timezone

from ftrmsg.core.job_logger import log_job_event
from .base_service import BaseService

JOB_NAME = "status_reconciliation"


class ReconciliationService(BaseService):

    async def reconcile(self, limit: int = 500) -> int:
        run_id = uuid.uuid4().hex
        drifted = await self.message_repo.find_status_drift(limit=limit)
        # Plain values; a failed write rolls back and expires the loaded rows
        targets = [(message.id, message.delivered_at) for message in drifted]
        repaired = 0

        for message_id, delivered_at in targets:
            try:
                await self.write(
                    lambda: self.message_repo.mark_delivered(
                        message_id, delivered_at or datetime.now(timezone.utc)
                    )
                )
                repaired += 1
            except Exception as e:
                self.logger.error(
                    "Status reconciliation failed for message",
                    alert="MESSAGE_STATUS_UPDATE_FAILED",
                    message_id=str(message_id),
                    error=str(e)
                )

        if drifted:
            self.logger.warning("Repaired message status drift", found=len(drifted), repaired=repaired)
        else:
            self.logger.info("No message status drift found")
        await log_job_event(JOB_NAME, "run_completed", run_id, {"found": len(drifted), "repaired": repaired})
        return repaired
