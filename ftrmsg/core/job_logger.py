from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ftrmsg.core.redis_client import redis_client

JOB_LOG_KEY = "q:log:jobs"


async def log_job_event(
    job: str,
    status: str,
    run_id: Optional[str] = None,
    info: Optional[Dict[str, Any]] = None,
) -> None:
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "job": job,
        "status": status,
        "run_id": run_id,
        "info": info or {},
    }
    try:
        await redis_client.push_event(JOB_LOG_KEY, event)
    except Exception:
        # Best-effort logging; swallow errors to avoid impacting main flow
        return
