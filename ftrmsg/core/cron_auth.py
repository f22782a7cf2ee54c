import hmac
from typing import Optional
from fastapi import HTTPException, Request, status

from .config import settings
from .logging import get_logger

logger = get_logger(__name__)


def is_valid_cron_secret(provided: Optional[str], expected: Optional[str] = None) -> bool:
    """
    Compare a shared-secret header value against the configured secret.

    An unset secret rejects every caller.
    """
    expected = settings.CRON_SECRET if expected is None else expected
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def verify_cron_secret(request: Request) -> None:
    """FastAPI dependency guarding scheduler-invoked endpoints."""
    provided = request.headers.get(settings.CRON_SECRET_HEADER)
    if not is_valid_cron_secret(provided):
        logger.warning(
            "Rejected scheduler invocation",
            path=request.url.path,
            header_present=provided is not None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
