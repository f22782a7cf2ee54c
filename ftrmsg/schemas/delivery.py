from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class BatchRunResponse(BaseModel):
    """Summary of one delivery run (possibly stopped early)."""

    model_config = ConfigDict(populate_by_name=True)

    processed: int = Field(..., ge=0)
    delivered: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    stopped_early: bool = Field(..., alias="stoppedEarly")


class BatchSkippedResponse(BaseModel):
    """Returned when another run already holds the batch lock."""

    skipped: bool = True
    reason: str = "concurrent execution"


class DeliveryStatusResponse(BaseModel):
    lock_held: bool
    locked_at: Optional[str] = None
    due_pending: int
    batch_size: int
    timeout_seconds: float


class CleanupResponse(BaseModel):
    deleted: int = Field(..., ge=0)


class ReconcileResponse(BaseModel):
    repaired: int = Field(..., ge=0)
