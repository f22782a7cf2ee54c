from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body used by the scheduler and webhook endpoints."""

    error: str
