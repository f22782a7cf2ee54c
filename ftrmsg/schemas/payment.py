from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ftrmsg.models.payment import PRODUCT_PRO_UPGRADE


class CheckoutRequest(BaseModel):
    """Schema for starting a checkout session."""

    model_config = ConfigDict(populate_by_name=True)

    product_type: str = Field(default=PRODUCT_PRO_UPGRADE, alias="productType")


class CheckoutResponse(BaseModel):
    url: str


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment provider."""

    received: bool = True
    status: Optional[str] = None
    ignored: Optional[str] = None
