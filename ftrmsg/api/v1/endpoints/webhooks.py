from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from typing import Any, Dict

from ftrmsg.api.deps import get_payment_webhook_service
from ftrmsg.core.errors import PaymentRecordError, ValidationError
from ftrmsg.core.logging import get_logger
from ftrmsg.core.stripe_signature import verify_stripe_signature
from ftrmsg.services.payment_webhook_service import PaymentWebhookService

router = APIRouter()
logger = get_logger(__name__)


@router.post("/stripe")
async def stripe_webhook(
    event: Dict[str, Any] = Depends(verify_stripe_signature),
    service: PaymentWebhookService = Depends(get_payment_webhook_service)
):
    """
    Payment confirmation from Stripe.

    **Security Requirements:**
    - Stripe-Signature: t=<unix_timestamp>,v1=<hmac_sha256>

    The signature is verified before anything is read or written. A 500
    response makes Stripe retry the event; every step is safe to repeat.
    """
    try:
        ack = await service.handle_event(event)
    except ValidationError as e:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})
    except PaymentRecordError as e:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Error processing Stripe webhook: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to process webhook"}
        )

    return JSONResponse(status_code=status.HTTP_200_OK, content=ack.model_dump(exclude_none=True))
