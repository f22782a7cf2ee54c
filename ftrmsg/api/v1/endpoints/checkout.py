from fastapi import APIRouter, Depends, HTTPException, status

from ftrmsg.api.deps import get_checkout_service
from ftrmsg.core.auth import get_current_profile
from ftrmsg.core.errors import PaymentProviderError, ValidationError
from ftrmsg.core.logging import get_logger
from ftrmsg.models.profile import Profile
from ftrmsg.schemas.payment import CheckoutRequest, CheckoutResponse
from ftrmsg.services.checkout_service import CheckoutService

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    current_profile: Profile = Depends(get_current_profile),
    service: CheckoutService = Depends(get_checkout_service)
):
    """
    Start a Pro upgrade checkout for the authenticated user.

    - **productType**: only `pro_upgrade` is sold
    """
    try:
        url = await service.create_checkout(current_profile.id, request.product_type)
        return CheckoutResponse(url=url)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PaymentProviderError as e:
        logger.error(f"Checkout error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session"
        )
