from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.config import settings
from ftrmsg.core.errors import ValidationError
from ftrmsg.models.payment import PAYMENT_PENDING, PRODUCT_PRO_UPGRADE
from .base_service import BaseService
from .stripe_client import StripeClient, get_stripe_client


class CheckoutService(BaseService):
    """Starts the Pro upgrade checkout."""

    def __init__(self, session: AsyncSession, stripe_client: Optional[StripeClient] = None):
        super().__init__(session)
        self.stripe = stripe_client or get_stripe_client()

    async def create_checkout(self, user_id: UUID, product_type: str) -> str:
        """
        Create a checkout session and record a pending payment for it.

        Returns:
            The provider's hosted checkout URL
        """
        if product_type != PRODUCT_PRO_UPGRADE:
            raise ValidationError("Invalid product type")

        profile = await self.profile_repo.get_by_id(user_id)
        if profile is None:
            raise ValidationError("User not found")
        if profile.is_pro:
            raise ValidationError("User is already Pro")

        session = await self.stripe.create_checkout_session(
            user_id=str(user_id),
            product_type=product_type,
            amount_cents=settings.PRO_PRICE_CENTS,
            currency=settings.CURRENCY,
            success_url=f"{settings.APP_URL}?success=true",
            cancel_url=f"{settings.APP_URL}?canceled=true",
            customer_email=profile.email,
        )

        try:
            await self.write(lambda: self.payment_repo.create({
                "user_id": user_id,
                "stripe_checkout_session_id": session["id"],
                "amount_cents": settings.PRO_PRICE_CENTS,
                "currency": settings.CURRENCY,
                "product_type": product_type,
                "status": PAYMENT_PENDING,
            }))
        except Exception as e:
            # The webhook creates the row when it is missing
            self.logger.error(
                "Failed to create payment record",
                checkout_session_id=session.get("id"),
                error=str(e)
            )

        return session["url"]
