import httpx
from typing import Any, Dict, Optional

from ftrmsg.core.config import settings
from ftrmsg.core.errors import PaymentProviderError
from ftrmsg.core.logging import get_logger

logger = get_logger(__name__)


class StripeClient:
    """Minimal Stripe REST client: checkout session creation only."""

    def __init__(
        self,
        secret_key: str,
        base_url: str,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    async def create_checkout_session(
        self,
        user_id: str,
        product_type: str,
        amount_cents: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a one-off payment checkout session.

        Returns:
            The session object (contains `id` and `url`)

        Raises:
            PaymentProviderError: on any provider or network failure
        """
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][product_data][name]": "FtrMsg Pro",
            "line_items[0][price_data][product_data][description]": "Unlimited messages, video support, 2GB storage",
            "line_items[0][price_data][unit_amount]": str(amount_cents),
            "line_items[0][quantity]": "1",
            "metadata[userId]": user_id,
            "metadata[productType]": product_type,
            "client_reference_id": user_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            form["customer_email"] = customer_email

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/v1/checkout/sessions",
                    data=form,
                    headers={"Authorization": f"Bearer {self.secret_key}"}
                )
        except httpx.HTTPError as e:
            logger.error("Stripe request failed", error=str(e))
            raise PaymentProviderError(f"Payment provider unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "Stripe rejected checkout session",
                status_code=response.status_code,
                response_text=response.text[:500]
            )
            raise PaymentProviderError(f"Payment provider returned {response.status_code}")

        session = response.json()
        logger.info("Checkout session created", checkout_session_id=session.get("id"), user_id=user_id)
        return session


def get_stripe_client() -> StripeClient:
    return StripeClient(
        secret_key=settings.STRIPE_SECRET_KEY,
        base_url=settings.STRIPE_API_URL,
        timeout=settings.STRIPE_TIMEOUT_SECONDS,
    )
