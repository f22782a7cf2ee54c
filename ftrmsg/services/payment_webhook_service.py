from typing import Any, Dict
from uuid import UUID

from ftrmsg.core.config import settings
from ftrmsg.core.errors import PaymentRecordError, ValidationError
from ftrmsg.models.payment import PAYMENT_PENDING, PRODUCT_PRO_UPGRADE
from ftrmsg.schemas.payment import WebhookAck
from .base_service import BaseService

CHECKOUT_COMPLETED = "checkout.session.completed"


class PaymentWebhookService(BaseService):
    """Applies verified payment provider events to payments and profiles."""

    async def handle_event(self, event: Dict[str, Any]) -> WebhookAck:
        """
        Process a signature-verified event.

        The payment row is looked up by checkout-session id without a status
        filter, so one lookup tells apart a new event, a completed one and an
        interrupted one, and each is resumed correctly.

        Raises:
            ValidationError: event is missing the owner reference (400)
            PaymentRecordError: a write failed; the provider should retry (500)
        """
        event_type = event.get("type")
        if event_type != CHECKOUT_COMPLETED:
            self.logger.info("Ignoring payment event", event_id=event.get("id"), event_type=event_type)
            return WebhookAck(ignored=event_type)

        checkout = (event.get("data") or {}).get("object") or {}
        checkout_session_id = checkout.get("id")
        payment_intent_id = checkout.get("payment_intent")
        user_id = (checkout.get("metadata") or {}).get("userId")

        if not user_id:
            self.logger.error("Missing userId in session metadata", checkout_session_id=checkout_session_id)
            raise ValidationError("Missing userId in metadata")
        try:
            user_uuid = UUID(str(user_id))
        except ValueError:
            raise ValidationError("Invalid userId in metadata")

        log = self.logger.with_context(checkout_session_id=checkout_session_id, user_id=user_id)

        payment = await self.payment_repo.get_by_checkout_session_id(checkout_session_id)
        if payment is not None and payment.is_completed:
            log.info("Payment already processed")
            return WebhookAck(status="already_processed")

        if payment is None:
            try:
                payment = await self.write(lambda: self.payment_repo.create({
                    "user_id": user_uuid,
                    "stripe_payment_intent_id": payment_intent_id,
                    "stripe_checkout_session_id": checkout_session_id,
                    "amount_cents": settings.PRO_PRICE_CENTS,
                    "currency": settings.CURRENCY,
                    "product_type": PRODUCT_PRO_UPGRADE,
                    "status": PAYMENT_PENDING,
                }))
            except Exception as e:
                log.error("Failed to insert payment record", error=str(e))
                raise PaymentRecordError("Failed to record payment") from e
        else:
            log.info("Resuming interrupted payment", payment_status=payment.status)

        # A failed write below rolls back and expires `payment`
        payment_id = payment.id

        try:
            upgraded = await self.write(
                lambda: self.profile_repo.upgrade_to_pro(
                    user_uuid,
                    settings.PRO_STORAGE_LIMIT_BYTES,
                    checkout.get("customer")
                )
            )
            if not upgraded:
                raise LookupError(f"Profile {user_id} not found")
        except Exception as e:
            log.error("Failed to update profile", error=str(e))
            try:
                await self.write(lambda: self.payment_repo.mark_failed(payment_id, str(e)))
            except Exception as mark_error:
                log.error("Failed to mark payment failed", error=str(mark_error))
            raise PaymentRecordError("Failed to provision Pro tier") from e

        try:
            await self.write(lambda: self.payment_repo.mark_completed(payment_id, payment_intent_id))
        except Exception as e:
            log.error("Failed to update payment status", error=str(e))
            raise PaymentRecordError("Failed to update payment status") from e

        log.info("Payment completed, profile upgraded to pro")
        return WebhookAck(status="completed")
