from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.database import get_async_session
from ftrmsg.services.delivery_service import DeliveryService
from ftrmsg.services.message_service import MessageService
from ftrmsg.services.checkout_service import CheckoutService
from ftrmsg.services.payment_webhook_service import PaymentWebhookService
from ftrmsg.services.retention_service import RetentionService
from ftrmsg.services.reconciliation_service import ReconciliationService


def get_delivery_service(session: AsyncSession = Depends(get_async_session)) -> DeliveryService:
    return DeliveryService(session)


def get_message_service(session: AsyncSession = Depends(get_async_session)) -> MessageService:
    return MessageService(session)


def get_checkout_service(session: AsyncSession = Depends(get_async_session)) -> CheckoutService:
    return CheckoutService(session)


def get_payment_webhook_service(session: AsyncSession = Depends(get_async_session)) -> PaymentWebhookService:
    return PaymentWebhookService(session)


def get_retention_service(session: AsyncSession = Depends(get_async_session)) -> RetentionService:
    return RetentionService(session)


def get_reconciliation_service(session: AsyncSession = Depends(get_async_session)) -> ReconciliationService:
    return ReconciliationService(session)
