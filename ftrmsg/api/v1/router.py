from fastapi import APIRouter

from .endpoints import delivery, maintenance, messages, checkout, webhooks, health

api_router = APIRouter()

api_router.include_router(delivery.router, prefix="/delivery", tags=["delivery"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(checkout.router, prefix="/checkout", tags=["checkout"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
