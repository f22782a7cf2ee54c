from celery import Celery
from celery.schedules import crontab

from ftrmsg.core.config import settings

# Create Celery instance
celery_app = Celery(
    "ftrmsg",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=['ftrmsg.workers.tasks']
)

# Configure Celery
celery_app.conf.update(
    # Task serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    task_routes={
        'ftrmsg.workers.tasks.*': {'queue': 'delivery_tasks'},
    },

    # One batch at a time per worker; the batch lock covers other workers
    worker_concurrency=1,
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    beat_schedule={
        "deliver-due-messages": {
            "task": "ftrmsg.workers.tasks.run_delivery_batch",
            "schedule": crontab(hour=settings.DELIVERY_CRON_HOUR, minute=settings.DELIVERY_CRON_MINUTE),
        },
        "cleanup-delivery-logs": {
            "task": "ftrmsg.workers.tasks.cleanup_delivery_logs",
            "schedule": crontab(hour=settings.RETENTION_CRON_HOUR, minute=0),
        },
        "reconcile-message-status": {
            "task": "ftrmsg.workers.tasks.reconcile_message_status",
            "schedule": crontab(hour=settings.RECONCILE_CRON_HOUR, minute=0),
        },
    },
)
