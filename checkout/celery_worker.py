# checkout/celery_worker.py
import os

from celery import Celery

from checkout.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "checkout",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks must be imported explicitly so the worker registers them
celery_app.conf.imports = (
    "checkout.tasks.expire",
    "checkout.services.notification_service",
)

# publishing happens inside request handlers, never wait long for the broker
celery_app.conf.broker_connection_timeout = 2
celery_app.conf.task_publish_retry_policy = {
    "max_retries": 2,
    "interval_start": 0,
    "interval_step": 0.2,
    "interval_max": 0.5,
}

celery_app.conf.task_always_eager = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"

celery_app.conf.beat_schedule = {
    "expire-stock-holds-every-minute": {
        "task": "checkout.tasks.expire.expire_stock_holds_task",
        "schedule": 60.0,  # every 60 seconds
    },
}

celery_app.conf.timezone = "UTC"
