# casa_cart/celery_worker.py
from celery import Celery

from casa_cart.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
)

celery_app = Celery(
    "casa_cart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# explicit imports so the worker registers every task
celery_app.conf.imports = (
    "casa_cart.tasks.cleanup",
    "casa_cart.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "purge-stale-carts-hourly": {
        "task": "casa_cart.tasks.cleanup.purge_stale_carts_task",
        "schedule": 60.0 * 60,
    },
}

celery_app.conf.timezone = "UTC"
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
