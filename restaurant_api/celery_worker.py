"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.

Run with:
    celery -A restaurant_api.celery_worker worker --loglevel=info
"""

from celery import Celery

from restaurant_api.core.config import get_settings

REDIS_URL = get_settings().redis_url

celery_app = Celery(
    "restaurant_worker",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["restaurant_api.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Process one task at a time
    worker_concurrency=4,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Task execution settings
    task_acks_late=True,  # Acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies

    broker_connection_retry_on_startup=True,
)


if __name__ == "__main__":
    celery_app.start()
