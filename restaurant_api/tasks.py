"""
Celery Tasks
Background tasks for the order ledger.
"""

import logging
import time

from restaurant_api.celery_worker import celery_app
from restaurant_api.core.config import get_settings
from restaurant_api.services.ledger import LedgerExporter

logger = logging.getLogger(__name__)


def get_ledger() -> LedgerExporter:
    settings = get_settings()
    return LedgerExporter(settings.data_directory, lock_timeout=settings.file_lock_timeout)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_order_to_excel(self, order_data: dict) -> dict:
    """
    Append a placed order to the ledger spreadsheet.

    Args:
        order_data: Row produced by ``ledger.order_to_row``

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_id = order_data.get("order_id", "unknown")

    logger.info(f"Task {task_id}: Processing order #{order_id}")
    start_time = time.time()

    result = get_ledger().export_order(order_data)

    elapsed = round(time.time() - start_time, 3)
    result["task_id"] = task_id
    result["processing_time_seconds"] = elapsed

    if result["success"]:
        logger.info(f"Task {task_id}: Order #{order_id} completed in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: Order #{order_id} failed - {result['message']}")

    return result
