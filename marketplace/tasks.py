"""
Celery Tasks
Background jobs that must not block API requests.
"""

import logging
import time
from datetime import datetime, timezone

from marketplace.celery_worker import celery_app
from marketplace.services.reports import ReportManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def export_finance_report(self, rows: list[dict]) -> dict:
    """
    Export payment transactions to the finance workbook.

    Args:
        rows: Serialized transactions (see ReportManager.COLUMNS)
    """
    task_id = self.request.id
    logger.info(f"📋 Task {task_id}: exporting {len(rows)} transactions")
    start_time = time.time()

    result = ReportManager.export_transactions(rows)

    elapsed = round(time.time() - start_time, 3)
    result["task_id"] = task_id
    result["processing_time_seconds"] = elapsed

    if result["success"]:
        logger.info(f"✅ Task {task_id}: finance report done in {elapsed}s")
    else:
        logger.warning(f"⚠️ Task {task_id}: finance report failed - {result['message']}")

    return result


@celery_app.task
def health_check() -> dict:
    """Simple health check task to verify Celery is working."""
    return {
        "status": "healthy",
        "worker": "celery",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
