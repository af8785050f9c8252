"""
Celery tasks for notifications.

Tasks:
    - check_low_stock_alerts: Post-checkout low-stock scan for one user
"""
import logging

from celery import shared_task
from django.db import transaction

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def check_low_stock_alerts(user_id):
    """
    Async task triggered after a sale commits.

    Best-effort: failures are logged, never retried or raised.

    Args:
        user_id: Recipient of the alerts (the staff member on the sale)
    """
    from notifications.services import safe_check_low_stock

    created = safe_check_low_stock(user_id)
    logger.info(f"[CELERY] Low-stock check for user {user_id}: {created} new alerts")
    return created


def _enqueue(user_id):
    try:
        check_low_stock_alerts.delay(user_id)
        logger.info(f"Queued low-stock check for user {user_id}")
    except Exception as e:
        # Broker down must not surface anywhere near the sale
        logger.error(f"Failed to queue low-stock check: {e}")


def schedule_low_stock_check(user_id):
    """Queue the low-stock check once the current transaction commits."""
    if user_id is None:
        return
    transaction.on_commit(lambda: _enqueue(user_id))
