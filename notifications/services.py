"""
Low-stock alerting.

check_low_stock() is idempotent for a given stock state: an alert is only
inserted if the user has no unread low-stock alert with the same text.
"""
import logging
from typing import Optional

from django.contrib.auth import get_user_model

from catalog.stores import low_stock_variants
from .models import Notification

logger = logging.getLogger(__name__)

LOW_STOCK_TITLE = 'Low Stock Alert'


def low_stock_message(variant) -> str:
    return (
        f"{variant.product.name} ({variant.label}) is running low: "
        f"{variant.quantity} left (threshold {variant.effective_threshold})"
    )


def check_low_stock(user_id: Optional[int]) -> int:
    """
    Record a low-stock alert for `user_id` for every under-threshold variant
    that doesn't already have an unread one.

    Returns:
        Number of notifications created
    """
    if user_id is None:
        logger.debug("Low-stock check skipped: no recipient")
        return 0

    if not get_user_model().objects.filter(pk=user_id).exists():
        logger.warning(f"Low-stock check skipped: user {user_id} not found")
        return 0

    messages = []
    for variant in low_stock_variants():
        message = low_stock_message(variant)
        if message not in messages:
            messages.append(message)
    if not messages:
        return 0

    existing = set(
        Notification.objects.filter(
            user_id=user_id,
            kind=Notification.Kind.LOW_STOCK,
            is_read=False,
            message__in=messages
        ).values_list('message', flat=True)
    )

    new_notifications = [
        Notification(
            user_id=user_id,
            title=LOW_STOCK_TITLE,
            message=message,
            type=Notification.Type.WARNING,
            kind=Notification.Kind.LOW_STOCK,
        )
        for message in messages
        if message not in existing
    ]
    Notification.objects.bulk_create(new_notifications)

    if new_notifications:
        logger.info(f"Created {len(new_notifications)} low-stock alerts for user {user_id}")
    return len(new_notifications)


def safe_check_low_stock(user_id: Optional[int]) -> int:
    """check_low_stock() that logs and swallows failures."""
    try:
        return check_low_stock(user_id)
    except Exception as e:
        logger.exception(f"Low-stock check failed for user {user_id}: {e}")
        return 0
