"""
Celery tasks for checkout maintenance.

Usage:
    from checkout.tasks import expire_checkout_sessions

    # Typically run via celery-beat (see CELERY_BEAT_SCHEDULE)
    expire_checkout_sessions.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from checkout.models import CheckoutSession, GatewayNotification
from checkout.state_machines import CheckoutSessionState, NotificationStatus

logger = logging.getLogger(__name__)


@shared_task
def expire_checkout_sessions() -> dict:
    """
    Periodic task to time out abandoned checkout sessions.

    Sessions still waiting for a token or a confirmation past their
    expiry are moved to EXPIRED and deleted. The order's payment state is
    left untouched; a late notification can still settle it. Sessions
    awaiting the outcome of an unanswered gateway call are kept.

    Returns:
        Dict with count of sessions expired
    """
    expired = CheckoutSession.objects.filter(
        state__in=[
            CheckoutSessionState.FORM_PENDING,
            CheckoutSessionState.TOKEN_COLLECTED,
        ],
        expires_at__lte=timezone.now(),
        awaiting_outcome=False,
    )

    expired_count = 0
    for session in expired:
        session.expire()
        logger.info(
            "Checkout session expired",
            extra={
                "session_id": str(session.id),
                "order_id": session.order_id,
                "gateway": session.gateway,
                "state": session.state,
            },
        )
        session.delete()
        expired_count += 1

    if expired_count > 0:
        logger.info(
            f"Expired {expired_count} checkout sessions",
            extra={"expired_count": expired_count},
        )

    return {"expired_count": expired_count}


@shared_task
def cleanup_old_notifications(days: int = 90) -> dict:
    """
    Periodic task to clean up old handled gateway notifications.

    Args:
        days: Delete handled notifications older than this many days

    Returns:
        Dict with count of notifications deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = GatewayNotification.objects.filter(
        status__in=[NotificationStatus.PROCESSED, NotificationStatus.IGNORED],
        created_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old gateway notifications",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}
