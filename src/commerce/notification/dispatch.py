"""Delivers pending notifications through the registered mailer.

Reacts to NotificationCreated and NotificationRetried. Runs inline when
event processing is synchronous and on the Engine otherwise; either way a
failure only marks the notification FAILED, it never propagates to whoever
asked for the notification.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.notification.channel import EmailMessage, get_mailer
from commerce.notification.events import NotificationCreated, NotificationRetried
from commerce.notification.notification import Notification, NotificationStatus

logger = structlog.get_logger(__name__)


@commerce.event_handler(part_of=Notification)
class NotificationDispatcher:
    @handle(NotificationCreated)
    def on_notification_created(self, event: NotificationCreated) -> None:
        dispatch_notification(event.notification_id)

    @handle(NotificationRetried)
    def on_notification_retried(self, event: NotificationRetried) -> None:
        dispatch_notification(event.notification_id)


def dispatch_notification(notification_id) -> str | None:
    """Send one PENDING notification and record the outcome. Returns the new status."""
    repo = current_domain.repository_for(Notification)

    try:
        notification = repo.get(str(notification_id))
    except ObjectNotFoundError:
        logger.error("Failed to load notification for dispatch", notification_id=str(notification_id))
        return None

    if NotificationStatus(notification.status) != NotificationStatus.PENDING:
        logger.info(
            "Notification not in PENDING status, skipping dispatch",
            notification_id=str(notification_id),
            status=notification.status,
        )
        return notification.status

    try:
        message = EmailMessage(to=notification.recipient, subject=notification.subject or "", body=notification.body)
        receipt = get_mailer(notification.channel).deliver(message)

        if receipt.accepted:
            notification.mark_sent()
        else:
            notification.mark_failed(receipt.error)
    except Exception as e:
        notification.mark_failed(str(e))
        logger.error("Notification dispatch failed", notification_id=str(notification.id), error=str(e))

    repo.add(notification)

    if notification.status == NotificationStatus.FAILED.value:
        logger.warning(
            "Notification delivery failed",
            notification_id=str(notification.id),
            kind=notification.kind,
            retry_count=notification.retry_count,
            reason=notification.failure_reason,
        )
    return notification.status
