"""Notification retry — sweep command, single retry command and statistics.

Designed to be triggered periodically by an external scheduler through the
maintenance API. Failed notifications under the retry cap are put back to
PENDING, which re-dispatches them; the rest stay FAILED permanently. The
sweep also delivers PENDING notifications that have waited longer than
``STALE_PENDING_AFTER``, such as those queued on a worker that went away.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.notification.dispatch import dispatch_notification
from commerce.notification.notification import MAX_RETRY_ATTEMPTS, Notification, NotificationStatus

logger = structlog.get_logger(__name__)

RETRY_BATCH_SIZE = 100
STALE_PENDING_AFTER = timedelta(minutes=10)


@commerce.command(part_of="Notification")
class RetryFailedNotifications:
    batch_size = Integer(default=RETRY_BATCH_SIZE, min_value=1)


@commerce.command(part_of="Notification")
class RetryNotification:
    notification_id = Identifier(required=True)


@commerce.command_handler(part_of=Notification)
class NotificationRetryHandler:
    @handle(RetryFailedNotifications)
    def retry_failed(self, command):
        repo = current_domain.repository_for(Notification)
        batch_size = command.batch_size or RETRY_BATCH_SIZE

        failed = (
            repo._dao.query.filter(status=NotificationStatus.FAILED.value, retry_count__lt=MAX_RETRY_ATTEMPTS)
            .order_by("updated_at")
            .limit(batch_size)
            .all()
            .items
        )

        retried = 0
        for notification in failed:
            try:
                notification.retry()
            except ValidationError as exc:
                logger.warning("Notification not retryable", notification_id=str(notification.id), error=str(exc))
                continue
            repo.add(notification)
            retried += 1

        logger.info("Notification retry sweep complete", candidates=len(failed), retried=retried)
        return retried + self._redispatch_stale_pending(repo, batch_size)

    def _redispatch_stale_pending(self, repo, batch_size) -> int:
        """Deliver PENDING notifications whose dispatch never happened."""
        cutoff = datetime.now(UTC) - STALE_PENDING_AFTER
        stale = (
            repo._dao.query.filter(status=NotificationStatus.PENDING.value, updated_at__lte=cutoff)
            .order_by("updated_at")
            .limit(batch_size)
            .all()
            .items
        )
        for notification in stale:
            logger.warning("Re-dispatching stale pending notification", notification_id=str(notification.id))
            dispatch_notification(notification.id)
        return len(stale)

    @handle(RetryNotification)
    def retry_notification(self, command):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        notification.retry()
        repo.add(notification)


def retry_stats() -> dict:
    """Counts operators use to spot stuck or permanently failed notifications."""
    dao = current_domain.repository_for(Notification)._dao

    pending = dao.query.filter(status=NotificationStatus.PENDING.value).all().total
    retryable = (
        dao.query.filter(status=NotificationStatus.FAILED.value, retry_count__lt=MAX_RETRY_ATTEMPTS).all().total
    )
    permanently_failed = (
        dao.query.filter(status=NotificationStatus.FAILED.value, retry_count__gte=MAX_RETRY_ATTEMPTS).all().total
    )

    return {
        "pending": pending,
        "retryable": retryable,
        "permanently_failed": permanently_failed,
        "max_retry_attempts": MAX_RETRY_ATTEMPTS,
    }
