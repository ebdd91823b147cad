"""Notification aggregate (CQRS) — one best-effort message and its delivery attempts.

State Machine:
    PENDING → SENT
    PENDING → FAILED → (retry) → PENDING

Each failed attempt increments ``retry_count``. Once it reaches
``max_retries`` the notification stays FAILED for good and is only visible
to operators through the retry statistics.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from commerce.domain import commerce
from commerce.notification.events import (
    NotificationCreated,
    NotificationFailed,
    NotificationRetried,
    NotificationSent,
)

MAX_RETRY_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationKind(Enum):
    ORDER_CONFIRMATION = "order_confirmation"
    NEW_ORDER = "new_order"
    ORDER_PROCESSING = "order_processing"
    SHIPPING_UPDATE = "shipping_update"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    LOW_STOCK_ALERT = "low_stock_alert"


class NotificationChannel(Enum):
    EMAIL = "email"


class NotificationStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.FAILED: {NotificationStatus.PENDING},  # Via retry
    NotificationStatus.SENT: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Notification:
    kind: String(choices=NotificationKind, required=True)
    channel: String(choices=NotificationChannel, default=NotificationChannel.EMAIL.value)
    recipient: String(required=True, max_length=255)  # e-mail address or "merchant:<id>"

    subject: String(max_length=500)
    body: Text(required=True)
    payload: Text()  # JSON used to render subject and body

    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    retry_count: Integer(default=0)
    max_retries: Integer(default=MAX_RETRY_ATTEMPTS)
    failure_reason: String(max_length=500)
    sent_at: DateTime()

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, kind, recipient, body, subject=None, payload=None, channel=NotificationChannel.EMAIL.value):
        now = datetime.now(UTC)
        notification = cls(
            kind=kind,
            channel=channel,
            recipient=recipient,
            subject=subject,
            body=body,
            payload=payload,
            status=NotificationStatus.PENDING.value,
            retry_count=0,
            max_retries=MAX_RETRY_ATTEMPTS,
            created_at=now,
            updated_at=now,
        )
        notification.raise_(
            NotificationCreated(
                notification_id=str(notification.id),
                kind=kind,
                channel=channel,
                recipient=recipient,
                created_at=now,
            )
        )
        return notification

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def can_retry(self) -> bool:
        return NotificationStatus(self.status) == NotificationStatus.FAILED and self.retry_count < self.max_retries

    def mark_sent(self):
        self._assert_can_transition(NotificationStatus.SENT)

        now = datetime.now(UTC)
        self.status = NotificationStatus.SENT.value
        self.sent_at = now
        self.failure_reason = None
        self.updated_at = now

        self.raise_(NotificationSent(notification_id=str(self.id), channel=self.channel, sent_at=now))

    def mark_failed(self, reason):
        self._assert_can_transition(NotificationStatus.FAILED)

        now = datetime.now(UTC)
        self.status = NotificationStatus.FAILED.value
        self.failure_reason = reason[:500] if reason else "Unknown dispatch error"
        self.retry_count = self.retry_count + 1
        self.updated_at = now

        self.raise_(
            NotificationFailed(
                notification_id=str(self.id),
                channel=self.channel,
                reason=self.failure_reason,
                retry_count=self.retry_count,
                max_retries=self.max_retries,
                failed_at=now,
            )
        )

    def retry(self):
        """Queue a failed notification for another attempt."""
        if NotificationStatus(self.status) != NotificationStatus.FAILED:
            raise ValidationError({"status": ["Only failed notifications can be retried"]})
        if self.retry_count >= self.max_retries:
            raise ValidationError({"retry_count": ["Maximum retry attempts exceeded"]})

        now = datetime.now(UTC)
        self.status = NotificationStatus.PENDING.value
        self.updated_at = now

        self.raise_(
            NotificationRetried(
                notification_id=str(self.id),
                channel=self.channel,
                retry_count=self.retry_count,
                retried_at=now,
            )
        )
