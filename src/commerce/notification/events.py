"""Domain events for the Notification aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Notification")
class NotificationCreated:
    """A notification was recorded and queued for dispatch."""

    __version__ = 1

    notification_id: Identifier(required=True)
    kind: String(required=True)
    channel: String(required=True)
    recipient: String(required=True)
    created_at: DateTime(required=True)


@commerce.event(part_of="Notification")
class NotificationSent:
    """The mailer accepted the notification."""

    __version__ = 1

    notification_id: Identifier(required=True)
    channel: String(required=True)
    sent_at: DateTime(required=True)


@commerce.event(part_of="Notification")
class NotificationFailed:
    """A dispatch attempt failed."""

    __version__ = 1

    notification_id: Identifier(required=True)
    channel: String(required=True)
    reason: String(required=True)
    retry_count: Integer(required=True)
    max_retries: Integer(required=True)
    failed_at: DateTime(required=True)


@commerce.event(part_of="Notification")
class NotificationRetried:
    """A failed notification was put back in the queue."""

    __version__ = 1

    notification_id: Identifier(required=True)
    channel: String(required=True)
    retry_count: Integer(required=True)
    retried_at: DateTime(required=True)
